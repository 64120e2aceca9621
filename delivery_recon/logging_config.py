"""
Logging setup for the API, the CLIs and ingestion runs
"""
import logging
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = {
    'uvicorn.access': logging.WARNING,
    'sqlalchemy.engine': logging.WARNING,  # DB_ECHO controls statement echo
    'multipart': logging.WARNING,
}


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure root logging on stdout.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (unknown values mean INFO)
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


class RequestLogger:
    """One line per API response; errors below 500 are logged without a traceback"""

    def __init__(self, name: str = "delivery_recon.api"):
        self.logger = logging.getLogger(name)

    def log_response(self, endpoint: str, status_code: int, response_time: float, method: str):
        self.logger.info(f"{method} {endpoint} -> {status_code} in {response_time * 1000:.0f} ms")

    def log_error(self, endpoint: str, error: Exception, status_code: Optional[int] = None,
                  validation_errors: Optional[list] = None):
        message = f"❌ {endpoint}: {error}"
        if status_code:
            message += f" [{status_code}]"
        if validation_errors:
            message += f" validation={validation_errors}"

        if status_code is not None and status_code < 500:
            self.logger.warning(message)
        else:
            self.logger.error(message, exc_info=True)


request_logger = RequestLogger()
