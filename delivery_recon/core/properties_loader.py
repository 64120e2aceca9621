"""
Profile-aware .properties loading (application.properties + application-{profile}.properties)
"""

import os
import logging
from pathlib import Path
from typing import Dict, Optional
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Properties keys mapped to the environment variable names read by pydantic-settings
PROPERTY_TO_ENV_MAP = {
    'database.url': 'DATABASE_URL',
    'database.echo': 'DB_ECHO',
    'db.pool.size': 'DB_POOL_SIZE',
    'db.max.overflow': 'DB_MAX_OVERFLOW',
    'db.pool.recycle': 'DB_POOL_RECYCLE',
    'match.fuzzy.threshold': 'MATCH_FUZZY_THRESHOLD',
    'match.tie.break': 'MATCH_TIE_BREAK',
    'match.suggestion.min.confidence': 'MATCH_SUGGESTION_MIN_CONFIDENCE',
    'ingest.batch.size': 'INGEST_BATCH_SIZE',
    'app.max.file.size.mb': 'MAX_FILE_SIZE_MB',
    'quality.cogs.rate': 'QUALITY_COGS_RATE',
    'quality.max.roas': 'QUALITY_MAX_ROAS',
    'quality.min.payout.percent': 'QUALITY_MIN_PAYOUT_PERCENT',
    'quality.wow.drop.percent': 'QUALITY_WOW_DROP_PERCENT',
    'quality.wow.drop.absolute': 'QUALITY_WOW_DROP_ABSOLUTE',
    'quality.wow.spike.percent': 'QUALITY_WOW_SPIKE_PERCENT',
    'quality.wow.spike.absolute': 'QUALITY_WOW_SPIKE_ABSOLUTE',
    'quality.lookback.weeks': 'QUALITY_LOOKBACK_WEEKS',
    'app.log.level': 'LOG_LEVEL',
    'app.debug': 'DEBUG',
    'app.enable.docs': 'ENABLE_DOCS',
    'server.host': 'UVICORN_HOST',
    'server.port': 'UVICORN_PORT',
    'server.reload': 'UVICORN_RELOAD',
    'cors.allowed.origins': 'CORS_ALLOWED_ORIGINS',
}


class PropertiesLoader:
    """
    Reads application.properties, then application-{profile}.properties
    over it, and exports mapped keys as environment variables.
    """

    def __init__(self, base_dir: Optional[Path] = None):
        # Properties files live at the project root, next to pyproject.toml
        self.base_dir = base_dir or Path(__file__).resolve().parent.parent.parent
        self.properties: Dict[str, str] = {}

    def load_properties_file(self, file_path: Path) -> Dict[str, str]:
        if not file_path.exists():
            return {}
        return parse_properties(file_path.read_text(encoding='utf-8'))

    def load_all_properties(self, active_profile: Optional[str] = None) -> Dict[str, str]:
        """Load .env, base and profile files; variables already in os.environ are left alone"""
        active_profile = active_profile or get_active_profile()

        env_file = self.base_dir / '.env'
        if env_file.exists():
            load_dotenv(env_file, override=False)
            logger.debug(f"Loaded dotenv file: {env_file}")

        for file_name in ('application.properties', f'application-{active_profile}.properties'):
            path = self.base_dir / file_name
            if path.exists():
                self.properties.update(self.load_properties_file(path))
                logger.debug(f"✅ Loaded {file_name}")

        for key, value in self.properties.items():
            env_key = PROPERTY_TO_ENV_MAP.get(key)
            if env_key:
                os.environ.setdefault(env_key, value)

        return self.properties


def parse_properties(text: str) -> Dict[str, str]:
    """key=value lines; '#' comments and blank lines are ignored, surrounding quotes stripped"""
    props = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, value = (part.strip() for part in line.split('=', 1))
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        props[key] = value
    return props


def load_application_properties(profile: Optional[str] = None) -> PropertiesLoader:
    loader = PropertiesLoader()
    loader.load_all_properties(active_profile=profile)
    return loader


def get_active_profile() -> str:
    """SPRING_PROFILES_ACTIVE, then APP_PROFILE, then APP_ENV; default dev"""
    profile = (
        os.getenv('SPRING_PROFILES_ACTIVE') or
        os.getenv('APP_PROFILE') or
        os.getenv('APP_ENV') or
        'dev'
    )
    return profile.lower().strip()
