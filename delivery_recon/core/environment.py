"""
Deployment environment, derived from the active properties profile
"""

from enum import Enum
from typing import Optional

from delivery_recon.core.properties_loader import get_active_profile, load_application_properties

# Long-form profile names accepted alongside dev/stage/prod
PROFILE_ALIASES = {
    'development': 'dev',
    'local': 'dev',
    'staging': 'stage',
    'production': 'prod',
}


class Environment(str, Enum):
    DEVELOPMENT = "dev"
    STAGING = "stage"
    PRODUCTION = "prod"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        key = (value or '').strip().lower()
        key = PROFILE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(
                f"Invalid environment: {value}. Must be one of: {', '.join(e.value for e in cls)}"
            ) from None

    @property
    def is_production(self) -> bool:
        return self is Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        return self is Environment.DEVELOPMENT


def detect_environment() -> Environment:
    """Environment of the active profile; unknown profiles count as development"""
    try:
        return Environment.from_string(get_active_profile())
    except ValueError:
        return Environment.DEVELOPMENT


def load_environment_config(env: Optional[Environment] = None) -> None:
    """Export application.properties and the profile's overrides into os.environ"""
    load_application_properties(profile=(env or detect_environment()).value)


def get_environment() -> Environment:
    return detect_environment()
