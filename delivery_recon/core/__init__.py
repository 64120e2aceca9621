"""
Configuration, environment detection and the application error types
"""

from delivery_recon.core.config import AppConfig, config
from delivery_recon.core.environment import Environment, get_environment
from delivery_recon.core.exceptions import AppException, NotFoundError, ParseError, ValidationError

__all__ = [
    'AppConfig',
    'config',
    'Environment',
    'get_environment',
    'AppException',
    'NotFoundError',
    'ParseError',
    'ValidationError',
]
