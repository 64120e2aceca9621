"""
Controllers module - Ingestion, location and analytics controllers
Handles request-level logic between routes and services
"""

from .upload_controller import UploadController
from .location_controller import LocationController
from .analytics_controller import AnalyticsController

__all__ = [
    "UploadController",
    "LocationController",
    "AnalyticsController"
]
