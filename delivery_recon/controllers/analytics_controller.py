"""
Analytics Controller - Consolidated metrics, available weeks and the
data quality report
"""

from fastapi import HTTPException
from typing import Dict, Any, Optional
import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from delivery_recon.controllers.upload_controller import parse_platform
from delivery_recon.core.exceptions import AppException, ValidationError, to_http_exception
from delivery_recon.services.analysis.data_quality_analyzer import DataQualityAnalyzer
from delivery_recon.services.analysis.metrics_service import MetricsFilter, MetricsService
from delivery_recon.services.analysis.week_utils import get_week_start

logger = logging.getLogger(__name__)


def _checked_date(value: Optional[str], name: str) -> Optional[str]:
    if not value:
        return None
    try:
        return get_week_start(value).isoformat()
    except ValueError as e:
        raise ValidationError(f"Invalid {name} '{value}', expected YYYY-MM-DD", {name: value}) from e


class AnalyticsController:
    """Controller for read-side reporting"""

    def __init__(self):
        self.metrics_service = MetricsService()
        self.quality_analyzer = DataQualityAnalyzer()

    async def health(self, session: Session) -> Dict[str, Any]:
        try:
            session.execute(text("SELECT 1"))
            database = "connected"
        except SQLAlchemyError as e:
            logger.error(f"❌ Health check database query failed: {e}")
            database = "unavailable"
        return {
            "success": database == "connected",
            "data": {"status": "healthy" if database == "connected" else "degraded", "database": database},
        }

    async def location_metrics(
        self,
        session: Session,
        client_id: Optional[int] = None,
        location_id: Optional[int] = None,
        platform: Optional[str] = None,
        week_start: Optional[str] = None,
        week_end: Optional[str] = None,
        group_by_week: bool = False
    ) -> Dict[str, Any]:
        try:
            filters = MetricsFilter(
                client_id=client_id,
                location_id=location_id,
                platform=parse_platform(platform) if platform else None,
                week_start=_checked_date(week_start, "week_start"),
                week_end=_checked_date(week_end, "week_end"),
            )
            metrics = self.metrics_service.location_metrics(session, filters, group_by_week=group_by_week)
            return {"success": True, "data": metrics}
        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in location_metrics: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    async def available_weeks(self, session: Session, client_id: Optional[int] = None) -> Dict[str, Any]:
        try:
            return {"success": True, "data": self.metrics_service.available_weeks(session, client_id)}
        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in available_weeks: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    async def data_quality(
        self,
        session: Session,
        client_id: Optional[int] = None,
        lookback_weeks: Optional[int] = None
    ) -> Dict[str, Any]:
        try:
            report = self.quality_analyzer.report(session, client_id, lookback_weeks)
            return {"success": True, "data": report}
        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in data_quality: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")
