"""
Upload Controller - Handles ingestion-related request logic
Reads the uploaded file, runs the ingestion service and shapes the response
"""

from fastapi import UploadFile, HTTPException
from typing import Dict, Any, Optional
import logging

from sqlalchemy.orm import Session

from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import AppException, ValidationError, to_http_exception
from delivery_recon.services.file_utils import get_file_info
from delivery_recon.services.ingestion_service import IngestionService
from delivery_recon.services.upsert_batcher import delete_week

logger = logging.getLogger(__name__)


def parse_platform(platform: str) -> Platform:
    try:
        return Platform.from_string(platform)
    except ValueError as e:
        raise ValidationError(str(e), {"platform": platform}) from e


class UploadController:
    """Controller for platform file ingestion"""

    def __init__(self, ingestion_service: Optional[IngestionService] = None):
        self.ingestion_service = ingestion_service or IngestionService()

    async def upload_platform_file(
        self,
        session: Session,
        platform: str,
        client_id: int,
        file: UploadFile
    ) -> Dict[str, Any]:
        """
        Ingest one platform export for a client.
        A parse failure or a file with no valid rows is reported with success=False.
        """
        try:
            file_info = get_file_info(file)
            logger.info(f"Processing file: {file_info}")

            content = await file.read()
            result = self.ingestion_service.ingest(
                session, content, file.filename, parse_platform(platform), client_id
            )
            return {
                "success": result.success,
                "file_info": file_info,
                "data": result.to_dict(),
                "error": result.error,
            }

        except AppException as e:
            raise to_http_exception(e)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error in upload_platform_file: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    async def delete_week(
        self,
        session: Session,
        platform: str,
        client_id: int,
        week_start: str,
        week_end: str
    ) -> Dict[str, Any]:
        """Replace-week pre-step: delete a client's platform rows in a date range"""
        try:
            tag = parse_platform(platform)
            deleted = delete_week(session, tag, client_id, week_start, week_end)
            return {
                "success": True,
                "data": {
                    "platform": tag.value,
                    "client_id": client_id,
                    "week_start": week_start,
                    "week_end": week_end,
                    "rows_deleted": deleted,
                },
            }

        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in delete_week: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")
