"""
Location Controller - Clients, master list import, match review and
location administration
"""

from fastapi import UploadFile, HTTPException
from typing import Dict, Any, Optional
import logging

from sqlalchemy.orm import Session

from delivery_recon.controllers.upload_controller import parse_platform
from delivery_recon.core.exceptions import AppException, to_http_exception
from delivery_recon.services.file_utils import get_file_info
from delivery_recon.services.location_service import LocationService
from delivery_recon.services.matching.suggestion_engine import MatchSuggestionEngine

logger = logging.getLogger(__name__)


class LocationController:
    """Controller for locations and their platform bindings"""

    def __init__(self):
        self.location_service = LocationService()
        self.suggestion_engine = MatchSuggestionEngine()

    async def create_client(self, session: Session, name: str) -> Dict[str, Any]:
        try:
            client = self.location_service.create_client(session, name)
            return {"success": True, "data": {"id": client.id, "name": client.name}}
        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in create_client: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    async def list_clients(self, session: Session) -> Dict[str, Any]:
        try:
            clients = self.location_service.list_clients(session)
            return {"success": True, "data": [{"id": c.id, "name": c.name} for c in clients]}
        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in list_clients: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    async def import_master_list(self, session: Session, client_id: int, file: UploadFile) -> Dict[str, Any]:
        """Create/update canonical locations from an uploaded master list"""
        try:
            file_info = get_file_info(file)
            logger.info(f"Importing master list: {file_info}")
            content = await file.read()
            summary = self.location_service.import_master_list(session, content, file.filename, client_id)
            return {"success": True, "file_info": file_info, "data": summary}
        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in import_master_list: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    async def list_locations(self, session: Session, client_id: int) -> Dict[str, Any]:
        try:
            locations = self.location_service.list_locations(session, client_id)
            return {"success": True, "data": [loc.to_dict() for loc in locations]}
        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in list_locations: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    async def get_suggestions(
        self,
        session: Session,
        client_id: int,
        platform: Optional[str] = None,
        min_confidence: Optional[float] = None
    ) -> Dict[str, Any]:
        """Unverified raw store names with their best candidate location"""
        try:
            self.location_service.get_client(session, client_id)
            suggestions = self.suggestion_engine.suggest(
                session,
                client_id,
                parse_platform(platform) if platform else None,
                min_confidence,
            )
            return {"success": True, "data": [s.to_dict() for s in suggestions]}
        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in get_suggestions: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    async def confirm_match(
        self,
        session: Session,
        client_id: int,
        raw_location_name: str,
        platform: str,
        target_location_id: int
    ) -> Dict[str, Any]:
        try:
            result = self.location_service.confirm_match(
                session, client_id, raw_location_name, parse_platform(platform), target_location_id
            )
            return {"success": True, "data": result}
        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in confirm_match: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    async def get_duplicates(self, session: Session, client_id: int) -> Dict[str, Any]:
        try:
            groups = self.location_service.find_duplicate_locations(session, client_id)
            return {"success": True, "data": groups}
        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in get_duplicates: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    async def merge_locations(
        self,
        session: Session,
        client_id: int,
        source_location_id: int,
        target_location_id: int
    ) -> Dict[str, Any]:
        try:
            result = self.location_service.merge_locations(session, client_id, source_location_id, target_location_id)
            return {"success": True, "data": result}
        except AppException as e:
            raise to_http_exception(e)
        except Exception as e:
            logger.error(f"Error in merge_locations: {str(e)}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")
