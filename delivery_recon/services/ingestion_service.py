"""
Ingestion Service
End-to-end ingestion of one platform export for one client:

1. Read and parse the file (CSV or spreadsheet)
2. Check required columns - a parse error aborts before any write
3. Normalize every row, collecting rejected rows with their reason
4. Load the client's location directory (creates the Unmapped bucket if absent)
5. Resolve each row to a canonical location
6. Deduplicate by natural key (last row wins)
7. Upsert in fixed-size batches

Ingestions for the same client are serialized within this process.
"""
import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from delivery_recon.core.config import config
from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import NotFoundError, ParseError, RowValidationError
from delivery_recon.models import Client, NATURAL_KEY_COLUMNS, TRANSACTION_MODELS
from delivery_recon.services.file_utils import dataframe_to_records, read_tabular_bytes, validate_file_size
from delivery_recon.services.matching.identity_resolver import IdentityResolver, ResolutionContext
from delivery_recon.services.upload.UploadServiceMap import get_platform_service
from delivery_recon.services.upsert_batcher import UpsertBatcher, dedupe_last_wins

log = logging.getLogger(__name__)

# Rejection reasons kept in a result; the count is always exact
MAX_REPORTED_REJECTIONS = 500

_client_locks: Dict[int, threading.Lock] = {}
_client_locks_guard = threading.Lock()


def _lock_for(client_id: int) -> threading.Lock:
    with _client_locks_guard:
        return _client_locks.setdefault(client_id, threading.Lock())


@dataclass
class IngestionResult:
    success: bool
    platform: str
    client_id: int
    filename: Optional[str] = None
    rows_total: int = 0
    rows_processed: int = 0
    rows_rejected: int = 0
    rows_written: int = 0
    duplicates_collapsed: int = 0
    locations_created: int = 0
    unmapped_rows: int = 0
    batches_written: int = 0
    resolution_stats: Dict[str, int] = field(default_factory=dict)
    fuzzy_matches: List[Dict[str, Any]] = field(default_factory=list)
    rejection_reasons: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class IngestionService:
    """Runs one file through normalize -> resolve -> dedupe -> upsert"""

    def __init__(self, resolver: Optional[IdentityResolver] = None, batcher: Optional[UpsertBatcher] = None):
        self.resolver = resolver or IdentityResolver()
        self.batcher = batcher or UpsertBatcher()

    def ingest(self, session: Session, content: bytes, filename: Optional[str],
               platform: Union[Platform, str], client_id: int) -> IngestionResult:
        platform = Platform.from_string(platform)
        service = get_platform_service(platform)
        result = IngestionResult(success=False, platform=platform.value, client_id=client_id, filename=filename)

        if session.get(Client, client_id) is None:
            raise NotFoundError(f"Client {client_id} not found", {"client_id": client_id})

        validate_file_size(content, config.ingestion.max_file_size_mb)

        log.info(f"📥 Ingesting {platform.display_name} file '{filename}' for client {client_id}")

        with _lock_for(client_id):
            try:
                df = read_tabular_bytes(content, filename, platform)
                service.check_columns(df.columns)
            except ParseError as e:
                log.error(f"❌ {e.message}")
                result.error = e.message
                return result

            records = []
            for row_number, raw in enumerate(dataframe_to_records(df), start=1):
                result.rows_total += 1
                try:
                    records.append(service.normalize_row(raw, row_number=row_number))
                except RowValidationError as e:
                    result.rows_rejected += 1
                    if len(result.rejection_reasons) < MAX_REPORTED_REJECTIONS:
                        result.rejection_reasons.append({"row": row_number, "reason": e.message})

            result.rows_processed = len(records)
            if result.rows_rejected:
                result.warnings.append(f"{result.rows_rejected} row(s) rejected")
                log.warning(f"⚠️ {result.rows_rejected} of {result.rows_total} row(s) rejected in '{filename}'")

            if not records:
                result.error = "No valid rows found in file"
                log.warning(f"⚠️ No valid rows in '{filename}' ({result.rows_total} row(s) read)")
                return result

            context = ResolutionContext.for_client(session, client_id)
            result.locations_created = 1 if context.directory.sentinel_created else 0

            for record in records:
                self.resolver.resolve_record(context, record)

            unique, result.duplicates_collapsed = dedupe_last_wins(records, key=lambda r: r.natural_key)
            if result.duplicates_collapsed:
                result.warnings.append(
                    f"{result.duplicates_collapsed} duplicate row(s) collapsed; the last occurrence was kept"
                )

            upserted = self.batcher.upsert(
                session,
                TRANSACTION_MODELS[platform],
                [record.to_row(client_id) for record in unique],
                NATURAL_KEY_COLUMNS[platform],
            )

        unmapped_id = context.directory.unmapped_id
        result.rows_written = upserted.rows_written
        result.batches_written = upserted.batches_written
        result.unmapped_rows = sum(1 for record in unique if record.location_id == unmapped_id)
        result.resolution_stats = dict(context.stats)
        result.fuzzy_matches = list(context.fuzzy_matches)
        if result.unmapped_rows:
            result.warnings.append(f"{result.unmapped_rows} row(s) assigned to Unmapped Locations")
        result.success = True

        log.info(
            f"✅ {platform.display_name} ingestion complete for client {client_id}: "
            f"{result.rows_processed} processed, {result.rows_rejected} rejected, "
            f"{result.rows_written} written in {result.batches_written} batch(es), "
            f"{result.unmapped_rows} unmapped"
        )
        return result

    def ingest_file(self, session: Session, file_path: str, platform: Union[Platform, str],
                    client_id: int) -> IngestionResult:
        """Ingest a file from disk"""
        with open(file_path, 'rb') as f:
            content = f.read()
        return self.ingest(session, content, os.path.basename(file_path), platform, client_id)
