"""
Dedup/Upsert Batcher
Deduplicates normalized records by natural key, then writes them with the
dialect's native insert-or-update in fixed-size batches.

Policy: within one input, the LAST occurrence of a natural key wins.
Each batch commits on its own; a failed batch stops the run and earlier
batches stay committed.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from delivery_recon.core.config import config
from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import BatchUpsertError, DatabaseError, ValidationError
from delivery_recon.models import DATE_COLUMNS, TRANSACTION_MODELS, utcnow

log = logging.getLogger(__name__)

T = TypeVar('T')

# Columns never overwritten when a natural key already exists
PRESERVED_ON_UPDATE = ('id', 'uploaded_at')


def dedupe_last_wins(items: Iterable[T], key: Callable[[T], Any]) -> Tuple[List[T], int]:
    """
    Collapse items sharing a key; the last occurrence's values win.

    Keys keep the position of their first occurrence. Returns
    (unique items, number of duplicates collapsed).
    """
    latest: Dict[Any, T] = {}
    total = 0
    for item in items:
        total += 1
        latest[key(item)] = item
    return list(latest.values()), total - len(latest)


@dataclass
class UpsertResult:
    rows_written: int = 0
    batches_written: int = 0


class UpsertBatcher:
    """Batched insert-or-update against a table's natural-key unique constraint"""

    def __init__(self, batch_size: Optional[int] = None):
        self.batch_size = batch_size or config.ingestion.batch_size

    def upsert(self, session: Session, model, rows: List[Dict[str, Any]],
               conflict_columns: Sequence[str],
               preserve_columns: Sequence[str] = PRESERVED_ON_UPDATE) -> UpsertResult:
        result = UpsertResult()
        if not rows:
            return result

        table = model.__table__
        insert_fn, dialect = self._dialect_insert(session)
        now = utcnow()

        for batch_index, start in enumerate(range(0, len(rows), self.batch_size)):
            batch = [dict(row, uploaded_at=now, updated_at=now) for row in rows[start:start + self.batch_size]]
            try:
                session.execute(self._statement(insert_fn, dialect, table, batch, conflict_columns, preserve_columns))
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                log.error(
                    f"❌ Batch {batch_index} ({len(batch)} rows) failed on {table.name}; "
                    f"{result.rows_written} row(s) from earlier batches stay committed: {e}"
                )
                raise BatchUpsertError(
                    f"Upsert batch {batch_index} into {table.name} failed: {e.__class__.__name__}",
                    batch_index=batch_index,
                    batch_size=len(batch),
                    rows_committed=result.rows_written,
                    details={"table": table.name},
                ) from e

            result.rows_written += len(batch)
            result.batches_written += 1
            log.info(f"✅ Batch {batch_index}: upserted {len(batch)} row(s) into {table.name}")

        return result

    @staticmethod
    def _dialect_insert(session: Session):
        dialect = session.get_bind().dialect.name
        if dialect == 'sqlite':
            from sqlalchemy.dialects.sqlite import insert
        elif dialect == 'postgresql':
            from sqlalchemy.dialects.postgresql import insert
        elif dialect in ('mysql', 'mariadb'):
            from sqlalchemy.dialects.mysql import insert
        else:
            raise DatabaseError(f"Upsert not supported for database dialect '{dialect}'", {"dialect": dialect})
        return insert, dialect

    @staticmethod
    def _statement(insert_fn, dialect: str, table, batch: List[Dict[str, Any]],
                   conflict_columns: Sequence[str], preserve_columns: Sequence[str]):
        stmt = insert_fn(table).values(batch)
        update_columns = [
            col for col in batch[0]
            if col not in conflict_columns and col not in preserve_columns
        ]
        if dialect in ('mysql', 'mariadb'):
            return stmt.on_duplicate_key_update({col: stmt.inserted[col] for col in update_columns})
        return stmt.on_conflict_do_update(
            index_elements=list(conflict_columns),
            set_={col: stmt.excluded[col] for col in update_columns},
        )


def _as_iso(value: Union[str, date]) -> str:
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat(str(value).strip()[:10]).isoformat()
    except ValueError as e:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD", {"value": str(value)}) from e


def delete_week(session: Session, platform: Platform, client_id: int,
                week_start: Union[str, date], week_end: Union[str, date]) -> int:
    """
    Replace-week pre-step: delete a client's platform rows dated within
    [week_start, week_end]. Never called implicitly by ingestion.
    """
    start, end = _as_iso(week_start), _as_iso(week_end)
    if start > end:
        raise ValidationError(f"week_start {start} is after week_end {end}", {"week_start": start, "week_end": end})

    model = TRANSACTION_MODELS[platform]
    date_column = getattr(model, DATE_COLUMNS[platform])
    try:
        deleted = session.execute(
            delete(model).where(model.client_id == client_id, date_column >= start, date_column <= end)
        ).rowcount
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        log.error(f"❌ Failed to delete {platform.value} rows {start}..{end} for client {client_id}: {e}")
        raise DatabaseError(f"Failed to delete {platform.value} transactions", {"error": str(e)}) from e

    log.info(f"🗑️ Deleted {deleted} {platform.display_name} row(s) for client {client_id} between {start} and {end}")
    return deleted
