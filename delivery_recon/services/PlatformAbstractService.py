import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import ParseError, RowValidationError
from delivery_recon.core.header_normalizer import normalize_header

log = logging.getLogger(__name__)

ISO_PREFIX = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})')


@dataclass
class NormalizedTransaction:
    """One platform row after normalization, before and after identity resolution"""
    platform: Platform
    natural_key: str
    store_name: str
    transaction_date: str
    values: Dict[str, Any]
    store_code: Optional[str] = None
    row_number: int = 0
    location_id: Optional[int] = None

    def to_row(self, client_id: int) -> Dict[str, Any]:
        """Column/value mapping ready for the platform's transaction table"""
        row = dict(self.values)
        row["client_id"] = client_id
        row["location_id"] = self.location_id
        return row


@dataclass
class MetricContribution:
    """What a single stored transaction adds to a location's weekly metrics"""
    sales: float = 0.0
    orders: int = 0
    ad_spend: float = 0.0
    offer_spend: float = 0.0
    marketing_driven_sales: float = 0.0
    payout: float = 0.0


class PlatformDataService(ABC):
    """Abstract base class for per-platform row normalization and metric rules"""

    platform: Platform

    # logical field -> accepted normalized header names, in priority order
    COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {}

    # logical fields that must be present in the file header
    REQUIRED_COLUMNS: Tuple[str, ...] = ()

    DATE_FORMATS: Tuple[str, ...] = ('%Y-%m-%d',)

    INVALID_NUMERIC_TOKENS = {
        '', 'na', '#n/a', 'n/a', '--', '-', 'null', 'nil', 'nan', 'none'
    }

    def check_columns(self, headers: Iterable[str]) -> None:
        """Raise ParseError when the file lacks any required column"""
        present = {normalize_header(str(h)) for h in headers}
        missing = [
            name for name in self.REQUIRED_COLUMNS
            if not any(alias in present for alias in self.COLUMN_ALIASES.get(name, (name,)))
        ]
        if missing:
            raise ParseError(
                f"{self.platform.display_name} file is missing required column(s): {', '.join(missing)}",
                {"missing_columns": missing, "platform": self.platform.value}
            )

    def normalize_row(self, raw: Dict[str, Any], row_number: int = 0) -> NormalizedTransaction:
        """
        Convert one raw export record into a NormalizedTransaction.

        Raises RowValidationError when the natural key or date is unusable.
        Numeric fields never raise: invalid or missing values become 0.
        """
        row = {normalize_header(str(k)): v for k, v in raw.items()}
        try:
            record = self._build_record(row)
        except RowValidationError as e:
            log.debug(f"{self.platform.display_name} row {row_number} rejected: {e.message}")
            raise
        record.row_number = row_number
        return record

    @abstractmethod
    def _build_record(self, row: Dict[str, Any]) -> NormalizedTransaction:
        """Build the normalized record from a row keyed by normalized headers"""

    @abstractmethod
    def contribution(self, txn) -> Optional[MetricContribution]:
        """
        Metric contribution of one stored transaction.

        Returns None when the row is outside the platform's metric scope.
        """

    # ------------------------------------------------------------------
    # Value helpers
    # ------------------------------------------------------------------

    def _raw(self, row: Dict[str, Any], name: str) -> Any:
        for alias in self.COLUMN_ALIASES.get(name, (name,)):
            if alias in row:
                value = row[alias]
                if value is None or (isinstance(value, float) and math.isnan(value)):
                    continue
                if isinstance(value, str) and not value.strip():
                    continue
                return value
        return None

    def _text(self, row: Dict[str, Any], name: str) -> Optional[str]:
        value = self._raw(row, name)
        if value is None:
            return None
        return str(value).strip() or None

    def _number(self, row: Dict[str, Any], name: str) -> float:
        return self._coerce_to_float(self._raw(row, name))

    def _coerce_to_float(self, value) -> float:
        """Convert an incoming value to float; anything unparseable becomes 0.0"""
        if value is None or isinstance(value, bool):
            return 0.0

        if isinstance(value, (int, float, np.integer, np.floating)):
            number = float(value)
            return number if math.isfinite(number) else 0.0

        cleaned = str(value).strip()
        if cleaned.lower() in self.INVALID_NUMERIC_TOKENS:
            return 0.0

        # Accounting notation: (12.50) is -12.50
        negative = cleaned.startswith('(') and cleaned.endswith(')')
        if negative:
            cleaned = cleaned[1:-1]
        cleaned = cleaned.replace(',', '').replace('$', '').replace('%', '').strip()

        try:
            number = float(cleaned)
        except ValueError:
            return 0.0
        if not math.isfinite(number):
            return 0.0
        return -abs(number) if negative else number

    def _to_iso_date(self, value) -> Optional[str]:
        """Normalize a platform date to YYYY-MM-DD, or None when unparseable"""
        if value is None:
            return None
        if isinstance(value, pd.Timestamp):
            return None if pd.isna(value) else value.strftime('%Y-%m-%d')
        if isinstance(value, (datetime, date)):
            return value.strftime('%Y-%m-%d')
        if isinstance(value, (int, float, np.integer, np.floating)):
            return self._from_excel_serial(float(value))

        text = str(value).strip()
        if not text:
            return None

        for fmt in self.DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).strftime('%Y-%m-%d')
            except ValueError:
                continue

        match = ISO_PREFIX.match(text)
        if match:
            try:
                return date(int(match.group(1)), int(match.group(2)), int(match.group(3))).isoformat()
            except ValueError:
                return None

        try:
            return self._from_excel_serial(float(text))
        except ValueError:
            return None

    @staticmethod
    def _from_excel_serial(serial: float) -> Optional[str]:
        # Plausible serials only (1954..2119); anything else is not a date
        if not math.isfinite(serial) or not 20000 <= serial <= 80000:
            return None
        return (datetime(1899, 12, 30) + timedelta(days=serial)).strftime('%Y-%m-%d')

    def _require(self, value: Optional[str], column: str) -> str:
        if not value:
            raise RowValidationError(
                f"missing {column}",
                {"platform": self.platform.value, "column": column}
            )
        return value

    def _require_date(self, row: Dict[str, Any], name: str) -> str:
        raw = self._raw(row, name)
        iso = self._to_iso_date(raw)
        if iso is None:
            if raw is None:
                raise RowValidationError(f"missing {name}", {"platform": self.platform.value, "column": name})
            raise RowValidationError(
                f"unparseable {name} '{raw}'",
                {"platform": self.platform.value, "column": name, "value": str(raw)}
            )
        return iso
