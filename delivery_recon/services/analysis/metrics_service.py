"""
Consolidated Location Metrics
Aggregates stored transactions from every platform into per-location
(optionally per-week) metrics. Computed on read, never stored.

Platform-specific rules (which rows count as orders, what is ad spend
or offer spend) live in each platform service's contribution().
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session

from delivery_recon.core.config import config
from delivery_recon.core.enum.Platform import Platform
from delivery_recon.models import DATE_COLUMNS, Location, TRANSACTION_MODELS
from delivery_recon.services.analysis.week_utils import get_unique_weeks, get_week_end, get_week_start
from delivery_recon.services.upload.UploadServiceMap import get_platform_service

logger = logging.getLogger(__name__)

SUM_COLUMNS = ['sales', 'orders', 'ad_spend', 'offer_spend', 'marketing_driven_sales', 'payout']


@dataclass
class MetricsFilter:
    client_id: Optional[int] = None
    location_id: Optional[int] = None
    platform: Optional[Platform] = None
    week_start: Optional[str] = None
    week_end: Optional[str] = None

    @property
    def start_date(self) -> Optional[str]:
        return get_week_start(self.week_start).isoformat() if self.week_start else None

    @property
    def end_date(self) -> Optional[str]:
        # week_end may be any day of the last week wanted
        return get_week_end(self.week_end).isoformat() if self.week_end else None


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> Optional[float]:
    if not denominator:
        return None
    return round(numerator / denominator * scale, 2)


def derive_metrics(sales: float, orders: int, ad_spend: float, offer_spend: float,
                   marketing_driven_sales: float, payout: float,
                   cogs_rate: Optional[float] = None) -> Dict[str, Any]:
    """Totals plus derived ratios; a ratio with a zero denominator is None"""
    if cogs_rate is None:
        cogs_rate = config.quality.cogs_rate
    marketing_spend = ad_spend + offer_spend
    return {
        "totalSales": round(sales, 2),
        "totalOrders": int(orders),
        "aov": _ratio(sales, orders),
        "marketingSpend": round(marketing_spend, 2),
        "adSpend": round(ad_spend, 2),
        "offerSpend": round(offer_spend, 2),
        "marketingDrivenSales": round(marketing_driven_sales, 2),
        "marketingRoas": _ratio(marketing_driven_sales, marketing_spend),
        "netPayout": round(payout, 2),
        "netPayoutPercent": _ratio(payout, sales, 100.0),
        "payoutAfterCogs": round(payout - sales * cogs_rate, 2),
    }


class MetricsService:

    def contributions_frame(self, session: Session, filters: MetricsFilter) -> pd.DataFrame:
        """One row per in-scope transaction: location, week, platform and its contribution"""
        platforms = [filters.platform] if filters.platform else list(Platform)
        rows: List[Dict[str, Any]] = []

        for platform in platforms:
            model = TRANSACTION_MODELS[platform]
            date_column = getattr(model, DATE_COLUMNS[platform])
            service = get_platform_service(platform)

            stmt = select(model)
            if filters.client_id is not None:
                stmt = stmt.where(model.client_id == filters.client_id)
            if filters.location_id is not None:
                stmt = stmt.where(model.location_id == filters.location_id)
            if filters.start_date:
                stmt = stmt.where(date_column >= filters.start_date)
            if filters.end_date:
                stmt = stmt.where(date_column <= filters.end_date)

            for txn in session.execute(stmt).scalars():
                contribution = service.contribution(txn)
                if contribution is None:
                    continue
                row = asdict(contribution)
                row.update(
                    client_id=txn.client_id,
                    location_id=txn.location_id,
                    platform=platform.value,
                    week_start=get_week_start(getattr(txn, DATE_COLUMNS[platform])).isoformat(),
                )
                rows.append(row)

        columns = ['client_id', 'location_id', 'platform', 'week_start'] + SUM_COLUMNS
        return pd.DataFrame(rows, columns=columns)

    def location_metrics(self, session: Session, filters: Optional[MetricsFilter] = None,
                         group_by_week: bool = False) -> List[Dict[str, Any]]:
        """
        Consolidated metrics per location, or per (location, week) when
        group_by_week is set. Sorted by week (newest first) then location.
        """
        filters = filters or MetricsFilter()
        df = self.contributions_frame(session, filters)
        if df.empty:
            return []

        keys = ['client_id', 'location_id'] + (['week_start'] if group_by_week else [])
        totals = df.groupby(keys, sort=False)[SUM_COLUMNS].sum().reset_index()
        by_platform = df.groupby(keys + ['platform'], sort=False)[SUM_COLUMNS].sum().reset_index()

        names = self._location_names(session, totals['location_id'].unique().tolist())

        breakdowns: Dict[tuple, Dict[str, Any]] = {}
        for record in by_platform.to_dict('records'):
            key = tuple(record[k] for k in keys)
            breakdowns.setdefault(key, {})[record['platform']] = derive_metrics(
                record['sales'], record['orders'], record['ad_spend'], record['offer_spend'],
                record['marketing_driven_sales'], record['payout'],
            )

        results = []
        for record in totals.to_dict('records'):
            key = tuple(record[k] for k in keys)
            location_id = int(record['location_id'])
            item = {
                "clientId": int(record['client_id']),
                "locationId": location_id,
                "locationName": names.get(location_id),
            }
            if group_by_week:
                item["weekStart"] = record['week_start']
                item["weekEnd"] = get_week_end(record['week_start']).isoformat()
            item.update(derive_metrics(
                record['sales'], record['orders'], record['ad_spend'], record['offer_spend'],
                record['marketing_driven_sales'], record['payout'],
            ))
            item["platformBreakdown"] = breakdowns.get(key, {})
            results.append(item)

        results.sort(key=lambda m: (_neg_week(m.get("weekStart")), m["locationName"] or "", m["locationId"]))

        logger.info(f"📊 Computed metrics for {len(results)} location row(s) from {len(df)} transaction(s)")
        return results

    def available_weeks(self, session: Session, client_id: Optional[int] = None) -> List[Dict[str, str]]:
        """Distinct Monday-Sunday weeks with any transaction, newest first"""
        dates = set()
        for platform, model in TRANSACTION_MODELS.items():
            date_column = getattr(model, DATE_COLUMNS[platform])
            stmt = select(date_column).distinct()
            if client_id is not None:
                stmt = stmt.where(model.client_id == client_id)
            dates.update(value for value in session.execute(stmt).scalars() if value)
        return get_unique_weeks(dates)

    @staticmethod
    def _location_names(session: Session, location_ids: List[int]) -> Dict[int, str]:
        if not location_ids:
            return {}
        ids = [int(i) for i in location_ids]
        rows = session.execute(select(Location.id, Location.canonical_name).where(Location.id.in_(ids))).all()
        return {row[0]: row[1] for row in rows}


def _neg_week(week_start: Optional[str]) -> int:
    """Sort key putting the newest week first"""
    if not week_start:
        return 0
    return -get_week_start(week_start).toordinal()

