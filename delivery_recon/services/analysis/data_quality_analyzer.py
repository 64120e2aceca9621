"""
Data-Quality Analyzer
=====================
Scans weekly per-location metrics for anomalies:
1. Zero sales with positive payout
2. Extreme marketing ROAS (likely a data artifact)
3. Negative payout after cost of goods
4. Payout percentage below the expected floor
5. Marketing spend exceeding marketing-attributed sales
6. Week-over-week sales drop
7. Week-over-week sales spike (possible duplicate ingestion)
8. A platform that sold last week and has no sales this week

Rules are independent; one (location, week) may raise several issues.
A location with no rows in an analysed week counts as zero sales, so
data that vanished for a whole week shows up as a drop.
The report is advisory and never blocks ingestion.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from delivery_recon.core.config import QualityConfig, config
from delivery_recon.core.enum.Platform import Platform
from delivery_recon.models import UNMAPPED_LOCATION_NAME
from delivery_recon.services.analysis.metrics_service import MetricsFilter, MetricsService, derive_metrics
from delivery_recon.services.analysis.week_utils import format_week_range, get_previous_week_start, get_week_end

logger = logging.getLogger(__name__)


class DataQualityAnalyzer:
    """Flags suspicious weekly location metrics"""

    ISSUE_TYPES = {
        'ZERO_SALES_WITH_PAYOUT': 'No sales recorded but the platform paid out',
        'EXTREME_ROAS': 'Marketing ROAS above the plausible ceiling',
        'NEGATIVE_PAYOUT_AFTER_COGS': 'Payout does not cover cost of goods',
        'LOW_PAYOUT_PERCENT': 'Payout is a low share of sales',
        'SPEND_EXCEEDS_ATTRIBUTED_SALES': 'Marketing spend exceeds marketing-driven sales',
        'WOW_SALES_DROP': 'Sales dropped sharply from the previous week',
        'WOW_SALES_SPIKE': 'Sales jumped sharply from the previous week',
        'MISSING_PLATFORM_DATA': 'A platform reported no sales after selling the week before',
    }

    SEVERITY_CRITICAL = 'CRITICAL'  # Numbers cannot both be right
    SEVERITY_HIGH = 'HIGH'          # Likely missing or duplicated data
    SEVERITY_MEDIUM = 'MEDIUM'      # Worth reviewing
    SEVERITY_LOW = 'LOW'            # Informational

    def __init__(self, thresholds: Optional[QualityConfig] = None):
        self.thresholds = thresholds or config.quality

    def analyze(self, weekly_metrics: List[Dict[str, Any]], lookback_weeks: Optional[int] = None) -> Dict[str, Any]:
        """
        Run every rule over per-(location, week) metrics.

        Only the most recent `lookback_weeks` weeks present are reported;
        older weeks still serve as the previous week for comparisons. Each
        week is compared with the calendar week before it.
        """
        lookback_weeks = lookback_weeks or self.thresholds.lookback_weeks
        weeks = sorted({m['weekStart'] for m in weekly_metrics if m.get('weekStart')}, reverse=True)
        window = weeks[:lookback_weeks]

        by_location: Dict[Any, Dict[str, Dict[str, Any]]] = {}
        for metrics in weekly_metrics:
            if metrics.get('weekStart'):
                by_location.setdefault(metrics.get('locationId'), {})[metrics['weekStart']] = metrics

        issues: List[Dict[str, Any]] = []
        for rows in by_location.values():
            known = next(iter(rows.values()))
            for week_start in window:
                current = rows.get(week_start)
                if current is not None:
                    issues.extend(self._check_week(current))
                elif known.get('locationName') == UNMAPPED_LOCATION_NAME:
                    continue
                else:
                    current = self._missing_week(known, week_start)

                previous = rows.get(get_previous_week_start(week_start))
                if previous is not None:
                    issues.extend(self._check_week_over_week(previous, current))
                    issues.extend(self._check_platform_gaps(previous, current))

        issues.sort(key=lambda i: (i['weekStart'], i['locationName'] or ''), reverse=True)
        summary = self._summarize(issues, len(window))
        logger.info(
            f"🔍 Data quality: {summary['total_issues']} issue(s) across {summary['weeks_analyzed']} week(s)"
        )
        return {"issues": issues, "summary": summary, "weeks": window}

    def report(self, session: Session, client_id: Optional[int] = None,
               lookback_weeks: Optional[int] = None) -> Dict[str, Any]:
        """Analyze stored data for a client (or all clients)"""
        metrics = MetricsService().location_metrics(session, MetricsFilter(client_id=client_id), group_by_week=True)
        return self.analyze(metrics, lookback_weeks)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _check_week(self, m: Dict[str, Any]) -> List[Dict[str, Any]]:
        t = self.thresholds
        issues = []
        sales = m.get('totalSales') or 0.0
        payout = m.get('netPayout') or 0.0
        spend = m.get('marketingSpend') or 0.0
        roas = m.get('marketingRoas')
        payout_percent = m.get('netPayoutPercent')
        after_cogs = m.get('payoutAfterCogs')
        driven = m.get('marketingDrivenSales') or 0.0

        if sales == 0 and payout > 0:
            issues.append(self._issue(
                'ZERO_SALES_WITH_PAYOUT', self.SEVERITY_CRITICAL, m,
                f"No sales but ${payout:,.2f} payout",
                {"totalSales": sales, "netPayout": payout},
            ))

        if spend > 0 and roas is not None and roas > t.max_roas:
            issues.append(self._issue(
                'EXTREME_ROAS', self.SEVERITY_LOW, m,
                f"Marketing ROAS {roas:.1f}x exceeds {t.max_roas:g}x",
                {"marketingRoas": roas, "marketingSpend": spend},
            ))

        if after_cogs is not None and after_cogs < 0:
            issues.append(self._issue(
                'NEGATIVE_PAYOUT_AFTER_COGS', self.SEVERITY_HIGH, m,
                f"Payout after COGS is ${after_cogs:,.2f}",
                {"payoutAfterCogs": after_cogs, "netPayout": payout, "totalSales": sales},
            ))

        if payout_percent is not None and payout_percent < t.min_payout_percent:
            issues.append(self._issue(
                'LOW_PAYOUT_PERCENT', self.SEVERITY_MEDIUM, m,
                f"Payout is {payout_percent:.1f}% of sales (floor {t.min_payout_percent:g}%)",
                {"netPayoutPercent": payout_percent, "totalSales": sales, "netPayout": payout},
            ))

        if spend > 0 and spend > driven:
            issues.append(self._issue(
                'SPEND_EXCEEDS_ATTRIBUTED_SALES', self.SEVERITY_MEDIUM, m,
                f"Marketing spend ${spend:,.2f} exceeds marketing-driven sales ${driven:,.2f}",
                {"marketingSpend": spend, "marketingDrivenSales": driven},
            ))

        return issues

    def _check_week_over_week(self, previous: Dict[str, Any], current: Dict[str, Any]) -> List[Dict[str, Any]]:
        t = self.thresholds
        before = previous.get('totalSales') or 0.0
        after = current.get('totalSales') or 0.0
        if before <= 0:
            return []

        change = after - before
        change_percent = change / before * 100.0
        values = {
            "previousWeekStart": previous['weekStart'],
            "previousSales": before,
            "totalSales": after,
            "changePercent": round(change_percent, 2),
        }

        if change < 0:
            drop = -change
            by_percent = -change_percent > t.wow_drop_percent
            by_amount = drop > t.wow_drop_absolute
            if by_percent or by_amount:
                severity = self.SEVERITY_HIGH if by_percent and by_amount else self.SEVERITY_MEDIUM
                message = f"Sales fell {-change_percent:.1f}% (${drop:,.2f}) from week of {previous['weekStart']}"
                if current.get('missingData'):
                    message += "; no transactions recorded this week"
                return [self._issue('WOW_SALES_DROP', severity, current, message, values)]
        elif change_percent > t.wow_spike_percent and change > t.wow_spike_absolute:
            return [self._issue(
                'WOW_SALES_SPIKE', self.SEVERITY_HIGH, current,
                f"Sales rose {change_percent:.1f}% (${change:,.2f}) from week of {previous['weekStart']}; "
                f"check for a duplicate upload",
                values,
            )]
        return []

    def _check_platform_gaps(self, previous: Dict[str, Any], current: Dict[str, Any]) -> List[Dict[str, Any]]:
        """A platform that sold last week but not this week, while the location still took orders"""
        if not current.get('totalOrders'):
            return []
        before = previous.get('platformBreakdown') or {}
        after = current.get('platformBreakdown') or {}

        issues = []
        for platform in Platform:
            previous_sales = (before.get(platform.value) or {}).get('totalSales') or 0.0
            sales = (after.get(platform.value) or {}).get('totalSales') or 0.0
            if previous_sales > 0 and sales <= 0:
                issues.append(self._issue(
                    'MISSING_PLATFORM_DATA', self.SEVERITY_HIGH, current,
                    f"Missing {platform.display_name} data: no sales this week, "
                    f"${previous_sales:,.2f} in week of {previous['weekStart']}",
                    {"platform": platform.value, "previousSales": previous_sales, "totalSales": sales,
                     "previousWeekStart": previous['weekStart']},
                ))
        return issues

    def _missing_week(self, known: Dict[str, Any], week_start: str) -> Dict[str, Any]:
        """Zero metrics for a location with no rows in an analysed week"""
        metrics = derive_metrics(0.0, 0, 0.0, 0.0, 0.0, 0.0, cogs_rate=self.thresholds.cogs_rate)
        metrics.update(
            clientId=known.get('clientId'),
            locationId=known.get('locationId'),
            locationName=known.get('locationName'),
            weekStart=week_start,
            weekEnd=get_week_end(week_start).isoformat(),
            platformBreakdown={},
            missingData=True,
        )
        return metrics

    # ------------------------------------------------------------------

    def _issue(self, rule: str, severity: str, m: Dict[str, Any], message: str,
               values: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "rule": rule,
            "severity": severity,
            "description": self.ISSUE_TYPES[rule],
            "locationId": m.get('locationId'),
            "locationName": m.get('locationName'),
            "weekStart": m.get('weekStart'),
            "weekLabel": format_week_range(m['weekStart']) if m.get('weekStart') else None,
            "message": message,
            "values": values,
        }

    def _summarize(self, issues: List[Dict[str, Any]], weeks_analyzed: int) -> Dict[str, Any]:
        summary = {
            'total_issues': len(issues),
            'weeks_analyzed': weeks_analyzed,
            'by_rule': {},
            'by_severity': {
                self.SEVERITY_CRITICAL: 0,
                self.SEVERITY_HIGH: 0,
                self.SEVERITY_MEDIUM: 0,
                self.SEVERITY_LOW: 0,
            },
        }
        for issue in issues:
            summary['by_rule'][issue['rule']] = summary['by_rule'].get(issue['rule'], 0) + 1
            summary['by_severity'][issue['severity']] += 1
        return summary
