"""
Uber Eats Data Service
Normalizes Uber Eats payment export rows and defines Uber Eats metric rules.

Uber Eats dates arrive as M/D/YY. Store names usually embed the store
code in brackets, e.g. "Capriotti's (IA069)"; the resolver uses that code.
"""
import re
from typing import Any, Dict, Optional

from delivery_recon.core.enum.Platform import Platform
from delivery_recon.services.PlatformAbstractService import (
    MetricContribution,
    NormalizedTransaction,
    PlatformDataService,
)

AD_SPEND_PATTERN = re.compile(
    r'\b(ad|ads|advertising|paid\s*promotion|ad\s*spend|ad\s*fee|ad\s*campaign)\b', re.IGNORECASE
)
AD_SPEND_EXCLUSIONS = re.compile(r'\b(adjust\w*|added|upgrade)\b', re.IGNORECASE)


def is_ad_spend_description(description: Optional[str]) -> bool:
    if not description:
        return False
    return bool(AD_SPEND_PATTERN.search(description)) and not AD_SPEND_EXCLUSIONS.search(description)


class UberEatsDataService(PlatformDataService):
    """Service for Uber Eats transaction rows"""

    platform = Platform.UBER_EATS

    COLUMN_ALIASES = {
        'store_name': ('store_name', 'location', 'store'),
        'workflow_id': ('workflow_id',),
        'order_id': ('order_id',),
        'order_date': ('order_date', 'date'),
        'order_status': ('order_status',),
        'sales_excl_tax': ('sales_excl_tax', 'sales'),
        'tax': ('tax_on_sales', 'tax'),
        'offers_on_items': ('offers_on_items_incl_tax', 'offers_on_items'),
        'delivery_offer_redemptions': ('delivery_offer_redemptions_incl_tax', 'delivery_offer_redemptions'),
        'offer_redemption_fee': ('offer_redemption_fee',),
        'other_payments': ('other_payments',),
        'other_payments_description': ('other_payments_description',),
        'marketplace_fee': ('marketplace_fee', 'platform_fee'),
        'delivery_fee': ('delivery_fee',),
        'service_fee': ('service_fee',),
        'net_payout': ('total_payout', 'net_payout'),
    }

    REQUIRED_COLUMNS = ('store_name', 'workflow_id', 'order_id', 'order_date')

    DATE_FORMATS = ('%m/%d/%y', '%m/%d/%Y', '%Y-%m-%d')

    NUMERIC_FIELDS = (
        'sales_excl_tax', 'tax', 'offers_on_items', 'delivery_offer_redemptions',
        'offer_redemption_fee', 'other_payments', 'marketplace_fee', 'delivery_fee',
        'service_fee', 'net_payout',
    )

    def _build_record(self, row: Dict[str, Any]) -> NormalizedTransaction:
        workflow_id = self._require(self._text(row, 'workflow_id'), 'workflow_id')
        order_id = self._require(self._text(row, 'order_id'), 'order_id')
        store_name = self._require(self._text(row, 'store_name'), 'store_name')
        order_date = self._require_date(row, 'order_date')

        values = {
            'workflow_id': workflow_id,
            'order_id': order_id,
            'order_date': order_date,
            'order_status': self._text(row, 'order_status'),
            'store_name': store_name,
            'other_payments_description': self._text(row, 'other_payments_description'),
        }
        for name in self.NUMERIC_FIELDS:
            values[name] = self._number(row, name)

        return NormalizedTransaction(
            platform=self.platform,
            natural_key=workflow_id,
            store_name=store_name,
            transaction_date=order_date,
            values=values,
        )

    def contribution(self, txn) -> Optional[MetricContribution]:
        status = (txn.order_status or '').strip().lower()
        # Blank status counts as completed only for rows that carry sales
        completed = status == 'completed' or (not status and txn.sales_excl_tax != 0)

        offer_spend = (
            abs(txn.offers_on_items)
            + abs(txn.delivery_offer_redemptions)
            + abs(txn.offer_redemption_fee)
        )
        result = MetricContribution(payout=txn.net_payout, offer_spend=offer_spend)

        if txn.other_payments > 0 and is_ad_spend_description(txn.other_payments_description):
            result.ad_spend = txn.other_payments

        if completed:
            result.orders = 1
            result.sales = txn.sales_excl_tax
            if offer_spend > 0 or result.ad_spend > 0:
                result.marketing_driven_sales = txn.sales_excl_tax

        return result
