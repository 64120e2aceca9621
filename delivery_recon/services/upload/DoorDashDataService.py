"""
DoorDash Data Service
Normalizes DoorDash financial report rows (one row per DoorDash transaction)
"""
from typing import Any, Dict, Optional

from delivery_recon.core.enum.Platform import Platform
from delivery_recon.services.PlatformAbstractService import (
    MetricContribution,
    NormalizedTransaction,
    PlatformDataService,
)

COMPLETED_STATUSES = {'delivered', 'picked up'}


class DoorDashDataService(PlatformDataService):
    """Service for DoorDash transaction rows"""

    platform = Platform.DOORDASH

    COLUMN_ALIASES = {
        'store_name': ('store_name', 'location'),
        'store_id': ('store_id', 'merchant_store_id'),
        'transaction_id': ('doordash_transaction_id', 'transaction_id'),
        'order_id': ('doordash_order_id', 'order_id'),
        'transaction_date': (
            'timestamp_local_date', 'timestamp_local_time', 'timestamp_utc_date',
            'timestamp_utc_time', 'timestamp', 'transaction_date', 'date',
        ),
        'channel': ('channel',),
        'transaction_type': ('transaction_type',),
        'order_status': ('final_order_status', 'order_status'),
        'sales_excl_tax': ('subtotal', 'sales_excl_tax'),
        'tax': ('tax_subtotal', 'tax'),
        'commission': ('commission',),
        'customer_fees': ('customer_fees',),
        'error_charges': ('error_charges',),
        'offers': ('offers', 'discounts'),
        'delivery_redemptions': ('delivery_redemptions',),
        'marketing_credits': ('credits', 'doordash_marketing_credit'),
        'third_party_contribution': ('third_party_contribution', 'third_party_contributions'),
        'other_payments': ('other_payments',),
        'other_payments_description': ('other_payments_description',),
        'total_payout': ('net_total', 'total_payout'),
    }

    REQUIRED_COLUMNS = ('store_name', 'transaction_id', 'transaction_date')

    DATE_FORMATS = ('%Y-%m-%d', '%Y-%m-%d %H:%M:%S', '%Y-%m-%dT%H:%M:%S', '%m/%d/%Y')

    NUMERIC_FIELDS = (
        'sales_excl_tax', 'tax', 'commission', 'customer_fees', 'error_charges',
        'offers', 'delivery_redemptions', 'marketing_credits',
        'third_party_contribution', 'other_payments', 'total_payout',
    )

    def _build_record(self, row: Dict[str, Any]) -> NormalizedTransaction:
        transaction_id = self._require(self._text(row, 'transaction_id'), 'transaction_id')
        store_name = self._require(self._text(row, 'store_name'), 'store_name')
        transaction_date = self._require_date(row, 'transaction_date')
        store_id = self._text(row, 'store_id')

        values = {
            'transaction_id': transaction_id,
            'order_id': self._text(row, 'order_id'),
            'transaction_date': transaction_date,
            'store_name': store_name,
            'store_id': store_id,
            'channel': self._text(row, 'channel'),
            'transaction_type': self._text(row, 'transaction_type'),
            'order_status': self._text(row, 'order_status'),
            'other_payments_description': self._text(row, 'other_payments_description'),
        }
        for name in self.NUMERIC_FIELDS:
            values[name] = self._number(row, name)

        return NormalizedTransaction(
            platform=self.platform,
            natural_key=transaction_id,
            store_name=store_name,
            transaction_date=transaction_date,
            values=values,
            store_code=store_id,
        )

    def contribution(self, txn) -> Optional[MetricContribution]:
        channel = (txn.channel or '').strip().lower()
        if channel not in ('', 'marketplace'):
            return None

        completed = (
            (txn.transaction_type or '').strip().lower() == 'order'
            or (txn.order_status or '').strip().lower() in COMPLETED_STATUSES
        )
        offer_spend = (
            abs(txn.offers)
            + abs(txn.delivery_redemptions)
            + txn.marketing_credits
            + txn.third_party_contribution
        )
        result = MetricContribution(
            payout=txn.total_payout,
            ad_spend=abs(txn.other_payments),
            offer_spend=offer_spend,
        )

        if completed:
            result.orders = 1
            result.sales = txn.sales_excl_tax
            if txn.other_payments > 0 or txn.offers != 0 or txn.delivery_redemptions != 0:
                result.marketing_driven_sales = txn.sales_excl_tax

        return result
