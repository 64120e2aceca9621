"""
Grubhub Data Service
Normalizes Grubhub transaction export rows.

Grubhub exports usually carry a transaction_id. Older exports only have
order_number, in which case the natural key is order_number + date.
"""
from typing import Any, Dict, Iterable, Optional

from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import ParseError, RowValidationError
from delivery_recon.core.header_normalizer import normalize_header
from delivery_recon.services.PlatformAbstractService import (
    MetricContribution,
    NormalizedTransaction,
    PlatformDataService,
)


class GrubhubDataService(PlatformDataService):
    """Service for Grubhub transaction rows"""

    platform = Platform.GRUBHUB

    COLUMN_ALIASES = {
        'store_name': ('store_name', 'restaurant', 'location'),
        'store_number': ('store_number', 'restaurant_id'),
        'order_number': ('order_number', 'order_id'),
        'transaction_id': ('transaction_id',),
        'transaction_date': ('transaction_date', 'order_date', 'date'),
        'transaction_type': ('transaction_type',),
        'order_channel': ('order_channel',),
        'fulfillment_type': ('fulfillment_type',),
        'subtotal': ('subtotal',),
        'subtotal_sales_tax': ('subtotal_sales_tax',),
        'commission': ('commission',),
        'delivery_commission': ('delivery_commission',),
        'processing_fee': ('processing_fee', 'merchant_service_fee'),
        'merchant_funded_promotion': ('merchant_funded_promotion',),
        'merchant_net_total': ('merchant_net_total',),
        'transaction_note': ('transaction_note',),
    }

    REQUIRED_COLUMNS = ('store_name', 'transaction_date')

    DATE_FORMATS = ('%Y-%m-%d', '%Y-%m-%d %H:%M:%S', '%Y-%m-%dT%H:%M:%S', '%m/%d/%Y')

    NUMERIC_FIELDS = (
        'subtotal', 'subtotal_sales_tax', 'commission', 'delivery_commission',
        'processing_fee', 'merchant_funded_promotion', 'merchant_net_total',
    )

    def check_columns(self, headers: Iterable[str]) -> None:
        headers = [normalize_header(str(h)) for h in headers]
        super().check_columns(headers)
        # Either identifier column satisfies the natural key
        id_aliases = self.COLUMN_ALIASES['transaction_id'] + self.COLUMN_ALIASES['order_number']
        if not set(headers).intersection(id_aliases):
            raise ParseError(
                "Grubhub file is missing required column(s): transaction_id or order_number",
                {"missing_columns": ["transaction_id"], "platform": self.platform.value}
            )

    def _build_record(self, row: Dict[str, Any]) -> NormalizedTransaction:
        store_name = self._require(self._text(row, 'store_name'), 'store_name')
        transaction_date = self._require_date(row, 'transaction_date')
        order_number = self._text(row, 'order_number')
        transaction_id = self._text(row, 'transaction_id')

        if not transaction_id:
            if not order_number:
                raise RowValidationError(
                    "missing transaction_id and order_number",
                    {"platform": self.platform.value, "column": "transaction_id"}
                )
            transaction_id = f"{order_number}_{transaction_date}"

        store_number = self._text(row, 'store_number')
        values = {
            'transaction_id': transaction_id,
            'order_number': order_number,
            'transaction_date': transaction_date,
            'transaction_type': self._text(row, 'transaction_type'),
            'store_name': store_name,
            'store_number': store_number,
            'order_channel': self._text(row, 'order_channel'),
            'fulfillment_type': self._text(row, 'fulfillment_type'),
            'transaction_note': self._text(row, 'transaction_note'),
        }
        for name in self.NUMERIC_FIELDS:
            values[name] = self._number(row, name)

        return NormalizedTransaction(
            platform=self.platform,
            natural_key=transaction_id,
            store_name=store_name,
            transaction_date=transaction_date,
            values=values,
            store_code=store_number,
        )

    def contribution(self, txn) -> Optional[MetricContribution]:
        promotion = txn.merchant_funded_promotion
        result = MetricContribution(
            payout=txn.merchant_net_total,
            offer_spend=abs(promotion),
        )
        if (txn.transaction_type or '').strip().lower() == 'prepaid order':
            result.orders = 1
            result.sales = txn.subtotal
            if promotion != 0:
                result.marketing_driven_sales = txn.subtotal
        return result
