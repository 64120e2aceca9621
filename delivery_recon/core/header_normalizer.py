"""
Header Normalization Utility
Normalizes platform export column headers to snake_case lookup keys
"""

import re
from typing import List

# Symbols that carry meaning in platform headers; every other symbol is dropped
SYMBOL_REPLACEMENTS = {
    '%': ' percent ',
    '&': ' and ',
    '#': ' number ',
    '+': ' plus ',
    '/': ' ',
    '|': ' ',
}


def normalize_header(header: str) -> str:
    """
    Normalize a single column header to a clean lookup key.

    Rules:
    - Strip byte-order marks and surrounding whitespace
    - Convert to lowercase
    - Map %, &, #, + to words; treat / and | as separators
    - Drop any other punctuation (brackets, dots, currency symbols, quotes)
    - Collapse whitespace, hyphens and underscores to a single underscore

    Examples:
        "Sales (excl. tax)"                       -> "sales_excl_tax"
        "Total payout "                           -> "total_payout"
        "Delivery Offer Redemptions (incl. tax)"  -> "delivery_offer_redemptions_incl_tax"
        "Third-party contribution"                -> "third_party_contribution"
        "Tax (subtotal)"                          -> "tax_subtotal"
    """
    if not header or not isinstance(header, str):
        return ""

    normalized = header.replace('\ufeff', '').strip().lower()
    if not normalized:
        return ""

    for char, replacement in SYMBOL_REPLACEMENTS.items():
        normalized = normalized.replace(char, replacement)

    normalized = re.sub(r'[^a-z0-9\s_\-]', '', normalized)
    normalized = re.sub(r'[\s\-_]+', '_', normalized)
    return normalized.strip('_')


def normalize_headers(headers: List[str]) -> List[str]:
    """
    Normalize a list of column headers.

    Duplicates get a numeric suffix: a second "amount" becomes "amount_2".
    Headers that normalize to nothing become "unnamed_column".
    """
    normalized = []
    seen = set()

    for header in headers or []:
        norm_header = normalize_header(str(header)) or 'unnamed_column'
        if norm_header in seen:
            counter = 2
            while f"{norm_header}_{counter}" in seen:
                counter += 1
            norm_header = f"{norm_header}_{counter}"
        seen.add(norm_header)
        normalized.append(norm_header)

    return normalized
