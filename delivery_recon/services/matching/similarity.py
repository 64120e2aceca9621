"""
Store-name similarity scoring.

Scores are Levenshtein ratios, (max_len - distance) / max_len, computed on
names normalized so that store codes, street types and corporate suffixes
do not count against a match: "Main Street - Anoka" and
"MN100477 Anoka Main" both normalize to "anoka main".
"""

import re
from typing import Optional

from rapidfuzz.distance import Levenshtein

STORE_CODE_TOKEN = re.compile(r'^[a-z]{2}\d+$')

CORPORATE_SUFFIXES = {'inc', 'llc', 'corp', 'corporation', 'co'}
STOP_WORDS = {'of'}
STREET_TYPES = {
    'street', 'st', 'road', 'rd', 'avenue', 'ave', 'boulevard', 'blvd',
    'highway', 'hwy', 'drive', 'dr', 'lane', 'ln', 'parkway', 'pkwy',
}
DROPPED_WORDS = CORPORATE_SUFFIXES | STOP_WORDS | STREET_TYPES


def normalize_location_name(name: Optional[str]) -> str:
    """Lowercase, strip punctuation, drop codes/suffixes/street types, sort tokens"""
    text = (name or '').lower().replace("'", '').replace('\u2019', '')
    text = re.sub(r'[^a-z0-9\s]', ' ', text)
    tokens = [
        token for token in text.split()
        if token not in DROPPED_WORDS and not STORE_CODE_TOKEN.match(token)
    ]
    return ' '.join(sorted(tokens))


def levenshtein_similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return (max_len - Levenshtein.distance(a, b)) / max_len


def similarity(a: Optional[str], b: Optional[str]) -> float:
    """Similarity of two store names in [0, 1]"""
    left, right = normalize_location_name(a), normalize_location_name(b)
    if not left and not right:
        # Names made only of dropped words still compare on their raw text
        left, right = (a or '').strip().lower(), (b or '').strip().lower()
    return levenshtein_similarity(left, right)
