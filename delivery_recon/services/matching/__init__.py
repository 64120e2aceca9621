"""
Location identity matching
Similarity scoring, per-client location directory, identity resolution
and human-review match suggestions.
"""

from delivery_recon.services.matching.similarity import similarity, normalize_location_name
from delivery_recon.services.matching.location_directory import LocationDirectory, ensure_unmapped_sentinel
from delivery_recon.services.matching.identity_resolver import (
    IdentityResolver,
    ResolutionContext,
    extract_store_code,
)
from delivery_recon.services.matching.suggestion_engine import MatchSuggestionEngine, LocationMatchSuggestion

__all__ = [
    'similarity',
    'normalize_location_name',
    'LocationDirectory',
    'ensure_unmapped_sentinel',
    'IdentityResolver',
    'ResolutionContext',
    'extract_store_code',
    'MatchSuggestionEngine',
    'LocationMatchSuggestion',
]
