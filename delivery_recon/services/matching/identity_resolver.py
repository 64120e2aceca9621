"""
Identity Resolver
=================
Maps (platform, raw store name) to a canonical location id.

Resolution order, first hit wins:
1. Uber Eats store code in brackets, "Brand (IA069)", against the
   location's Uber Eats store label (then its store id)
2. Exact platform name field, then canonical name (case-insensitive),
   then the platform's store id column against the location's store id
3. Best fuzzy score over every location, accepted at >= threshold
4. The client's Unmapped Locations bucket

Unmatched names never raise. A missing directory or Unmapped bucket does.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from delivery_recon.core.config import config
from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import DirectoryNotInitializedError, UnmappedSentinelError
from delivery_recon.models import Location
from delivery_recon.services.matching.location_directory import LocationDirectory
from delivery_recon.services.matching.similarity import similarity
from delivery_recon.services.PlatformAbstractService import NormalizedTransaction

logger = logging.getLogger(__name__)

STORE_CODE_PATTERN = re.compile(r'\(([^)]+)\)')

Scorer = Callable[[str, str], float]


def extract_store_code(raw_name: Optional[str]) -> Optional[str]:
    """First bracketed token of a store name, e.g. "Brand (IA069)" -> "IA069" """
    if not raw_name:
        return None
    match = STORE_CODE_PATTERN.search(raw_name)
    if not match:
        return None
    return match.group(1).strip() or None


@dataclass
class ResolutionContext:
    """Per-ingestion resolver state: directory snapshot, memo and counters"""
    client_id: int
    directory: Optional[LocationDirectory] = None
    cache: Dict[Tuple[Platform, str, Optional[str]], int] = field(default_factory=dict)
    stats: Dict[str, int] = field(default_factory=lambda: {
        'code': 0, 'exact': 0, 'store_id': 0, 'fuzzy': 0, 'unmapped': 0, 'cache_hits': 0,
    })
    fuzzy_matches: List[Dict] = field(default_factory=list)

    @classmethod
    def for_client(cls, session: Session, client_id: int) -> "ResolutionContext":
        return cls(client_id=client_id, directory=LocationDirectory.load(session, client_id))


class IdentityResolver:
    """Stateless resolver; all run state lives in the ResolutionContext"""

    def __init__(self, threshold: Optional[float] = None, tie_break: Optional[str] = None,
                 scorer: Scorer = similarity):
        self.threshold = config.matching.fuzzy_threshold if threshold is None else threshold
        self.tie_break = (tie_break or config.matching.tie_break).lower()
        self.scorer = scorer

    def resolve_record(self, context: ResolutionContext, record: NormalizedTransaction) -> int:
        record.location_id = self.resolve(context, record.platform, record.store_name, record.store_code)
        return record.location_id

    def resolve(self, context: ResolutionContext, platform: Platform, raw_name: str,
                store_code: Optional[str] = None) -> int:
        directory = self._checked_directory(context)
        name = (raw_name or '').strip()
        key = (platform, name, store_code)

        cached = context.cache.get(key)
        if cached is not None:
            context.stats['cache_hits'] += 1
            return cached

        location, how, score = self._match(directory, platform, name, store_code)
        if location is None:
            location_id = directory.unmapped_id
            context.stats['unmapped'] += 1
            logger.warning(
                f"⚠️ No {platform.display_name} location found for '{name}' - assigning to Unmapped Locations"
            )
        else:
            location_id = location.id
            context.stats[how] += 1
            if how == 'fuzzy':
                context.fuzzy_matches.append({
                    "platform": platform.value,
                    "raw_name": name,
                    "location_id": location_id,
                    "location_name": location.canonical_name,
                    "score": round(score, 4),
                })

        context.cache[key] = location_id
        return location_id

    def _match(self, directory: LocationDirectory, platform: Platform, name: str,
               store_code: Optional[str]) -> Tuple[Optional[Location], str, float]:
        if not name:
            return None, 'unmapped', 0.0

        if platform is Platform.UBER_EATS:
            code = extract_store_code(name)
            location = directory.find_by_store_label(code) or directory.find_by_store_id(code)
            if location is not None:
                return location, 'code', 1.0

        location = directory.find_by_platform_name(platform, name) or directory.find_by_canonical_name(name)
        if location is not None:
            return location, 'exact', 1.0

        location = directory.find_by_store_id(store_code)
        if location is not None:
            return location, 'store_id', 1.0

        location, score = self.best_match(directory, platform, name)
        if location is not None and score >= self.threshold:
            logger.info(
                f"🔍 Fuzzy match [{platform.value}] '{name}' -> '{location.canonical_name}' "
                f"(id={location.id}, score={score:.3f}, threshold={self.threshold})"
            )
            return location, 'fuzzy', score

        return None, 'unmapped', score

    def best_match(self, directory: LocationDirectory, platform: Platform,
                   raw_name: str) -> Tuple[Optional[Location], float]:
        """
        Highest-scoring candidate, regardless of threshold.

        Each location scores max(similarity to its platform name field,
        similarity to its canonical name). Ties go to the first location in
        directory order unless the tie-break policy is "last".
        """
        best: Optional[Location] = None
        best_score = -1.0

        for location in directory.candidates:
            score = self.scorer(raw_name, location.canonical_name)
            platform_name = location.platform_name(platform)
            if platform_name:
                score = max(score, self.scorer(raw_name, platform_name))

            if score > best_score or (self.tie_break == 'last' and score == best_score):
                best, best_score = location, score

        return best, max(best_score, 0.0)

    @staticmethod
    def _checked_directory(context: ResolutionContext) -> LocationDirectory:
        directory = context.directory
        if directory is None or not directory.is_loaded:
            raise DirectoryNotInitializedError(
                f"Location directory not initialized for client {context.client_id}",
                {"client_id": context.client_id}
            )
        if directory.client_id != context.client_id:
            raise DirectoryNotInitializedError(
                f"Location directory belongs to client {directory.client_id}, not {context.client_id}",
                {"client_id": context.client_id}
            )
        if directory.unmapped is None:
            raise UnmappedSentinelError(
                f"Unmapped Locations bucket missing for client {context.client_id}",
                {"client_id": context.client_id}
            )
        return directory
