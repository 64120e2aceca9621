"""
Match Suggestion Engine
Surfaces raw platform store names that are not bound to a verified
location, each with its best candidate location and confidence score,
for a human to confirm.
"""

import logging
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from delivery_recon.core.config import config
from delivery_recon.core.enum.Platform import Platform
from delivery_recon.models import TRANSACTION_MODELS
from delivery_recon.services.matching.identity_resolver import IdentityResolver
from delivery_recon.services.matching.location_directory import LocationDirectory

logger = logging.getLogger(__name__)


@dataclass
class LocationMatchSuggestion:
    location_name: str
    platform: str
    order_count: int
    confidence: float
    current_location_id: Optional[int] = None
    matched_location_id: Optional[int] = None
    matched_location_name: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


class MatchSuggestionEngine:
    """Read-only; write-back happens only through an explicit confirmation"""

    def __init__(self, resolver: Optional[IdentityResolver] = None):
        self.resolver = resolver or IdentityResolver()

    def suggest(self, session: Session, client_id: int, platform: Optional[Platform] = None,
                min_confidence: Optional[float] = None) -> List[LocationMatchSuggestion]:
        if min_confidence is None:
            min_confidence = config.matching.suggestion_min_confidence

        directory = LocationDirectory.load(session, client_id)
        verified_ids = {loc.id for loc in directory.candidates if loc.is_verified}
        platforms = [platform] if platform else list(Platform)
        suggestions: List[LocationMatchSuggestion] = []

        for current in platforms:
            for raw_name, counts in self._raw_names(session, client_id, current).items():
                # Every row already sits on a verified location
                if set(counts) <= verified_ids:
                    continue

                best, score = self.resolver.best_match(directory, current, raw_name)
                if score < min_confidence:
                    continue

                suggestions.append(LocationMatchSuggestion(
                    location_name=raw_name,
                    platform=current.value,
                    order_count=sum(counts.values()),
                    confidence=round(score, 4),
                    current_location_id=counts.most_common(1)[0][0],
                    matched_location_id=best.id if best else None,
                    matched_location_name=best.canonical_name if best else None,
                ))

        suggestions.sort(key=lambda s: (-s.confidence, -s.order_count, s.location_name))
        logger.info(f"💡 {len(suggestions)} location match suggestion(s) for client {client_id}")
        return suggestions

    @staticmethod
    def _raw_names(session: Session, client_id: int, platform: Platform) -> Dict[str, Counter]:
        """raw store name -> Counter(location_id -> row count)"""
        model = TRANSACTION_MODELS[platform]
        rows = session.execute(
            select(model.store_name, model.location_id, func.count(model.id))
            .where(model.client_id == client_id)
            .group_by(model.store_name, model.location_id)
        ).all()

        names: Dict[str, Counter] = {}
        for store_name, location_id, count in rows:
            names.setdefault(store_name, Counter())[location_id] += count
        return names
