"""
Location Directory
Per-run snapshot of a client's canonical locations with exact-lookup indexes
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import UnmappedSentinelError
from delivery_recon.models import Client, Location, PLATFORM_NAME_FIELDS, UNMAPPED_LOCATION_NAME

logger = logging.getLogger(__name__)


def ensure_unmapped_sentinel(session: Session, client_id: int) -> Tuple[Location, bool]:
    """
    Return the client's Unmapped Locations bucket, creating it when absent.

    Returns (location, created). Raises UnmappedSentinelError when the
    bucket is missing and cannot be created.
    """
    try:
        sentinel = session.execute(
            select(Location)
            .where(Location.client_id == client_id, Location.canonical_name == UNMAPPED_LOCATION_NAME)
            .order_by(Location.id)
        ).scalars().first()
        if sentinel is not None:
            return sentinel, False

        if session.get(Client, client_id) is None:
            raise UnmappedSentinelError(
                f"Cannot create Unmapped Locations bucket: client {client_id} does not exist",
                {"client_id": client_id}
            )

        sentinel = Location(client_id=client_id, canonical_name=UNMAPPED_LOCATION_NAME, is_verified=False)
        session.add(sentinel)
        session.commit()
        logger.info(f"📦 Created Unmapped Locations bucket for client {client_id} (id={sentinel.id})")
        return sentinel, True

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"❌ Unmapped Locations bucket unavailable for client {client_id}: {e}")
        raise UnmappedSentinelError(
            f"Unmapped Locations bucket missing for client {client_id} and could not be created",
            {"client_id": client_id, "error": str(e)}
        ) from e


class LocationDirectory:
    """
    Read-only snapshot of one client's locations.

    When two locations share an exact value the index keeps a verified one,
    then the lowest id. Candidates for fuzzy scanning are in id order,
    sentinel excluded.
    """

    def __init__(self, client_id: int):
        self.client_id = client_id
        self.unmapped: Optional[Location] = None
        self.sentinel_created = False
        self.locations: List[Location] = []
        self.candidates: List[Location] = []
        self._by_store_label: Dict[str, Location] = {}
        self._by_store_id: Dict[str, Location] = {}
        self._by_canonical: Dict[str, Location] = {}
        self._by_platform_name: Dict[Platform, Dict[str, Location]] = {p: {} for p in Platform}
        self._loaded = False

    @classmethod
    def load(cls, session: Session, client_id: int) -> "LocationDirectory":
        directory = cls(client_id)
        directory.refresh(session)
        return directory

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def unmapped_id(self) -> Optional[int]:
        return self.unmapped.id if self.unmapped is not None else None

    def refresh(self, session: Session) -> None:
        """(Re)read all locations; creates the Unmapped bucket if needed"""
        sentinel, created = ensure_unmapped_sentinel(session, self.client_id)
        self.unmapped = sentinel
        self.sentinel_created = self.sentinel_created or created

        self.locations = list(session.execute(
            select(Location).where(Location.client_id == self.client_id).order_by(Location.id)
        ).scalars())

        self.candidates = [loc for loc in self.locations if loc.id != sentinel.id]
        self._by_store_label = {}
        self._by_store_id = {}
        self._by_canonical = {}
        self._by_platform_name = {p: {} for p in Platform}

        for loc in self.candidates:
            if loc.uber_eats_store_label:
                _index(self._by_store_label, loc.uber_eats_store_label.strip(), loc)
            if loc.store_id:
                _index(self._by_store_id, loc.store_id.strip(), loc)
            _index(self._by_canonical, _key(loc.canonical_name), loc)
            for platform, field_name in PLATFORM_NAME_FIELDS.items():
                value = getattr(loc, field_name)
                if value:
                    _index(self._by_platform_name[platform], _key(value), loc)

        self._loaded = True
        logger.debug(f"Location directory loaded for client {self.client_id}: {len(self.candidates)} location(s)")

    def find_by_store_label(self, code: Optional[str]) -> Optional[Location]:
        """Exact, case-sensitive Uber Eats store label lookup"""
        return self._by_store_label.get(code.strip()) if code else None

    def find_by_store_id(self, code: Optional[str]) -> Optional[Location]:
        return self._by_store_id.get(code.strip()) if code else None

    def find_by_platform_name(self, platform: Platform, name: Optional[str]) -> Optional[Location]:
        return self._by_platform_name[platform].get(_key(name)) if name else None

    def find_by_canonical_name(self, name: Optional[str]) -> Optional[Location]:
        return self._by_canonical.get(_key(name)) if name else None


def _key(value: Optional[str]) -> str:
    return ' '.join((value or '').lower().split())


def _index(index: Dict[str, Location], key: str, loc: Location) -> None:
    # Locations arrive in id order
    held = index.get(key)
    if held is None or (loc.is_verified and not held.is_verified):
        index[key] = loc


def same_lookup_key(stored: Optional[str], value: Optional[str]) -> bool:
    """True when exact name lookups treat both values as the same name"""
    if not stored or not value:
        return False
    return _key(stored) == _key(value)
