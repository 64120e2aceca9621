"""
Location Service
Clients, the master location list import, match confirmation and
location administration (duplicate detection and merge).
"""
import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import DatabaseError, NotFoundError, ParseError, ValidationError
from delivery_recon.core.header_normalizer import normalize_header, normalize_headers
from delivery_recon.models import (
    Client,
    Location,
    PLATFORM_NAME_FIELDS,
    TRANSACTION_MODELS,
    UNMAPPED_LOCATION_NAME,
)
from delivery_recon.services.file_utils import dataframe_to_records, read_tabular_bytes
from delivery_recon.services.matching.identity_resolver import extract_store_code
from delivery_recon.services.matching.location_directory import ensure_unmapped_sentinel, same_lookup_key
from delivery_recon.services.matching.similarity import normalize_location_name

log = logging.getLogger(__name__)

# Master list column -> accepted normalized headers, in priority order
MASTER_LIST_COLUMNS = {
    'canonical_name': ('canonical_name', 'location_name', 'location', 'store_name', 'name'),
    'store_id': ('store_id', 'store_code', 'store_number', 'shop_id'),
    'uber_eats_store_label': ('uber_eats_store_label', 'uber_eats_name', 'ubereats_name', 'uber_eats', 'ubereats'),
    'doordash_name': ('doordash_name', 'doordash'),
    'grubhub_name': ('grubhub_name', 'grubhub'),
}


def _pick(row: Dict[str, Any], aliases) -> Optional[str]:
    for alias in aliases:
        value = row.get(alias)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


class LocationService:

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def create_client(self, session: Session, name: str) -> Client:
        name = (name or '').strip()
        if not name:
            raise ValidationError("Client name is required")

        client = Client(name=name)
        session.add(client)
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise ValidationError(f"Client '{name}' already exists", {"name": name}) from e

        ensure_unmapped_sentinel(session, client.id)
        log.info(f"✅ Created client '{name}' (id={client.id})")
        return client

    def list_clients(self, session: Session) -> List[Client]:
        return list(session.execute(select(Client).order_by(Client.id)).scalars())

    def get_client(self, session: Session, client_id: int) -> Client:
        client = session.get(Client, client_id)
        if client is None:
            raise NotFoundError(f"Client {client_id} not found", {"client_id": client_id})
        return client

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def list_locations(self, session: Session, client_id: int) -> List[Location]:
        self.get_client(session, client_id)
        return list(session.execute(
            select(Location).where(Location.client_id == client_id).order_by(Location.id)
        ).scalars())

    def get_location(self, session: Session, client_id: int, location_id: int) -> Location:
        location = session.get(Location, location_id)
        if location is None or location.client_id != client_id:
            raise NotFoundError(
                f"Location {location_id} not found for client {client_id}",
                {"client_id": client_id, "location_id": location_id}
            )
        return location

    def import_master_list(self, session: Session, content: bytes, filename: Optional[str],
                           client_id: int) -> Dict[str, int]:
        """
        Create or update canonical locations from a master list file.

        Rows match existing locations by store id first, then by canonical
        name (case-insensitive). Returns {created, updated, skipped}.
        """
        self.get_client(session, client_id)
        df = read_tabular_bytes(content, filename)

        headers = set(normalize_headers(list(df.columns)))
        if not any(alias in headers for alias in MASTER_LIST_COLUMNS['canonical_name']):
            raise ParseError(
                "Master list is missing a location name column",
                {"accepted_headers": list(MASTER_LIST_COLUMNS['canonical_name'])}
            )

        existing = self.list_locations(session, client_id)
        by_store_id = {loc.store_id.strip(): loc for loc in reversed(existing) if loc.store_id}
        by_name = {loc.canonical_name.strip().lower(): loc for loc in reversed(existing)}

        summary = {"created": 0, "updated": 0, "skipped": 0}
        for raw in dataframe_to_records(df):
            row = {normalize_header(str(k)): v for k, v in raw.items()}
            fields = {name: _pick(row, aliases) for name, aliases in MASTER_LIST_COLUMNS.items()}

            canonical_name = fields['canonical_name']
            if not canonical_name or canonical_name == UNMAPPED_LOCATION_NAME:
                summary["skipped"] += 1
                continue

            location = None
            if fields['store_id']:
                location = by_store_id.get(fields['store_id'])
            if location is None:
                location = by_name.get(canonical_name.lower())

            if location is None:
                location = Location(client_id=client_id, is_verified=False,
                                    **{k: v for k, v in fields.items() if v is not None})
                session.add(location)
                session.flush()
                summary["created"] += 1
            else:
                changes = {k: v for k, v in fields.items() if v is not None and getattr(location, k) != v}
                if not changes:
                    summary["skipped"] += 1
                    continue
                for key, value in changes.items():
                    setattr(location, key, value)
                summary["updated"] += 1

            by_name[location.canonical_name.strip().lower()] = location
            if location.store_id:
                by_store_id[location.store_id.strip()] = location

        try:
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            log.error(f"❌ Master list import failed for client {client_id}: {e}")
            raise DatabaseError("Failed to save master location list", {"error": str(e)}) from e

        ensure_unmapped_sentinel(session, client_id)
        log.info(
            f"📦 Master list imported for client {client_id}: "
            f"{summary['created']} created, {summary['updated']} updated, {summary['skipped']} skipped"
        )
        return summary

    # ------------------------------------------------------------------
    # Match confirmation
    # ------------------------------------------------------------------

    def confirm_match(self, session: Session, client_id: int, raw_location_name: str,
                      platform: Union[Platform, str], target_location_id: int) -> Dict[str, Any]:
        """
        Bind a raw platform store name to a location and mark it verified.

        Existing transactions of that name on that platform are moved to
        the target so metrics reflect the confirmation immediately. Any
        other location of the client holding the same platform value loses
        it, so later ingestions resolve the name to the target.
        """
        platform = Platform.from_string(platform)
        raw_location_name = (raw_location_name or '').strip()
        if not raw_location_name:
            raise ValidationError("raw_location_name is required")

        target = self.get_location(session, client_id, target_location_id)
        if target.is_unmapped:
            raise ValidationError("Cannot confirm a match to Unmapped Locations", {"location_id": target.id})

        value = raw_location_name
        if platform is Platform.UBER_EATS:
            value = extract_store_code(raw_location_name) or raw_location_name

        field_name = PLATFORM_NAME_FIELDS[platform]
        released = 0
        for other in self.list_locations(session, client_id):
            if other.id != target.id and same_lookup_key(getattr(other, field_name), value):
                setattr(other, field_name, None)
                released += 1
        if released:
            log.info(f"🔓 Released {platform.display_name} value '{value}' from {released} other location(s)")

        setattr(target, field_name, value)
        target.is_verified = True

        model = TRANSACTION_MODELS[platform]
        try:
            session.flush()
            moved = session.execute(
                update(model)
                .where(model.client_id == client_id, model.store_name == raw_location_name)
                .values(location_id=target.id)
            ).rowcount
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            log.error(f"❌ Failed to confirm match '{raw_location_name}' -> {target.id}: {e}")
            raise DatabaseError("Failed to confirm location match", {"error": str(e)}) from e

        log.info(
            f"✅ Confirmed {platform.display_name} '{raw_location_name}' -> '{target.canonical_name}' "
            f"(id={target.id}); {moved} transaction(s) re-pointed"
        )
        return {
            "location": target.to_dict(),
            "platform": platform.value,
            "raw_location_name": raw_location_name,
            "transactions_updated": moved,
            "locations_released": released,
        }

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def find_duplicate_locations(self, session: Session, client_id: int) -> List[Dict[str, Any]]:
        """Groups of locations whose canonical names normalize to the same string"""
        groups: Dict[str, List[Location]] = {}
        for location in self.list_locations(session, client_id):
            if location.is_unmapped:
                continue
            key = normalize_location_name(location.canonical_name)
            if key:
                groups.setdefault(key, []).append(location)

        return [
            {"normalized_name": key, "locations": [loc.to_dict() for loc in members]}
            for key, members in groups.items()
            if len(members) > 1
        ]

    def merge_locations(self, session: Session, client_id: int, source_location_id: int,
                        target_location_id: int) -> Dict[str, Any]:
        """
        Move every transaction from source to target, then delete source.
        Blank platform fields on the target are filled from the source.
        """
        if source_location_id == target_location_id:
            raise ValidationError("Source and target locations must differ")

        source = self.get_location(session, client_id, source_location_id)
        target = self.get_location(session, client_id, target_location_id)
        if source.is_unmapped or target.is_unmapped:
            raise ValidationError("Unmapped Locations cannot be merged")

        moved = 0
        try:
            for model in TRANSACTION_MODELS.values():
                moved += session.execute(
                    update(model).where(model.location_id == source.id).values(location_id=target.id)
                ).rowcount

            remaining = sum(
                session.execute(
                    select(func.count(model.id)).where(model.location_id == source.id)
                ).scalar_one()
                for model in TRANSACTION_MODELS.values()
            )
            if remaining:
                raise ValidationError(
                    f"Location {source.id} still has {remaining} transaction(s)",
                    {"location_id": source.id}
                )

            for field_name in ('store_id', *PLATFORM_NAME_FIELDS.values()):
                if not getattr(target, field_name) and getattr(source, field_name):
                    setattr(target, field_name, getattr(source, field_name))

            session.delete(source)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            log.error(f"❌ Failed to merge location {source_location_id} into {target_location_id}: {e}")
            raise DatabaseError("Failed to merge locations", {"error": str(e)}) from e
        except ValidationError:
            session.rollback()
            raise

        log.info(f"🔗 Merged location {source_location_id} into {target_location_id}; {moved} transaction(s) moved")
        return {"target": target.to_dict(), "merged_location_id": source_location_id, "transactions_moved": moved}
