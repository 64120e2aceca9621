import pytest
from sqlalchemy import select

from conftest import csv_bytes
from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import NotFoundError, ParseError, ValidationError
from delivery_recon.models import DoordashTransaction, Location, UberEatsTransaction
from delivery_recon.services.ingestion_service import IngestionService
from delivery_recon.services.location_service import LocationService
from delivery_recon.services.matching.suggestion_engine import MatchSuggestionEngine

MASTER_HEADER = ["Location Name", "Store ID", "DoorDash Name"]

DOORDASH_HEADER = [
    "Store name", "DoorDash transaction ID", "Timestamp local date",
    "Transaction type", "Channel", "Subtotal", "Net total",
]


def _ingest_doordash(session, client_id, rows):
    content = csv_bytes(DOORDASH_HEADER, rows)
    return IngestionService().ingest(session, content, "doordash.csv", Platform.DOORDASH, client_id)


def _named(session, client_id, name):
    return session.execute(
        select(Location).where(Location.client_id == client_id, Location.canonical_name == name)
    ).scalar_one()


def test_create_client_builds_unmapped_bucket(session):
    service = LocationService()
    created = service.create_client(session, "  Jersey Mike's ")

    locations = service.list_locations(session, created.id)
    assert created.name == "Jersey Mike's"
    assert [loc.is_unmapped for loc in locations] == [True]

    with pytest.raises(ValidationError):
        service.create_client(session, "Jersey Mike's")
    with pytest.raises(ValidationError):
        service.create_client(session, "   ")


def test_get_client_not_found(session):
    with pytest.raises(NotFoundError):
        LocationService().get_client(session, 404)


def test_master_list_import_creates_skips_and_updates(session, client):
    service = LocationService()
    first = csv_bytes(MASTER_HEADER, [
        ["Anoka Main", "MN100477", "Main Street - Anoka"],
        ["Blaine", "MN100512", ""],
    ])

    assert service.import_master_list(session, first, "master.csv", client.id) == {
        "created": 2, "updated": 0, "skipped": 0,
    }
    assert service.import_master_list(session, first, "master.csv", client.id) == {
        "created": 0, "updated": 0, "skipped": 2,
    }

    renamed = csv_bytes(MASTER_HEADER, [
        ["Anoka Main Street", "MN100477", "Main Street - Anoka"],
        ["Blaine", "MN100512", "Blaine - Northtown"],
    ])
    assert service.import_master_list(session, renamed, "master.csv", client.id) == {
        "created": 0, "updated": 2, "skipped": 0,
    }

    anoka = _named(session, client.id, "Anoka Main Street")
    blaine = _named(session, client.id, "Blaine")
    assert anoka.store_id == "MN100477"
    assert blaine.doordash_name == "Blaine - Northtown"
    assert len(service.list_locations(session, client.id)) == 3


def test_master_list_requires_a_name_column(session, client):
    content = csv_bytes(["Store ID", "Region"], [["MN100477", "North"]])
    with pytest.raises(ParseError):
        LocationService().import_master_list(session, content, "master.csv", client.id)


def test_confirm_match_binds_name_and_repoints_transactions(session, client, add_location):
    lakeside = add_location("Lakeside")
    _ingest_doordash(session, client.id, [
        ["Downtown Express", "t1", "2025-10-06", "Order", "Marketplace", "10", "7"],
        ["Downtown Express", "t2", "2025-10-07", "Order", "Marketplace", "20", "14"],
    ])
    engine = MatchSuggestionEngine()

    suggestions = engine.suggest(session, client.id, Platform.DOORDASH, min_confidence=0.0)
    assert [s.location_name for s in suggestions] == ["Downtown Express"]
    assert suggestions[0].order_count == 2
    assert suggestions[0].matched_location_id == lakeside.id

    confirmed = LocationService().confirm_match(session, client.id, "Downtown Express", "doordash", lakeside.id)

    assert confirmed["transactions_updated"] == 2
    assert confirmed["location"]["doordash_name"] == "Downtown Express"
    assert confirmed["location"]["is_verified"] is True
    session.expire_all()
    location_ids = session.execute(select(DoordashTransaction.location_id)).scalars().all()
    assert location_ids == [lakeside.id, lakeside.id]
    assert engine.suggest(session, client.id, Platform.DOORDASH, min_confidence=0.0) == []


def test_confirmed_match_survives_reingest(session, client, add_location):
    blaine = add_location("Blaine North", doordash_name="Anoka Plaza")
    anoka = add_location("Anoka Main")
    rows = [["Anoka Plaza", "t1", "2025-10-06", "Order", "Marketplace", "10", "7"]]
    _ingest_doordash(session, client.id, rows)

    confirmed = LocationService().confirm_match(session, client.id, "Anoka Plaza", "doordash", anoka.id)
    assert confirmed["transactions_updated"] == 1
    assert confirmed["locations_released"] == 1

    _ingest_doordash(session, client.id, rows)

    session.expire_all()
    assert session.execute(select(DoordashTransaction.location_id)).scalars().all() == [anoka.id]
    assert session.get(Location, blaine.id).doordash_name is None


def test_suggestions_skip_rows_on_verified_locations(session, client, add_location):
    add_location("Anoka Plaza", is_verified=True)
    blaine = add_location("Blaine")
    _ingest_doordash(session, client.id, [
        ["Anoka Plaza", "t1", "2025-10-06", "Order", "Marketplace", "10", "7"],
        ["Blaine", "t2", "2025-10-06", "Order", "Marketplace", "20", "14"],
    ])

    suggestions = MatchSuggestionEngine().suggest(session, client.id, Platform.DOORDASH, min_confidence=0.0)

    assert [s.location_name for s in suggestions] == ["Blaine"]
    assert suggestions[0].current_location_id == blaine.id


def test_confirm_match_stores_uber_eats_code(session, client, add_location):
    target = add_location("Des Moines East")

    confirmed = LocationService().confirm_match(
        session, client.id, "Capriotti's (IA069)", Platform.UBER_EATS, target.id
    )

    assert confirmed["location"]["uber_eats_store_label"] == "IA069"
    assert session.execute(select(UberEatsTransaction)).first() is None


def test_confirm_match_rejects_unmapped_and_foreign_targets(session, client):
    service = LocationService()
    sentinel = _named(session, client.id, "Unmapped Locations")

    with pytest.raises(ValidationError):
        service.confirm_match(session, client.id, "Anoka", "doordash", sentinel.id)
    with pytest.raises(NotFoundError):
        service.confirm_match(session, client.id, "Anoka", "doordash", 9999)


def test_find_duplicate_locations(session, client, add_location):
    first = add_location("Anoka Main")
    second = add_location("MN100477 Anoka Main St")
    add_location("Blaine")

    groups = LocationService().find_duplicate_locations(session, client.id)

    assert len(groups) == 1
    assert groups[0]["normalized_name"] == "anoka main"
    assert [loc["id"] for loc in groups[0]["locations"]] == [first.id, second.id]


def test_merge_locations_moves_transactions(session, client, add_location):
    keep = add_location("Anoka Main")
    drop = add_location("Anoka Main Street", doordash_name="Main Street - Anoka", store_id="MN100477")
    _ingest_doordash(session, client.id, [
        ["Main Street - Anoka", "t1", "2025-10-06", "Order", "Marketplace", "10", "7"],
    ])

    merged = LocationService().merge_locations(session, client.id, drop.id, keep.id)

    assert merged["transactions_moved"] == 1
    assert merged["merged_location_id"] == drop.id
    assert merged["target"]["doordash_name"] == "Main Street - Anoka"
    assert merged["target"]["store_id"] == "MN100477"
    assert session.get(Location, drop.id) is None
    assert session.execute(select(DoordashTransaction.location_id)).scalar_one() == keep.id


def test_merge_rejects_same_or_unmapped_locations(session, client, add_location):
    service = LocationService()
    location = add_location("Anoka")
    sentinel = _named(session, client.id, "Unmapped Locations")

    with pytest.raises(ValidationError):
        service.merge_locations(session, client.id, location.id, location.id)
    with pytest.raises(ValidationError):
        service.merge_locations(session, client.id, sentinel.id, location.id)
