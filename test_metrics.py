from datetime import date

import pytest

from delivery_recon.core.enum.Platform import Platform
from delivery_recon.models import DoordashTransaction, GrubhubTransaction, UberEatsTransaction
from delivery_recon.services.analysis.metrics_service import MetricsFilter, MetricsService, derive_metrics
from delivery_recon.services.analysis.week_utils import (
    format_week_range,
    get_unique_weeks,
    get_week_end,
    get_week_range,
    get_week_start,
)


def _doordash(client_id, location_id, txn_id, day, **values):
    values.setdefault("transaction_type", "Order")
    values.setdefault("channel", "Marketplace")
    return DoordashTransaction(
        client_id=client_id, location_id=location_id, transaction_id=txn_id,
        transaction_date=day, store_name="Anoka", **values,
    )


@pytest.fixture
def anoka_week(session, client, add_location):
    """One DoorDash week for Anoka: two orders, a storefront order and an ad charge"""
    anoka = add_location("Anoka")
    session.add_all([
        _doordash(client.id, anoka.id, "t1", "2025-10-06", sales_excl_tax=100.0, offers=-10.0, total_payout=70.0),
        _doordash(client.id, anoka.id, "t2", "2025-10-08", sales_excl_tax=50.0, total_payout=35.0),
        _doordash(client.id, anoka.id, "t3", "2025-10-09", channel="Storefront",
                  sales_excl_tax=500.0, total_payout=450.0),
        _doordash(client.id, anoka.id, "t4", "2025-10-10", transaction_type="Ad", channel="",
                  other_payments=20.0, total_payout=-20.0),
    ])
    session.commit()
    return anoka


def test_week_helpers():
    assert get_week_start("2025-10-08") == date(2025, 10, 6)
    assert get_week_end("2025-10-06") == date(2025, 10, 12)
    assert get_week_start("2025-10-12T23:59:00") == date(2025, 10, 6)
    assert get_week_range(date(2025, 10, 1)) == {"weekStart": "2025-09-29", "weekEnd": "2025-10-05"}
    assert format_week_range("2025-10-06") == "Oct 6 - 12, 2025"
    assert format_week_range("2025-09-29") == "Sep 29 - Oct 5, 2025"


def test_unique_weeks_newest_first():
    weeks = get_unique_weeks(["2025-10-06", "2025-10-12", "2025-09-30", "2025-10-14"])
    assert [w["weekStart"] for w in weeks] == ["2025-10-13", "2025-10-06", "2025-09-29"]


def test_derive_metrics_ratios():
    metrics = derive_metrics(150.0, 2, 20.0, 10.0, 100.0, 85.0, cogs_rate=0.46)

    assert metrics["aov"] == 75.0
    assert metrics["marketingSpend"] == 30.0
    assert metrics["marketingRoas"] == 3.33
    assert metrics["netPayoutPercent"] == 56.67
    assert metrics["payoutAfterCogs"] == 16.0


def test_zero_denominators_give_none():
    metrics = derive_metrics(0.0, 0, 0.0, 0.0, 0.0, 12.0, cogs_rate=0.46)

    assert metrics["aov"] is None
    assert metrics["marketingRoas"] is None
    assert metrics["netPayoutPercent"] is None
    assert metrics["payoutAfterCogs"] == 12.0


def test_doordash_location_metrics(session, client, anoka_week):
    results = MetricsService().location_metrics(session, MetricsFilter(client_id=client.id))

    assert len(results) == 1
    m = results[0]
    assert m["locationId"] == anoka_week.id
    assert m["locationName"] == "Anoka"
    assert m["totalSales"] == 150.0
    assert m["totalOrders"] == 2
    assert m["aov"] == 75.0
    assert m["adSpend"] == 20.0
    assert m["offerSpend"] == 10.0
    assert m["marketingSpend"] == 30.0
    assert m["marketingDrivenSales"] == 100.0
    assert m["marketingRoas"] == 3.33
    assert m["netPayout"] == 85.0
    assert m["netPayoutPercent"] == 56.67
    assert m["payoutAfterCogs"] == 16.0
    assert list(m["platformBreakdown"]) == ["doordash"]


def test_metrics_consolidate_platforms(session, client, anoka_week):
    session.add_all([
        GrubhubTransaction(
            client_id=client.id, location_id=anoka_week.id, transaction_id="g1",
            transaction_date="2025-10-07", transaction_type="Prepaid Order", store_name="Anoka",
            subtotal=40.0, merchant_funded_promotion=-5.0, merchant_net_total=30.0,
        ),
        UberEatsTransaction(
            client_id=client.id, location_id=anoka_week.id, workflow_id="w1", order_id="o1",
            order_date="2025-10-07", order_status="Completed", store_name="Anoka (MN01)",
            sales_excl_tax=60.0, net_payout=45.0,
        ),
    ])
    session.commit()

    m = MetricsService().location_metrics(session, MetricsFilter(client_id=client.id))[0]

    assert m["totalSales"] == 250.0
    assert m["totalOrders"] == 4
    assert m["netPayout"] == 160.0
    assert set(m["platformBreakdown"]) == {"doordash", "grubhub", "ubereats"}
    assert m["platformBreakdown"]["grubhub"]["offerSpend"] == 5.0
    assert m["platformBreakdown"]["ubereats"]["marketingRoas"] is None

    only_grubhub = MetricsService().location_metrics(
        session, MetricsFilter(client_id=client.id, platform=Platform.GRUBHUB)
    )[0]
    assert only_grubhub["totalSales"] == 40.0


def test_group_by_week_and_week_filter(session, client, anoka_week):
    session.add(_doordash(client.id, anoka_week.id, "t5", "2025-10-14", sales_excl_tax=80.0, total_payout=60.0))
    session.commit()
    service = MetricsService()

    weekly = service.location_metrics(session, MetricsFilter(client_id=client.id), group_by_week=True)
    assert [(m["weekStart"], m["weekEnd"]) for m in weekly] == [
        ("2025-10-13", "2025-10-19"),
        ("2025-10-06", "2025-10-12"),
    ]
    assert weekly[0]["totalSales"] == 80.0

    # Any day inside a week selects the whole week
    filtered = service.location_metrics(
        session, MetricsFilter(client_id=client.id, week_start="2025-10-08", week_end="2025-10-08")
    )
    assert filtered[0]["totalSales"] == 150.0

    assert service.available_weeks(session, client.id) == [
        {"weekStart": "2025-10-13", "weekEnd": "2025-10-19"},
        {"weekStart": "2025-10-06", "weekEnd": "2025-10-12"},
    ]


def test_no_transactions_means_no_rows(session, client):
    assert MetricsService().location_metrics(session, MetricsFilter(client_id=client.id)) == []
    assert MetricsService().available_weeks(session, client.id) == []
