from delivery_recon.models import DoordashTransaction
from delivery_recon.services.analysis.data_quality_analyzer import DataQualityAnalyzer
from delivery_recon.services.analysis.metrics_service import derive_metrics


def _week(week_start, sales, payout=None, orders=10, ad_spend=0.0, offer_spend=0.0,
          driven=0.0, location_id=1, name="Anoka"):
    if payout is None:
        payout = round(sales * 0.8, 2)
    metrics = derive_metrics(sales, orders, ad_spend, offer_spend, driven, payout, cogs_rate=0.46)
    metrics.update(locationId=location_id, locationName=name, weekStart=week_start)
    return metrics


def _rules(report):
    return [issue["rule"] for issue in report["issues"]]


def test_clean_week_has_no_issues():
    report = DataQualityAnalyzer().analyze([_week("2025-10-06", 5000.0)])

    assert report["issues"] == []
    assert report["summary"]["total_issues"] == 0
    assert report["weeks"] == ["2025-10-06"]


def test_zero_sales_with_payout_is_critical():
    report = DataQualityAnalyzer().analyze([_week("2025-10-06", 0.0, payout=150.0, orders=0)])

    issue = report["issues"][0]
    assert issue["rule"] == "ZERO_SALES_WITH_PAYOUT"
    assert issue["severity"] == DataQualityAnalyzer.SEVERITY_CRITICAL
    assert issue["weekLabel"] == "Oct 6 - 12, 2025"
    assert issue["values"]["netPayout"] == 150.0


def test_payout_and_marketing_rules():
    week = _week("2025-10-06", 1000.0, payout=250.0, ad_spend=300.0, driven=200.0)
    rules = _rules(DataQualityAnalyzer().analyze([week]))

    # 250 - 1000 * 0.46 < 0, 25% payout, spend 300 > driven 200
    assert rules.count("NEGATIVE_PAYOUT_AFTER_COGS") == 1
    assert rules.count("LOW_PAYOUT_PERCENT") == 1
    assert rules.count("SPEND_EXCEEDS_ATTRIBUTED_SALES") == 1
    assert "EXTREME_ROAS" not in rules


def test_extreme_roas_is_low_severity():
    report = DataQualityAnalyzer().analyze([_week("2025-10-06", 3000.0, offer_spend=100.0, driven=2500.0)])

    roas = [i for i in report["issues"] if i["rule"] == "EXTREME_ROAS"]
    assert len(roas) == 1
    assert roas[0]["severity"] == DataQualityAnalyzer.SEVERITY_LOW


def test_week_over_week_drop():
    analyzer = DataQualityAnalyzer()

    dropped = analyzer.analyze([_week("2025-09-29", 5000.0), _week("2025-10-06", 1500.0)])
    drop = [i for i in dropped["issues"] if i["rule"] == "WOW_SALES_DROP"]
    assert len(drop) == 1
    assert drop[0]["severity"] == DataQualityAnalyzer.SEVERITY_HIGH
    assert drop[0]["weekStart"] == "2025-10-06"
    assert drop[0]["values"]["changePercent"] == -70.0

    steady = analyzer.analyze([_week("2025-09-29", 5000.0), _week("2025-10-06", 4900.0)])
    assert "WOW_SALES_DROP" not in _rules(steady)

    # $1,200 drop is only 12%: amount alone triggers a medium issue
    amount_only = analyzer.analyze([_week("2025-09-29", 10000.0), _week("2025-10-06", 8800.0)])
    drop = [i for i in amount_only["issues"] if i["rule"] == "WOW_SALES_DROP"]
    assert drop[0]["severity"] == DataQualityAnalyzer.SEVERITY_MEDIUM


def test_week_over_week_spike():
    report = DataQualityAnalyzer().analyze([_week("2025-09-29", 1000.0), _week("2025-10-06", 4000.0)])

    spike = [i for i in report["issues"] if i["rule"] == "WOW_SALES_SPIKE"]
    assert len(spike) == 1
    assert spike[0]["severity"] == DataQualityAnalyzer.SEVERITY_HIGH


def test_locations_are_compared_separately():
    report = DataQualityAnalyzer().analyze([
        _week("2025-09-29", 5000.0, location_id=1, name="Anoka"),
        _week("2025-10-06", 1000.0, location_id=2, name="Blaine"),
    ])

    # Blaine is never measured against Anoka's week; Anoka went silent
    drops = [i for i in report["issues"] if i["rule"] == "WOW_SALES_DROP"]
    assert [d["locationName"] for d in drops] == ["Anoka"]


def test_location_missing_a_whole_week_is_a_drop():
    report = DataQualityAnalyzer().analyze([
        _week("2025-09-29", 5000.0, location_id=1, name="Anoka"),
        _week("2025-09-29", 3000.0, location_id=2, name="Blaine"),
        _week("2025-10-06", 3100.0, location_id=2, name="Blaine"),
    ])

    assert _rules(report) == ["WOW_SALES_DROP"]
    drop = report["issues"][0]
    assert drop["locationName"] == "Anoka"
    assert drop["weekStart"] == "2025-10-06"
    assert drop["severity"] == DataQualityAnalyzer.SEVERITY_HIGH
    assert drop["values"]["totalSales"] == 0.0
    assert drop["values"]["changePercent"] == -100.0
    assert "no transactions" in drop["message"]


def test_week_over_week_uses_the_calendar_previous_week():
    # Nothing was loaded for 2025-09-29, so 2025-10-06 has no baseline
    report = DataQualityAnalyzer().analyze([_week("2025-09-22", 5000.0), _week("2025-10-06", 1000.0)])

    assert report["weeks"] == ["2025-10-06", "2025-09-22"]
    assert "WOW_SALES_DROP" not in _rules(report)


def test_unmapped_bucket_is_not_zero_filled():
    report = DataQualityAnalyzer().analyze([
        _week("2025-09-29", 5000.0, location_id=9, name="Unmapped Locations"),
        _week("2025-10-06", 3000.0, location_id=1, name="Anoka"),
    ])
    assert report["issues"] == []


def test_platform_that_stops_reporting_is_flagged():
    previous = _week("2025-09-29", 4000.0)
    previous["platformBreakdown"] = {
        "doordash": derive_metrics(3000.0, 30, 0.0, 0.0, 0.0, 2400.0, cogs_rate=0.46),
        "grubhub": derive_metrics(1000.0, 10, 0.0, 0.0, 0.0, 800.0, cogs_rate=0.46),
    }
    current = _week("2025-10-06", 3100.0)
    current["platformBreakdown"] = {
        "doordash": derive_metrics(3100.0, 31, 0.0, 0.0, 0.0, 2480.0, cogs_rate=0.46),
    }

    report = DataQualityAnalyzer().analyze([previous, current])

    # $900 and 22.5% stay under both drop thresholds
    assert _rules(report) == ["MISSING_PLATFORM_DATA"]
    gap = report["issues"][0]
    assert gap["severity"] == DataQualityAnalyzer.SEVERITY_HIGH
    assert gap["values"]["platform"] == "grubhub"
    assert gap["values"]["previousSales"] == 1000.0
    assert gap["message"].startswith("Missing Grubhub data")


def test_lookback_limits_reported_weeks_but_keeps_baseline():
    weeks = [
        _week("2025-09-22", 5000.0),
        _week("2025-09-29", 1000.0),
        _week("2025-10-06", 1000.0),
    ]
    report = DataQualityAnalyzer().analyze(weeks, lookback_weeks=2)

    assert report["weeks"] == ["2025-10-06", "2025-09-29"]
    assert report["summary"]["weeks_analyzed"] == 2
    assert [i["weekStart"] for i in report["issues"] if i["rule"] == "WOW_SALES_DROP"] == ["2025-09-29"]


def test_summary_counts_by_rule_and_severity():
    report = DataQualityAnalyzer().analyze([
        _week("2025-09-29", 5000.0),
        _week("2025-10-06", 0.0, payout=150.0, orders=0),
    ])
    summary = report["summary"]

    assert summary["total_issues"] == len(report["issues"])
    assert summary["by_rule"]["ZERO_SALES_WITH_PAYOUT"] == 1
    assert summary["by_rule"]["WOW_SALES_DROP"] == 1
    assert summary["by_severity"]["CRITICAL"] == 1
    assert summary["by_severity"]["HIGH"] == 1


def test_report_reads_stored_transactions(session, client, add_location):
    anoka = add_location("Anoka")
    session.add(DoordashTransaction(
        client_id=client.id, location_id=anoka.id, transaction_id="adj-1",
        transaction_date="2025-10-06", store_name="Anoka", transaction_type="Adjustment",
        total_payout=150.0,
    ))
    session.commit()

    report = DataQualityAnalyzer().report(session, client.id)

    assert _rules(report) == ["ZERO_SALES_WITH_PAYOUT"]
    assert report["issues"][0]["locationName"] == "Anoka"
