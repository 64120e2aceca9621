import logging

import pytest

from conftest import csv_bytes
from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import ParseError, RowValidationError
from delivery_recon.core.header_normalizer import normalize_header, normalize_headers
from delivery_recon.services.file_utils import dataframe_to_records, decode_csv_bytes, read_tabular_bytes
from delivery_recon.services.upload.UploadServiceMap import get_platform_service
from delivery_recon.services.upload.UberEatsDataService import is_ad_spend_description

UBER_HEADER = [
    "Store Name", "Order ID", "Workflow ID", "Order Date", "Order Status",
    "Sales (excl. tax)", "Offers on items (incl. tax)", "Total payout",
]


def test_normalize_header_platform_variants():
    assert normalize_header("Sales (excl. tax)") == "sales_excl_tax"
    assert normalize_header("\ufeffStore Name ") == "store_name"
    assert normalize_header("Third-party contribution") == "third_party_contribution"
    assert normalize_header("Order #") == "order_number"
    assert normalize_header("Commission %") == "commission_percent"
    assert normalize_header("") == ""


def test_normalize_headers_suffixes_duplicates_and_blanks():
    assert normalize_headers(["Amount", "amount", ""]) == ["amount", "amount_2", "unnamed_column"]


def test_platform_from_string_is_lenient():
    assert Platform.from_string("Uber Eats") is Platform.UBER_EATS
    assert Platform.from_string("DOORDASH") is Platform.DOORDASH
    assert Platform.from_string("grub-hub") is Platform.GRUBHUB
    with pytest.raises(ValueError):
        Platform.from_string("postmates")


def test_uber_eats_row_normalization():
    service = get_platform_service(Platform.UBER_EATS)
    record = service.normalize_row({
        "Store Name": "Capriotti's (IA069)",
        "Order ID": "abc",
        "Workflow ID": "wf-1",
        "Order Date": "10/6/25",
        "Order Status": "Completed",
        "Sales (excl. tax)": "$1,234.50",
        "Offers on items (incl. tax)": "(12.50)",
        "Total payout": "N/A",
    }, row_number=3)

    assert record.natural_key == "wf-1"
    assert record.transaction_date == "2025-10-06"
    assert record.row_number == 3
    assert record.values["sales_excl_tax"] == 1234.5
    assert record.values["offers_on_items"] == -12.5
    assert record.values["net_payout"] == 0.0
    # Columns absent from the file default to 0
    assert record.values["marketplace_fee"] == 0.0


def test_invalid_numeric_values_become_zero():
    service = get_platform_service(Platform.DOORDASH)
    for value in ("", "--", "#N/A", "abc", "nan", None, float("inf")):
        assert service._coerce_to_float(value) == 0.0
    assert service._coerce_to_float("45%") == 45.0
    assert service._coerce_to_float(7) == 7.0


def test_missing_natural_key_rejects_row():
    service = get_platform_service(Platform.UBER_EATS)
    with pytest.raises(RowValidationError) as exc:
        service.normalize_row({
            "Store Name": "Capriotti's (IA069)",
            "Order ID": "abc",
            "Workflow ID": "",
            "Order Date": "10/6/25",
        })
    assert "workflow_id" in exc.value.message


def test_unparseable_date_rejects_row(caplog):
    caplog.set_level(logging.DEBUG, logger="delivery_recon.services.PlatformAbstractService")
    service = get_platform_service(Platform.DOORDASH)
    with pytest.raises(RowValidationError) as exc:
        service.normalize_row({
            "Store name": "Anoka",
            "DoorDash transaction ID": "t1",
            "Timestamp local date": "next tuesday",
        })
    assert "unparseable" in exc.value.message
    assert "DoorDash row 0 rejected" in caplog.text


def test_doordash_row_uses_store_id_as_store_code():
    service = get_platform_service(Platform.DOORDASH)
    record = service.normalize_row({
        "Store name": "Main Street - Anoka",
        "Store ID": "12345",
        "DoorDash transaction ID": "t-9",
        "Timestamp local date": "2025-10-07",
        "Subtotal": "42.10",
        "Net total": "30.00",
    })
    assert record.natural_key == "t-9"
    assert record.store_code == "12345"
    assert record.values["sales_excl_tax"] == 42.1
    assert record.values["total_payout"] == 30.0


def test_grubhub_falls_back_to_order_number_and_date():
    service = get_platform_service(Platform.GRUBHUB)
    record = service.normalize_row({
        "Restaurant": "Anoka",
        "Order #": "5501",
        "Transaction Date": "10/08/2025",
        "Transaction Type": "Prepaid Order",
        "Subtotal": "20",
    })
    assert record.natural_key == "5501_2025-10-08"

    with pytest.raises(RowValidationError):
        service.normalize_row({"Restaurant": "Anoka", "Transaction Date": "10/08/2025"})


def test_grubhub_requires_an_identifier_column():
    service = get_platform_service(Platform.GRUBHUB)
    with pytest.raises(ParseError):
        service.check_columns(["Restaurant", "Transaction Date", "Subtotal"])
    service.check_columns(["Restaurant", "Transaction Date", "Order #"])


def test_missing_required_column_is_parse_error():
    service = get_platform_service(Platform.UBER_EATS)
    with pytest.raises(ParseError) as exc:
        service.check_columns(["Store Name", "Order ID", "Order Date"])
    assert exc.value.details["missing_columns"] == ["workflow_id"]


def test_read_csv_skips_uber_eats_description_row_and_blank_lines():
    content = (
        "Name of the store as per Uber Eats,Unique order id,Workflow id,Date,Status,Sales,Offers,Payout\n"
        + csv_bytes(UBER_HEADER, [
            ["Capriotti's (IA069)", "o1", "wf-1", "10/6/25", "Completed", "10", "0", "7"],
            ["", "", "", "", "", "", "", ""],
            ["Capriotti's (IA069)", "o2", "wf-2", "10/7/25", "Completed", "20", "0", "14"],
        ]).decode("utf-8")
    ).encode("utf-8")

    df = read_tabular_bytes(content, "uber.csv", Platform.UBER_EATS)
    records = dataframe_to_records(df)

    assert list(df.columns) == UBER_HEADER
    assert [r["Workflow ID"] for r in records] == ["wf-1", "wf-2"]


def test_csv_decoding_prefers_cp1252_over_latin1():
    assert decode_csv_bytes(b"Store\n\x93Anoka\x94\n") == "Store\n\u201cAnoka\u201d\n"
    # 0x81 is undefined in cp1252
    assert decode_csv_bytes(b"Store\n\x81\n") == "Store\n\x81\n"


def test_read_rejects_empty_file():
    with pytest.raises(ParseError):
        read_tabular_bytes(b"", "empty.csv")


def test_ad_spend_description_excludes_adjustments():
    assert is_ad_spend_description("Ad Spend - Sponsored listing")
    assert is_ad_spend_description("Paid promotion")
    assert not is_ad_spend_description("Order adjustment")
    assert not is_ad_spend_description(None)
