from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook

from resale_connector.db_models import Deposit, InventoryItem, Item, Sale
from resale_connector.services.spreadsheet_import import import_workbook, parse_workbook
from resale_connector.services.spreadsheet_import import orchestrator

TODAY = date(2026, 10, 19)


def _workbook_bytes(sheets):
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


SALES_SHEET = [
    ["Item #", "Description", "Sale Price", "Listed Price", "Shipping", "Supplies", "Net", "Date Sold"],
    ["A1", "Vintage lamp", 40, 55, 8, 2, 30, datetime(2024, 5, 1)],
]
INVENTORY_SHEET = [
    ["Item #", "Description", "Minimum Price", "Cost", "Date Added"],
    ["I-1", "Camera", 45, 10, datetime(2024, 1, 2)],
]


def test_import_counts_and_links_item(db, user):
    file_bytes = _workbook_bytes({
        "eBay 2024": SALES_SHEET,
        "Items to Sell": INVENTORY_SHEET,
        "Notes": [["anything"]],
    })

    outcome = import_workbook(db, user.id, file_bytes, today=TODAY)

    assert (outcome.sales_created, outcome.inventory_created, outcome.deposits_created) == (1, 1, 0)
    assert outcome.errors == []

    sale = db.query(Sale).one()
    assert sale.item.item_number == "A1"
    assert sale.item.description == "Vintage lamp"
    assert sale.sale_price == Decimal("40.00")
    assert sale.net_profit == Decimal("30.00")
    assert sale.sale_date == date(2024, 5, 1)
    assert db.query(InventoryItem).one().description == "Camera"


def test_reimport_is_a_no_op(db, user):
    file_bytes = _workbook_bytes({"eBay 2024": SALES_SHEET, "Items to Sell": INVENTORY_SHEET})

    import_workbook(db, user.id, file_bytes, today=TODAY)
    second = import_workbook(db, user.id, file_bytes, today=TODAY)

    assert (second.sales_created, second.inventory_created, second.deposits_created) == (0, 0, 0)
    assert second.duplicates_skipped == 2
    assert db.query(Sale).count() == 1
    assert db.query(Item).count() == 1
    assert db.query(InventoryItem).count() == 1


def test_duplicate_rows_within_one_upload_are_skipped(db, user):
    deposits = [
        ["Sold Date", "Description", "Total"],
        [datetime(2024, 2, 3), "Lamp", 40],
        [datetime(2024, 2, 3), "Lamp", 40],
    ]

    outcome = import_workbook(db, user.id, _workbook_bytes({"USB Deposits": deposits}), today=TODAY)

    assert outcome.deposits_created == 1
    assert outcome.duplicates_skipped == 1
    assert db.query(Deposit).count() == 1


def test_existing_item_is_reused(db, user):
    db.add(Item(item_number="A1", description="Lamp from an earlier import"))
    db.commit()

    import_workbook(db, user.id, _workbook_bytes({"eBay 2024": SALES_SHEET}), today=TODAY)

    assert db.query(Item).count() == 1
    assert db.query(Sale).one().item.description == "Lamp from an earlier import"


def test_failing_sheet_does_not_stop_other_sheets(db, user, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(orchestrator, "extract_inventory_rows", boom)
    file_bytes = _workbook_bytes({"eBay 2024": SALES_SHEET, "Items to Sell": INVENTORY_SHEET})

    outcome = import_workbook(db, user.id, file_bytes, today=TODAY)

    assert outcome.sales_created == 1
    assert outcome.inventory_created == 0
    assert outcome.errors == ['Error parsing sheet "Items to Sell": boom']


def test_unreadable_workbook_yields_single_error(db, user):
    outcome = import_workbook(db, user.id, b"definitely not a spreadsheet", today=TODAY)

    assert (outcome.sales_created, outcome.inventory_created, outcome.deposits_created) == (0, 0, 0)
    assert len(outcome.errors) == 1


def test_corrupt_xlsx_yields_single_error():
    result = parse_workbook(b"PK\x03\x04" + b"\x00" * 64)

    assert result.sales == []
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Could not read workbook")


def test_dialect_override_forces_positional_columns(db, user):
    header = ["Item #", "Description"] + [f"Misc {i}" for i in range(14)] + ["Status", "Sale Price", "Sub-Total"]
    row = ["P1", "Teapot"] + [None] * 14 + ["Sold", 20, 18]

    detected = parse_workbook(_workbook_bytes({"eBay 2025": [header, row]}), today=TODAY)
    forced = parse_workbook(_workbook_bytes({"eBay 2025": [header, row]}), dialect="positional", today=TODAY)

    # without the "90 Day Total" marker the simple layout applies and its sub-total is the net
    assert detected.sales[0].net_profit == 18.0
    assert forced.sales[0].sale_price == 20.0
    assert forced.sales[0].net_profit == 20.0


def test_sold_by_me_sheet_uses_simple_acceptance():
    rows = [
        ["Item #", "Description", "Sale Price", "Date Sold"],
        ["S1", "Guitar", 150, datetime(2024, 6, 1)],
        ["S2", "Amp", 0, None],
    ]

    result = parse_workbook(_workbook_bytes({"Sold by me": rows}), today=TODAY)

    assert [s.item_number for s in result.sales] == ["S1"]
    assert result.sales[0].net_profit == 150.0
