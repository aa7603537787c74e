import openpyxl
import pandas as pd
import pytest
from unittest.mock import MagicMock
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from lead_scout.config import GOOGLE_MAPS, YELLOW_PAGES
from lead_scout.storage import COLUMNS, ExcelLeadSheet, MongoLeadStore, SHEET_NAME, to_row


@pytest.fixture
def batch(make_record):
    return [
        make_record("Joe's Cafe", phone="5551234567", address="1 Main St", rating=4.5, is_relevant=True),
        make_record("Bob's Plumbing", source=YELLOW_PAGES, phone="5125550100", address="1 Elm St"),
    ]


class TestExcelLeadSheet:

    def test_creates_workbook_with_business_sheet(self, tmp_path, batch):
        path = tmp_path / "leads.xlsx"
        report = ExcelLeadSheet(str(path)).merge(batch)
        assert report.written == 2 and report.skipped == 0
        assert pd.ExcelFile(path).sheet_names == [SHEET_NAME]
        df = pd.read_excel(path, dtype={"phone": str})
        assert list(df.columns) == list(COLUMNS.values())
        assert list(df["phone"]) == ["5551234567", "5125550100"]

    def test_second_run_appends_nothing(self, tmp_path, batch):
        sheet = ExcelLeadSheet(str(tmp_path / "leads.xlsx"))
        sheet.merge(batch)
        report = sheet.merge(batch)
        assert report.written == 0
        assert report.skipped == 2
        assert len(sheet.rows()) == 2

    def test_case_and_whitespace_variants_collapse(self, tmp_path, make_record):
        sheet = ExcelLeadSheet(str(tmp_path / "leads.xlsx"))
        report = sheet.merge([
            make_record("Joe's Cafe", phone="555 123 4567", address="1 Main St"),
            make_record("JOE'S CAFE", phone="5551234567", address="1 main  st"),
        ])
        assert report.written == 1 and report.skipped == 1
        assert len(sheet.rows()) == 1

    def test_existing_rows_are_kept(self, tmp_path, batch, make_record):
        sheet = ExcelLeadSheet(str(tmp_path / "leads.xlsx"))
        sheet.merge(batch[:1])
        report = sheet.merge([make_record("New Place", phone="1")] + batch)
        assert report.written == 2
        assert [r["name"] for r in sheet.rows()] == ["Joe's Cafe", "New Place", "Bob's Plumbing"]

    def test_text_cells_stay_text_across_merges(self, tmp_path, make_record):
        path = tmp_path / "leads.xlsx"
        sheet = ExcelLeadSheet(str(path))
        sheet.merge([make_record("Joe's Cafe", phone="5551234567", rating_count="12")])
        sheet.merge([make_record("Other Place", phone="5559876543", rating_count="7")])
        ws = openpyxl.load_workbook(path)[SHEET_NAME]
        header = [cell.value for cell in ws[1]]
        first = {column: ws.cell(row=2, column=i + 1).value for i, column in enumerate(header)}
        assert first["ratingCount"] == "12"
        assert first["phone"] == "5551234567"
        assert sheet.rows()[0]["ratingCount"] == "12"


class TestMongoLeadStore:

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.admin.command.return_value = {"ok": 1}
        return client

    @pytest.fixture
    def collection(self, client):
        return client.__getitem__.return_value.__getitem__.return_value

    def test_connect_failure_is_reported(self, client):
        client.admin.command.side_effect = ServerSelectionTimeoutError("no servers")
        store = MongoLeadStore("mongodb://x", "db", "leads", client=client)
        assert store.connect() is False
        assert not store.connected

    def test_upserts_by_name_and_source(self, client, collection, batch):
        collection.find.return_value = []
        store = MongoLeadStore("mongodb://x", "business_scraper", "businesses", client=client)
        assert store.connect()
        report = store.merge(batch)
        assert report.written == 2
        filter_, document = collection.replace_one.call_args_list[0].args
        assert filter_ == {"name": "Joe's Cafe", "source": GOOGLE_MAPS}
        assert document == to_row(batch[0])
        assert document["isRelevant"] is True
        assert collection.replace_one.call_args_list[0].kwargs == {"upsert": True}

    def test_skips_known_fingerprints(self, client, collection, batch):
        collection.find.return_value = [{"name": "joe's cafe", "phone": "555 123 4567", "address": "1 main st"}]
        store = MongoLeadStore("mongodb://x", "db", "leads", client=client)
        store.connect()
        report = store.merge(batch)
        assert report.skipped == 1
        assert collection.replace_one.call_count == 1

    def test_row_failure_does_not_stop_batch(self, client, collection, batch):
        collection.find.return_value = []
        collection.replace_one.side_effect = [PyMongoError("write failed"), None]
        store = MongoLeadStore("mongodb://x", "db", "leads", client=client)
        store.connect()
        report = store.merge(batch)
        assert report.failed == 1
        assert report.written == 1

    def test_merge_requires_connection(self, batch):
        with pytest.raises(RuntimeError):
            MongoLeadStore("mongodb://x", "db", "leads", client=MagicMock()).merge(batch)
