"""
Tests for Google Sheets API service.
"""
import pytest
from unittest.mock import MagicMock, patch

# Mark all tests as unit tests
pytestmark = pytest.mark.unit

from api.services.candidate_aggregator import PhaseTag
from api.services.row_driver import RowInput, RowOutcome


def make_service(mock_service):
    from api.services.sheets import SheetsService

    service = SheetsService.__new__(SheetsService)
    service._service = mock_service
    return service


class TestColumnOffset:
    """Test column letter arithmetic."""

    def test_offsets(self):
        from api.services.sheets import column_offset

        assert column_offset("A", 1) == "B"
        assert column_offset("a", 4) == "E"
        assert column_offset("C", 0) == "C"


class TestSheetsService:
    """Test SheetsService class."""

    def test_get_values_calls_api(self):
        """Should call Sheets API to get values."""
        mock_service = MagicMock()
        mock_service.spreadsheets().values().get().execute.return_value = {
            "values": [
                ["Header1", "Header2"],
                ["Value1", "Value2"],
            ]
        }
        service = make_service(mock_service)

        result = service.get_values("sheet123", "Sheet1")

        assert result == [["Header1", "Header2"], ["Value1", "Value2"]]

    def test_get_values_empty_range(self):
        """Should return empty list when the range holds nothing."""
        mock_service = MagicMock()
        mock_service.spreadsheets().values().get().execute.return_value = {}
        service = make_service(mock_service)

        assert service.get_values("sheet123", "Sheet1") == []

    def test_get_values_error_raised(self):
        """Should re-raise API failures."""
        mock_service = MagicMock()
        mock_service.spreadsheets().values().get().execute.side_effect = RuntimeError("not found")
        service = make_service(mock_service)

        with pytest.raises(RuntimeError):
            service.get_values("sheet123", "Sheet1")

    def test_update_values_writes_raw(self):
        """Should write rows as raw strings and report updated cells."""
        mock_service = MagicMock()
        values_api = mock_service.spreadsheets().values()
        values_api.update.return_value.execute.return_value = {"updatedCells": 4}
        service = make_service(mock_service)

        count = service.update_values("sheet123", "Names!B2:E2", [["a", "b", "c", "d"]])

        assert count == 4
        values_api.update.assert_called_once_with(
            spreadsheetId="sheet123",
            range="Names!B2:E2",
            valueInputOption="RAW",
            body={"values": [["a", "b", "c", "d"]]},
        )

    def test_get_spreadsheet_info(self):
        """Should return spreadsheet title and sheet names."""
        mock_service = MagicMock()
        mock_service.spreadsheets().get().execute.return_value = {
            "properties": {"title": "Contacts"},
            "sheets": [
                {"properties": {"title": "Names"}},
                {"properties": {"title": "Archive"}},
            ]
        }
        service = make_service(mock_service)

        info = service.get_spreadsheet_info("sheet123")

        assert info["title"] == "Contacts"
        assert info["sheets"] == ["Names", "Archive"]

    def test_append_values_inserts_rows(self):
        """Should append raw rows after the table and report written cells."""
        mock_service = MagicMock()
        values_api = mock_service.spreadsheets().values()
        values_api.append.return_value.execute.return_value = {"updates": {"updatedCells": 7}}
        service = make_service(mock_service)

        count = service.append_values("sheet123", "Bounced!A:G", [["a", "b"]])

        assert count == 7
        values_api.append.assert_called_once_with(
            spreadsheetId="sheet123",
            range="Bounced!A:G",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [["a", "b"]]},
        )

    def test_add_sheet(self):
        mock_service = MagicMock()
        service = make_service(mock_service)

        service.add_sheet("sheet123", "Bounced")

        mock_service.spreadsheets().batchUpdate.assert_called_with(
            spreadsheetId="sheet123",
            body={"requests": [{"addSheet": {"properties": {"title": "Bounced"}}}]},
        )


class TestReadNameRows:
    """Test reading names and prior outcomes."""

    def test_reads_rows_with_prior_outcome(self):
        """Should pad short rows and number them from the first data row."""
        mock_service = MagicMock()
        values_api = mock_service.spreadsheets().values()
        values_api.get.return_value.execute.return_value = {
            "values": [
                ["Jane Smith", "jane@acme.com", "Found in FROM headers", "", "High confidence (from: 24.5)"],
                ["Bob Jones"],
                [],
                ["Ana Cruz", " ana@x.com "],
            ]
        }
        service = make_service(mock_service)

        rows = service.read_name_rows("sheet123", "Names")

        values_api.get.assert_called_with(spreadsheetId="sheet123", range="Names!A2:E")
        assert rows[0] == RowInput(2, "Jane Smith", "jane@acme.com", "High confidence (from: 24.5)")
        assert rows[1] == RowInput(3, "Bob Jones", "", "")
        assert rows[2] == RowInput(4, "", "", "")
        assert rows[3].prior_email == "ana@x.com"
        assert rows[3].row_number == 5

    def test_custom_column_and_limit(self):
        """Should shift the range with the name column and stop at limit."""
        mock_service = MagicMock()
        values_api = mock_service.spreadsheets().values()
        values_api.get.return_value.execute.return_value = {
            "values": [["A B"], ["C D"], ["E F"]],
        }
        service = make_service(mock_service)

        rows = service.read_name_rows("sheet123", "People", name_column="C", first_row=10, limit=2)

        values_api.get.assert_called_with(spreadsheetId="sheet123", range="People!C10:G")
        assert [r.row_number for r in rows] == [10, 11]


class TestSheetOutcomeSink:
    """Test writing outcomes next to each name."""

    def test_write_outcome_range(self):
        """Should write the four outcome columns right of the name."""
        from api.services.sheets import SheetOutcomeSink

        sheets = MagicMock()
        sink = SheetOutcomeSink(sheets, "sheet123", "Names")
        outcome = RowOutcome("j@x.com", "Found in TO headers", "", "High confidence (to: 30)")

        sink.write_outcome(RowInput(7, "Jane Smith"), outcome)

        sheets.update_values.assert_called_once_with(
            "sheet123",
            "Names!B7:E7",
            [["j@x.com", "Found in TO headers", "", "High confidence (to: 30)"]],
        )

    def test_progress_goes_to_status_column(self):
        """Should write the in-progress marker to the status column."""
        from api.services.sheets import SheetOutcomeSink

        sheets = MagicMock()
        sink = SheetOutcomeSink(sheets, "sheet123", "Names", name_column="C")

        sink.mark_progress(RowInput(3, "Jane Smith"), PhaseTag.CALENDAR)

        sheets.update_values.assert_called_once_with("sheet123", "Names!E3", [["Searching CALENDAR..."]])

    def test_sink_from_settings(self):
        """Should target the configured spreadsheet."""
        from api.services.sheets import get_sheet_outcome_sink

        with patch('api.services.sheets.settings') as mock_settings:
            mock_settings.spreadsheet_id = "configured"
            mock_settings.sheet_name = "Tab"
            mock_settings.name_column = "A"
            sink = get_sheet_outcome_sink(MagicMock())

        assert sink.spreadsheet_id == "configured"
        assert sink.sheet_name == "Tab"
        assert sink.first_column == "B"


class TestBounceLedgerSheet:
    """Test the bounce ledger tab."""

    @pytest.fixture
    def sheets(self):
        sheets = MagicMock()
        sheets.get_spreadsheet_info.return_value = {"title": "Contacts", "sheets": ["Names", "Bounced"]}
        sheets.get_values.return_value = []
        return sheets

    def test_creates_missing_tab_with_header(self, sheets):
        from api.services.bounce_extractor import LEDGER_HEADER
        from api.services.sheets import BounceLedgerSheet

        sheets.get_spreadsheet_info.return_value = {"title": "Contacts", "sheets": ["Names"]}

        BounceLedgerSheet(sheets, "sheet123", "Bounced").ensure_tab()

        sheets.add_sheet.assert_called_once_with("sheet123", "Bounced")
        sheets.update_values.assert_called_once_with("sheet123", "Bounced!A1:G1", [LEDGER_HEADER])

    def test_existing_tab_not_recreated(self, sheets):
        from api.services.sheets import BounceLedgerSheet

        BounceLedgerSheet(sheets, "sheet123", "Bounced").ensure_tab()

        sheets.add_sheet.assert_not_called()

    def test_load_indexes_rows_by_address(self, sheets):
        """Should key by lowercase address, number rows from 2 and default bad counts to 1."""
        from api.services.sheets import BounceLedgerSheet

        sheets.get_values.return_value = [
            ["2026-05-01 10:00:00", "Jane@Acme.com", "Undeliverable", "postmaster@acme.com",
             "https://mail.google.com/mail/u/0/#all/t1", "2026-05-03 09:00:00", "3"],
            ["", ""],
            ["2026-05-02 10:00:00", "sam@acme.com", "", "", "", "2026-05-02 10:00:00", "n/a"],
        ]

        entries = BounceLedgerSheet(sheets, "sheet123", "Bounced").load()

        sheets.get_values.assert_called_with("sheet123", "Bounced!A2:G")
        assert set(entries) == {"jane@acme.com", "sam@acme.com"}
        assert entries["jane@acme.com"].count == 3
        assert entries["jane@acme.com"].row_number == 2
        assert entries["jane@acme.com"].last_seen == "2026-05-03 09:00:00"
        assert entries["sam@acme.com"].count == 1
        assert entries["sam@acme.com"].row_number == 4

    def test_save_updates_rows_and_appends_new(self, sheets):
        from api.services.bounce_extractor import LedgerEntry
        from api.services.sheets import BounceLedgerSheet

        existing = LedgerEntry("jane@acme.com", "t0", "s", "f", "u", "t1", 2, row_number=6)
        new = LedgerEntry("sam@acme.com", "t2", "s", "f", "u", "t2", 1)

        BounceLedgerSheet(sheets, "sheet123", "Bounced").save([new], [existing])

        sheets.update_values.assert_called_once_with("sheet123", "Bounced!A6:G6", [existing.as_row()])
        sheets.append_values.assert_called_once_with("sheet123", "Bounced!A:G", [new.as_row()])

    def test_save_nothing(self, sheets):
        from api.services.sheets import BounceLedgerSheet

        BounceLedgerSheet(sheets, "sheet123", "Bounced").save([], [])

        sheets.update_values.assert_not_called()
        sheets.append_values.assert_not_called()

    def test_ledger_from_settings(self):
        from api.services.sheets import get_bounce_ledger_sheet

        with patch('api.services.sheets.settings') as mock_settings:
            mock_settings.spreadsheet_id = "configured"
            mock_settings.bounce_sheet_name = "Bounces"
            ledger = get_bounce_ledger_sheet(MagicMock())

        assert ledger.spreadsheet_id == "configured"
        assert ledger.sheet_name == "Bounces"
