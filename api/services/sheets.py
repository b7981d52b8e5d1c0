"""
Google Sheets API service for mailmatch.

Reads the names to resolve and writes the four outcome columns back next
to each name. Also keeps the bounce ledger tab.
"""
import logging
from typing import Optional

from googleapiclient.discovery import build

from api.services.bounce_extractor import LEDGER_HEADER, LedgerEntry
from api.services.candidate_aggregator import PhaseTag
from api.services.google_auth import get_google_auth
from api.services.row_driver import RowInput, RowOutcome
from config.settings import settings

logger = logging.getLogger(__name__)

# email, status, alternates, confidence
OUTCOME_COLUMN_COUNT = 4


def column_offset(column: str, offset: int) -> str:
    """Single-letter column shifted right ('A', 2 -> 'C')."""
    return chr(ord(column.upper()) + offset)


class SheetsService:
    """
    Google Sheets service for reading and writing spreadsheet data.

    Uses the Sheets API v4 for structured access to cells and ranges.
    """

    def __init__(self):
        self._service = None

    @property
    def service(self):
        """Get or create Sheets API service."""
        if self._service is None:
            auth = get_google_auth()
            credentials = auth.get_credentials()
            self._service = build("sheets", "v4", credentials=credentials)
        return self._service

    def get_values(self, spreadsheet_id: str, range: str) -> list[list[str]]:
        """
        Read values from a sheet range.

        Args:
            spreadsheet_id: The Google Sheets file ID
            range: A1 notation range (e.g., 'Names!A2:E')

        Returns:
            List of rows, where each row is a list of cell values
        """
        try:
            result = self.service.spreadsheets().values().get(
                spreadsheetId=spreadsheet_id,
                range=range
            ).execute()
            return result.get("values", [])
        except Exception as e:
            logger.error(f"Failed to read sheet {spreadsheet_id}: {e}")
            raise

    def update_values(self, spreadsheet_id: str, range: str, values: list[list[str]]) -> int:
        """
        Write values to a sheet range as raw strings.

        Args:
            spreadsheet_id: The Google Sheets file ID
            range: A1 notation range
            values: Rows of cell values

        Returns:
            Number of cells updated
        """
        try:
            result = self.service.spreadsheets().values().update(
                spreadsheetId=spreadsheet_id,
                range=range,
                valueInputOption="RAW",
                body={"values": values},
            ).execute()
            return result.get("updatedCells", 0)
        except Exception as e:
            logger.error(f"Failed to write sheet {spreadsheet_id} ({range}): {e}")
            raise

    def append_values(self, spreadsheet_id: str, range: str, values: list[list]) -> int:
        """
        Append rows after the last non-empty row of a range.

        Returns:
            Number of cells written
        """
        try:
            result = self.service.spreadsheets().values().append(
                spreadsheetId=spreadsheet_id,
                range=range,
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": values},
            ).execute()
            return result.get("updates", {}).get("updatedCells", 0)
        except Exception as e:
            logger.error(f"Failed to append to sheet {spreadsheet_id} ({range}): {e}")
            raise

    def add_sheet(self, spreadsheet_id: str, title: str) -> None:
        """Add a tab to a spreadsheet."""
        try:
            self.service.spreadsheets().batchUpdate(
                spreadsheetId=spreadsheet_id,
                body={"requests": [{"addSheet": {"properties": {"title": title}}}]},
            ).execute()
            logger.info(f"Added sheet tab {title!r}")
        except Exception as e:
            logger.error(f"Failed to add sheet {title!r} to {spreadsheet_id}: {e}")
            raise

    def get_spreadsheet_info(self, spreadsheet_id: str) -> dict:
        """
        Get metadata about a spreadsheet.

        Args:
            spreadsheet_id: The Google Sheets file ID

        Returns:
            Dict with title and list of sheet names
        """
        try:
            result = self.service.spreadsheets().get(
                spreadsheetId=spreadsheet_id,
                fields="properties.title,sheets.properties.title"
            ).execute()

            return {
                "title": result.get("properties", {}).get("title", ""),
                "sheets": [
                    s.get("properties", {}).get("title", "")
                    for s in result.get("sheets", [])
                ]
            }
        except Exception as e:
            logger.error(f"Failed to get spreadsheet info {spreadsheet_id}: {e}")
            raise

    def read_name_rows(
        self,
        spreadsheet_id: str,
        sheet_name: str,
        name_column: str = "A",
        first_row: int = 2,
        limit: Optional[int] = None,
    ) -> list[RowInput]:
        """
        Read names plus the outcome a previous run stored next to them.

        Args:
            spreadsheet_id: The Google Sheets file ID
            sheet_name: Tab holding the names
            name_column: Column letter of the names
            first_row: First data row (1-based)
            limit: Maximum rows to return

        Returns:
            List of RowInput, one per sheet row up to the last non-empty one
        """
        last_column = column_offset(name_column, OUTCOME_COLUMN_COUNT)
        values = self.get_values(
            spreadsheet_id,
            f"{sheet_name}!{name_column}{first_row}:{last_column}",
        )

        rows = []
        for index, raw in enumerate(values):
            # Pad row with empty strings: name + four outcome columns
            padded = raw + [""] * (OUTCOME_COLUMN_COUNT + 1 - len(raw))
            rows.append(RowInput(
                row_number=first_row + index,
                name=str(padded[0]),
                prior_email=str(padded[1]).strip(),
                prior_confidence=str(padded[4]).strip(),
            ))
            if limit and len(rows) >= limit:
                break

        logger.info(f"Read {len(rows)} rows from {sheet_name}")
        return rows


class SheetOutcomeSink:
    """
    OutcomeSink writing to the four columns right of the name column.

    Progress markers go to the status column and are replaced by the
    final outcome.
    """

    def __init__(
        self,
        sheets: SheetsService,
        spreadsheet_id: str,
        sheet_name: str,
        name_column: str = "A",
    ):
        self.sheets = sheets
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.first_column = column_offset(name_column, 1)
        self.last_column = column_offset(name_column, OUTCOME_COLUMN_COUNT)
        self.status_column = column_offset(name_column, 2)

    def write_outcome(self, row: RowInput, outcome: RowOutcome) -> None:
        range = f"{self.sheet_name}!{self.first_column}{row.row_number}:{self.last_column}{row.row_number}"
        self.sheets.update_values(self.spreadsheet_id, range, [outcome.as_row()])

    def mark_progress(self, row: RowInput, phase: PhaseTag) -> None:
        range = f"{self.sheet_name}!{self.status_column}{row.row_number}"
        self.sheets.update_values(
            self.spreadsheet_id, range, [[f"Searching {phase.value.upper()}..."]]
        )


class BounceLedgerSheet:
    """
    Bounce ledger kept in a spreadsheet tab, one row per bounced address.

    The tab is created with its header row on first use. Row 1 is the
    header; entries start at row 2.
    """

    def __init__(self, sheets: SheetsService, spreadsheet_id: str, sheet_name: str = "Bounced"):
        self.sheets = sheets
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.last_column = column_offset("A", len(LEDGER_HEADER) - 1)

    def ensure_tab(self) -> None:
        """Create the tab if missing and (re)write the header row."""
        info = self.sheets.get_spreadsheet_info(self.spreadsheet_id)
        if self.sheet_name not in info["sheets"]:
            self.sheets.add_sheet(self.spreadsheet_id, self.sheet_name)
        self.sheets.update_values(
            self.spreadsheet_id, f"{self.sheet_name}!A1:{self.last_column}1", [LEDGER_HEADER]
        )

    def load(self) -> dict[str, LedgerEntry]:
        """Existing entries keyed by lowercase address."""
        self.ensure_tab()
        values = self.sheets.get_values(self.spreadsheet_id, f"{self.sheet_name}!A2:{self.last_column}")

        entries: dict[str, LedgerEntry] = {}
        for index, raw in enumerate(values):
            padded = [str(v) for v in raw] + [""] * (len(LEDGER_HEADER) - len(raw))
            email = padded[1].strip()
            if not email:
                continue
            try:
                count = max(int(padded[6]), 1)
            except ValueError:
                count = 1
            entries[email.lower()] = LedgerEntry(
                email=email,
                first_seen=padded[0],
                subject=padded[2],
                from_header=padded[3],
                thread_url=padded[4],
                last_seen=padded[5],
                count=count,
                row_number=index + 2,
            )

        logger.info(f"Read {len(entries)} ledger entries from {self.sheet_name}")
        return entries

    def save(self, created: list[LedgerEntry], updated: list[LedgerEntry]) -> None:
        for entry in updated:
            range = f"{self.sheet_name}!A{entry.row_number}:{self.last_column}{entry.row_number}"
            self.sheets.update_values(self.spreadsheet_id, range, [entry.as_row()])
        if created:
            self.sheets.append_values(
                self.spreadsheet_id,
                f"{self.sheet_name}!A:{self.last_column}",
                [entry.as_row() for entry in created],
            )


def get_bounce_ledger_sheet(sheets: Optional[SheetsService] = None) -> BounceLedgerSheet:
    """Ledger tab of the spreadsheet configured in settings."""
    return BounceLedgerSheet(
        sheets or get_sheets_service(),
        settings.spreadsheet_id,
        settings.bounce_sheet_name,
    )


def get_sheet_outcome_sink(sheets: Optional[SheetsService] = None) -> SheetOutcomeSink:
    """Sink for the spreadsheet configured in settings."""
    return SheetOutcomeSink(
        sheets or get_sheets_service(),
        settings.spreadsheet_id,
        settings.sheet_name,
        settings.name_column,
    )


_sheets_service: Optional[SheetsService] = None


def get_sheets_service() -> SheetsService:
    """Get or create the Sheets service for the mailbox account."""
    global _sheets_service
    if _sheets_service is None:
        _sheets_service = SheetsService()
    return _sheets_service
