"""
mailmatch Configuration Settings
"""
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # HTTP server
    port: int = Field(default=8000, alias="MAILMATCH_PORT")
    host: str = Field(default="127.0.0.1", alias="MAILMATCH_HOST")

    # Google OAuth client (credentials.json) and stored token (token.json) live here
    google_config_dir: Path = Field(
        default=Path("./config"),
        alias="MAILMATCH_GOOGLE_CONFIG_DIR",
        description="Directory holding the OAuth client and token files"
    )

    # ==========================================================================
    # SEARCH WINDOWS
    # ==========================================================================
    # Header and body searches use newer_than:<N>y. Calendar guest lists are
    # scanned from N years ago up to now.
    # ==========================================================================

    search_window_years: int = Field(
        default=5,
        ge=1,
        alias="MAILMATCH_SEARCH_WINDOW_YEARS",
        description="Recency window for header and body searches (years)"
    )
    calendar_window_years: int = Field(
        default=5,
        ge=1,
        alias="MAILMATCH_CALENDAR_WINDOW_YEARS",
        description="How far back to scan calendar guest lists (years)"
    )
    max_threads_per_query: int = Field(
        default=50,
        ge=1,
        le=500,
        alias="MAILMATCH_MAX_THREADS",
        description="Maximum threads fetched per mail search"
    )
    max_calendar_events: int = Field(
        default=2500,
        ge=1,
        alias="MAILMATCH_MAX_CALENDAR_EVENTS",
        description="Maximum events fetched for one calendar scan"
    )

    # Minimum spacing between outbound search calls (seconds)
    query_spacing_seconds: float = Field(
        default=1.0,
        ge=0.0,
        alias="MAILMATCH_QUERY_SPACING",
    )

    # Extra owner addresses (comma-separated) on top of the Gmail send-as list
    self_aliases_raw: str = Field(
        default="",
        alias="MAILMATCH_SELF_ALIASES",
        description="Additional addresses that belong to the account owner"
    )

    # Own addresses are outbound markers; they only become candidates when this is off
    exclude_self_addresses: bool = Field(
        default=True,
        alias="MAILMATCH_EXCLUDE_SELF",
        description="Never return one of the owner's own addresses as a match"
    )

    @property
    def self_aliases(self) -> list[str]:
        """Parse comma-separated aliases into a lowercase list."""
        if not self.self_aliases_raw:
            return []
        return [x.strip().lower() for x in self.self_aliases_raw.split(",") if x.strip()]

    # ==========================================================================
    # SPREADSHEET LAYOUT
    # ==========================================================================
    # Names are read from name_column; outcomes are written to the four
    # columns that follow it (email, status, alternates, confidence).
    # ==========================================================================

    spreadsheet_id: str = Field(
        default="",
        alias="MAILMATCH_SPREADSHEET_ID",
        description="Google Sheets file ID holding the names to resolve"
    )
    sheet_name: str = Field(
        default="Names",
        alias="MAILMATCH_SHEET_NAME",
    )
    name_column: str = Field(
        default="A",
        pattern=r"^[A-V]$",
        alias="MAILMATCH_NAME_COLUMN",
    )
    first_data_row: int = Field(
        default=2,
        ge=1,
        alias="MAILMATCH_FIRST_DATA_ROW",
        description="First sheet row holding a name (row 1 is usually the header)"
    )

    # ==========================================================================
    # BOUNCE LEDGER
    # ==========================================================================
    # Hard-bounced recipients are upserted into this tab of the spreadsheet
    # (first seen, address, latest bounce context, last seen, count).
    # ==========================================================================

    bounce_sheet_name: str = Field(
        default="Bounced",
        alias="MAILMATCH_BOUNCE_SHEET_NAME",
    )
    bounce_scan_days: int = Field(
        default=1,
        ge=1,
        le=365,
        alias="MAILMATCH_BOUNCE_SCAN_DAYS",
        description="Default look-back for bounce scans (days)"
    )
    max_bounce_threads: int = Field(
        default=500,
        ge=1,
        le=5000,
        alias="MAILMATCH_MAX_BOUNCE_THREADS",
        description="Maximum threads inspected by one bounce scan"
    )

    @property
    def sheet_enabled(self) -> bool:
        """Check if a spreadsheet is configured."""
        return bool(self.spreadsheet_id)


settings = Settings()
