"""
Tests for batch row processing and resume.
"""
import pytest

pytestmark = pytest.mark.unit
from datetime import datetime, timezone

from api.services.candidate_aggregator import CandidatePool, PhaseTag
from api.services.email_resolver import SearchFailure
from api.services.row_driver import (
    CollectingSink,
    NoInputError,
    RowInput,
    RowOutcome,
    outcome_from_result,
    parse_confidence_score,
    resolve_row,
    resolve_rows,
    should_skip,
)
from tests.fixtures.mail_fakes import FakeMessageSearch, message, thread

DAY = datetime(2026, 5, 1, tzinfo=timezone.utc)


def phase_result(source=PhaseTag.FROM, **scores):
    """PhaseResult from keyword email-stems to scores: jane=24.5 -> jane@x.com."""
    pool = CandidatePool()
    for stem, score in scores.items():
        pool.offer(f"{stem}@x.com", score, DAY)
    return pool.result(source)


class FakeResolver:
    """Resolver returning canned results per name; exceptions are raised."""

    def __init__(self, results: dict):
        self.results = results
        self.names: list[str] = []

    def resolve(self, name, progress=None):
        self.names.append(name)
        if progress:
            progress(PhaseTag.FROM)
        result = self.results.get(name)
        if isinstance(result, Exception):
            raise result
        return result


class TestParseConfidenceScore:
    """Test score extraction from stored confidence strings."""

    @pytest.mark.parametrize("text,score", [
        ("High confidence (from: 24.5)", 24.5),
        ("Medium confidence (calendar: 10)", 10.0),
        ("Low confidence (body: -2)", -2.0),
    ])
    def test_parses(self, text, score):
        assert parse_confidence_score(text) == score

    @pytest.mark.parametrize("text", ["", None, "Not found", "Error: boom", "High confidence"])
    def test_unparseable(self, text):
        assert parse_confidence_score(text) is None


class TestSkipRule:
    """Test idempotent resume."""

    def test_skips_resolved_row(self):
        assert should_skip(RowInput(2, "Jane Smith", "a@b.com", "High confidence (from: 24.5)"))

    def test_threshold_is_inclusive(self):
        assert should_skip(RowInput(2, "Jane Smith", "a@b.com", "Medium confidence (cc: 10)"))

    def test_low_score_not_skipped(self):
        assert not should_skip(RowInput(2, "Jane Smith", "a@b.com", "Low confidence (body: 9.9)"))

    def test_error_row_not_skipped(self):
        """A previous error stores no email and no score, so it is retried."""
        assert not should_skip(RowInput(2, "Jane Smith", "", "Error: to search failed"))

    def test_email_without_score_not_skipped(self):
        assert not should_skip(RowInput(2, "Jane Smith", "a@b.com", ""))

    def test_skip_issues_no_queries(self, make_resolver):
        """A resolved row never reaches the mailbox."""
        search = FakeMessageSearch(**{"from": [thread(message(from_header="Jane Smith <j@x.com>"))]})
        sink = CollectingSink()
        row = RowInput(2, "Jane Smith", "a@b.com", "High confidence (from: 24.5)")

        outcome = resolve_row(row, make_resolver(search), sink)

        assert outcome is None
        assert search.queries == []
        assert sink.outcomes == {}
        assert sink.progress == []


class TestOutcomes:
    """Test outcome formatting."""

    def test_found_outcome(self):
        outcome = outcome_from_result(phase_result(PhaseTag.FROM, jane=24.5, jsmith=12))

        assert outcome.email == "jane@x.com"
        assert outcome.status == "Found in FROM headers"
        assert outcome.alternates == "jsmith@x.com [12]"
        assert outcome.confidence == "High confidence (from: 24.5)"

    def test_calendar_outcome_label(self):
        outcome = outcome_from_result(phase_result(PhaseTag.CALENDAR, jane=19.9))

        assert outcome.status == "Found in calendar guests"
        assert outcome.confidence == "Medium confidence (calendar: 19.9)"

    def test_not_found_outcome(self):
        assert outcome_from_result(None) == RowOutcome(status="Not found")

    def test_empty_row(self):
        """Blank name: fixed outcome, resolver not called."""
        resolver = FakeResolver({})
        sink = CollectingSink()
        outcome = resolve_row(RowInput(2, ""), resolver, sink)

        assert outcome.to_dict() == {"email": "", "status": "Empty row", "alternates": "", "confidence": ""}
        assert sink.outcomes[2] == outcome
        assert resolver.names == []

    def test_as_row_column_order(self):
        outcome = RowOutcome("j@x.com", "Found in TO headers", "", "High confidence (to: 30)")
        assert outcome.as_row() == ["j@x.com", "Found in TO headers", "", "High confidence (to: 30)"]

    def test_progress_forwarded_to_sink(self, make_resolver):
        search = FakeMessageSearch(cc=[thread(message(cc_header="Jane Smith <jane.smith@acme.com>"))])
        sink = CollectingSink()
        resolve_row(RowInput(5, "Jane Smith"), make_resolver(search), sink)

        assert sink.progress == [(5, PhaseTag.FROM), (5, PhaseTag.TO), (5, PhaseTag.CC)]
        assert sink.outcomes[5].status == "Found in CC headers"


class TestResolveRows:
    """Test the batch loop."""

    def test_no_rows_is_fatal(self):
        with pytest.raises(NoInputError):
            resolve_rows([], FakeResolver({}), CollectingSink())

    def test_error_isolated_to_row(self):
        """A failing row records an error and later rows still run."""
        resolver = FakeResolver({
            "Jane Smith": phase_result(PhaseTag.FROM, jane=30),
            "Bob Jones": SearchFailure(PhaseTag.TO, RuntimeError("quota exceeded")),
            "Ana Cruz": phase_result(PhaseTag.BODY, ana=8),
        })
        rows = [RowInput(2, "Jane Smith"), RowInput(3, "Bob Jones"), RowInput(4, "Ana Cruz")]
        sink = CollectingSink()

        summary = resolve_rows(rows, resolver, sink)

        assert resolver.names == ["Jane Smith", "Bob Jones", "Ana Cruz"]
        assert sink.outcomes[3].status == "Error: to search failed: quota exceeded"
        assert sink.outcomes[3].email == ""
        assert sink.outcomes[4].confidence == "Low confidence (body: 8)"
        assert summary.errors == 1
        assert summary.found == 2

    def test_summary_counts(self):
        resolver = FakeResolver({"Jane Smith": phase_result(PhaseTag.CC, jane=30)})
        rows = [
            RowInput(2, "Jane Smith"),
            RowInput(3, "Nobody Known"),
            RowInput(4, "  "),
            RowInput(5, "Done Already", "d@x.com", "High confidence (from: 40)"),
        ]
        summary = resolve_rows(rows, resolver, CollectingSink())

        assert summary.total == 4
        assert summary.found == 1
        assert summary.not_found == 1
        assert summary.empty == 1
        assert summary.skipped == 1
        assert summary.by_phase == {"cc": 1}

    def test_each_row_written_once(self):
        class CountingSink(CollectingSink):
            def __init__(self):
                super().__init__()
                self.writes = []

            def write_outcome(self, row, outcome):
                self.writes.append(row.row_number)
                super().write_outcome(row, outcome)

        sink = CountingSink()
        resolve_rows([RowInput(2, "A B"), RowInput(3, "C D")], FakeResolver({}), sink)
        assert sink.writes == [2, 3]
