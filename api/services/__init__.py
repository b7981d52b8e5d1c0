"""
mailmatch Services Package.

This package contains the resolution logic and the Google API adapters.
Use this module to import commonly-used services.

Example:
    from api.services import (
        get_email_resolver,
        resolve_rows,
        check_senders,
    )

Key service modules:
- name_query: name tokenization (first / surname / compound surname)
- candidate_scorer: pure scoring functions
- candidate_aggregator: per-phase winner and alternates
- email_resolver: the FROM -> TO -> CC -> BCC -> calendar -> body cascade
- row_driver: batch processing with resume
- sender_checker: suspicious sender report
"""

# ============================================================================
# Resolution
# ============================================================================

from api.services.name_query import (
    NameQuery,
    InvalidInput,
    plan_query,
)

from api.services.candidate_aggregator import (
    Candidate,
    CandidatePool,
    PhaseResult,
    PhaseTag,
)

from api.services.email_resolver import (
    EmailResolver,
    ResolverContext,
    SearchFailure,
    get_email_resolver,
)

from api.services.row_driver import (
    RowInput,
    RowOutcome,
    RunSummary,
    NoInputError,
    resolve_row,
    resolve_rows,
)

# ============================================================================
# Sender Checks
# ============================================================================

from api.services.sender_checker import (
    SenderReport,
    check_senders,
    parse_address_list,
)

# ============================================================================
# Shared Utilities (re-exported from api.utils)
# ============================================================================

from api.utils import make_aware


__all__ = [
    # Resolution
    "NameQuery",
    "InvalidInput",
    "plan_query",
    "Candidate",
    "CandidatePool",
    "PhaseResult",
    "PhaseTag",
    "EmailResolver",
    "ResolverContext",
    "SearchFailure",
    "get_email_resolver",
    "RowInput",
    "RowOutcome",
    "RunSummary",
    "NoInputError",
    "resolve_row",
    "resolve_rows",
    # Sender checks
    "SenderReport",
    "check_senders",
    "parse_address_list",
    # Shared utilities
    "make_aware",
]
