"""
Name-to-Email Scoring Weights Configuration.

Central configuration for all weights used in:
- Base local-part scoring (name pattern matching)
- Recency bonuses and the header recency bump
- Per-phase bonuses and penalties (headers, calendar, body)
- Confidence labelling and the resume threshold

Edit this file to tune resolution behavior.
"""

# =============================================================================
# BASE SCORE (local-part vs. name tokens)
# =============================================================================
# All rules are additive: a local-part can satisfy several at once.

EXACT_PATTERN_POINTS = 20        # first+last / last+first, joined or dotted
BOTH_NAMES_SUBSTRING_POINTS = 12  # first and last both appear in the local-part
SINGLE_NAME_DOMAIN_POINTS = 10    # local == first (or last) and domain holds the other
SINGLE_NAME_POINTS = 6            # local == first (or last), no domain corroboration
STARTS_WITH_POINTS = 8            # local starts with first / with last
INITIAL_PATTERN_POINTS = 8        # local starts with jsmith / smithj
WEAK_SUBSTRING_POINTS = 4         # first (or last) appears anywhere

DIGIT_RUN_PENALTY = -3            # 3+ consecutive digits
PUNCTUATION_RUN_PENALTY = -2      # 2+ consecutive punctuation characters

# =============================================================================
# RECENCY
# =============================================================================

RECENT_DAYS = 365
RECENT_POINTS = 6
MID_DAYS = 3 * 365
MID_POINTS = 3

# Header evidence counts recency more heavily than calendar/body evidence
HEADER_RECENCY_MULTIPLIER = 1.5

# Cumulative bump across repeated sightings of one address in a header phase
BUMP_RECENT_POINTS = 2            # sighting with recency bonus >= RECENT_POINTS
BUMP_MID_POINTS = 1               # sighting with recency bonus >= MID_POINTS
BUMP_CAP = 6

# =============================================================================
# HEADER PHASE
# =============================================================================

DISPLAY_TWO_TOKEN_POINTS = 4      # >= 2 name tokens in the display name
DISPLAY_ONE_TOKEN_POINTS = 2      # exactly one name token in the display name
OPAQUE_OUTBOUND_POINTS = 8        # display matches, local-part opaque, we sent it
OPAQUE_INBOUND_POINTS = 4         # display matches, local-part opaque, received
OUTBOUND_CHANNEL_POINTS = 4       # outbound message, address in To/Cc
CORROBORATION_POINTS = 4          # body mentions the name part the address lacks

# =============================================================================
# CALENDAR PHASE
# =============================================================================

CALENDAR_OPAQUE_POINTS = 4
PARTICIPANT_RECENT_POINTS = 10    # guest on an event within RECENT_DAYS
PARTICIPANT_MID_POINTS = 5        # guest on an event within MID_DAYS
LOCAL_MISMATCH_PENALTY = -8       # no name token anywhere in the local-part
LOCAL_MISMATCH_PARTICIPANT_CUT = 5

# =============================================================================
# BODY PHASE
# =============================================================================

BODY_INITIAL_POINTS = 2           # local-part starts with the first initial
BODY_NOISE_PENALTY = -2

# =============================================================================
# OUTCOME
# =============================================================================

HIGH_CONFIDENCE_MIN = 20.0
MEDIUM_CONFIDENCE_MIN = 10.0

# Rows with a stored email and a score at or above this are not re-resolved
RESUME_MIN_SCORE = 10.0

MAX_ALTERNATES = 5
