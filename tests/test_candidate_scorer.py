"""
Tests for candidate scoring primitives.
"""
import pytest

pytestmark = pytest.mark.unit
from datetime import datetime, timedelta, timezone

from api.services.candidate_scorer import (
    fold_name,
    normalize_local,
    split_email,
    base_score,
    best_base_score,
    recency_bonus,
    display_overlap,
    display_word_overlap,
    display_bonus,
    local_overlap,
    strong_local_match,
    confidence_label,
    format_score,
)

TOKENS = ("jane", "smith")
NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)


class TestNormalization:
    """Test folding helpers."""

    def test_fold_name_strips_diacritics(self):
        assert fold_name("José García") == "jose garcia"

    def test_fold_name_keeps_punctuation(self):
        assert fold_name("Jane.Smith") == "jane.smith"

    def test_normalize_local_strips_punctuation(self):
        assert normalize_local("O'Brien-Smith_j.r") == "obriensmithjr"

    def test_normalize_local_curly_apostrophe(self):
        assert normalize_local("O’Brien") == "obrien"

    def test_split_email(self):
        assert split_email("Jane.Smith@Example.COM") == ("jane.smith", "example.com")


class TestBaseScore:
    """Test local-part pattern scoring."""

    def test_initial_plus_surname(self):
        """jsmith: initial+surname +8 and surname substring +4."""
        assert base_score("jsmith@example.com", TOKENS) == 12

    def test_dotted_exact_pattern(self):
        """jane.smith collects both exact patterns, both-names and prefix rules."""
        # joined +20, dotted +20, both-names +12, starts-with-first +8, substrings +4 +4
        assert base_score("jane.smith@example.com", TOKENS) == 68

    def test_dotted_beats_initial(self):
        assert base_score("jane.smith@x.com", TOKENS) > base_score("jsmith@x.com", TOKENS)

    def test_reversed_pattern(self):
        """smith.jane matches the last.first patterns."""
        # last+first +20, dotted +20, both +12, starts-with-last +8, smithj +8, substrings +8
        assert base_score("smith.jane@x.com", TOKENS) == 76

    def test_single_name_with_domain_corroboration(self):
        """local == last and domain contains first: +10."""
        # +10, starts-with-last +8, last substring +4
        assert base_score("smith@janeco.com", TOKENS) == 22

    def test_single_name_without_domain(self):
        """local == first, no domain corroboration: +6."""
        assert base_score("jane@gmail.com", TOKENS) == 18

    def test_digit_run_penalty(self):
        assert base_score("jane123@x.com", TOKENS) == 9

    def test_punctuation_run_penalty(self):
        """j__smith normalizes to jsmith but pays -2 for the run."""
        assert base_score("j__smith@x.com", TOKENS) == 10

    def test_diacritics_folded(self):
        assert base_score("jose.garcia@x.com", ("josé", "garcía")) == 68

    def test_opaque_local_part(self):
        assert base_score("xk7@x.com", TOKENS) == 0

    def test_no_tokens(self):
        assert base_score("jane@x.com", ()) == 0

    def test_best_base_score_uses_compound_variant(self):
        """vanbeethoven scores against the compound surname."""
        variants = [("ludwig", "van", "beethoven"), ("ludwig", "vanbeethoven")]
        assert best_base_score("ludwig.vanbeethoven@x.com", variants) > \
            base_score("ludwig.vanbeethoven@x.com", variants[0])

    def test_deterministic(self):
        assert base_score("jane.smith@x.com", TOKENS) == base_score("jane.smith@x.com", TOKENS)


class TestRecencyBonus:
    """Test recency tiers."""

    @pytest.mark.parametrize("days,expected", [
        (1, 6), (100, 6), (365, 6), (400, 3), (1095, 3), (1200, 0),
    ])
    def test_tiers(self, days, expected):
        assert recency_bonus(NOW - timedelta(days=days), NOW) == expected

    def test_none_date(self):
        assert recency_bonus(None, NOW) == 0

    def test_naive_date_treated_as_utc(self):
        assert recency_bonus(datetime(2026, 5, 1), NOW) == 6


class TestOverlap:
    """Test gate helpers."""

    def test_display_overlap(self):
        assert display_overlap(TOKENS, "Jane Smith") == 2
        assert display_overlap(TOKENS, "J. Smith") == 1
        assert display_overlap(TOKENS, "") == 0

    def test_display_overlap_is_substring_based(self):
        assert display_overlap(("jan", "smith"), "Janet Smith") == 2

    def test_display_word_overlap_is_word_based(self):
        assert display_word_overlap(("jan", "smith"), "Janet Smith") == 1
        assert display_word_overlap(TOKENS, "Smith, Jane (Acme)") == 2

    def test_display_word_overlap_keeps_non_ascii_letters(self):
        """Letters without an ASCII fold still form whole words."""
        assert display_word_overlap(("søren", "kierkegaard"), "Søren Kierkegaard") == 2
        assert display_word_overlap(("иван", "петров"), "Иван Петров") == 2
        assert display_word_overlap(("jürgen", "groß"), "Groß, Jürgen") == 2

    def test_display_word_overlap_splits_on_digits(self):
        assert display_word_overlap(TOKENS, "jane2 smith_x") == 2

    def test_display_bonus_tiers(self):
        assert display_bonus(3) == 4
        assert display_bonus(2) == 4
        assert display_bonus(1) == 2
        assert display_bonus(0) == 0

    def test_local_overlap(self):
        assert local_overlap(TOKENS, "jsmith@x.com") == 1
        assert local_overlap(TOKENS, "jane.smith@x.com") == 2
        assert local_overlap(TOKENS, "xk7@x.com") == 0

    @pytest.mark.parametrize("email", ["jsmith@x.com", "smithj@x.com", "jane.smith@x.com"])
    def test_strong_local_match(self, email):
        assert strong_local_match(email, "jane", ("smith",))

    def test_strong_local_match_rejects_first_only(self):
        assert not strong_local_match("jane@x.com", "jane", ("smith",))

    def test_strong_local_match_compound_surname(self):
        assert strong_local_match("lvanbeethoven@x.com", "ludwig", ("beethoven", "vanbeethoven"))


class TestConfidence:
    """Test labels and formatting."""

    @pytest.mark.parametrize("score,label", [
        (19.9, "Medium"), (20.0, "High"), (9.9, "Low"), (10.0, "Medium"), (68, "High"), (-2, "Low"),
    ])
    def test_confidence_label(self, score, label):
        assert confidence_label(score) == label

    @pytest.mark.parametrize("score,text", [
        (24.5, "24.5"), (32.0, "32"), (-1.5, "-1.5"), (10, "10"),
    ])
    def test_format_score(self, score, text):
        assert format_score(score) == text
