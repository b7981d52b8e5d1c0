"""
Query planning for name-to-email resolution.

Turns a raw display name ("Ana de la Cruz") into the search tokens every
phase works from: the lowercased tokens, the first name, and the simple and
compound forms of the surname.
"""
from dataclasses import dataclass

# Participles that glue onto the following surname ("van Dijk" -> "vandijk")
COMPOUND_PARTICIPLES = {'de', 'da', 'del', 'la', 'van', 'von'}


class InvalidInput(ValueError):
    """Raised when a name has no usable tokens."""
    pass


@dataclass(frozen=True)
class NameQuery:
    """Search tokens derived from one raw name."""
    raw_name: str
    tokens: tuple[str, ...]
    first: str
    last_simple: str
    last_compound: str

    @property
    def full_name(self) -> str:
        """Whitespace-normalized name as typed (original case)."""
        return " ".join(self.raw_name.split())

    @property
    def surname_variants(self) -> tuple[str, ...]:
        """Simple and compound surname, without duplicates."""
        if self.last_compound == self.last_simple:
            return (self.last_simple,)
        return (self.last_simple, self.last_compound)

    @property
    def token_variants(self) -> list[tuple[str, ...]]:
        """
        Token sequences to score against.

        The compound variant replaces the participles and surname with the
        joined surname, so its final token is last_compound.
        """
        if self.last_compound == self.last_simple:
            return [self.tokens]
        participle_count = self._participle_count()
        compound = self.tokens[: len(self.tokens) - participle_count - 1] + (self.last_compound,)
        return [self.tokens, compound]

    def _participle_count(self) -> int:
        count = 0
        index = len(self.tokens) - 2
        while index > 0 and self.tokens[index] in COMPOUND_PARTICIPLES:
            count += 1
            index -= 1
        return count


def plan_query(raw_name: str) -> NameQuery:
    """
    Derive search tokens from a raw name.

    Examples:
        "Jane Smith" -> first="jane", last_simple="smith", last_compound="smith"
        "Ludwig van Beethoven" -> last_compound="vanbeethoven"
        "Ana de la Cruz" -> last_compound="delacruz"

    Args:
        raw_name: Name as entered in the sheet

    Returns:
        NameQuery

    Raises:
        InvalidInput: If the name has no non-whitespace tokens
    """
    tokens = tuple(t for t in (raw_name or "").lower().split() if t)
    if not tokens:
        raise InvalidInput(f"No name tokens in {raw_name!r}")

    first = tokens[0]
    last_simple = tokens[-1]

    # Walk back over participles, never consuming the first name
    prefix = []
    index = len(tokens) - 2
    while index > 0 and tokens[index] in COMPOUND_PARTICIPLES:
        prefix.insert(0, tokens[index])
        index -= 1
    last_compound = "".join(prefix) + last_simple

    return NameQuery(
        raw_name=raw_name,
        tokens=tokens,
        first=first,
        last_simple=last_simple,
        last_compound=last_compound,
    )
