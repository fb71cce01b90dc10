"""Validated keyword set used to search and filter content."""

import re
from dataclasses import dataclass
from typing import Iterator, Sequence

from paper_courier.core.errors import InvalidConfig

MATCH_ALL = "*"


def normalize_keyword(keyword: str) -> str:
    """Trim, collapse inner whitespace and lowercase a keyword."""
    return re.sub(r"\s+", " ", keyword).strip().lower()


@dataclass(frozen=True)
class KeywordSet:
    """Immutable, deduplicated, case-normalized set of match terms.

    Terms keep the order in which they were first configured so that
    searches and rendered digests are reproducible.
    """

    terms: tuple[str, ...]
    match_all: bool = False

    @classmethod
    def validate(cls, raw: Sequence[str], match_all: bool = False) -> "KeywordSet":
        """Build a keyword set from raw configuration values.

        Args:
            raw: Keywords as written in the configuration
            match_all: Accept every item even when ``raw`` is empty

        Raises:
            InvalidConfig: If the list is empty without the match-all
                sentinel, or any entry is blank or not a string
        """
        if isinstance(raw, str) or raw is None:
            raise InvalidConfig("keywords must be a list of strings")

        terms: list[str] = []
        for position, entry in enumerate(raw, 1):
            if not isinstance(entry, str):
                raise InvalidConfig(
                    f"keyword #{position} must be a string, got {type(entry).__name__}"
                )
            term = normalize_keyword(entry)
            if not term:
                raise InvalidConfig(f"keyword #{position} is empty")
            if term == MATCH_ALL:
                match_all = True
                continue
            if term not in terms:
                terms.append(term)

        if not terms and not match_all:
            raise InvalidConfig(
                f"at least one keyword is required (or '{MATCH_ALL}' to match everything)"
            )

        return cls(terms=tuple(terms), match_all=match_all)

    def matches(self, keyword: str) -> bool:
        """Check whether a keyword reported by a fetcher belongs to the set."""
        if self.match_all:
            return True
        return normalize_keyword(keyword) in self.terms

    def describe(self) -> str:
        if not self.terms:
            return "everything"
        label = ", ".join(self.terms)
        return f"{label} (+ everything)" if self.match_all else label

    def __iter__(self) -> Iterator[str]:
        return iter(self.terms)

    def __len__(self) -> int:
        return len(self.terms)
