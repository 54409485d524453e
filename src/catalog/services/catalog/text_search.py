from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Mapping, Sequence, Tuple

from src.catalog.domain.models.guideline import Guideline

_TOKEN_RE = re.compile(r"[a-z0-9]+")

# Small English stop list; these never match on their own.
STOP_WORDS: FrozenSet[str] = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "in",
        "into", "is", "it", "of", "on", "or", "that", "the", "this", "to",
        "was", "were", "with",
    }
)

def stem(token: str) -> str:
    """Strip a common English suffix.

    Only ever removes a suffix, so a stem is always a prefix of the word it
    came from. The SQL store relies on that for its substring prefilter.
    """

    for suffix in ("ing", "s"):
        if len(token) - len(suffix) >= 3 and token.endswith(suffix):
            if suffix == "s" and token.endswith("ss"):
                return token
            return token[: -len(suffix)]
    return token


def tokenize(text: str) -> List[str]:
    return [stem(tok) for tok in _TOKEN_RE.findall(text.lower()) if tok not in STOP_WORDS]


def indexed_text(guideline: Guideline) -> Dict[str, str]:
    return {
        "title": guideline.title,
        "description": guideline.description or "",
        "content": guideline.content or "",
        "tags": " ".join(guideline.tags),
        "trust_name": guideline.trust_name,
    }


@dataclass(frozen=True)
class TextQuery:
    """A parsed free-text query.

    Plain terms are ORed, every quoted phrase must be present and negated
    terms exclude a document outright.
    """

    raw: str
    terms: Tuple[str, ...] = ()
    phrases: Tuple[str, ...] = ()
    negated: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, raw: str) -> "TextQuery":
        try:
            parts = shlex.split(raw)
        except ValueError:
            # Unbalanced quotes: treat the whole thing as plain words.
            parts = raw.replace('"', " ").split()

        quoted = set(re.findall(r'"([^"]+)"', raw))
        terms: List[str] = []
        phrases: List[str] = []
        negated: List[str] = []
        for part in parts:
            if part in quoted and len(part.split()) > 1:
                phrases.append(part.lower())
                continue
            if part.startswith("-") and len(part) > 1:
                negated.extend(tokenize(part[1:]))
                continue
            tokens = tokenize(part)
            terms.extend(tokens)
        for phrase in phrases:
            terms.extend(tokenize(phrase))
        return cls(
            raw=raw,
            terms=tuple(dict.fromkeys(terms)),
            phrases=tuple(dict.fromkeys(phrases)),
            negated=tuple(dict.fromkeys(negated)),
        )

    @property
    def is_empty(self) -> bool:
        return not self.terms

    def score(self, guideline: Guideline) -> float:
        """Relevance of ``guideline``; 0.0 means it does not match."""

        if self.is_empty:
            return 0.0

        fields = indexed_text(guideline)
        if self.phrases:
            haystack = " ".join(_normalise_space(value) for value in fields.values())
            if not all(_normalise_space(phrase) in haystack for phrase in self.phrases):
                return 0.0

        tokens_by_field = {name: tokenize(value) for name, value in fields.items()}
        if self.negated:
            for tokens in tokens_by_field.values():
                if any(neg in tokens for neg in self.negated):
                    return 0.0

        return _score_fields(tokens_by_field, self.terms)


def _normalise_space(value: str) -> str:
    return " ".join(value.lower().split())


def _score_fields(tokens_by_field: Mapping[str, Sequence[str]], terms: Iterable[str]) -> float:
    total = 0.0
    terms = tuple(terms)
    for tokens in tokens_by_field.values():
        if not tokens:
            continue
        for term in terms:
            freq = tokens.count(term)
            if freq:
                total += 1.0 + freq / len(tokens)
    return total


def rank(guidelines: Iterable[Guideline], query: TextQuery) -> List[Tuple[Guideline, float]]:
    """Return matching guidelines ordered by descending score.

    Ties fall back to ascending id so paging through equal scores is stable.
    """

    scored = [(g, query.score(g)) for g in guidelines]
    matched = [(g, s) for g, s in scored if s > 0]
    matched.sort(key=lambda pair: (-pair[1], str(pair[0].id)))
    return matched
