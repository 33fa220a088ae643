from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..excel.temporal import to_ascii_digits
from ..models.vocabulary import FieldSpec, FieldVocabulary

"""Header auto-mapping.

Maps raw header texts to canonical fields of a vocabulary. Matching is done by
an ordered list of named strategies; for each field the first strategy that
returns a header wins:

1. contains   - lowercased header contains the phrase
2. compact    - same, ignoring spaces, underscores and the Arabic article "ال"
3. positional - header at the field's index guess, else the first unused header

Every chosen header goes into an exclusion set passed explicitly through the
matchers, so no header is ever assigned to two fields. Fields marked
non-exclusive may take over a header that another field only got by
positional guessing; the displaced field is guessed again.

auto_map never raises: a field nothing matches maps to None and callers decide
whether that is fatal.
"""

__all__ = [
    "MatchTier",
    "HeaderMapping",
    "MatcherStrategy",
    "match_contains",
    "match_compact",
    "match_positional",
    "DEFAULT_STRATEGIES",
    "first_match",
    "auto_map",
    "resolve_explicit",
    "merge_mappings",
    "build_mapping",
]

logger = logging.getLogger(__name__)

MatcherStrategy = Callable[[FieldSpec, Sequence[str], Collection[str]], "str | None"]


class MatchTier(str, Enum):
    EXPLICIT = "explicit"
    CONTAINS = "contains"
    COMPACT = "compact"
    POSITIONAL = "positional"


@dataclass(frozen=True)
class HeaderMapping:
    """Partial, injective field -> header assignment."""
    fields: dict[str, str | None]
    tiers: dict[str, MatchTier] = field(default_factory=dict)

    def get(self, name: str) -> str | None:
        return self.fields.get(name)

    def mapped(self) -> dict[str, str]:
        return {k: v for k, v in self.fields.items() if v}

    def missing_required(self, vocabulary: FieldVocabulary) -> list[str]:
        return [f.name for f in vocabulary.required_fields if not self.fields.get(f.name)]

    def positional_fields(self) -> list[str]:
        return [k for k, t in self.tiers.items() if t is MatchTier.POSITIONAL and self.fields.get(k)]


def _normalize(text: str) -> str:
    return " ".join(to_ascii_digits(text).lower().replace("_", " ").split())


def _strip_article(word: str) -> str:
    if word.startswith("ال") and len(word) > 3:
        return word[2:]
    return word


def _compact(text: str) -> str:
    words = [w for w in _normalize(text).split() if w != "the"]
    return "".join(_strip_article(w) for w in words)


def _match_by(
    key: Callable[[str], str], spec: FieldSpec, headers: Sequence[str], used: Collection[str]
) -> str | None:
    candidates = [(h, key(h)) for h in headers if h not in used]
    # phrases are ranked by specificity, so they drive the outer loop
    for phrase in spec.patterns:
        needle = key(phrase)
        if not needle:
            continue
        for header, hay in candidates:
            if needle in hay:
                return header
    return None


def match_contains(spec: FieldSpec, headers: Sequence[str], used: Collection[str]) -> str | None:
    return _match_by(_normalize, spec, headers, used)


def match_compact(spec: FieldSpec, headers: Sequence[str], used: Collection[str]) -> str | None:
    return _match_by(_compact, spec, headers, used)


def match_positional(spec: FieldSpec, headers: Sequence[str], used: Collection[str]) -> str | None:
    if spec.position is None:
        return None
    if spec.position < len(headers) and headers[spec.position] not in used:
        return headers[spec.position]
    for header in headers:
        if header not in used:
            return header
    return None


DEFAULT_STRATEGIES: tuple[tuple[MatchTier, MatcherStrategy], ...] = (
    (MatchTier.CONTAINS, match_contains),
    (MatchTier.COMPACT, match_compact),
    (MatchTier.POSITIONAL, match_positional),
)


def first_match(
    strategies: Iterable[tuple[MatchTier, MatcherStrategy]],
    spec: FieldSpec,
    headers: Sequence[str],
    used: Collection[str],
) -> tuple[str, MatchTier] | None:
    """Run strategies in order; the first one returning a header wins."""
    for tier, strategy in strategies:
        header = strategy(spec, headers, used)
        if header is not None:
            return header, tier
    return None


def auto_map(
    headers: Sequence[str],
    vocabulary: FieldVocabulary,
    exclude: Iterable[str] | None = None,
    strategies: Sequence[tuple[MatchTier, MatcherStrategy]] = DEFAULT_STRATEGIES,
) -> HeaderMapping:
    """Propose a field -> header mapping for a header row.

    Args:
        headers: raw header texts (row 1, non-empty, de-duplicated)
        vocabulary: target record vocabulary
        exclude: headers that must not be assigned (e.g. already claimed explicitly)
        strategies: ordered matcher strategies

    Returns:
        HeaderMapping covering every vocabulary field (None = unmatched)
    """
    used: set[str] = set(exclude or ())
    fields: dict[str, str | None] = {}
    tiers: dict[str, MatchTier] = {}
    pattern_strategies = [(t, s) for t, s in strategies if t is not MatchTier.POSITIONAL]

    for spec in vocabulary.ordered_fields():
        hit = first_match(strategies, spec, headers, used)
        if hit is None and not spec.exclusive:
            guessed = {h: f for f, h in fields.items() if h and tiers.get(f) is MatchTier.POSITIONAL}
            if guessed:
                candidates = [h for h in headers if h in guessed]
                hit = first_match(pattern_strategies, spec, candidates, ())
                if hit is not None:
                    displaced = guessed[hit[0]]
                    fields[displaced] = None
                    tiers.pop(displaced, None)
                    regained = match_positional(vocabulary.field(displaced), headers, used)
                    if regained is not None:
                        fields[displaced] = regained
                        tiers[displaced] = MatchTier.POSITIONAL
                        used.add(regained)
                    logger.debug("header %r reassigned from %s to %s", hit[0], displaced, spec.name)
        if hit is None:
            fields[spec.name] = None
            continue
        header, tier = hit
        fields[spec.name] = header
        tiers[spec.name] = tier
        used.add(header)

    # keep vocabulary order for readability
    ordered = {name: fields.get(name) for name in vocabulary.names}
    return HeaderMapping(fields=ordered, tiers=tiers)


def _loose_key(text: str) -> str:
    return "_".join(text.strip().lower().split())


def resolve_explicit(
    explicit: Mapping[str, str], headers: Sequence[str], vocabulary: FieldVocabulary | None = None
) -> dict[str, str]:
    """Resolve a caller-supplied field -> header mapping against actual headers.

    Each header text is matched exactly, then case/whitespace-insensitively,
    then by containment in either direction. A header is never claimed twice.
    Unknown fields and unresolvable headers are dropped with a warning.
    """
    known = set(vocabulary.names) if vocabulary else None
    resolved: dict[str, str] = {}
    claimed: set[str] = set()
    for field_name, wanted in explicit.items():
        if not wanted:
            continue
        if known is not None and field_name not in known:
            logger.warning("explicit mapping for unknown field %r ignored", field_name)
            continue
        free = [h for h in headers if h not in claimed]
        key = _loose_key(wanted)
        match = next((h for h in free if h == wanted), None)
        if match is None:
            match = next((h for h in free if _loose_key(h) == key), None)
        if match is None:
            match = next((h for h in free if key in _loose_key(h) or _loose_key(h) in key), None)
        if match is None:
            logger.warning("explicit mapping %s -> %r matches no header", field_name, wanted)
            continue
        resolved[field_name] = match
        claimed.add(match)
    return resolved


def merge_mappings(
    explicit: Mapping[str, str], auto: HeaderMapping, vocabulary: FieldVocabulary
) -> HeaderMapping:
    """Explicit entries win; empty fields are back-filled from ``auto``."""
    fields: dict[str, str | None] = {}
    tiers: dict[str, MatchTier] = {}
    for name in vocabulary.names:
        if explicit.get(name):
            fields[name] = explicit[name]
            tiers[name] = MatchTier.EXPLICIT
        else:
            fields[name] = auto.fields.get(name)
            if name in auto.tiers:
                tiers[name] = auto.tiers[name]
    return HeaderMapping(fields=fields, tiers=tiers)


def build_mapping(
    headers: Sequence[str],
    vocabulary: FieldVocabulary,
    explicit: Mapping[str, str] | None = None,
) -> HeaderMapping:
    """Explicit entries take precedence; auto-mapping back-fills the rest."""
    resolved = resolve_explicit(explicit or {}, headers, vocabulary)
    remaining = FieldVocabulary(
        record_type=vocabulary.record_type,
        fields=tuple(f for f in vocabulary.fields if f.name not in resolved),
    )
    auto = auto_map(headers, remaining, exclude=resolved.values())
    return merge_mappings(resolved, auto, vocabulary)
