"""
Identifier Resolver - map any identifier a document carries to one entity.

The legacy store mixes three code spaces with no single reliable foreign
key: surrogate ids assigned by the application, codes inherited from the
older relational schema (client tax code, salesperson employee code,
warehouse code) and human-entered display names.  The resolver tries an
ordered chain of pure strategies and stops at the first match:

    1. CANONICAL_CODE   exact match of the caller's canonical-code hint
    2. SURROGATE_ID     exact id match (numeric-aware)
    3. NORMALIZED_CODE  leading zeros stripped and re-padded for numeric
                        codes; case, spaces, '-' and '_' ignored otherwise
    4. DISPLAY_NAME     trimmed, case-insensitive name match
    5. POSITIONAL       1-based index into the list, accepted only if the
                        element's normalized code matches the hint (or the
                        candidate when no hint is given)

When every strategy fails the result is ``NOT_FOUND``; callers never guess.

Usage:
    resolver = IdentifierResolver(repository)
    site = resolver.require(EntityKind.SITE, "2")   # stored code "002"
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Union

from sales_kernel.domain.parties import EntityKind, Party, PartyKind, Product, Site
from sales_kernel.exceptions import NotFoundError
from sales_kernel.logging_config import get_logger
from sales_kernel.ports import SalesRepository

logger = get_logger("engines.resolver")

Entity = Union[Party, Site, Product]

DEFAULT_CODE_WIDTH = 3

_SEPARATORS = str.maketrans("", "", " \t-_")


class MatchStrategy(Enum):
    """Which strategy produced a match."""
    CANONICAL_CODE = "canonical_code"
    SURROGATE_ID = "surrogate_id"
    NORMALIZED_CODE = "normalized_code"
    DISPLAY_NAME = "display_name"
    POSITIONAL = "positional"


@dataclass(frozen=True)
class ResolutionHints:
    """Extra knowledge a collaborator may supply about the identifier."""
    canonical_code: str | None = None


@dataclass(frozen=True)
class Resolution:
    """Outcome of a resolution attempt."""
    entity: Entity | None
    strategy: MatchStrategy | None = None

    @property
    def found(self) -> bool:
        return self.entity is not None


NOT_FOUND = Resolution(entity=None)


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------


def _text(value: object) -> str:
    return "" if value is None else str(value).strip()


def is_numeric(value: object) -> bool:
    text = _text(value)
    return text.isdigit()


def normalize_code(value: object, width: int = DEFAULT_CODE_WIDTH) -> str:
    """
    Comparable form of a code.

    Numeric codes lose their leading zeros and are re-padded to ``width``
    (``"2"``, ``"02"`` and ``"002"`` all become ``"002"``).  Other codes are
    lower-cased with spaces, ``-`` and ``_`` removed.
    """
    text = _text(value)
    if text.isdigit():
        return text.lstrip("0").zfill(width)
    return text.lower().translate(_SEPARATORS)


def format_site_code(code: object, width: int = DEFAULT_CODE_WIDTH) -> str:
    """Render a site code: numeric codes zero-padded, others as stored."""
    text = _text(code)
    if text.isdigit():
        return text.lstrip("0").zfill(width)
    return text


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

StrategyFn = Callable[[Sequence[Entity], str, ResolutionHints | None, int], Entity | None]


def match_canonical_code(
    entries: Sequence[Entity], candidate: str, hints: ResolutionHints | None, width: int
) -> Entity | None:
    if hints is None or not _text(hints.canonical_code):
        return None
    wanted = _text(hints.canonical_code)
    for entity in entries:
        if _text(entity.code) == wanted:
            return entity
    return None


def match_surrogate_id(
    entries: Sequence[Entity], candidate: str, hints: ResolutionHints | None, width: int
) -> Entity | None:
    if not candidate:
        return None
    numeric = candidate.isdigit()
    for entity in entries:
        entity_id = _text(entity.id)
        if numeric and entity_id.isdigit():
            if int(entity_id) == int(candidate):
                return entity
        elif entity_id == candidate:
            return entity
    return None


def match_normalized_code(
    entries: Sequence[Entity], candidate: str, hints: ResolutionHints | None, width: int
) -> Entity | None:
    if not candidate:
        return None
    wanted = normalize_code(candidate, width)
    for entity in entries:
        if normalize_code(entity.code, width) == wanted:
            return entity
    return None


def match_display_name(
    entries: Sequence[Entity], candidate: str, hints: ResolutionHints | None, width: int
) -> Entity | None:
    if not candidate:
        return None
    wanted = candidate.casefold()
    for entity in entries:
        if _text(entity.display_name).casefold() == wanted:
            return entity
    return None


def match_positional(
    entries: Sequence[Entity], candidate: str, hints: ResolutionHints | None, width: int
) -> Entity | None:
    if not candidate.isdigit():
        return None
    index = int(candidate)
    if not 1 <= index <= len(entries):
        return None
    entity = entries[index - 1]
    expected = _text(hints.canonical_code) if hints and hints.canonical_code else candidate
    if normalize_code(entity.code, width) == normalize_code(expected, width):
        return entity
    return None


STRATEGIES: tuple[tuple[MatchStrategy, StrategyFn], ...] = (
    (MatchStrategy.CANONICAL_CODE, match_canonical_code),
    (MatchStrategy.SURROGATE_ID, match_surrogate_id),
    (MatchStrategy.NORMALIZED_CODE, match_normalized_code),
    (MatchStrategy.DISPLAY_NAME, match_display_name),
    (MatchStrategy.POSITIONAL, match_positional),
)


def resolve_in(
    entries: Sequence[Entity],
    candidate: object,
    hints: ResolutionHints | None = None,
    width: int = DEFAULT_CODE_WIDTH,
    strategies: tuple[tuple[MatchStrategy, StrategyFn], ...] = STRATEGIES,
) -> Resolution:
    """Run the strategy chain over an explicit list of entities."""
    text = _text(candidate)
    for tag, strategy in strategies:
        entity = strategy(entries, text, hints, width)
        if entity is not None:
            return Resolution(entity=entity, strategy=tag)
    return NOT_FOUND


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class IdentifierResolver:
    """
    Resolves identifiers against entity lists loaded from the repository.

    Lists are loaded fresh on every call; nothing is cached between calls.
    """

    def __init__(self, repository: SalesRepository, code_width: int = DEFAULT_CODE_WIDTH):
        self._repository = repository
        self._code_width = code_width

    @property
    def code_width(self) -> int:
        return self._code_width

    def _entries(self, kind: EntityKind) -> Sequence[Entity]:
        if kind is EntityKind.CLIENT:
            return self._repository.load_parties(PartyKind.CLIENT)
        if kind is EntityKind.VENDOR:
            return self._repository.load_parties(PartyKind.VENDOR)
        if kind is EntityKind.SITE:
            return self._repository.load_sites()
        return self._repository.load_catalog(kind)

    def resolve(
        self,
        kind: EntityKind,
        candidate: object,
        hints: ResolutionHints | None = None,
    ) -> Resolution:
        if _text(candidate) == "" and (hints is None or not _text(hints.canonical_code)):
            return NOT_FOUND
        result = resolve_in(self._entries(kind), candidate, hints, self._code_width)
        if result.found:
            logger.debug(
                "identifier_resolved",
                extra={
                    "kind": kind.value,
                    "candidate": _text(candidate),
                    "strategy": result.strategy.value,
                    "resolved_id": result.entity.id,
                },
            )
        else:
            logger.info(
                "identifier_not_found",
                extra={"kind": kind.value, "candidate": _text(candidate)},
            )
        return result

    def require(
        self,
        kind: EntityKind,
        candidate: object,
        hints: ResolutionHints | None = None,
    ) -> Entity:
        """Resolve or raise ``NotFoundError``."""
        result = self.resolve(kind, candidate, hints)
        if result.entity is None:
            raise NotFoundError(kind.value, _text(candidate) or None)
        return result.entity

    def resolve_code(self, kind: EntityKind, code: object) -> Resolution:
        """
        Resolve a legacy code stored on a document.

        The code is passed as the canonical hint so an exact code match wins
        over a surrogate id that happens to share the same digits.
        """
        text = _text(code)
        return self.resolve(kind, text, ResolutionHints(canonical_code=text or None))

    def require_code(self, kind: EntityKind, code: object) -> Entity:
        """``resolve_code`` or raise ``NotFoundError``."""
        result = self.resolve_code(kind, code)
        if result.entity is None:
            raise NotFoundError(kind.value, _text(code) or None)
        return result.entity

    def site_code(self, site_id: object) -> str:
        """Resolve a site and render its code zero-padded."""
        site = self.require(EntityKind.SITE, site_id)
        return format_site_code(site.code, self._code_width)
