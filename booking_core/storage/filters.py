"""
Typed filter predicates for document store queries.

A filter is one of three shapes: ``Eq`` (field equals value), ``Range``
(field within inclusive bounds) or ``And`` (all sub-filters hold). Store
backends translate them into their own query language; the in-memory
store evaluates them directly with ``matches``.

Usage:
    where = And((Eq("preferredDate", "2025-03-10"), Eq("preferredTime", "2:00 PM")))
    where.matches({"preferredDate": "2025-03-10", "preferredTime": "2:00 PM"})  # True
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union


@dataclass(frozen=True)
class Eq:
    field: str
    value: Any

    def matches(self, doc: Mapping[str, Any]) -> bool:
        return doc.get(self.field) == self.value


@dataclass(frozen=True)
class Range:
    """Inclusive range; either bound may be omitted."""
    field: str
    gte: Optional[Any] = None
    lte: Optional[Any] = None

    def __post_init__(self) -> None:
        if self.gte is None and self.lte is None:
            raise ValueError(f"Range on '{self.field}' needs at least one bound")

    def matches(self, doc: Mapping[str, Any]) -> bool:
        value = doc.get(self.field)
        if value is None:
            return False
        if self.gte is not None and value < self.gte:
            return False
        if self.lte is not None and value > self.lte:
            return False
        return True


@dataclass(frozen=True)
class And:
    clauses: tuple["Filter", ...]

    def matches(self, doc: Mapping[str, Any]) -> bool:
        return all(clause.matches(doc) for clause in self.clauses)


Filter = Union[Eq, Range, And]


def all_of(*clauses: Optional[Filter]) -> Optional[Filter]:
    """Combine the non-None clauses; a single clause is returned as-is."""
    present = tuple(c for c in clauses if c is not None)
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return And(present)
