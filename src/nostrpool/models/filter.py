"""
Declarative event filters (NIP-01 ``REQ`` filter objects).

A [Filter][nostrpool.models.filter.Filter] is a set of optional criteria.
An event matches a filter iff every present criterion matches; it matches a
subscription iff it matches at least one of the subscription's filters
([match_filters][nostrpool.models.filter.match_filters]).

Matching is a pure function of ``(filter, event)``. ``limit`` only bounds
the stored events a relay replays and never affects matching.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from ._validation import validate_hex_prefix, validate_instance, validate_int


if TYPE_CHECKING:
    from .event import Event


def _freeze_strings(values: Iterable[str] | None, name: str) -> frozenset[str] | None:
    if values is None:
        return None
    if isinstance(values, str):
        raise TypeError(f"{name} must be a collection of str, not a str")
    frozen = frozenset(values)
    for value in frozen:
        validate_instance(value, str, name)
    return frozen


@dataclass(frozen=True, slots=True)
class Filter:
    """Immutable Nostr subscription filter.

    Attributes:
        ids: Event id prefixes (lowercase hex).
        authors: Author public key prefixes (lowercase hex).
        kinds: Event kinds.
        since: Inclusive lower bound on ``created_at``.
        until: Inclusive upper bound on ``created_at``.
        limit: Maximum number of stored events the relay should return.
        tags: Single-letter tag filters, keyed by tag name without the ``#``
            (e.g. ``{"e": {"ab.."}, "p": {"cd.."}}``).

    ``None`` means "criterion absent"; an empty collection is a present
    criterion that matches nothing.

    ``ids`` and ``authors`` entries are checked against lowercase hex on
    construction. A placeholder such as ``"pk1"`` raises ``ValueError`` here
    instead of reaching relays, which reject non-hex prefixes.

    Examples:
        ```python
        f = Filter(kinds={1}, authors={"ab12"}, since=1_700_000_000)
        f.matches(event)
        f.to_dict()   # {'authors': ['ab12'], 'kinds': [1], 'since': 1700000000}
        Filter.from_dict({"#e": ["ff00"], "limit": 10})
        ```
    """

    ids: frozenset[str] | None = None
    authors: frozenset[str] | None = None
    kinds: frozenset[int] | None = None
    since: int | None = None
    until: int | None = None
    limit: int | None = None
    tags: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        ids = _freeze_strings(self.ids, "ids")
        authors = _freeze_strings(self.authors, "authors")
        for value in ids or ():
            validate_hex_prefix(value, "ids")
        for value in authors or ():
            validate_hex_prefix(value, "authors")

        kinds = None
        if self.kinds is not None:
            kinds = frozenset(self.kinds)
            for kind in kinds:
                validate_int(kind, "kinds")

        for name in ("since", "until", "limit"):
            value = getattr(self, name)
            if value is not None:
                validate_int(value, name)

        validate_instance(self.tags, Mapping, "tags")
        tags: dict[str, frozenset[str]] = {}
        for key, values in self.tags.items():
            name = key.removeprefix("#") if isinstance(key, str) else key
            if not isinstance(name, str) or len(name) != 1:
                raise ValueError(f"tag filter names must be a single letter, got {key!r}")
            tags[name] = _freeze_strings(values, f"#{name}") or frozenset()

        object.__setattr__(self, "ids", ids)
        object.__setattr__(self, "authors", authors)
        object.__setattr__(self, "kinds", kinds)
        object.__setattr__(self, "tags", MappingProxyType(tags))

    def __hash__(self) -> int:
        return hash(
            (
                self.ids,
                self.authors,
                self.kinds,
                self.since,
                self.until,
                self.limit,
                frozenset(self.tags.items()),
            )
        )

    def matches(self, event: Event) -> bool:
        """Return True if *event* satisfies every present criterion."""
        if self.ids is not None and not any(event.id.startswith(p) for p in self.ids):
            return False
        if self.authors is not None and not any(
            event.pubkey.startswith(p) for p in self.authors
        ):
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False

        for name, values in self.tags.items():
            event_values = {tag[1] for tag in event.tags if len(tag) > 1 and tag[0] == name}
            if values.isdisjoint(event_values):
                return False

        return True

    def with_since(self, since: int) -> Filter:
        """Return a copy whose lower bound is at least *since*."""
        if self.since is not None and self.since >= since:
            return self
        return replace(self, since=since)

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form, omitting absent criteria.

        Collections are sorted so that equal filters always serialize to the
        same bytes.
        """
        data: dict[str, Any] = {}
        if self.ids is not None:
            data["ids"] = sorted(self.ids)
        if self.authors is not None:
            data["authors"] = sorted(self.authors)
        if self.kinds is not None:
            data["kinds"] = sorted(self.kinds)
        for name in sorted(self.tags):
            data[f"#{name}"] = sorted(self.tags[name])
        if self.since is not None:
            data["since"] = self.since
        if self.until is not None:
            data["until"] = self.until
        if self.limit is not None:
            data["limit"] = self.limit
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Filter:
        """Parse the wire form. Unknown keys are ignored.

        Raises:
            TypeError: If a criterion has the wrong type.
            ValueError: If a criterion has an invalid value.
        """
        validate_instance(data, Mapping, "filter")
        tags = {key[1:]: values for key, values in data.items() if key.startswith("#")}
        return cls(
            ids=data.get("ids"),
            authors=data.get("authors"),
            kinds=data.get("kinds"),
            since=data.get("since"),
            until=data.get("until"),
            limit=data.get("limit"),
            tags=tags,
        )


def match_filters(filters: Iterable[Filter], event: Event) -> bool:
    """Return True if *event* matches at least one of *filters*."""
    return any(f.matches(event) for f in filters)


def coerce_filters(
    filters: Filter | Mapping[str, Any] | Iterable[Filter | Mapping[str, Any]],
) -> tuple[Filter, ...]:
    """Normalize a filter, a wire-form mapping, or a collection of either.

    Raises:
        ValueError: If no filter is given.
    """
    if isinstance(filters, (Filter, Mapping)):
        filters = [filters]
    result = tuple(f if isinstance(f, Filter) else Filter.from_dict(f) for f in filters)
    if not result:
        raise ValueError("at least one filter is required")
    return result
