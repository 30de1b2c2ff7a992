"""Capability registry — static catalogue of guided demos selectable from the menu.

Contract:
- Tokens are unique; a duplicate token is a construction error
- The registry is immutable after construction
- Lookups fail closed: an unknown token resolves to None, never to an engine
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class Capability:
    """One menu entry."""
    token: str  # what the sender types to select it ("1".."9")
    key: str  # stable identifier used in logs
    title: str  # menu label
    description: str  # injected into the demo system prompt
    insight: str  # closing message after the demo signals completion


class CapabilityRegistry:
    """Token-indexed, read-only capability lookup."""

    def __init__(self, capabilities: Iterable[Capability]):
        by_token: dict[str, Capability] = {}
        for cap in capabilities:
            if cap.token in by_token:
                raise ValueError(f"Duplicate capability token: {cap.token!r}")
            by_token[cap.token] = cap
        self._by_token = MappingProxyType(by_token)

    def resolve(self, token: str) -> Capability | None:
        """Look up a capability by its menu token."""
        return self._by_token.get(token.strip())

    def describe(self, capability: Capability) -> str:
        return capability.description

    def insight_for(self, capability: Capability) -> str:
        return capability.insight

    def __iter__(self) -> Iterator[Capability]:
        return iter(self._by_token.values())

    def __len__(self) -> int:
        return len(self._by_token)

    @property
    def tokens(self) -> frozenset[str]:
        return frozenset(self._by_token)
