"""
Guidance-Card Store — External Interface

A small keyed collection of text snippets the upstream generator reads
before each generation. Position is priority: index 0 is always considered.

The store belongs to the host. The gate only issues create / find /
remove commands against it and never updates a card in place.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional


class ExternalStoreError(Exception):
    """Raised when the card store refuses a create or remove."""


@dataclass
class GuidanceCard:
    """One card. `title` is its key."""
    title: str
    entry: str
    type: str = "Custom"
    keys: str = ""          # trigger keywords; empty means always active
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "entry": self.entry,
            "type": self.type,
            "keys": self.keys,
            "description": self.description,
        }


CardPredicate = Callable[[GuidanceCard], bool]


class CardStore(ABC):
    """Abstract base for guidance-card stores."""

    @abstractmethod
    def create(self, card: GuidanceCard, index: int = 0) -> GuidanceCard:
        """Insert a card at `index` (clamped to the store bounds)."""
        ...

    @abstractmethod
    def find_all(self, predicate: CardPredicate) -> list[GuidanceCard]:
        """All cards matching `predicate`, in priority order."""
        ...

    @abstractmethod
    def remove(self, title: str) -> bool:
        """Remove the first card titled `title`. False if absent."""
        ...

    def find(self, predicate: CardPredicate) -> Optional[GuidanceCard]:
        """First card matching `predicate`, or None."""
        matches = self.find_all(predicate)
        return matches[0] if matches else None

    def get(self, title: str) -> Optional[GuidanceCard]:
        return self.find(lambda c: c.title == title)

    def titles(self) -> list[str]:
        return [c.title for c in self.find_all(lambda c: True)]


class InMemoryCardStore(CardStore):
    """
    List-backed store. The reference implementation used by the API
    sessions and the tests.

    A disabled store refuses every write with ExternalStoreError, the
    way a host with the card feature switched off would.
    """

    def __init__(self, cards: Optional[list[GuidanceCard]] = None, enabled: bool = True):
        self._cards: list[GuidanceCard] = list(cards or [])
        self.enabled = enabled

    def _check_enabled(self) -> None:
        if not self.enabled:
            raise ExternalStoreError("Guidance cards are disabled for this store")

    def create(self, card: GuidanceCard, index: int = 0) -> GuidanceCard:
        self._check_enabled()
        if not all(
            isinstance(v, str)
            for v in (card.title, card.entry, card.type, card.keys, card.description)
        ):
            raise TypeError("GuidanceCard fields must be strings")
        if not isinstance(index, int) or isinstance(index, bool):
            raise TypeError("index must be an integer")

        index = min(max(0, index), len(self._cards))
        self._cards.insert(index, card)
        return card

    def find_all(self, predicate: CardPredicate) -> list[GuidanceCard]:
        return [c for c in self._cards if predicate(c)]

    def remove(self, title: str) -> bool:
        self._check_enabled()
        for i, card in enumerate(self._cards):
            if card.title == title:
                del self._cards[i]
                return True
        return False

    def __len__(self) -> int:
        return len(self._cards)
