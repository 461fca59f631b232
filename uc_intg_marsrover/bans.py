"""
Ordered ban list with change notification.

:copyright: (c) 2025 by Meir Miyara.
:license: MPL-2.0, see LICENSE for more details.
"""

import logging
from typing import Callable, Iterator, List, Set, Tuple

from uc_intg_marsrover.models import BanRule

_LOG = logging.getLogger(__name__)

BanListener = Callable[["BanList"], None]


class BanList:
    """Ban rules in insertion order. Duplicates are kept."""

    def __init__(self):
        """Initialize an empty ban list."""
        self._rules: List[BanRule] = []
        self._listeners: List[BanListener] = []

    def add_listener(self, listener: BanListener) -> None:
        """Register a callback run after every mutation."""
        self._listeners.append(listener)

    def remove_listener(self, listener: BanListener) -> None:
        """Unregister a callback."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def add(self, attribute: str, value: str) -> BanRule:
        """Append a rule and notify listeners."""
        rule = BanRule(attribute, value)
        self._rules.append(rule)
        _LOG.info("Banned %s", rule)
        self._notify()
        return rule

    def remove(self, index: int) -> BanRule:
        """
        Drop the rule at ``index`` and notify listeners.

        :raises IndexError: no rule at that position
        """
        rule = self._rules.pop(index)
        _LOG.info("Unbanned %s", rule)
        self._notify()
        return rule

    def clear(self) -> None:
        """Drop all rules."""
        if not self._rules:
            return
        self._rules.clear()
        _LOG.info("Ban list cleared")
        self._notify()

    def snapshot(self) -> Tuple[BanRule, ...]:
        """Immutable copy of the current rules."""
        return tuple(self._rules)

    def values(self, attribute: str) -> Set[str]:
        """Banned values for one attribute."""
        return {rule.value for rule in self._rules if rule.attribute == attribute}

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as ex:
                _LOG.error("Ban list listener failed: %s", ex, exc_info=True)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[BanRule]:
        return iter(list(self._rules))

    def __getitem__(self, index: int) -> BanRule:
        return self._rules[index]

    def __repr__(self) -> str:
        return f"BanList({[str(rule) for rule in self._rules]})"
