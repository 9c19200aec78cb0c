"""
Wildcard matching for event names.

Event names are dotted (``progress.updated``). A subscription pattern may use
``*`` to stand for one dotted segment, or be ``*`` alone to receive everything:

- ``progress.updated``  exact
- ``player.*``          ``player.xp_added``, ``player.leveled_up``
- ``*.completed``       ``mission.completed``
- ``*``                 any event
"""

from __future__ import annotations


class EventRouter:
    """Stateless matcher; safe to share between buses."""

    def matches(self, event_name: str, pattern: str) -> bool:
        """
        Check whether ``event_name`` is selected by ``pattern``.

        Example:
            >>> EventRouter().matches("player.leveled_up", "player.*")
            True
            >>> EventRouter().matches("player.leveled_up", "mission.*")
            False
        """
        if pattern == "*":
            return True
        if "*" not in pattern:
            return event_name == pattern

        name_parts = event_name.split(".")
        pattern_parts = pattern.split(".")
        if len(name_parts) != len(pattern_parts):
            return False

        return all(
            expected == "*" or expected == actual
            for expected, actual in zip(pattern_parts, name_parts)
        )

    @staticmethod
    def is_pattern(event_name: str) -> bool:
        return "*" in event_name
