"""
Subscriber Notification State

In-memory store of per-subscriber alert state: the active policy, the live
timer handles (at most one per category), the settlement events already
alerted on and the price-mover symbols already sent.

None of the store operations await, so each one is atomic on the event loop
and the store needs no lock. Code that awaits between reading and writing a
subscriber's state must re-check that the state it read is still current
(see `SubscriberStore.is_current`).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

from core.schemas import MoverPolicy, NotificationPolicy, PrecisePolicy
from services.timers import TimerHandle

Policy = Union[NotificationPolicy, PrecisePolicy, MoverPolicy]
EventKey = Tuple[str, datetime]


class TimerCategory(str, Enum):
    """Timer slots of one subscriber."""

    RECURRING = "recurring"  # recurring-poll evaluation
    RESCAN = "rescan"  # hourly precise rescan
    PRECISE = "precise"  # precise one-shot before settlement
    MOVERS = "movers"  # 24h price-mover poll
    SENT_RESET = "sent_reset"  # periodic reset of alerted price movers


@dataclass
class SubscriberState:
    """Alert state of one subscriber."""

    subscriber_id: str
    policy: Policy
    timers: Dict[TimerCategory, TimerHandle] = field(default_factory=dict)
    delivered_events: Set[EventKey] = field(default_factory=set)
    sent_symbols: Set[str] = field(default_factory=set)

    @property
    def mode(self) -> str:
        if isinstance(self.policy, PrecisePolicy):
            return "precise"
        if isinstance(self.policy, MoverPolicy):
            return "movers"
        return "recurring"

    def was_delivered(self, event: EventKey) -> bool:
        return event in self.delivered_events

    def mark_delivered(self, event: EventKey) -> None:
        self.delivered_events.add(event)

    def prune_delivered(self, now: datetime) -> int:
        """Forget events whose settlement has passed. Returns how many were dropped."""
        expired = {event for event in self.delivered_events if event[1] <= now}
        self.delivered_events -= expired
        return len(expired)

    def active_categories(self) -> List[str]:
        return [category.value for category, handle in self.timers.items() if not handle.done]


class SubscriberStore:
    """
    Registry of SubscriberState keyed by subscriber id.

    Example:
        >>> store = SubscriberStore()
        >>> state = store.put("alice", NotificationPolicy(window_minutes=30, threshold_pct=1.0, poll_interval_minutes=60))
        >>> store.replace_timer("alice", TimerCategory.RECURRING, handle)
        True
        >>> store.remove("alice")  # cancels the handle
    """

    def __init__(self) -> None:
        self._states: Dict[str, SubscriberState] = {}

    def get(self, subscriber_id: str) -> Optional[SubscriberState]:
        return self._states.get(subscriber_id)

    def is_current(self, state: SubscriberState) -> bool:
        """True if `state` is still the live record of its subscriber."""
        return self._states.get(state.subscriber_id) is state

    def put(self, subscriber_id: str, policy: Policy) -> SubscriberState:
        """
        Install a fresh state for the subscriber.

        Any previous state is removed first and all of its timers cancelled.
        """
        self.remove(subscriber_id)
        state = SubscriberState(subscriber_id=subscriber_id, policy=policy)
        self._states[subscriber_id] = state
        return state

    def remove(self, subscriber_id: str) -> Optional[SubscriberState]:
        """
        Drop the subscriber and cancel all its timers. Idempotent.

        The record is detached before any handle is cancelled.
        """
        state = self._states.pop(subscriber_id, None)
        if state is None:
            return None
        handles = list(state.timers.values())
        state.timers.clear()
        for handle in handles:
            handle.cancel()
        return state

    def replace_timer(self, subscriber_id: str, category: TimerCategory, handle: TimerHandle) -> bool:
        """
        Install `handle` in the subscriber's `category` slot.

        The previous handle of that slot is cancelled before the new one is
        installed. If the subscriber no longer exists the new handle is
        cancelled and False is returned.
        """
        state = self._states.get(subscriber_id)
        if state is None:
            handle.cancel()
            return False
        previous = state.timers.get(category)
        if previous is not None and previous is not handle:
            previous.cancel()
        state.timers[category] = handle
        return True

    def remove_timer(
        self,
        subscriber_id: str,
        category: TimerCategory,
        handle: Optional[TimerHandle] = None,
    ) -> Optional[TimerHandle]:
        """
        Detach and cancel the handle in `category`.

        When `handle` is given, only that exact handle is removed; a newer
        handle occupying the slot is left alone.
        """
        state = self._states.get(subscriber_id)
        if state is None:
            return None
        current = state.timers.get(category)
        if current is None or (handle is not None and current is not handle):
            return None
        del state.timers[category]
        current.cancel()
        return current

    def subscriber_ids(self) -> List[str]:
        return list(self._states.keys())

    def clear(self) -> None:
        """Remove every subscriber, cancelling all timers."""
        for subscriber_id in self.subscriber_ids():
            self.remove(subscriber_id)

    def __contains__(self, subscriber_id: object) -> bool:
        return subscriber_id in self._states

    def __iter__(self) -> Iterator[SubscriberState]:
        return iter(list(self._states.values()))

    def __len__(self) -> int:
        return len(self._states)
