"""
Funding Spread Notification Scheduler

Owns the alert timers of every subscriber and decides when a funding spread
is worth an alert. Three policies are supported:

Recurring poll (NotificationPolicy):
    Every poll interval the top spreads are fetched; the first qualifying one
    settling within the window is delivered. There is no dedup across ticks.

Precise pre-settlement (PrecisePolicy):
    An hourly rescan (at RESCAN_MINUTE_OFFSET past the hour) finds the
    qualifying spread that settles soonest and arms a one-shot timer to fire
    `window` minutes before its settlement. When the one-shot fires the spread
    is fetched again and re-validated; a spread that no longer qualifies, or
    whose settlement drifted beyond the window plus PRECISE_SLACK_MINUTES, is
    dropped silently. Each settlement event is alerted at most once.

24h price movers (MoverPolicy):
    Every interval the Binance 24h tickers are fetched; each symbol whose
    price change exceeds the threshold is sent once. The sent symbols are
    forgotten every MOVER_RESET_HOURS, after which they may be sent again.

A subscriber holds one policy at a time; starting any policy replaces whatever
the subscriber had before, and stopping any of them stops all of them.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from core.config import settings
from core.logging import get_logger, log_timer_event
from core.schemas import AlertEvent, AssetSpread, MoverPolicy, NotificationPolicy, PrecisePolicy
from core.utils.time import current_utc_datetime, seconds_until_minute_of_hour
from services.alert_bus import AlertDelivery
from services.alert_rules import (
    AlertCandidate,
    first_within_window,
    qualifying_candidates,
    soonest,
)
from services.formatting import render_alert, render_mover, render_report
from services.funding_aggregator import FundingAggregator
from services.price_movers import PriceMoverFeed, select_movers
from services.subscribers import SubscriberState, SubscriberStore, TimerCategory
from services.timers import TimerHandle, TimerService

RESCAN_INTERVAL_SECONDS = 3600


class NotificationScheduler:
    """
    Per-subscriber alert scheduling on top of a FundingAggregator.

    Attributes:
        aggregator: Source of ranked spreads
        delivery: Collaborator that gets alerts and reports to subscribers
        movers: Source of 24h price movers
        timers: Shared timer service
        store: Per-subscriber state

    Example:
        >>> scheduler = NotificationScheduler(aggregator, BusDelivery(bus))
        >>> scheduler.start_notifications("alice", NotificationPolicy(
        ...     window_minutes=30, threshold_pct=1.0, poll_interval_minutes=60))
        >>> scheduler.stop_notifications("alice")
        True
    """

    def __init__(
        self,
        aggregator: FundingAggregator,
        delivery: AlertDelivery,
        timers: Optional[TimerService] = None,
        store: Optional[SubscriberStore] = None,
        clock: Callable[[], datetime] = current_utc_datetime,
        movers: Optional[PriceMoverFeed] = None,
    ) -> None:
        self.aggregator = aggregator
        self.delivery = delivery
        self.timers = timers or TimerService()
        self.store = store or SubscriberStore()
        self.movers = movers or PriceMoverFeed()
        self._clock = clock
        self._logger = get_logger(__name__)

    # ============================================
    # Recurring Poll
    # ============================================

    def start_notifications(self, subscriber_id: str, policy: NotificationPolicy) -> SubscriberState:
        """
        Start recurring-poll alerts for a subscriber.

        Every existing timer of the subscriber is cancelled first. The first
        evaluation runs immediately, then every poll_interval_minutes.
        """
        state = self.store.put(subscriber_id, policy)

        async def tick() -> None:
            await self._evaluate_recurring(state)

        handle = self.timers.call_every(
            policy.poll_interval_minutes * 60,
            tick,
            first_delay=0,
            name=f"{subscriber_id}_recurring",
        )
        self.store.replace_timer(subscriber_id, TimerCategory.RECURRING, handle)
        log_timer_event(
            subscriber_id, TimerCategory.RECURRING.value, "scheduled",
            f"every {policy.poll_interval_minutes}m, window {policy.window_minutes}m, "
            f"threshold {policy.threshold_pct}%",
        )
        return state

    def stop_notifications(self, subscriber_id: str) -> bool:
        """
        Stop all alerts for a subscriber. Idempotent.

        Returns:
            bool: True if the subscriber had an active policy
        """
        return self._remove(subscriber_id)

    async def _evaluate_recurring(self, state: SubscriberState) -> None:
        spreads = await self._fetch_candidates()
        if not self.store.is_current(state):
            return

        policy: NotificationPolicy = state.policy
        now = self._clock()
        candidates = qualifying_candidates(spreads, policy.threshold_pct, now)
        candidate = first_within_window(candidates, policy.window_minutes)
        if candidate is None:
            self._logger.debug(
                f"{state.subscriber_id}: nothing to alert ({len(spreads)} spreads, {len(candidates)} qualifying)"
            )
            return

        await self._deliver(state, TimerCategory.RECURRING, candidate, now)

    # ============================================
    # Precise Pre-Settlement
    # ============================================

    def enable_precise(self, subscriber_id: str, policy: Optional[PrecisePolicy] = None) -> SubscriberState:
        """
        Enable precise pre-settlement alerts for a subscriber.

        Every existing timer of the subscriber is cancelled first. An hourly
        rescan is installed and a first scan runs immediately.
        """
        policy = policy or PrecisePolicy()
        state = self.store.put(subscriber_id, policy)

        async def rescan() -> None:
            await self._precise_scan(state)

        first_delay = seconds_until_minute_of_hour(settings.rescan_minute_offset, self._clock())
        rescan_handle = self.timers.call_every(
            RESCAN_INTERVAL_SECONDS,
            rescan,
            first_delay=first_delay,
            name=f"{subscriber_id}_rescan",
        )
        self.store.replace_timer(subscriber_id, TimerCategory.RESCAN, rescan_handle)

        # The initial scan occupies the one-shot slot until it arms the real one-shot
        initial_handle = self.timers.call_later(0, rescan, name=f"{subscriber_id}_initial_scan")
        self.store.replace_timer(subscriber_id, TimerCategory.PRECISE, initial_handle)

        log_timer_event(
            subscriber_id, TimerCategory.RESCAN.value, "scheduled",
            f"hourly at :{settings.rescan_minute_offset:02d}, first in {first_delay:.0f}s, "
            f"window {policy.window_minutes}m, threshold {policy.threshold_pct}%",
        )
        return state

    def disable_precise(self, subscriber_id: str) -> bool:
        """
        Disable precise alerts for a subscriber. Idempotent.

        Same as stop_notifications: a subscriber holds one policy, so this also
        stops a recurring poll or price-mover alerts.

        Returns:
            bool: True if the subscriber had an active policy
        """
        return self._remove(subscriber_id)

    async def _precise_scan(self, state: SubscriberState) -> None:
        spreads = await self._fetch_candidates()
        if not self.store.is_current(state):
            return
        await self._plan_precise(state, spreads)

    async def _plan_precise(self, state: SubscriberState, spreads: List[AssetSpread]) -> None:
        """
        Deliver everything already inside the window, then arm a one-shot for
        the next qualifying settlement (or clear the one-shot if none).
        """
        policy: PrecisePolicy = state.policy
        subscriber_id = state.subscriber_id

        while True:
            now = self._clock()
            state.prune_delivered(now)
            candidates = [
                c for c in qualifying_candidates(spreads, policy.threshold_pct, now)
                if not state.was_delivered(c.event_key)
            ]
            best = soonest(candidates)

            if best is None:
                if self.store.remove_timer(subscriber_id, TimerCategory.PRECISE) is not None:
                    log_timer_event(subscriber_id, TimerCategory.PRECISE.value, "cleared", "nothing qualifies")
                return

            if best.eta_minutes <= policy.window_minutes:
                await self._deliver(state, TimerCategory.PRECISE, best, now)
                if not self.store.is_current(state):
                    return
                continue

            self._arm_precise(state, best)
            return

    def _arm_precise(self, state: SubscriberState, candidate: AlertCandidate) -> None:
        policy: PrecisePolicy = state.policy
        delay = max(
            0.0,
            (candidate.eta_minutes - policy.window_minutes) * 60.0 - settings.precise_lead_seconds,
        )
        base_asset = candidate.spread.base_asset
        handle: Optional[TimerHandle] = None

        async def fire() -> None:
            await self._fire_precise(state, base_asset, handle)

        handle = self.timers.call_later(delay, fire, name=f"{state.subscriber_id}_precise_{base_asset}")
        if self.store.replace_timer(state.subscriber_id, TimerCategory.PRECISE, handle):
            log_timer_event(
                state.subscriber_id, TimerCategory.PRECISE.value, "scheduled",
                f"{base_asset} {candidate.spread.spread_pct:.4f}% settles in {candidate.eta_minutes}m, "
                f"firing in {delay:.0f}s",
            )

    async def _fire_precise(self, state: SubscriberState, base_asset: str, handle: Optional[TimerHandle]) -> None:
        subscriber_id = state.subscriber_id
        self.store.remove_timer(subscriber_id, TimerCategory.PRECISE, handle)
        if not self.store.is_current(state):
            return

        spreads = await self._fetch_candidates()
        if not self.store.is_current(state):
            return

        policy: PrecisePolicy = state.policy
        now = self._clock()
        candidate = next(
            (c for c in qualifying_candidates(spreads, policy.threshold_pct, now)
             if c.spread.base_asset == base_asset),
            None,
        )
        max_eta = policy.window_minutes + settings.precise_slack_minutes

        if candidate is None:
            log_timer_event(subscriber_id, TimerCategory.PRECISE.value, "stale", f"{base_asset} no longer qualifies")
        elif candidate.eta_minutes > max_eta:
            log_timer_event(
                subscriber_id, TimerCategory.PRECISE.value, "stale",
                f"{base_asset} now settles in {candidate.eta_minutes}m (> {max_eta}m)",
            )
        elif state.was_delivered(candidate.event_key):
            self._logger.debug(f"{subscriber_id}: {base_asset} already alerted for this settlement")
        else:
            await self._deliver(state, TimerCategory.PRECISE, candidate, now)
            if not self.store.is_current(state):
                return

        await self._plan_precise(state, spreads)

    # ============================================
    # 24h Price Movers
    # ============================================

    def start_price_alerts(self, subscriber_id: str, policy: MoverPolicy) -> SubscriberState:
        """
        Start 24h price-mover alerts for a subscriber.

        Every existing timer of the subscriber is cancelled first. The first
        poll runs immediately, then every interval_seconds; the sent symbols
        are cleared every MOVER_RESET_HOURS.
        """
        state = self.store.put(subscriber_id, policy)

        async def poll() -> None:
            await self._evaluate_movers(state)

        async def reset() -> None:
            self._reset_sent_symbols(state)

        poll_handle = self.timers.call_every(
            policy.interval_seconds,
            poll,
            first_delay=0,
            name=f"{subscriber_id}_movers",
        )
        self.store.replace_timer(subscriber_id, TimerCategory.MOVERS, poll_handle)

        reset_seconds = settings.mover_reset_hours * 3600
        reset_handle = self.timers.call_every(
            reset_seconds,
            reset,
            first_delay=reset_seconds,
            name=f"{subscriber_id}_sent_reset",
        )
        self.store.replace_timer(subscriber_id, TimerCategory.SENT_RESET, reset_handle)

        log_timer_event(
            subscriber_id, TimerCategory.MOVERS.value, "scheduled",
            f"every {policy.interval_seconds}s, threshold {policy.threshold_pct}%, "
            f"reset every {settings.mover_reset_hours}h",
        )
        return state

    def stop_price_alerts(self, subscriber_id: str) -> bool:
        """
        Stop price-mover alerts for a subscriber. Idempotent.

        Returns:
            bool: True if the subscriber had an active policy
        """
        return self._remove(subscriber_id)

    async def _evaluate_movers(self, state: SubscriberState) -> None:
        movers = await self.movers.fetch()
        if not self.store.is_current(state):
            return

        policy: MoverPolicy = state.policy
        selected = select_movers(movers, policy.threshold_pct, state.sent_symbols)
        if not selected:
            self._logger.debug(f"{state.subscriber_id}: no new movers above {policy.threshold_pct}%")
            return

        # Recorded before sending so an overlapping poll skips them
        state.sent_symbols.update(mover.symbol for mover in selected)

        for mover in selected:
            if not self.store.is_current(state):
                return
            try:
                await self.delivery.deliver_mover(state.subscriber_id, mover, render_mover(mover))
            except Exception:
                self._logger.exception(f"Price mover delivery to {state.subscriber_id} failed")

        log_timer_event(
            state.subscriber_id, TimerCategory.MOVERS.value, "fired",
            f"{len(selected)} symbol(s) above {policy.threshold_pct}%",
        )

    def _reset_sent_symbols(self, state: SubscriberState) -> None:
        count = len(state.sent_symbols)
        state.sent_symbols.clear()
        self._logger.debug(f"{state.subscriber_id}: forgot {count} alerted mover(s)")

    # ============================================
    # Reports
    # ============================================

    async def send_report(self, subscriber_id: str, top_n: Optional[int] = None) -> str:
        """
        Render the current top spreads and hand them to the delivery collaborator.

        Returns:
            str: The rendered report
        """
        top_n = top_n or settings.default_report_top
        spreads = await self.aggregator.top_spreads(top_n)
        text = render_report(spreads, self._clock())
        try:
            await self.delivery.deliver_report(subscriber_id, text, top_n)
        except Exception:
            self._logger.exception(f"Report delivery to {subscriber_id} failed")
        return text

    # ============================================
    # Introspection & Lifecycle
    # ============================================

    def describe(self, subscriber_id: str) -> Optional[Dict[str, Any]]:
        """Current policy and live timer categories of a subscriber."""
        state = self.store.get(subscriber_id)
        if state is None:
            return None
        return {
            "subscriber_id": subscriber_id,
            "mode": state.mode,
            "policy": state.policy.model_dump(),
            "timers": state.active_categories(),
            "delivered_events": len(state.delivered_events),
            "sent_symbols": len(state.sent_symbols),
        }

    async def shutdown(self) -> None:
        """Drop every subscriber and stop the timer service."""
        count = len(self.store)
        self.store.clear()
        await self.timers.shutdown()
        self._logger.info(f"Notification scheduler stopped ({count} subscriber(s) dropped)")

    # ============================================
    # Helpers
    # ============================================

    def _remove(self, subscriber_id: str) -> bool:
        state = self.store.remove(subscriber_id)
        if state is None:
            return False
        log_timer_event(subscriber_id, state.mode, "cancelled")
        return True

    async def _fetch_candidates(self) -> List[AssetSpread]:
        return await self.aggregator.top_spreads(settings.alert_candidate_pool)

    async def _deliver(
        self,
        state: SubscriberState,
        category: TimerCategory,
        candidate: AlertCandidate,
        now: datetime,
    ) -> bool:
        """Deliver one alert. Failures are logged and never retried."""
        event = AlertEvent(
            subscriber_id=state.subscriber_id,
            spread=candidate.spread,
            eta_minutes=candidate.eta_minutes,
            settling_quote=candidate.sooner,
            fired_at=now,
        )
        # Recorded before the await so a concurrent scan cannot alert twice
        if category is TimerCategory.PRECISE:
            state.mark_delivered(candidate.event_key)

        try:
            await self.delivery.deliver_alert(event, render_alert(event))
        except Exception:
            self._logger.exception(f"Alert delivery to {state.subscriber_id} failed")
            return False

        log_timer_event(
            state.subscriber_id, category.value, "fired",
            f"{candidate.spread.base_asset} {candidate.spread.spread_pct:.4f}% in {candidate.eta_minutes}m",
        )
        return True
