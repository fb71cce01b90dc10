"""Business logic use cases."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from dateutil import tz

from paper_courier.core import (
    ContentFetcher,
    Credentials,
    CycleOutcome,
    DeliveryCancelled,
    DeliveryRecord,
    DeliveryStatus,
    DeliveryStore,
    DigestBuilder,
    DigestMessage,
    FetchError,
    Item,
    KeywordSet,
    Mailer,
    RetryPolicy,
    ScheduleSpec,
    SchedulerState,
    SendError,
    StoreError,
    retry_async,
)
from paper_courier.core.retry import wait_for_stop

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(tz.UTC)


class DeliveryScheduler:
    """Weekly fetch-render-send loop with at-most-once delivery per period.

    The scheduler moves through Idle, Waiting, Fetching, Rendering,
    Sending and Cooldown, and ends in Stopped when the stop event is set.
    A period (ISO week of the scheduled instant) gets exactly one record
    in the delivery store: Success once the mailer acknowledged the
    digest, Failed once fetching or sending ran out of attempts. A period
    that already has a record is never fetched or sent again.
    """

    def __init__(
        self,
        schedule: ScheduleSpec,
        keywords: KeywordSet,
        fetcher: ContentFetcher,
        builder: DigestBuilder,
        mailer: Mailer,
        store: DeliveryStore,
        credentials: Credentials,
        retry_policy: Optional[RetryPolicy] = None,
        fetch_timeout: float = 60.0,
        send_timeout: float = 30.0,
        clock: Optional[Callable[[], datetime]] = None,
        poll_interval: float = 60.0,
    ) -> None:
        self.schedule = schedule
        self.keywords = keywords
        self.fetcher = fetcher
        self.builder = builder
        self.mailer = mailer
        self.store = store
        self.credentials = credentials
        self.retry_policy = retry_policy or RetryPolicy()
        self.fetch_timeout = fetch_timeout
        self.send_timeout = send_timeout
        self.clock = clock or utc_now
        self.poll_interval = poll_interval
        self.state = SchedulerState.IDLE
        self.next_fire: Optional[datetime] = None

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run until ``stop_event`` is set."""
        self._transition(SchedulerState.IDLE)
        self._log_last_record()

        fire_at = self.schedule.resolve_next(self.clock())

        while True:
            self._transition(SchedulerState.WAITING)
            self.next_fire = fire_at
            if stop_event.is_set():
                break

            logger.info(
                "Next digest for %s at %s",
                self.schedule.period_key(fire_at), fire_at.isoformat(),
            )
            if not await self._wait_until(fire_at, stop_event):
                break

            try:
                outcome = await self.run_cycle(fire_at, stop_event)
            except DeliveryCancelled as e:
                logger.info("Stopping: %s", e)
                break

            if not outcome.skipped:
                self._transition(SchedulerState.COOLDOWN)
            fire_at = self._next_after(fire_at)

        self._transition(SchedulerState.STOPPED)
        logger.info("Scheduler stopped")

    async def run_once(
        self, now: Optional[datetime] = None, stop_event: Optional[asyncio.Event] = None
    ) -> CycleOutcome:
        """Run one cycle right away for the period containing ``now``."""
        fire_at = now or self.clock()
        try:
            return await self.run_cycle(fire_at, stop_event)
        finally:
            self._transition(SchedulerState.IDLE)

    async def run_cycle(
        self, fire_at: datetime, stop_event: Optional[asyncio.Event] = None
    ) -> CycleOutcome:
        """Fetch, render and send the digest for the period of ``fire_at``.

        Raises:
            DeliveryCancelled: If stop was requested at a retry boundary.
                Nothing is recorded in that case.
        """
        period_key = self.schedule.period_key(fire_at)

        try:
            status = self.store.get_status(period_key)
        except StoreError as e:
            logger.error("Cannot check delivery record for %s, skipping cycle: %s", period_key, e)
            return CycleOutcome(period_key=period_key, status=None, note=str(e))

        if status is not None:
            logger.info("Period %s already recorded as %s, nothing to do", period_key, status.value)
            return CycleOutcome(period_key=period_key, status=status, skipped=True)

        # Fetching
        self._transition(SchedulerState.FETCHING)
        try:
            items = await retry_async(
                self._fetch_once,
                self.retry_policy,
                (FetchError,),
                stop_event=stop_event,
                label=f"Fetch for {period_key}",
            )
        except FetchError as e:
            note = f"fetch failed: {e}"
            self._record(period_key, DeliveryStatus.FAILED, note)
            return CycleOutcome(period_key=period_key, status=DeliveryStatus.FAILED, note=note)

        # Rendering: built once, reused for every send attempt
        self._transition(SchedulerState.RENDERING)
        item_count = len(self.builder.select(items, self.keywords))
        message = self.builder.render(items, self.keywords, period_key, built_at=self.clock())
        logger.info("Digest %s: %d of %d fetched items", period_key, item_count, len(items))

        # Sending
        self._transition(SchedulerState.SENDING)
        try:
            await retry_async(
                lambda: self._send_once(message),
                self.retry_policy,
                (SendError,),
                stop_event=stop_event,
                label=f"Send for {period_key}",
            )
        except SendError as e:
            note = f"send failed: {e}"
            self._record(period_key, DeliveryStatus.FAILED, note)
            return CycleOutcome(
                period_key=period_key, status=DeliveryStatus.FAILED, item_count=item_count, note=note
            )

        # Only after the mailer acknowledged the digest
        note = "" if self._record(period_key, DeliveryStatus.SUCCESS) else "delivered, record not written"
        return CycleOutcome(
            period_key=period_key, status=DeliveryStatus.SUCCESS, item_count=item_count, note=note
        )

    async def _fetch_once(self) -> list[Item]:
        try:
            items = await asyncio.wait_for(
                self.fetcher.fetch(self.keywords, self.fetch_timeout), timeout=self.fetch_timeout
            )
        except FetchError:
            raise
        except asyncio.TimeoutError as e:
            raise FetchError(f"timed out after {self.fetch_timeout:g}s") from e
        except Exception as e:
            raise FetchError(f"unexpected {type(e).__name__}: {e}") from e
        return list(items)

    async def _send_once(self, message: DigestMessage) -> None:
        # No outer timeout: the mailer enforces send_timeout and returns only
        # once its attempt is over
        try:
            await self.mailer.send(message, self.credentials, self.send_timeout)
        except SendError:
            raise
        except asyncio.TimeoutError as e:
            raise SendError(f"timed out after {self.send_timeout:g}s") from e
        except Exception as e:
            raise SendError(f"unexpected {type(e).__name__}: {e}") from e

    def _record(self, period_key: str, status: DeliveryStatus, note: str = "") -> bool:
        """Write the period outcome. False if nothing was stored."""
        record = DeliveryRecord(period_key=period_key, sent_at=self.clock(), status=status, note=note)
        try:
            stored = self.store.put_if_absent(period_key, record)
        except StoreError as e:
            logger.error("Could not record %s as %s: %s", period_key, status.value, e)
            return False

        if not stored:
            logger.warning("Period %s was already recorded by another run, keeping that record", period_key)
        elif status is DeliveryStatus.SUCCESS:
            logger.info("Period %s delivered", period_key)
        else:
            logger.error("Period %s failed: %s", period_key, note)
        return stored

    async def _wait_until(self, target: datetime, stop_event: asyncio.Event) -> bool:
        """Sleep in slices until ``target``. False if stop was requested first."""
        target_utc = target.astimezone(tz.UTC)
        while True:
            remaining = (target_utc - self.clock().astimezone(tz.UTC)).total_seconds()
            if remaining <= 0:
                return True
            if await wait_for_stop(stop_event, min(remaining, self.poll_interval)):
                return False

    def _next_after(self, fire_at: datetime) -> datetime:
        """Next instant a week after the scheduled one; missed periods are skipped."""
        next_fire = self.schedule.resolve_next(fire_at)
        now_utc = self.clock().astimezone(tz.UTC)
        while next_fire.astimezone(tz.UTC) <= now_utc:
            logger.warning(
                "Missed period %s (scheduled %s), not catching up",
                self.schedule.period_key(next_fire), next_fire.isoformat(),
            )
            next_fire = self.schedule.resolve_next(next_fire)
        return next_fire

    def _log_last_record(self) -> None:
        try:
            last = self.store.last_record()
        except StoreError as e:
            logger.warning("Could not read delivery history: %s", e)
            return
        if last is None:
            logger.info("No previous deliveries recorded")
        else:
            logger.info("Last delivery: %s %s at %s", last.period_key, last.status.value, last.sent_at.isoformat())

    def _transition(self, state: SchedulerState) -> None:
        if state is not self.state:
            logger.debug("Scheduler %s -> %s", self.state.value, state.value)
        self.state = state
