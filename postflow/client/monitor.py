"""
Name: Session Monitor

Responsibilities:
  - Inactivity countdown (ACTIVE -> WARNING -> EXPIRED) driven by one tick
  - Activity tracking with debounce and reset cool-down
  - Background token refresh before the access token expires, retried on
    transient failures and ending in logout once attempts run out
  - Focus / visibility triggers for an opportunistic refresh
  - Cancellation of all pending work on stop()

Collaborators:
  - api_client.py: AuthApiClient (refresh, logout, token expiry)
  - errors.py: transient classification + retry logging
  - tenacity: AsyncRetrying for refresh retries

Constraints:
  - Warning and expiry callbacks fire at most once per countdown cycle and
    run as tasks, so a slow handler never stalls the countdown
  - At most one refresh in flight
  - The countdown is independent from the token lifetime

Notes:
  - Time sources and sleep are injectable; tests drive tick() directly
"""

from __future__ import annotations

import asyncio
import inspect
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_fixed

from ..crosscutting.logger import logger
from .errors import ApiError, SessionExpiredError, is_transient_error, log_retry

ACTIVITY_EVENTS = frozenset({"click", "keydown", "scroll"})

Callback = Callable[..., Any]


class SessionPhase(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    EXPIRED = "expired"
    STOPPED = "stopped"


@dataclass(frozen=True)
class MonitorPolicy:
    window_seconds: int = 300
    warning_seconds: int = 60
    activity_debounce_seconds: float = 0.5
    activity_cooldown_seconds: float = 30.0
    refresh_threshold_seconds: int = 60
    refresh_cooldown_seconds: float = 30.0
    refresh_max_attempts: int = 3
    refresh_retry_delay_seconds: float = 5.0
    tick_interval_seconds: float = 1.0


class SessionMonitor:
    """
    R: Client-side session state machine.

    Args:
        client: AuthApiClient owning the session
        policy: Timing policy
        on_warning(remaining_seconds): countdown crossed the warning mark
        on_expired(): countdown reached zero (default: force logout)
        on_refreshed(session): background refresh succeeded
        on_logout(reason): session ended (timeout, refresh failure, rejection)
        clock: Monotonic clock for the countdown
        sleep: Awaitable sleep between ticks
        retry_sleep: Awaitable sleep between refresh attempts
    """

    def __init__(
        self,
        client,
        policy: MonitorPolicy = MonitorPolicy(),
        *,
        on_warning: Optional[Callback] = None,
        on_expired: Optional[Callback] = None,
        on_refreshed: Optional[Callback] = None,
        on_logout: Optional[Callback] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
        retry_sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self._client = client
        self._policy = policy
        self._on_warning = on_warning
        self._on_expired = on_expired
        self._on_refreshed = on_refreshed
        self._on_logout = on_logout
        self._clock = clock
        self._sleep = sleep
        self._retry_sleep = retry_sleep

        self._phase = SessionPhase.STOPPED
        self._cycle_started = clock()
        self._last_reset = self._cycle_started
        self._last_activity: Optional[float] = None
        self._last_refresh: Optional[float] = None
        self._warning_fired = False
        self._expired_fired = False
        self._tick_task: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._callback_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def policy(self) -> MonitorPolicy:
        return self._policy

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    @property
    def refresh_task(self) -> Optional[asyncio.Task]:
        return self._refresh_task

    @property
    def pending_callbacks(self) -> tuple[asyncio.Task, ...]:
        return tuple(task for task in self._callback_tasks if not task.done())

    def remaining_seconds(self) -> int:
        """R: Whole seconds left in the countdown, never negative."""
        elapsed = math.floor(self._clock() - self._cycle_started)
        return max(0, self._policy.window_seconds - elapsed)

    def _reset_cycle(self, now: float) -> None:
        self._cycle_started = now
        self._last_reset = now
        self._warning_fired = False
        self._expired_fired = False
        self._phase = SessionPhase.ACTIVE

    async def _emit(self, callback: Optional[Callback], *args) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(
                "Session monitor callback failed",
                extra={"callback": getattr(callback, "__name__", repr(callback))},
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """R: Begin a fresh countdown and the tick loop (needs a running loop)."""
        self.stop()
        self._reset_cycle(self._clock())
        self._last_activity = None
        self._tick_task = asyncio.create_task(self._run())
        logger.info(
            "Session monitor started",
            extra={"window_seconds": self._policy.window_seconds},
        )

    def stop(self) -> None:
        """R: Cancel the tick loop, in-flight refresh and callbacks (except the caller)."""
        self._phase = SessionPhase.STOPPED
        current = asyncio.current_task() if _loop_running() else None
        for task in (self._tick_task, self._refresh_task, *self._callback_tasks):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._tick_task = None
        if self._refresh_task is not current:
            self._refresh_task = None
        self._callback_tasks.difference_update(
            [task for task in self._callback_tasks if task is not current]
        )

    def _dispatch(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._callback_tasks.add(task)
        task.add_done_callback(self._callback_tasks.discard)
        return task

    async def _run(self) -> None:
        while self._phase is not SessionPhase.STOPPED:
            await self.tick()
            await self._sleep(self._policy.tick_interval_seconds)

    async def tick(self) -> SessionPhase:
        """R: Advance the state machine once."""
        if self._phase is SessionPhase.STOPPED:
            return self._phase

        remaining = self.remaining_seconds()
        if remaining <= 0:
            if not self._expired_fired:
                self._expired_fired = True
                self._phase = SessionPhase.EXPIRED
                logger.info("Session countdown expired")
                if self._on_expired is not None:
                    self._dispatch(self._emit(self._on_expired))
                else:
                    self._dispatch(self.force_logout("session_timeout"))
            return self._phase

        if remaining <= self._policy.warning_seconds:
            self._phase = SessionPhase.WARNING
            if not self._warning_fired:
                self._warning_fired = True
                self._dispatch(self._emit(self._on_warning, remaining))
        else:
            self._phase = SessionPhase.ACTIVE

        self.maybe_refresh("tick")
        return self._phase

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------
    def record_activity(self, kind: str = "click") -> bool:
        """
        R: Register user activity; returns True if the countdown was reset.

        Events closer than the debounce interval collapse into one. A reset
        needs an expired countdown or the cool-down since the last reset.
        """
        if kind not in ACTIVITY_EVENTS:
            raise ValueError(f"unknown activity event: {kind}")
        if self._phase is SessionPhase.STOPPED:
            return False

        now = self._clock()
        previous = self._last_activity
        if previous is not None and now - previous < self._policy.activity_debounce_seconds:
            return False
        # R: Debounce is measured from the last accepted event so a steady
        # stream still lets one event through per interval
        self._last_activity = now

        cooled_down = now - self._last_reset > self._policy.activity_cooldown_seconds
        if self._phase is not SessionPhase.EXPIRED and not cooled_down:
            return False

        self._reset_cycle(now)
        self.maybe_refresh("activity")
        return True

    def notify_focus(self) -> bool:
        return self.maybe_refresh("focus")

    def notify_visibility(self, visible: bool) -> bool:
        return self.maybe_refresh("visibility") if visible else False

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    def maybe_refresh(self, reason: str) -> bool:
        """
        R: Start a background refresh if one is due; returns True if started.

        Ticks refresh at the threshold; opportunistic triggers (focus,
        visibility, activity) refresh within twice the threshold.
        """
        if self._phase is SessionPhase.STOPPED or self.is_refreshing:
            return False

        remaining = self._client.seconds_until_expiry()
        if remaining is None:
            return False

        threshold = self._policy.refresh_threshold_seconds
        window = threshold if reason == "tick" else threshold * 2
        if remaining > window:
            return False

        now = self._clock()
        if (
            self._last_refresh is not None
            and now - self._last_refresh < self._policy.refresh_cooldown_seconds
        ):
            return False

        logger.info(
            "Scheduling token refresh",
            extra={"reason": reason, "seconds_until_expiry": round(remaining, 1)},
        )
        self._refresh_task = asyncio.create_task(self._run_refresh())
        return True

    async def _run_refresh(self) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._policy.refresh_max_attempts),
            wait=wait_fixed(self._policy.refresh_retry_delay_seconds),
            retry=retry_if_exception(is_transient_error),
            sleep=self._retry_sleep,
            before_sleep=log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    session = await self._client.refresh()
        except SessionExpiredError as exc:
            logger.warning("Refresh rejected by server", extra={"code": exc.code})
            await self._end("refresh_rejected")
            return
        except (ApiError, httpx.HTTPError) as exc:
            logger.error(
                "Token refresh failed, logging out",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            await self.force_logout("refresh_failed")
            return
        finally:
            if self._refresh_task is asyncio.current_task():
                self._refresh_task = None

        self._last_refresh = self._clock()
        await self._emit(self._on_refreshed, session)

    async def force_logout(self, reason: str) -> None:
        """R: Server logout (best effort), then stop and notify."""
        await self._client.logout()
        await self._end(reason)

    async def _end(self, reason: str) -> None:
        self.stop()
        logger.info("Session ended", extra={"reason": reason})
        await self._emit(self._on_logout, reason)


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
