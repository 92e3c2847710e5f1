"""Scheduled signal posting into the configured group.

Every ``interval_seconds`` the scheduler asks the bot to generate and post
a report. A tick is skipped while the previous post is still running, and
failures never stop the loop: they are counted on the SchedulerState and
announced in the group.
"""

import asyncio
import time
from dataclasses import dataclass

from tcapy_bot.chat.formatting import render_scheduled_failure
from tcapy_bot.chat.handlers import SignalBot
from tcapy_bot.config import ScheduleSettings, TelegramSettings
from tcapy_bot.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SchedulerState:
    """Observable state of the scheduled posting loop (epoch seconds)."""

    last_run_at: float | None = None
    last_success_at: float | None = None
    in_flight: bool = False
    consecutive_failures: int = 0
    last_error: str | None = None


class SignalScheduler:
    """Posts a signal report to the group on a fixed interval.

    Args:
        bot: Posts reports and failure notices.
        telegram_settings: Target group chat and optional forum topic.
        settings: Interval, enabled flag and run-on-start flag.
    """

    def __init__(
        self,
        bot: SignalBot,
        telegram_settings: TelegramSettings,
        settings: ScheduleSettings,
    ) -> None:
        self._bot = bot
        self._chat_id = telegram_settings.group_chat_id
        self._thread_id = telegram_settings.message_thread_id
        self._settings = settings
        self._state = SchedulerState()
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._run_task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Begin the posting loop in the background."""
        if self._running:
            logger.warning("scheduler_already_running")
            return
        if not self._settings.enabled:
            logger.info("scheduler_disabled")
            return
        if not self._chat_id:
            logger.warning("scheduler_not_started", reason="no group chat configured")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "scheduler_started",
            interval_seconds=self._settings.interval_seconds,
            chat_id=self._chat_id,
            thread_id=self._thread_id,
        )

    async def stop(self) -> None:
        """Stop the loop and cancel any post still in flight."""
        self._running = False
        for task in (self._task, self._run_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._run_task = None
        logger.info("scheduler_stopped")

    async def _loop(self) -> None:
        if not self._settings.run_on_start:
            await asyncio.sleep(self._settings.interval_seconds)

        while self._running:
            if self._state.in_flight:
                logger.warning("scheduled_run_skipped", reason="previous run still in flight")
            else:
                self._run_task = asyncio.create_task(self.run_once())
            await asyncio.sleep(self._settings.interval_seconds)

    async def run_once(self) -> bool:
        """Generate and post one report. Returns True on success.

        Never raises on failure (other than cancellation): the error is
        recorded on the state and a notice is posted to the group.
        """
        if self._state.in_flight:
            logger.warning("scheduled_run_skipped", reason="previous run still in flight")
            return False

        self._state.in_flight = True
        self._state.last_run_at = time.time()
        try:
            await self._bot.send_report(self._chat_id, self._thread_id)
        except Exception as e:
            self._state.consecutive_failures += 1
            self._state.last_error = str(e)
            logger.error(
                "scheduled_signal_failed",
                error=str(e),
                consecutive_failures=self._state.consecutive_failures,
                exc_info=True,
            )
            await self._announce_failure(e)
            return False
        finally:
            self._state.in_flight = False

        self._state.last_success_at = time.time()
        self._state.consecutive_failures = 0
        self._state.last_error = None
        return True

    async def _announce_failure(self, error: Exception) -> None:
        try:
            await self._bot.notify(self._chat_id, render_scheduled_failure(error), self._thread_id)
        except Exception as e:
            logger.error("failure_notice_failed", error=str(e))
