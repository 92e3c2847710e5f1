"""Telegram front-end: message rendering, command handlers, scheduled posting."""

from tcapy_bot.chat.handlers import SignalBot
from tcapy_bot.chat.scheduler import SchedulerState, SignalScheduler

__all__ = ["SchedulerState", "SignalBot", "SignalScheduler"]
