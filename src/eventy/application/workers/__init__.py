"""Background workers."""

from eventy.application.workers.polling_sync import PollCycle, PollSignal

__all__ = ["PollCycle", "PollSignal"]
