"""Utilities module."""

from src.utils.polling import (
    PollConfig,
    PollExhausted,
    PollResult,
    poll_until,
)

__all__ = [
    "PollConfig",
    "PollExhausted",
    "PollResult",
    "poll_until",
]
