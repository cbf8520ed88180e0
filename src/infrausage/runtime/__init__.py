"""Caller-side query lifecycle helpers."""

from infrausage.runtime.polling import DEFAULT_POLL_INTERVAL, StatusSource, wait_for_completion

__all__ = [
	"DEFAULT_POLL_INTERVAL",
	"StatusSource",
	"wait_for_completion",
]
