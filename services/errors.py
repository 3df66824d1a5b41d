"""Error taxonomy for the signal monitor."""

from __future__ import annotations


class SignalMonitorError(Exception):
    """Base class for errors raised by the monitor."""


class StoreUnavailable(SignalMonitorError):
    """The realtime store could not be reached or rejected the request."""


class MalformedTimestamp(SignalMonitorError, ValueError):
    """A timestamp does not describe a valid calendar date and time."""


class MalformedNumeric(SignalMonitorError, ValueError):
    """A signal level is not a finite number."""
