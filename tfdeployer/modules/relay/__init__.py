"""
Relay Module - Black Box Interface

Purpose: Forward command output to the remote log collector
Interface: LogRelay.send(), LogRelay.finish(), LogData, LogContinuation
Hidden: Endpoint rotation, retry and backoff policy, HTTP client lifecycle

Posts must be issued in output order, each one against the endpoint
returned by the previous post.
"""

from .models import LogContinuation, LogData
from .relay import LogRelay

__all__ = ["LogRelay", "LogData", "LogContinuation"]
