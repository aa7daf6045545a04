"""
Error taxonomy for the control channel and the log relay.

Everything except CommandFailed is fatal to the deployer run.
"""

from typing import Optional


class ControlChannelError(Exception):
    """Transport or protocol fault on the control volume or a command socket."""


class CommandNameError(ControlChannelError):
    """Command identity is invalid or already in use within this run."""


class StatusArtifactError(ControlChannelError):
    """Status artifact could not be read or does not hold an exit code."""


class DispatchTimeout(ControlChannelError):
    """An optional dispatcher deadline expired."""


class CommandFailed(Exception):
    """Command ran to completion with a non-zero exit code."""

    def __init__(self, name: str, exit_code: int):
        super().__init__(f"non-zero status: {exit_code}")
        self.name = name
        self.exit_code = exit_code


class LogRelayError(Exception):
    """The log collector answered with something the relay cannot use."""


class LogEndpointRejected(LogRelayError):
    """The log collector rejected a post with a client-side status."""

    def __init__(self, url: str, status_code: int, body: Optional[str] = None):
        super().__init__(
            f"unexpected client error status code from log endpoint ({url}): {status_code}"
        )
        self.url = url
        self.status_code = status_code
        self.body = body


class WorkflowError(Exception):
    """A workflow precondition does not hold."""
