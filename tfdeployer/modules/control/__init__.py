"""
Control Module - Black Box Interface

Purpose: Shared rendezvous between the deployer and the runner
Interface: ControlVolume paths and lifecycle, Command, CommandOutcome, errors
Hidden: Directory layout, descriptor encoding, atomic publication

The deployer and the runner never talk to each other directly; everything
goes through the files and sockets this module names.
"""

from .errors import (
    CommandFailed,
    CommandNameError,
    ControlChannelError,
    DispatchTimeout,
    LogEndpointRejected,
    LogRelayError,
    StatusArtifactError,
    WorkflowError,
)
from .models import SENTINEL, STATUS_SUFFIX, Command, CommandOutcome, validate_name
from .volume import ControlVolume

__all__ = [
    "ControlVolume",
    "Command",
    "CommandOutcome",
    "SENTINEL",
    "STATUS_SUFFIX",
    "validate_name",
    "ControlChannelError",
    "CommandNameError",
    "StatusArtifactError",
    "DispatchTimeout",
    "CommandFailed",
    "LogRelayError",
    "LogEndpointRejected",
    "WorkflowError",
]
