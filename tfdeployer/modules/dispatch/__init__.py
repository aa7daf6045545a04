"""
Dispatch Module - Black Box Interface

Purpose: Deployer side of the control channel
Interface: CommandDispatcher.dispatch(), CommandDispatcher.run(), CommandRun
Hidden: Socket listening and accepting, descriptor publication, status polling

Exactly one command is in flight at a time; the caller drains a CommandRun
before dispatching the next command.
"""

from .dispatcher import CommandDispatcher, CommandRun

__all__ = ["CommandDispatcher", "CommandRun"]
