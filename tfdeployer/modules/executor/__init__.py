"""
Executor Module - Black Box Interface

Purpose: Runner that executes deployer commands inside the Terraform container
Interface: CommandRunner.run(), CommandRunner.execute(), main()
Hidden: Queue polling, process spawning, output socket wiring

Runs as a separate process that only sees the control volume.
"""

from .runner import CommandRunner, exit_status

__all__ = ["CommandRunner", "exit_status"]
