#!/usr/bin/env python3
"""
Control volume runner - executes deployer commands inside the Terraform container.

The runner polls the control volume's command queue, runs one command at a
time in the release workdir and streams the combined stdout/stderr of the
process into the command's unix socket. When the process exits the exit code
is published as a status artifact.

Only a non-zero exit is a per-command failure. Any other error (unreadable
descriptor, socket that cannot be reached, status that cannot be written) is
fatal to the runner process.
"""

import logging
import socket
import subprocess
import sys
import time
from pathlib import Path
from typing import Optional

from tfdeployer.config.provider import EnvConfigProvider
from tfdeployer.logging_config import configure_logging
from tfdeployer.modules.control import SENTINEL, ControlVolume

logger = logging.getLogger("tfdeployer.runner")


def exit_status(returncode: int) -> int:
    """Map a Popen return code to a 0-255 status; signals become 128 + signum."""
    if returncode < 0:
        return 128 + (-returncode)
    return returncode & 0xFF


class CommandRunner:
    """Runner that executes queued commands one at a time."""

    def __init__(
        self,
        volume: ControlVolume,
        poll_interval: float = 0.1,
        workdir: Optional[Path] = None,
    ):
        """
        Initialize runner.

        Args:
            volume: Control volume shared with the deployer
            poll_interval: Seconds to sleep between queue scans
            workdir: Directory commands run in (defaults to the release workdir)
        """
        self.volume = volume
        self.poll_interval = poll_interval
        self.workdir = workdir or volume.workdir

    def run(self) -> None:
        """
        Main runner loop.

        Returns once the sentinel entry is seen, or once the completion
        marker exists and the queue is empty.
        """
        logger.info(f"Runner polling {self.volume.commands_dir}")
        while True:
            time.sleep(self.poll_interval)
            if not self.run_pending():
                logger.info("Done marker received, runner stopping")
                return

    def run_pending(self) -> bool:
        """
        Execute every queued command in name order.

        Returns:
            False if the runner should stop polling
        """
        try:
            names = self.volume.pending()
        except FileNotFoundError:
            # Volume not initialized yet
            return True

        if not names:
            return not self.volume.is_done()

        for name in names:
            if name == SENTINEL:
                return False
            self.execute(name)
        return True

    def execute(self, name: str) -> int:
        """
        Execute one queued command and publish its exit status.

        Returns:
            The published exit status
        """
        command = self.volume.consume(name)
        argv = command.argv
        socket_path = self.volume.socket_path(name)

        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as conn:
            conn.connect(str(socket_path))
            logger.info(f"Connected to {socket_path}")

            logger.debug(f"Running: {' '.join(argv)}")
            process = subprocess.Popen(
                argv,
                cwd=self.workdir,
                stdin=subprocess.DEVNULL,
                stdout=conn,
                stderr=subprocess.STDOUT,
            )
            returncode = process.wait()

        status = exit_status(returncode)
        if returncode < 0:
            logger.warning(f"Command {name} killed by signal {-returncode}, status {status}")
        self.volume.write_status(name, status)
        logger.info(f"Command {name} finished with status {status}")
        return status


def main():
    """Main entry point."""
    configure_logging()
    config_provider = EnvConfigProvider()
    volume_config = config_provider.get_volume_config()
    runner_config = config_provider.get_runner_config()

    volume = ControlVolume(volume_config.root, release_workdir=volume_config.release_workdir)
    runner = CommandRunner(volume, poll_interval=runner_config.poll_interval)

    try:
        runner.run()
    except KeyboardInterrupt:
        logger.info("Runner stopped by user")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
