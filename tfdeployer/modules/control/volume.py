import logging
import os
import re
import shutil
import stat
import uuid
from pathlib import Path
from typing import List, Union

from .errors import StatusArtifactError
from .models import SENTINEL, STATUS_SUFFIX, Command

logger = logging.getLogger("tfdeployer.control")

_STATUS_PATTERN = re.compile(r"[0-9]+")


class ControlVolume:
    def __init__(self, root: Union[str, Path], release_workdir: str = "terraform"):
        """
        Initialize control volume paths.

        Args:
            root: Mount point shared by the deployer and runner containers
            release_workdir: Directory inside release/ that commands run in

        Layout:
            commands/           pending command descriptors, one per command
            output/<name>       unix socket the runner streams output into
            output/<name>.status  exit code, written after the socket closes
            release/            extracted release payload
            run                 runner launcher
            done                completion marker
        """
        self.root = Path(root)
        self.commands_dir = self.root / "commands"
        self.output_dir = self.root / "output"
        self.release_dir = self.root / "release"
        self.runner_path = self.root / "run"
        self.done_path = self.root / "done"
        self.workdir = self.release_dir / release_workdir
        self.tfvars_path = self.workdir / "tfvars.json"

    def reset(self) -> None:
        """
        Wipe and recreate the volume layout.

        The volume should be empty at the start of a run, but a leftover
        layout from a previous run must not leak commands or markers.
        """
        for directory in (self.commands_dir, self.output_dir, self.release_dir):
            if directory.exists():
                shutil.rmtree(directory)
        self.runner_path.unlink(missing_ok=True)
        self.done_path.unlink(missing_ok=True)

        for directory in (self.commands_dir, self.output_dir, self.release_dir):
            directory.mkdir(mode=0o777, parents=True)
        logger.info(f"Control volume initialized at {self.root}")

    def install_runner(self, source: Union[str, Path]) -> Path:
        """Copy the runner launcher into the volume and make it executable."""
        shutil.copyfile(source, self.runner_path)
        mode = self.runner_path.stat().st_mode
        self.runner_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        logger.info(f"Installed runner from {source} to {self.runner_path}")
        return self.runner_path

    # Paths

    def command_path(self, name: str) -> Path:
        return self.commands_dir / name

    def socket_path(self, name: str) -> Path:
        return self.output_dir / name

    def status_path(self, name: str) -> Path:
        return self.output_dir / (name + STATUS_SUFFIX)

    # Queue

    def enqueue(self, command: Command) -> Path:
        """
        Publish a command descriptor.

        The descriptor is written outside commands/ and renamed into place,
        so the runner never observes a partially written file.
        """
        target = self.command_path(command.name)
        self._write_atomic(target, command.to_descriptor())
        return target

    def pending(self) -> List[str]:
        """
        Queue entry names in processing order.

        Raises:
            FileNotFoundError: If the commands directory does not exist yet
        """
        return sorted(os.listdir(self.commands_dir))

    def consume(self, name: str) -> Command:
        """
        Read, decode and delete a queue entry.

        Deleting the entry is the consumption signal; it happens before the
        runner connects to the command's socket.
        """
        path = self.command_path(name)
        data = path.read_bytes()
        command = Command.from_descriptor(name, data)
        path.unlink()
        return command

    # Status artifacts

    def write_status(self, name: str, exit_code: int) -> Path:
        if not 0 <= exit_code <= 255:
            raise ValueError(f"exit code out of range: {exit_code}")
        target = self.status_path(name)
        self._write_atomic(target, str(exit_code).encode("ascii"))
        return target

    def has_status(self, name: str) -> bool:
        return self.status_path(name).exists()

    def read_status(self, name: str) -> int:
        """
        Read a status artifact as an unsigned decimal in [0, 255].

        Raises:
            StatusArtifactError: If the file cannot be read or parsed
        """
        path = self.status_path(name)
        try:
            text = path.read_bytes().decode("ascii")
        except (OSError, UnicodeDecodeError) as e:
            raise StatusArtifactError(f"failed to read status {path}: {e}") from e
        if not _STATUS_PATTERN.fullmatch(text):
            raise StatusArtifactError(f"failed to parse status: {text!r}")
        status = int(text)
        if status > 255:
            raise StatusArtifactError(f"failed to parse status: {text!r} is out of range")
        return status

    # Completion

    def mark_done(self) -> None:
        """
        Signal the end of the run.

        Writes the completion marker and the sentinel queue entry the
        runner polls for.
        """
        self.commands_dir.mkdir(parents=True, exist_ok=True)
        self.command_path(SENTINEL).touch()
        self.done_path.touch()
        logger.info("Control volume marked done")

    def is_done(self) -> bool:
        return self.done_path.exists()

    def _write_atomic(self, target: Path, data: bytes) -> None:
        staging = self.root / f".{target.name}.{uuid.uuid4().hex}.tmp"
        try:
            with open(staging, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(staging, target)
        except BaseException:
            staging.unlink(missing_ok=True)
            raise
