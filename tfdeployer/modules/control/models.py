"""
Control channel data models.

These models define what travels between the deployer and the runner:
the command descriptor written to the queue and the outcome resolved
once the runner has published a status artifact.
"""

import json
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import CommandFailed, CommandNameError

# Reserved queue entry that tells the runner to stop polling
SENTINEL = "done"

STATUS_SUFFIX = ".status"

SHELL = "/bin/sh"


def validate_name(name: str) -> str:
    """
    Check that a command identity is usable as a queue, socket and status name.

    Raises:
        CommandNameError: If the name is empty, reserved or not a plain file name
    """
    if not name:
        raise CommandNameError("command name must not be empty")
    if "/" in name or "\0" in name:
        raise CommandNameError(f"command name must be a plain file name: {name!r}")
    if name.startswith("."):
        raise CommandNameError(f"command name must not start with '.': {name!r}")
    if name == SENTINEL:
        raise CommandNameError(f"command name {SENTINEL!r} is reserved")
    if name.endswith(STATUS_SUFFIX):
        raise CommandNameError(f"command name must not end with {STATUS_SUFFIX!r}: {name!r}")
    return name


@dataclass(frozen=True)
class Command:
    """
    One named unit of work for the runner.

    When ``shell`` is set the first argument is a shell expression and is
    run through ``/bin/sh -c``; any further arguments become ``$0``, ``$1``...
    """

    name: str
    args: Tuple[str, ...]
    shell: bool = False

    def __post_init__(self):
        validate_name(self.name)
        object.__setattr__(self, "args", tuple(self.args))
        if not self.args:
            raise ValueError(f"command {self.name!r} has no arguments")
        if not all(isinstance(arg, str) for arg in self.args):
            raise ValueError(f"command {self.name!r} arguments must be strings")

    @property
    def argv(self) -> List[str]:
        """Argument vector to exec."""
        if self.shell:
            return [SHELL, "-c", *self.args]
        return list(self.args)

    def to_descriptor(self) -> bytes:
        """Serialize to the queue entry format (JSON array of strings)."""
        return json.dumps(self.argv).encode("utf-8")

    @classmethod
    def from_descriptor(cls, name: str, data: bytes) -> "Command":
        """
        Decode a queue entry.

        Raises:
            ValueError: If the entry is not a non-empty JSON array of strings
        """
        argv = json.loads(data)
        if not isinstance(argv, list):
            raise ValueError(f"command {name!r} descriptor is not a JSON array")
        return cls(name=name, args=tuple(argv))

    def __str__(self) -> str:
        return " ".join(self.args)


@dataclass
class CommandOutcome:
    """
    Terminal result of a dispatched command.

    ``exit_code`` is None when the outcome was decided by an error before
    a status artifact was read.
    """

    name: str
    exit_code: Optional[int] = None
    output: str = ""
    error: Optional[Exception] = None
    lines: List[str] = field(default_factory=list, repr=False)

    @classmethod
    def from_status(cls, name: str, exit_code: int, lines: List[str]) -> "CommandOutcome":
        error = CommandFailed(name, exit_code) if exit_code != 0 else None
        return cls(name=name, exit_code=exit_code, output=_join(lines), error=error, lines=lines)

    @classmethod
    def from_error(cls, name: str, error: Exception, lines: List[str]) -> "CommandOutcome":
        return cls(name=name, output=_join(lines), error=error, lines=lines)

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.exit_code == 0

    @property
    def step_failed(self) -> bool:
        """The command ran and exited non-zero."""
        return isinstance(self.error, CommandFailed)

    @property
    def fatal(self) -> bool:
        """The control channel broke; the run cannot continue."""
        return self.error is not None and not self.step_failed


def _join(lines: List[str]) -> str:
    return "".join(line + "\n" for line in lines)
