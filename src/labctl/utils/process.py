"""Subprocess execution helpers."""

import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass

from labctl.errors import CommandError
from labctl.utils.output import debug


@dataclass
class CommandResult:
    """Result of a command execution."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if command succeeded."""
        return self.returncode == 0


def run(
    cmd: list[str],
    *,
    check: bool = False,
    capture: bool = True,
    timeout: int | None = None,
    env: dict[str, str] | None = None,
    input_text: str | None = None,
) -> CommandResult:
    """Run a command and return the result.

    With ``check=True`` a non-zero exit raises CommandError instead of
    returning. ``capture=False`` attaches the command to the terminal, which
    is what interactive tools (browser logins, passwd) need.
    """
    debug(f"$ {shlex.join(cmd)}")

    # Merge provided env with current environment
    run_env = None
    if env:
        run_env = os.environ.copy()
        run_env.update(env)

    try:
        result = subprocess.run(
            cmd,
            capture_output=capture,
            text=True,
            timeout=timeout,
            env=run_env,
            input=input_text,
        )
        outcome = CommandResult(
            returncode=result.returncode,
            stdout=result.stdout if capture else "",
            stderr=result.stderr if capture else "",
        )
    except subprocess.TimeoutExpired:
        outcome = CommandResult(returncode=-1, stdout="", stderr="Command timed out")
    except FileNotFoundError:
        outcome = CommandResult(returncode=-1, stdout="", stderr=f"Command not found: {cmd[0]}")

    if check and not outcome.success:
        raise CommandError(cmd, outcome.returncode, outcome.stderr)
    return outcome


def run_sudo(cmd: list[str], **kwargs) -> CommandResult:
    """Run a command with sudo unless already root."""
    if os.geteuid() == 0:
        return run(cmd, **kwargs)
    return run(["sudo"] + cmd, **kwargs)


def command_exists(cmd: str) -> bool:
    """Check if a command exists in PATH."""
    return shutil.which(cmd) is not None
