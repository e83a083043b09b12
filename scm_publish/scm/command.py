"""Subprocess wrapper shared by the git and svn backends."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Tuple

from ..errors import SCMCommandError
from .logging import CommandLogSink

logger = logging.getLogger(__name__)

REDACTED = "********"

# Never let git/svn wait for a credential on the terminal, and keep their
# messages in English so failures can be classified.
_COMMAND_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ASKPASS": "",
    "SSH_ASKPASS": "",
    "LANGUAGE": "C",
    "LC_MESSAGES": "C",
}


@dataclass(frozen=True)
class CommandResult:
    """Outcome of an SCM command. ``command`` is already redacted."""

    command: Tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def redact(text: str, secrets: Iterable[str]) -> str:
    """Replace every non-empty secret in text."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


def run_scm_command(
    command: Sequence[str],
    cwd: Path,
    *,
    sink: Optional[CommandLogSink] = None,
    check: bool = True,
    secrets: Iterable[str] = (),
    env: Optional[Dict[str, str]] = None,
    input: Optional[str] = None,
) -> CommandResult:
    """Run a git/svn command and capture its output.

    Args:
        command: Command and arguments
        cwd: Working directory for the command
        sink: Optional sink receiving stdout/stderr
        check: Raise on non-zero exit when True
        secrets: Strings to mask in logs, sink output and errors
        env: Extra environment variables
        input: Text fed to the command's stdin (stdin is closed if None)

    Returns:
        CommandResult with redacted command and output

    Raises:
        SCMCommandError: If the executable cannot be started, or the command
            fails and check is True
    """
    secrets = tuple(s for s in secrets if s)
    display = tuple(redact(part, secrets) for part in command)
    logger.debug("Running %s (cwd=%s)", " ".join(display), cwd)

    run_env = dict(os.environ)
    run_env.update(_COMMAND_ENV)
    if env:
        run_env.update(env)

    try:
        proc = subprocess.run(
            list(command),
            cwd=str(cwd),
            env=run_env,
            stdin=subprocess.DEVNULL if input is None else None,
            input=input,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as exc:
        raise SCMCommandError(f"Failed to run {display[0]}: {exc}", cause=exc)

    stdout = redact(proc.stdout or "", secrets)
    stderr = redact(proc.stderr or "", secrets)
    if sink is not None:
        sink.write_stdout(stdout)
        sink.write_stderr(stderr)

    result = CommandResult(
        command=display,
        exit_code=proc.returncode,
        stdout=stdout,
        stderr=stderr,
    )

    if check and not result.ok:
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        raise SCMCommandError(
            f"{' '.join(display)} failed with exit code {proc.returncode}: {detail}",
            exit_code=proc.returncode,
            stderr=stderr,
        )
    return result
