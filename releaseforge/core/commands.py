"""External command execution for toolchain, packaging and signing tools.

Every tool the pipeline drives (cargo, candle/light, lipo, hdiutil,
security, codesign, signtool, notarytool, stapler) goes through a
``CommandRunner`` so tests can substitute a recorder.  Secret arguments
are passed in ``secrets`` and replaced by ``***`` in anything that is
logged or raised.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

REDACTED = "***"


class CommandResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""


class CommandFailed(RuntimeError):
    """A tool exited non-zero (or could not be started)."""

    def __init__(self, display: str, returncode: int, stderr: str = "") -> None:
        self.display = display
        self.returncode = returncode
        self.stderr = stderr
        tail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        super().__init__(
            f"`{display}` exited with {returncode}" + (f": {tail}" if tail else "")
        )


def redact(args: Sequence[str], secrets: Sequence[str] = ()) -> str:
    """Render *args* as a shell line with every secret value masked."""
    hidden = {s for s in secrets if s}
    masked = []
    for arg in args:
        for secret in hidden:
            if secret in arg:
                arg = arg.replace(secret, REDACTED)
        masked.append(arg)
    return shlex.join(masked)


@runtime_checkable
class CommandRunner(Protocol):
    """Anything that can run an argv and return a ``CommandResult``."""

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        secrets: Sequence[str] = (),
        timeout: float | None = None,
    ) -> CommandResult:
        """Run *args*; raise ``CommandFailed`` on a non-zero exit or timeout."""
        ...


class SubprocessRunner:
    """Runs commands with :func:`subprocess.run`, capturing output.

    ``timeout_seconds`` applies to every command unless a call passes its
    own ``timeout``.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._timeout = timeout_seconds

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        secrets: Sequence[str] = (),
        timeout: float | None = None,
    ) -> CommandResult:
        display = redact(args, secrets)
        logger.debug("run: %s", display)
        try:
            proc = subprocess.run(
                list(args),
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout if timeout is not None else self._timeout,
            )
        except FileNotFoundError as exc:
            raise CommandFailed(display, 127, str(exc)) from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandFailed(display, -1, f"timed out after {exc.timeout}s") from exc

        if proc.returncode != 0:
            stderr = proc.stderr or ""
            for secret in secrets:
                if secret:
                    stderr = stderr.replace(secret, REDACTED)
            raise CommandFailed(display, proc.returncode, stderr)

        return CommandResult(
            args=list(args),
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
