"""Toolchain driver interface and the cargo implementation.

The compiler itself is an external collaborator: the pipeline only needs
``build(target) -> Path`` to succeed or raise ``BuildError``.  Build
failures are treated as deterministic and never retried.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from releaseforge.core.commands import CommandFailed, CommandRunner
from releaseforge.core.errors import BuildError

logger = logging.getLogger(__name__)


@runtime_checkable
class ToolchainDriver(Protocol):
    """Compiles the project for one target triple."""

    def build(self, target: str) -> Path:
        """Return the path of the built binary or raise ``BuildError``."""
        ...


class CargoDriver:
    """Builds with ``cargo build --release --target <triple>``.

    Parameters
    ----------
    runner:
        Executes cargo.
    project_dir:
        Crate root (contains ``Cargo.toml``).
    binary_name:
        Name of the produced executable, without extension.
    """

    def __init__(self, runner: CommandRunner, project_dir: Path, binary_name: str) -> None:
        self._runner = runner
        self._project_dir = Path(project_dir)
        self._binary_name = binary_name

    def binary_path(self, target: str) -> Path:
        suffix = ".exe" if "windows" in target else ""
        return (
            self._project_dir / "target" / target / "release" / f"{self._binary_name}{suffix}"
        )

    def build(self, target: str) -> Path:
        logger.info("cargo build --release --target %s", target)
        try:
            self._runner.run(
                ["cargo", "build", "--release", "--target", target],
                cwd=self._project_dir,
            )
        except CommandFailed as exc:
            raise BuildError(f"cargo build for {target} failed: {exc}") from exc

        binary = self.binary_path(target)
        if not binary.is_file():
            raise BuildError(f"cargo reported success but {binary} does not exist")
        return binary
