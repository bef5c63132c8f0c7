"""Abstract packager.

A packager wraps compiled binaries into one platform-native installer
container and returns it as an ``Artifact``.  Subclasses implement
``_assemble()``; ``package()`` turns any tool or filesystem error into
``PackagingFailed`` and checks that the container actually exists.
Packaging errors are deterministic, so nothing here retries.
"""

from __future__ import annotations

import abc
import logging
from pathlib import Path
from typing import ClassVar, final

from releaseforge.core.commands import CommandFailed, CommandRunner
from releaseforge.core.errors import PackagingFailed
from releaseforge.models.artifacts import Artifact

logger = logging.getLogger(__name__)


class Packager(abc.ABC):
    """Base for installer packagers.

    Parameters
    ----------
    runner:
        Executes the packaging tools.
    product_name:
        Display name used for the container file and volume.
    """

    extension: ClassVar[str]

    def __init__(self, runner: CommandRunner, product_name: str) -> None:
        self._runner = runner
        self.product_name = product_name

    @abc.abstractmethod
    def _assemble(self, binaries: list[Path], workdir: Path, version: str) -> Path:
        """Build the container inside *workdir* and return its path."""
        ...

    @final
    def package(self, binaries: list[Path], workdir: Path, version: str) -> Artifact:
        """Package *binaries* for release *version* (``MAJOR.MINOR.PATCH``)."""
        if not binaries:
            raise PackagingFailed("no binaries to package")
        workdir.mkdir(parents=True, exist_ok=True)
        try:
            output = self._assemble(binaries, workdir, version)
        except CommandFailed as exc:
            raise PackagingFailed(str(exc)) from exc
        except OSError as exc:
            raise PackagingFailed(f"{type(exc).__name__}: {exc}") from exc

        if not output.is_file():
            raise PackagingFailed(f"packager reported success but {output} is missing")
        artifact = Artifact.from_path(output)
        logger.info(
            "%s: packaged %s (%d bytes, sha256=%s)",
            type(self).__name__,
            artifact.filename,
            artifact.size_bytes,
            artifact.sha256[:12],
        )
        return artifact

    def __repr__(self) -> str:
        return f"<{type(self).__name__} product={self.product_name!r}>"
