"""Abstract signer.

``sign()`` is the only entry point: it delegates to ``_sign()`` and maps
every tool, filesystem, or certificate-decoding error to ``SigningFailed``.
The artifact is mutated in place, so the returned ``Artifact`` carries the
new content hash.
"""

from __future__ import annotations

import abc
import binascii
import logging
from typing import final

from releaseforge.core.commands import CommandFailed, CommandRunner
from releaseforge.core.errors import SigningFailed
from releaseforge.models.artifacts import Artifact
from releaseforge.models.credentials import SigningCredential

logger = logging.getLogger(__name__)


class Signer(abc.ABC):
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    @abc.abstractmethod
    def _sign(self, artifact: Artifact, credential: SigningCredential) -> None:
        """Embed a signature into ``artifact.path``."""
        ...

    @final
    def sign(self, artifact: Artifact, credential: SigningCredential) -> Artifact:
        if not artifact.path.is_file():
            raise SigningFailed(f"artifact to sign is missing: {artifact.path}")
        try:
            self._sign(artifact, credential)
        except CommandFailed as exc:
            raise SigningFailed(str(exc)) from exc
        except (OSError, binascii.Error) as exc:
            raise SigningFailed(f"{type(exc).__name__}: {exc}") from exc

        signed = Artifact.from_path(artifact.path)
        logger.info(
            "%s: signed %s (sha256 %s -> %s)",
            type(self).__name__,
            signed.filename,
            artifact.sha256[:12],
            signed.sha256[:12],
        )
        return signed
