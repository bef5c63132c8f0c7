"""``codesign`` signing from an ephemeral keychain.

On macOS two things are signed with the Developer ID identity and the
hardened runtime: the ``.app`` bundle (which seals its executable) before
it goes into the disk image, and then the disk image itself.
"""

from __future__ import annotations

import binascii
import logging
from pathlib import Path

from releaseforge.core.commands import CommandFailed, CommandRunner
from releaseforge.core.errors import SigningFailed
from releaseforge.credentials.keychain import EphemeralKeychain
from releaseforge.models.artifacts import Artifact
from releaseforge.models.credentials import SigningCredential
from releaseforge.signing.base import Signer

logger = logging.getLogger(__name__)


class CodesignSigner(Signer):
    """Imports the certificate into a throwaway keychain, signs, verifies.

    The keychain is deleted when signing finishes, whether or not it
    succeeded.

    Parameters
    ----------
    keychain_dir:
        Where the ephemeral keychain file is created.
    """

    def __init__(self, runner: CommandRunner, *, keychain_dir: Path | None = None) -> None:
        super().__init__(runner)
        self._keychain_dir = keychain_dir

    def _codesign(self, keychain: EphemeralKeychain, credential: SigningCredential, target: Path) -> None:
        self._runner.run(
            [
                "codesign",
                "--force",
                "--options", "runtime",
                "--timestamp",
                "--keychain", str(keychain.path),
                "--sign", credential.identity,
                str(target),
            ]
        )

    def _sign(self, artifact: Artifact, credential: SigningCredential) -> None:
        with EphemeralKeychain(self._runner, self._keychain_dir) as keychain:
            keychain.import_certificate(credential)
            self._codesign(keychain, credential, artifact.path)
            self._runner.run(
                ["codesign", "--verify", "--strict", "--verbose=2", str(artifact.path)]
            )

    def sign_bundle(self, bundle: Path, credential: SigningCredential) -> None:
        """Sign an ``.app`` bundle in place and verify its nested code.

        Raises
        ------
        SigningFailed
            The bundle is missing, the certificate cannot be imported, or
            codesign rejects the bundle.
        """
        if not bundle.is_dir():
            raise SigningFailed(f"bundle to sign is missing: {bundle}")
        try:
            with EphemeralKeychain(self._runner, self._keychain_dir) as keychain:
                keychain.import_certificate(credential)
                self._codesign(keychain, credential, bundle)
                self._runner.run(
                    ["codesign", "--verify", "--deep", "--strict", "--verbose=2", str(bundle)]
                )
        except CommandFailed as exc:
            raise SigningFailed(str(exc)) from exc
        except (OSError, binascii.Error) as exc:
            raise SigningFailed(f"{type(exc).__name__}: {exc}") from exc
        logger.info("CodesignSigner: signed bundle %s", bundle.name)
