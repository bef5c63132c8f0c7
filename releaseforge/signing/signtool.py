"""Installer signing with ``signtool`` (Authenticode, RFC 3161 timestamp)."""

from __future__ import annotations

import base64
import tempfile
from pathlib import Path

from releaseforge.core.commands import CommandRunner
from releaseforge.models.artifacts import Artifact
from releaseforge.models.credentials import SigningCredential
from releaseforge.signing.base import Signer


class SigntoolSigner(Signer):
    """Signs an ``.msi`` with a PFX that exists on disk only during the call.

    Parameters
    ----------
    timestamp_url:
        RFC 3161 timestamp authority.
    signtool:
        Path to ``signtool.exe``; resolved from ``PATH`` by default.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        timestamp_url: str,
        signtool: str = "signtool.exe",
    ) -> None:
        super().__init__(runner)
        self._timestamp_url = timestamp_url
        self._signtool = signtool

    def _sign(self, artifact: Artifact, credential: SigningCredential) -> None:
        password = credential.password.get_secret_value()
        data = base64.b64decode(credential.certificate_b64.get_secret_value())
        with tempfile.TemporaryDirectory(prefix="releaseforge-pfx-") as tmp:
            pfx = Path(tmp) / "certificate.pfx"
            pfx.write_bytes(data)
            self._runner.run(
                [
                    self._signtool, "sign",
                    "/f", str(pfx),
                    "/p", password,
                    "/fd", "SHA256",
                    "/tr", self._timestamp_url,
                    "/td", "SHA256",
                    str(artifact.path),
                ],
                secrets=[password],
            )
        self._runner.run([self._signtool, "verify", "/pa", str(artifact.path)])
