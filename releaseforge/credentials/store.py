"""Environment-backed credential store.

Secrets are provisioned by CI as plain environment variables (the names
below are the ones the release workflow exports).  Nothing is cached: each
``get_*`` call reads the environment again and returns a fresh model, so a
phase holds a credential only for as long as it keeps the reference.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from pydantic import SecretStr

from releaseforge.core.errors import CredentialUnavailable
from releaseforge.models.credentials import NotarizationCredential, SigningCredential
from releaseforge.models.jobs import PlatformId

logger = logging.getLogger(__name__)

# platform -> (certificate, certificate password, identity)
SIGNING_VARIABLES: dict[PlatformId, tuple[str, str, str]] = {
    PlatformId.MACOS: ("MACOS_CERTIFICATE", "MACOS_CERTIFICATE_PWD", "MACOS_SIGNING_IDENTITY"),
    PlatformId.WINDOWS: ("WINDOWS_CERTIFICATE", "WINDOWS_CERTIFICATE_PWD", ""),
}

NOTARIZE_USERNAME = "NOTARIZE_USERNAME"
NOTARIZE_PASSWORD = "NOTARIZE_PASSWORD"
NOTARIZE_TEAM_ID = "NOTARIZE_TEAM_ID"
GITHUB_TOKEN = "GITHUB_TOKEN"

DEFAULT_MACOS_IDENTITY = "Developer ID Application"


class CredentialStore:
    """Read-only view over the secrets in the process environment.

    Parameters
    ----------
    environ:
        Mapping to read from.  Defaults to ``os.environ``.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def _require(self, name: str) -> str:
        value = self._environ.get(name, "")
        if not value:
            raise CredentialUnavailable(name)
        return value

    def get_signing_credential(self, platform: PlatformId) -> SigningCredential:
        """Return the code-signing certificate for *platform*."""
        cert_var, pwd_var, identity_var = SIGNING_VARIABLES[platform]
        identity = ""
        if identity_var:
            identity = self._environ.get(identity_var) or DEFAULT_MACOS_IDENTITY
        credential = SigningCredential(
            certificate_b64=SecretStr(self._require(cert_var)),
            password=SecretStr(self._require(pwd_var)),
            identity=identity,
        )
        logger.debug("Checked out signing credential for %s", platform.value)
        return credential

    def get_notarization_credential(self) -> NotarizationCredential:
        """Return the notary service identity."""
        credential = NotarizationCredential(
            apple_id=self._require(NOTARIZE_USERNAME),
            password=SecretStr(self._require(NOTARIZE_PASSWORD)),
            team_id=self._require(NOTARIZE_TEAM_ID),
        )
        logger.debug("Checked out notarization credential")
        return credential

    def get_release_token(self) -> SecretStr:
        """Return the token used by the GitHub release store."""
        return SecretStr(self._require(GITHUB_TOKEN))
