"""Credential models.  Secret fields are ``SecretStr`` so they never render."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, SecretStr


class SigningCredential(BaseModel):
    """A PKCS#12 signing certificate (base64) and its import password."""

    model_config = ConfigDict(frozen=True)

    certificate_b64: SecretStr
    password: SecretStr
    identity: str = ""


class NotarizationCredential(BaseModel):
    """Notary service identity: account, app-specific password, team."""

    model_config = ConfigDict(frozen=True)

    apple_id: str
    password: SecretStr
    team_id: str
