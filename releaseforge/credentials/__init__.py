"""Credential access: environment-backed store and ephemeral keychains."""

from releaseforge.credentials.keychain import EphemeralKeychain
from releaseforge.credentials.store import CredentialStore

__all__ = ["CredentialStore", "EphemeralKeychain"]
