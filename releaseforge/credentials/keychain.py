"""Ephemeral, process-scoped macOS keychain.

Signing material and notary profiles are imported into a keychain that
exists only inside a ``with`` block.  ``__exit__`` always deletes it, on
success and on every failure path, and puts the user's keychain search
list back the way it was, so nothing carries over to the next run on a
reused build host.
"""

from __future__ import annotations

import base64
import logging
import secrets
import tempfile
import uuid
from pathlib import Path

from releaseforge.core.commands import CommandFailed, CommandRunner
from releaseforge.models.credentials import SigningCredential

logger = logging.getLogger(__name__)

# Apps allowed to use imported keys without a UI prompt.
TRUSTED_TOOLS: tuple[str, ...] = ("/usr/bin/codesign", "/usr/bin/productsign")


class EphemeralKeychain:
    """A throwaway keychain created on enter and deleted on exit.

    Parameters
    ----------
    runner:
        Executes ``security`` commands.
    directory:
        Where the keychain file lives.  Defaults to the system temp dir.
    """

    def __init__(self, runner: CommandRunner, directory: Path | None = None) -> None:
        self._runner = runner
        base = Path(directory or tempfile.gettempdir())
        self.path = base / f"releaseforge-{uuid.uuid4().hex[:12]}.keychain-db"
        self._password = secrets.token_urlsafe(24)
        self._created = False
        self._prior_search_list: list[str] | None = None

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> EphemeralKeychain:
        try:
            self.create()
        except BaseException:
            self._discard()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.delete()
        else:
            self._discard()

    def _discard(self) -> None:
        # Cleanup while another error propagates; delete() has logged any
        # failure and that error must stay the one raised.
        try:
            self.delete()
        except CommandFailed:
            pass

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        kc = str(self.path)
        pw = self._password
        # Captured first: create-keychain itself may add to the search list.
        self._prior_search_list = self._search_list()
        self._runner.run(["security", "create-keychain", "-p", pw, kc], secrets=[pw])
        self._created = True
        self._runner.run(["security", "set-keychain-settings", "-lut", "21600", kc])
        self._runner.run(["security", "unlock-keychain", "-p", pw, kc], secrets=[pw])
        # Prepend to the user search list so codesign can find the identity.
        self._runner.run(
            ["security", "list-keychains", "-d", "user", "-s", kc, *self._prior_search_list]
        )
        logger.info("Created ephemeral keychain %s", self.path.name)

    def delete(self) -> None:
        """Restore the search list and delete the keychain.

        Both steps are attempted; the first failure is raised afterwards.
        """
        if not self._created:
            return
        failures: list[CommandFailed] = []
        try:
            if self._prior_search_list is not None:
                try:
                    self._runner.run(
                        ["security", "list-keychains", "-d", "user", "-s", *self._prior_search_list]
                    )
                except CommandFailed as exc:
                    logger.error("Could not restore keychain search list: %s", exc)
                    failures.append(exc)
            try:
                self._runner.run(["security", "delete-keychain", str(self.path)])
                logger.info("Deleted ephemeral keychain %s", self.path.name)
            except CommandFailed as exc:
                logger.error("Could not delete keychain %s: %s", self.path.name, exc)
                failures.append(exc)
        finally:
            self._created = False
            self._prior_search_list = None
        if failures:
            raise failures[0]

    def _search_list(self) -> list[str]:
        """The user keychain search list, as printed by ``security list-keychains``."""
        result = self._runner.run(["security", "list-keychains", "-d", "user"])
        return [
            line.strip().strip('"')
            for line in result.stdout.splitlines()
            if line.strip().strip('"')
        ]

    @property
    def active(self) -> bool:
        return self._created

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def import_certificate(self, credential: SigningCredential) -> None:
        """Import a base64 PKCS#12 bundle; the decoded file never outlives the call."""
        cert_password = credential.password.get_secret_value()
        data = base64.b64decode(credential.certificate_b64.get_secret_value())
        with tempfile.TemporaryDirectory(prefix="releaseforge-p12-") as tmp:
            p12 = Path(tmp) / "certificate.p12"
            p12.write_bytes(data)
            p12.chmod(0o600)
            args = ["security", "import", str(p12), "-k", str(self.path), "-P", cert_password]
            for tool in TRUSTED_TOOLS:
                args += ["-T", tool]
            self._runner.run(args, secrets=[cert_password])
        self._runner.run(
            [
                "security", "set-key-partition-list",
                "-S", "apple-tool:,apple:,codesign:",
                "-s", "-k", self._password, str(self.path),
            ],
            secrets=[self._password],
        )
        logger.info("Imported signing certificate into %s", self.path.name)
