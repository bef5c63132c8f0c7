"""Notary service interface and the ``notarytool`` implementation.

Credentials cross this boundary exactly once per submission:
``NotarytoolService.submit`` stores them as a notarytool keychain profile
inside the session's ephemeral keychain, and every later call (``status``,
``fetch_log``) refers to the profile by name.  The keychain, and with it
the profile, is deleted when the session closes.

Status strings reported by notarytool::

    "In Progress"         -> pending
    "Accepted"            -> accepted
    "Invalid", "Rejected" -> rejected
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Protocol, runtime_checkable

from releaseforge.core.commands import CommandFailed, CommandRunner
from releaseforge.core.errors import (
    NotaryCredentialsRejected,
    StapleFailed,
    SubmissionUnconfirmed,
    TransientNetworkError,
)
from releaseforge.credentials.keychain import EphemeralKeychain
from releaseforge.models.credentials import NotarizationCredential
from releaseforge.models.notarization import Verdict, VerdictStatus

logger = logging.getLogger(__name__)

_STATUS_MAP: dict[str, VerdictStatus] = {
    "in progress": VerdictStatus.PENDING,
    "accepted": VerdictStatus.ACCEPTED,
    "invalid": VerdictStatus.REJECTED,
    "rejected": VerdictStatus.REJECTED,
}


@runtime_checkable
class NotaryService(Protocol):
    """External verification authority."""

    def session(self) -> AbstractContextManager[None]:
        """Scope for one artifact's submit/poll/staple sequence."""
        ...

    def submit(self, path: Path, credential: NotarizationCredential) -> str:
        """Upload *path*; return the submission id.  May raise ``TransientNetworkError``."""
        ...

    def status(self, submission_id: str, *, timeout: float | None = None) -> Verdict:
        """Current verdict.  May raise ``TransientNetworkError``.

        A call that outlives *timeout* seconds is abandoned and reported
        as ``TransientNetworkError``.
        """
        ...

    def fetch_log(self, submission_id: str, *, timeout: float | None = None) -> str:
        """Developer log for a finished submission."""
        ...

    def staple(self, path: Path) -> None:
        """Embed the accepted ticket into *path*.  Raises ``StapleFailed``."""
        ...


class NotarytoolService:
    """Drives ``xcrun notarytool`` and ``xcrun stapler``.

    Parameters
    ----------
    runner:
        Executes xcrun.
    keychain_dir:
        Where the session keychain is created.
    """

    def __init__(self, runner: CommandRunner, *, keychain_dir: Path | None = None) -> None:
        self._runner = runner
        self._keychain_dir = keychain_dir
        self._keychain: EphemeralKeychain | None = None
        self._profile = ""

    @contextmanager
    def session(self) -> Iterator[None]:
        with EphemeralKeychain(self._runner, self._keychain_dir) as keychain:
            self._keychain = keychain
            self._profile = f"releaseforge-{uuid.uuid4().hex[:8]}"
            try:
                yield
            finally:
                self._keychain = None
                self._profile = ""

    def _profile_args(self) -> list[str]:
        if self._keychain is None:
            raise RuntimeError("NotarytoolService used outside of session()")
        return ["--keychain-profile", self._profile, "--keychain", str(self._keychain.path)]

    def _json(self, args: list[str], timeout: float | None = None) -> dict:
        try:
            result = self._runner.run(args, timeout=timeout)
        except CommandFailed as exc:
            raise TransientNetworkError(str(exc)) from exc
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise TransientNetworkError(f"unparseable notarytool output: {exc}") from exc

    # ------------------------------------------------------------------
    # NotaryService
    # ------------------------------------------------------------------

    def submit(self, path: Path, credential: NotarizationCredential) -> str:
        profile_args = self._profile_args()
        password = credential.password.get_secret_value()
        try:
            self._runner.run(
                [
                    "xcrun", "notarytool", "store-credentials", self._profile,
                    "--apple-id", credential.apple_id,
                    "--password", password,
                    "--team-id", credential.team_id,
                    "--keychain", profile_args[-1],
                ],
                secrets=[password],
            )
        except CommandFailed as exc:
            raise NotaryCredentialsRejected(
                f"notarytool could not store credentials for {credential.apple_id}: {exc}"
            ) from exc

        # A non-zero exit means the upload was not accepted and may be retried.
        # Output without an id after a clean exit is not retried.
        try:
            result = self._runner.run(
                [
                    "xcrun", "notarytool", "submit", str(path),
                    *profile_args,
                    "--output-format", "json",
                ]
            )
        except CommandFailed as exc:
            raise TransientNetworkError(str(exc)) from exc
        try:
            submission_id = str(json.loads(result.stdout).get("id") or "")
        except (json.JSONDecodeError, AttributeError):
            submission_id = ""
        if not submission_id:
            raise SubmissionUnconfirmed(
                f"notarytool submit of {path.name} exited cleanly without a "
                f"submission id: {result.stdout.strip()[:200]!r}"
            )
        logger.info("Submitted %s for notarization: %s", path.name, submission_id)
        return submission_id

    def status(self, submission_id: str, *, timeout: float | None = None) -> Verdict:
        data = self._json(
            [
                "xcrun", "notarytool", "info", submission_id,
                *self._profile_args(),
                "--output-format", "json",
            ],
            timeout=timeout,
        )
        raw = str(data.get("status", "")).strip().lower()
        status = _STATUS_MAP.get(raw)
        if status is None:
            raise TransientNetworkError(f"unknown notarization status {data.get('status')!r}")
        return Verdict(
            submission_id=submission_id,
            status=status,
            message=str(data.get("message", "")),
        )

    def fetch_log(self, submission_id: str, *, timeout: float | None = None) -> str:
        try:
            result = self._runner.run(
                ["xcrun", "notarytool", "log", submission_id, *self._profile_args()],
                timeout=timeout,
            )
        except CommandFailed as exc:
            raise TransientNetworkError(str(exc)) from exc
        return result.stdout

    def staple(self, path: Path) -> None:
        try:
            self._runner.run(["xcrun", "stapler", "staple", str(path)])
            self._runner.run(["xcrun", "stapler", "validate", str(path)])
        except CommandFailed as exc:
            raise StapleFailed(str(exc)) from exc
