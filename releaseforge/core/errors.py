"""Release error taxonomy.

Every failure a phase can raise derives from ``ReleaseError``.  The
orchestrator is the only place that turns one into a terminal
``PipelineResult``; everywhere else errors propagate.

``retryable`` marks the errors that are recovered locally (polling and
upload loops).  All others are fatal to their own platform's job.
"""

from __future__ import annotations

from typing import ClassVar


class ReleaseError(RuntimeError):
    """Base class for all release pipeline errors."""

    retryable: ClassVar[bool] = False
    # Phase that raises this error, when it is tied to one.
    phase: ClassVar[str] = ""


class InvalidTag(ReleaseError):
    """The trigger tag does not match ``v<major>.<minor>.<patch>[suffix]``."""

    phase: ClassVar[str] = "validate"

    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__(
            f"Invalid release tag {raw!r}: expected v<major>.<minor>.<patch>[-suffix]"
        )


class BuildError(ReleaseError):
    """The toolchain failed to produce a binary."""

    phase: ClassVar[str] = "build"


class PackagingFailed(ReleaseError):
    """The installer container could not be assembled."""

    phase: ClassVar[str] = "package"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class SigningFailed(ReleaseError):
    """Signing failed, usually a bad or expired credential."""

    phase: ClassVar[str] = "sign"


class NotarizationRejected(ReleaseError):
    """The notary authority returned an explicit rejection."""

    phase: ClassVar[str] = "notarize"

    def __init__(
        self, submission_id: str, message: str = "", log: str = ""
    ) -> None:
        self.submission_id = submission_id
        self.message = message
        self.log = log
        detail = f": {message}" if message else ""
        super().__init__(f"Notarization {submission_id} rejected{detail}")


class NotarizationTimeout(ReleaseError):
    """No terminal verdict arrived before the poll deadline."""

    phase: ClassVar[str] = "notarize"

    def __init__(self, submission_id: str, waited_seconds: float) -> None:
        self.submission_id = submission_id
        self.waited_seconds = waited_seconds
        super().__init__(
            f"Notarization {submission_id} had no verdict after "
            f"{waited_seconds:.0f}s"
        )


class NotaryCredentialsRejected(ReleaseError):
    """The notary refused the Apple ID credentials; not retried."""

    phase: ClassVar[str] = "notarize"


class SubmissionUnconfirmed(ReleaseError):
    """The upload finished but its submission id is unknown.

    Resubmitting could leave an orphaned submission at the notary, so this
    is fatal rather than retried.
    """

    phase: ClassVar[str] = "notarize"


class TransientNetworkError(ReleaseError):
    """A network hiccup; retried locally and never a verdict on its own."""

    retryable: ClassVar[bool] = True


class UploadError(ReleaseError):
    """The release store refused or failed an upload."""

    retryable: ClassVar[bool] = True
    phase: ClassVar[str] = "publish"


class CredentialUnavailable(ReleaseError):
    """A required secret is not provisioned in the environment."""

    def __init__(self, variable: str) -> None:
        self.variable = variable
        super().__init__(f"Credential {variable} is not set in the environment")


class PublishNotAllowed(ReleaseError):
    """Publish was attempted before the artifact was signed or notarized."""

    phase: ClassVar[str] = "publish"


class PipelineCancelled(ReleaseError):
    """The run was cancelled between phases."""


class InvalidTransitionError(ReleaseError):
    """A job or notarization state change is not in the transition table."""


class StapleFailed(ReleaseError):
    """An accepted verdict could not be embedded into the artifact."""

    phase: ClassVar[str] = "notarize"

