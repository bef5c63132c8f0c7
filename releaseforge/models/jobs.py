"""Per-platform job state and the phase/status transition table."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from releaseforge.models.artifacts import Artifact, ReleaseKey


class PlatformId(str, Enum):
    """Supported release platforms."""

    WINDOWS = "windows"
    MACOS = "macos"

    @property
    def is_gatekeeper(self) -> bool:
        """Whether the OS refuses to run the artifact unless it is notarized."""
        return self is PlatformId.MACOS


class Phase(str, Enum):
    """Pipeline phases, in execution order."""

    VALIDATE = "validate"
    BUILD = "build"
    PACKAGE = "package"
    SIGN = "sign"
    NOTARIZE = "notarize"
    RENAME = "rename"
    PUBLISH = "publish"


class JobStatus(str, Enum):
    """Lifecycle of a ``PlatformJob``."""

    PENDING = "pending"
    BUILT = "built"
    PACKAGED = "packaged"
    SIGNED = "signed"
    NOTARIZING = "notarizing"
    NOTARIZED = "notarized"
    RENAMED = "renamed"
    PUBLISHED = "published"
    FAILED = "failed"


# Enforced by JobMachine.  PUBLISHED and FAILED are terminal.
VALID_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.BUILT, JobStatus.FAILED},
    JobStatus.BUILT: {JobStatus.PACKAGED, JobStatus.FAILED},
    JobStatus.PACKAGED: {JobStatus.SIGNED, JobStatus.FAILED},
    JobStatus.SIGNED: {JobStatus.NOTARIZING, JobStatus.RENAMED, JobStatus.FAILED},
    JobStatus.NOTARIZING: {JobStatus.NOTARIZED, JobStatus.FAILED},
    JobStatus.NOTARIZED: {JobStatus.RENAMED, JobStatus.FAILED},
    JobStatus.RENAMED: {JobStatus.PUBLISHED, JobStatus.FAILED},
    JobStatus.PUBLISHED: set(),
    JobStatus.FAILED: set(),
}

# Status a phase leaves the job in when it completes.
PHASE_RESULT_STATUS: dict[Phase, JobStatus] = {
    Phase.BUILD: JobStatus.BUILT,
    Phase.PACKAGE: JobStatus.PACKAGED,
    Phase.SIGN: JobStatus.SIGNED,
    Phase.NOTARIZE: JobStatus.NOTARIZED,
    Phase.RENAME: JobStatus.RENAMED,
    Phase.PUBLISH: JobStatus.PUBLISHED,
}


class PlatformJob(BaseModel):
    """Mutable per-platform pipeline state, owned by a single worker.

    ``history`` lists every status the job has been in, oldest first; it is
    what the publish gate inspects.
    """

    model_config = ConfigDict(validate_assignment=True)

    run_id: str
    tag: str
    platform: PlatformId
    targets: list[str]
    workdir: Path
    status: JobStatus = JobStatus.PENDING
    binaries: list[Path] = Field(default_factory=list)
    artifact: Artifact | None = None
    published_key: ReleaseKey | None = None
    failed_phase: Phase | None = None
    history: list[JobStatus] = Field(default_factory=lambda: [JobStatus.PENDING])

    @property
    def publish_ready(self) -> bool:
        """Signed (or notarized, on the gatekeeper platform) and not failed."""
        required = (
            JobStatus.NOTARIZED if self.platform.is_gatekeeper else JobStatus.SIGNED
        )
        return required in self.history and self.status is not JobStatus.FAILED


class PipelineResult(BaseModel):
    """Terminal outcome of one platform's run: ``success`` or ``failed:<phase>``."""

    model_config = ConfigDict(frozen=True)

    tag: str
    platform: PlatformId
    failed_phase: Phase | None = None
    error: str = ""
    published_key: ReleaseKey | None = None
    artifact_sha256: str = ""
    history: list[JobStatus] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.failed_phase is None

    @property
    def status(self) -> str:
        if self.failed_phase is None:
            return "success"
        return f"failed:{self.failed_phase.value}"
