"""releaseforge data models — pydantic v2."""

from releaseforge.models.artifacts import Artifact, ReleaseKey
from releaseforge.models.credentials import NotarizationCredential, SigningCredential
from releaseforge.models.jobs import (
    PHASE_RESULT_STATUS,
    VALID_TRANSITIONS,
    JobStatus,
    Phase,
    PipelineResult,
    PlatformId,
    PlatformJob,
)
from releaseforge.models.ledger import LedgerEntry
from releaseforge.models.notarization import (
    NOTARY_TRANSITIONS,
    NotarizationTicket,
    NotaryState,
    Verdict,
    VerdictStatus,
)
from releaseforge.models.tags import TAG_PATTERN, ReleaseTag

__all__ = [
    # tags
    "ReleaseTag",
    "TAG_PATTERN",
    # artifacts
    "Artifact",
    "ReleaseKey",
    # jobs
    "PlatformId",
    "Phase",
    "JobStatus",
    "PlatformJob",
    "PipelineResult",
    "VALID_TRANSITIONS",
    "PHASE_RESULT_STATUS",
    # notarization
    "NotaryState",
    "NotarizationTicket",
    "Verdict",
    "VerdictStatus",
    "NOTARY_TRANSITIONS",
    # credentials
    "SigningCredential",
    "NotarizationCredential",
    # ledger
    "LedgerEntry",
]
