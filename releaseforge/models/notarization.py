"""Notarization ticket and verdict models.

Ticket lifecycle::

    unsubmitted -> submitted -> polling -> accepted -> stapled
                                        -> rejected -> failed
                                        -> timeout  -> failed

``NOTARY_TRANSITIONS`` is the complete table; there is no edge from
``polling`` to ``stapled``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from releaseforge.core.errors import InvalidTransitionError


class NotaryState(str, Enum):
    UNSUBMITTED = "unsubmitted"
    SUBMITTED = "submitted"
    POLLING = "polling"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    TIMEOUT = "timeout"
    STAPLED = "stapled"
    FAILED = "failed"


NOTARY_TRANSITIONS: dict[NotaryState, set[NotaryState]] = {
    NotaryState.UNSUBMITTED: {NotaryState.SUBMITTED},
    NotaryState.SUBMITTED: {NotaryState.POLLING},
    NotaryState.POLLING: {
        NotaryState.ACCEPTED,
        NotaryState.REJECTED,
        NotaryState.TIMEOUT,
    },
    NotaryState.ACCEPTED: {NotaryState.STAPLED, NotaryState.FAILED},
    NotaryState.REJECTED: {NotaryState.FAILED},
    NotaryState.TIMEOUT: {NotaryState.FAILED},
    NotaryState.STAPLED: set(),
    NotaryState.FAILED: set(),
}


class VerdictStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Verdict(BaseModel):
    """One answer from the notary authority for a submission."""

    model_config = ConfigDict(frozen=True)

    submission_id: str
    status: VerdictStatus
    message: str = ""
    log_url: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status is not VerdictStatus.PENDING


class NotarizationTicket(BaseModel):
    """Tracks one submission from upload until stapled or failed.

    ``deadline`` is on the notarizer's monotonic clock, not wall time.
    """

    model_config = ConfigDict(validate_assignment=True)

    submission_id: str
    artifact_sha256: str
    deadline: float
    submitted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    state: NotaryState = NotaryState.SUBMITTED
    polls: int = 0
    transient_errors: int = 0
    states_seen: list[NotaryState] = Field(
        default_factory=lambda: [NotaryState.UNSUBMITTED, NotaryState.SUBMITTED]
    )

    def advance(self, target: NotaryState) -> None:
        """Move to *target*, refusing any edge not in ``NOTARY_TRANSITIONS``."""
        allowed = NOTARY_TRANSITIONS[self.state]
        if target not in allowed:
            raise InvalidTransitionError(
                f"Notarization {self.submission_id}: cannot go from "
                f"{self.state.value} to {target.value}"
            )
        self.state = target
        self.states_seen = [*self.states_seen, target]

    @property
    def is_closed(self) -> bool:
        return self.state in (NotaryState.STAPLED, NotaryState.FAILED)
