"""Job status state machine.

Enforces:
- Valid status transitions only (``VALID_TRANSITIONS`` table)
- Every transition recorded in the Run Ledger
"""

from __future__ import annotations

import logging

from releaseforge.core.errors import InvalidTransitionError
from releaseforge.core.run_ledger import RunLedger
from releaseforge.models.jobs import VALID_TRANSITIONS, JobStatus, Phase, PlatformJob
from releaseforge.models.ledger import LedgerEntry

logger = logging.getLogger(__name__)


class JobMachine:
    """Applies status transitions to a ``PlatformJob``.

    Parameters
    ----------
    ledger:
        Optional Run Ledger; when given, every transition is appended.
    """

    def __init__(self, ledger: RunLedger | None = None) -> None:
        self._ledger = ledger

    def transition(
        self,
        job: PlatformJob,
        target: JobStatus,
        phase: Phase,
        *,
        detail: str = "",
    ) -> LedgerEntry | None:
        """Move *job* to *target*, raising ``InvalidTransitionError`` if not allowed."""
        current = job.status
        allowed = VALID_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {job.run_id} from {current.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        job.status = target
        job.history = [*job.history, target]
        logger.info("%s: %s -> %s (%s)", job.run_id, current.value, target.value, phase.value)

        if self._ledger is None:
            return None
        return self._ledger.append(
            LedgerEntry(
                run_id=job.run_id,
                platform=job.platform.value,
                phase=phase.value,
                state_transition=f"{current.value}->{target.value}",
                artifact_sha256=job.artifact.sha256 if job.artifact else "",
                detail=detail,
            )
        )

    def fail(self, job: PlatformJob, phase: Phase, reason: str) -> LedgerEntry | None:
        """Mark *job* failed at *phase*.  No-op if the job is already terminal."""
        if job.status in (JobStatus.FAILED, JobStatus.PUBLISHED):
            return None
        job.failed_phase = phase
        return self.transition(job, JobStatus.FAILED, phase, detail=reason)
