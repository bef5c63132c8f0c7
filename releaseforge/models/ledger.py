"""Run Ledger entry model (append-only, hash-chained).

One entry per job status transition.  Entries for a run are chained by
``previous_entry_hash``, so a rewritten history is detectable.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class LedgerEntry(BaseModel):
    """A single sealed status transition for a ``<tag>/<platform>`` run."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    platform: str
    phase: str
    state_transition: str  # "from->to", e.g. "signed->notarizing"
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    artifact_sha256: str = ""
    detail: str = ""
    previous_entry_hash: str = ""
    entry_hash: str = ""
