"""Release orchestrator: the central coordinator for a tagged release.

The Orchestrator validates the tag, then drives each platform pipeline
through its phases with a ``JobMachine`` so every status change lands in
the ``RunLedger``.  It is the single place where a ``ReleaseError`` turns
into a terminal ``PipelineResult`` (``success`` or ``failed:<phase>``).

Platforms run in parallel worker threads and share nothing mutable; one
platform's failure never touches another's job.
"""

from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from releaseforge.config import ReleaseSettings
from releaseforge.core.errors import InvalidTag, PipelineCancelled, ReleaseError
from releaseforge.core.job_machine import JobMachine
from releaseforge.core.production_guard import enforce_release_constraints
from releaseforge.core.run_ledger import RunLedger
from releaseforge.credentials.store import CredentialStore
from releaseforge.models.jobs import (
    PHASE_RESULT_STATUS,
    JobStatus,
    Phase,
    PipelineResult,
    PlatformId,
    PlatformJob,
)
from releaseforge.models.ledger import LedgerEntry
from releaseforge.models.tags import ReleaseTag
from releaseforge.pipelines.base import PlatformPipeline
from releaseforge.pipelines.registry import build_default_pipelines

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation, observed between phases only."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def run_id_for(tag: str, platform: PlatformId) -> str:
    return f"{tag}/{platform.value}"


class Orchestrator:
    """Runs release pipelines for a tag.

    Parameters
    ----------
    pipelines:
        One pipeline per platform.
    settings:
        Release configuration (work dir, concurrency cap).
    ledger:
        Run Ledger receiving every transition.  ``None`` disables recording.
    cancel_token:
        Shared token; cancelling it stops every platform at its next phase
        boundary.
    """

    def __init__(
        self,
        pipelines: Mapping[PlatformId, PlatformPipeline],
        *,
        settings: ReleaseSettings,
        ledger: RunLedger | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self.pipelines = dict(pipelines)
        self.settings = settings
        self.ledger = ledger
        self.cancel_token = cancel_token or CancellationToken()

    @classmethod
    def from_settings(
        cls,
        config: ReleaseSettings,
        *,
        credentials: CredentialStore | None = None,
    ) -> Orchestrator:
        """Build the production wiring; fails hard on unsafe production config."""
        enforce_release_constraints(config)
        pipelines = build_default_pipelines(config, credentials=credentials)
        return cls(pipelines, settings=config, ledger=RunLedger(config.ledger_path))

    # ------------------------------------------------------------------
    # Single platform
    # ------------------------------------------------------------------

    def workdir_for(self, tag: str, platform: PlatformId) -> Path:
        return self.settings.work_dir / tag / platform.value

    def run(self, tag: str | ReleaseTag, platform: PlatformId | str) -> PipelineResult:
        """Run every phase for one platform and return its terminal result.

        Never raises for pipeline failures; they are reported as
        ``failed:<phase>``.  An invalid tag fails at ``validate`` before any
        phase executes.
        """
        platform = PlatformId(platform)
        machine = JobMachine(self.ledger)

        try:
            release_tag = tag if isinstance(tag, ReleaseTag) else ReleaseTag.parse(tag)
        except InvalidTag as exc:
            logger.error("%s: %s", platform.value, exc)
            job = self._new_job(str(tag).strip(), platform, [])
            machine.fail(job, Phase.VALIDATE, str(exc))
            return self._result(job, error=str(exc))

        pipeline = self.pipelines.get(platform)
        if pipeline is None:
            job = self._new_job(str(release_tag), platform, [])
            reason = f"no pipeline registered for {platform.value}"
            machine.fail(job, Phase.VALIDATE, reason)
            return self._result(job, error=reason)

        job = self._new_job(str(release_tag), platform, pipeline.targets)
        logger.info("%s: starting %s", job.run_id, " -> ".join(p.value for p in pipeline.phases()))

        for phase in pipeline.phases():
            if self.cancel_token.cancelled:
                exc = PipelineCancelled(f"{job.run_id} cancelled before {phase.value}")
                logger.warning("%s", exc)
                machine.fail(job, phase, str(exc))
                return self._result(job, error=str(exc))

            try:
                if phase is Phase.BUILD:
                    self._fresh_workdir(job.workdir)
                if phase is Phase.NOTARIZE:
                    machine.transition(job, JobStatus.NOTARIZING, phase)
                pipeline.run_phase(phase, job, release_tag)
                machine.transition(
                    job,
                    PHASE_RESULT_STATUS[phase],
                    phase,
                    detail=job.artifact.filename if job.artifact else "",
                )
            except ReleaseError as exc:
                logger.error("%s: %s failed: %s", job.run_id, phase.value, exc)
                machine.fail(job, phase, str(exc))
                return self._result(job, error=str(exc))
            except Exception as exc:
                logger.exception("%s: unexpected error in %s", job.run_id, phase.value)
                machine.fail(job, phase, f"{type(exc).__name__}: {exc}")
                return self._result(job, error=f"{type(exc).__name__}: {exc}")

        logger.info("%s: published %s", job.run_id, job.published_key)
        return self._result(job)

    # ------------------------------------------------------------------
    # All platforms
    # ------------------------------------------------------------------

    def run_all(
        self,
        tag: str | ReleaseTag,
        platforms: Iterable[PlatformId | str] | None = None,
    ) -> dict[PlatformId, PipelineResult]:
        """Run the selected platforms (default: all registered) in parallel.

        A platform named more than once runs once; two workers on one
        ``(tag, platform)`` would share its workdir and ledger chain.
        """
        selected = (
            list(dict.fromkeys(PlatformId(p) for p in platforms))
            if platforms is not None
            else list(self.pipelines)
        )
        if not selected:
            return {}
        workers = max(1, min(self.settings.max_parallel_platforms, len(selected)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="release") as pool:
            futures = {p: pool.submit(self.run, tag, p) for p in selected}
            return {p: f.result() for p, f in futures.items()}

    # ------------------------------------------------------------------
    # Ledger queries
    # ------------------------------------------------------------------

    def history(self, tag: str, platform: PlatformId | str) -> list[LedgerEntry]:
        if self.ledger is None:
            return []
        return self.ledger.get_run_entries(run_id_for(tag, PlatformId(platform)))

    def verify_chain(self, tag: str, platform: PlatformId | str) -> bool:
        """Verify the ledger chain for ``<tag>/<platform>``."""
        if self.ledger is None:
            return True
        return self.ledger.verify_chain(run_id_for(tag, PlatformId(platform)))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _new_job(self, tag: str, platform: PlatformId, targets: list[str]) -> PlatformJob:
        return PlatformJob(
            run_id=run_id_for(tag, platform),
            tag=tag,
            platform=platform,
            targets=targets,
            workdir=self.workdir_for(tag, platform),
        )

    @staticmethod
    def _fresh_workdir(workdir: Path) -> None:
        if workdir.exists():
            shutil.rmtree(workdir)
        workdir.mkdir(parents=True)

    @staticmethod
    def _result(job: PlatformJob, *, error: str = "") -> PipelineResult:
        return PipelineResult(
            tag=job.tag,
            platform=job.platform,
            failed_phase=job.failed_phase,
            error=error,
            published_key=job.published_key,
            artifact_sha256=job.artifact.sha256 if job.artifact else "",
            history=list(job.history),
        )
