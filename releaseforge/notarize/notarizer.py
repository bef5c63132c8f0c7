"""Notarization driver: submit once, poll with backoff until a verdict, staple.

Polling stops on the first terminal verdict or when the deadline passes,
whichever comes first.  Transient network failures while polling are
counted and absorbed; only the deadline bounds them.  Every status call
is itself bounded by the time left before the deadline, so a hung call
cannot hold the phase open.  A rejection is surfaced immediately and never
retried.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from typing import TypeVar

from releaseforge.core.errors import (
    NotarizationRejected,
    NotarizationTimeout,
    ReleaseError,
    TransientNetworkError,
)
from releaseforge.core.retry import Backoff
from releaseforge.models.artifacts import Artifact
from releaseforge.models.credentials import NotarizationCredential
from releaseforge.models.notarization import (
    NotarizationTicket,
    NotaryState,
    Verdict,
    VerdictStatus,
)
from releaseforge.notarize.service import NotaryService

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# Bound on the developer-log fetch after a rejection.
LOG_FETCH_TIMEOUT_SECONDS = 60.0


class _CallOverran(Exception):
    """A bounded notary call was still running when its time ran out."""


class Notarizer:
    """Runs one artifact through the notary service.

    Parameters
    ----------
    service:
        The notary authority.
    deadline_seconds:
        Upper bound on the time spent waiting for a verdict.
    backoff:
        Delay schedule between status polls.
    submit_attempts:
        Bounded retries for a submit that fails with a transient error.
    sleep, clock:
        Injectable for tests; ``clock`` must be monotonic.
    """

    def __init__(
        self,
        service: NotaryService,
        *,
        deadline_seconds: float,
        backoff: Backoff,
        submit_attempts: int = 3,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._service = service
        self._deadline_seconds = deadline_seconds
        self._backoff = backoff
        self._submit_attempts = max(1, submit_attempts)
        self._sleep = sleep
        self._clock = clock

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def submit(
        self, artifact: Artifact, credential: NotarizationCredential
    ) -> NotarizationTicket:
        """Upload *artifact* and open a ticket whose deadline starts now."""
        delays = self._backoff.delays()
        for attempt in range(1, self._submit_attempts + 1):
            try:
                submission_id = self._service.submit(artifact.path, credential)
                break
            except TransientNetworkError as exc:
                if attempt == self._submit_attempts:
                    raise
                logger.warning(
                    "Notarization submit attempt %d/%d failed: %s",
                    attempt, self._submit_attempts, exc,
                )
                self._sleep(next(delays))

        return NotarizationTicket(
            submission_id=submission_id,
            artifact_sha256=artifact.sha256,
            deadline=self._clock() + self._deadline_seconds,
        )

    def await_verdict(self, ticket: NotarizationTicket) -> Verdict:
        """Poll until accepted, rejected, or the ticket's deadline passes.

        Each status call is given only the time left before the deadline,
        both as the service's own timeout and as a hard wait.  A call still
        running when the deadline passes is abandoned and the ticket times
        out.

        Raises
        ------
        NotarizationRejected
            The service rejected the submission.  The developer log is
            attached when it can be fetched.
        NotarizationTimeout
            No terminal verdict arrived before the deadline.
        """
        ticket.advance(NotaryState.POLLING)
        started = ticket.deadline - self._deadline_seconds
        delays = self._backoff.delays()
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notary-poll")

        try:
            while True:
                remaining = ticket.deadline - self._clock()
                if remaining <= 0:
                    raise self._expire(ticket, started)

                verdict: Verdict | None = None
                ticket.polls += 1
                try:
                    verdict = self._bounded(
                        pool, self._service.status, ticket.submission_id, remaining
                    )
                except _CallOverran:
                    logger.warning(
                        "Notarization %s: status call still running at the deadline",
                        ticket.submission_id,
                    )
                    raise self._expire(ticket, started) from None
                except TransientNetworkError as exc:
                    ticket.transient_errors += 1
                    logger.warning(
                        "Notarization %s: transient poll error (%d so far): %s",
                        ticket.submission_id, ticket.transient_errors, exc,
                    )

                if verdict is not None and verdict.status is VerdictStatus.ACCEPTED:
                    ticket.advance(NotaryState.ACCEPTED)
                    logger.info(
                        "Notarization %s accepted after %d polls",
                        ticket.submission_id, ticket.polls,
                    )
                    return verdict

                if verdict is not None and verdict.status is VerdictStatus.REJECTED:
                    ticket.advance(NotaryState.REJECTED)
                    ticket.advance(NotaryState.FAILED)
                    log = self._fetch_log(pool, ticket.submission_id)
                    raise NotarizationRejected(ticket.submission_id, verdict.message, log)

                remaining = ticket.deadline - self._clock()
                if remaining <= 0:
                    raise self._expire(ticket, started)

                delay = min(next(delays), remaining)
                logger.debug(
                    "Notarization %s pending; next poll in %.1fs",
                    ticket.submission_id, delay,
                )
                self._sleep(delay)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def staple(self, artifact: Artifact, ticket: NotarizationTicket) -> Artifact:
        """Embed the accepted ticket and return the re-hashed artifact."""
        if ticket.state is not NotaryState.ACCEPTED:
            # Raises InvalidTransitionError naming the current state.
            ticket.advance(NotaryState.STAPLED)
        try:
            self._service.staple(artifact.path)
        except ReleaseError:
            ticket.advance(NotaryState.FAILED)
            raise
        ticket.advance(NotaryState.STAPLED)
        return Artifact.from_path(artifact.path)

    # ------------------------------------------------------------------
    # Whole sequence
    # ------------------------------------------------------------------

    def notarize(
        self, artifact: Artifact, credential: NotarizationCredential
    ) -> Artifact:
        """Submit, wait for acceptance and staple *artifact*."""
        with self._service.session():
            ticket = self.submit(artifact, credential)
            self.await_verdict(ticket)
            return self.staple(artifact, ticket)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _bounded(
        pool: ThreadPoolExecutor,
        call: Callable[..., _T],
        submission_id: str,
        seconds: float,
    ) -> _T:
        """Run ``call(submission_id, timeout=seconds)``, waiting at most *seconds*."""
        future = pool.submit(call, submission_id, timeout=seconds)
        done, _ = wait([future], timeout=seconds)
        if not done:
            raise _CallOverran(submission_id)
        return future.result()

    def _expire(self, ticket: NotarizationTicket, started: float) -> NotarizationTimeout:
        ticket.advance(NotaryState.TIMEOUT)
        ticket.advance(NotaryState.FAILED)
        return NotarizationTimeout(ticket.submission_id, self._clock() - started)

    def _fetch_log(self, pool: ThreadPoolExecutor, submission_id: str) -> str:
        try:
            return self._bounded(
                pool, self._service.fetch_log, submission_id, LOG_FETCH_TIMEOUT_SECONDS
            )
        except _CallOverran:
            logger.warning("Timed out fetching notarization log for %s", submission_id)
            return ""
        except TransientNetworkError as exc:
            logger.warning("Could not fetch notarization log for %s: %s", submission_id, exc)
            return ""

