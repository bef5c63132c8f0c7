"""Publisher: uploads one artifact under its release key with bounded retry."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

from releaseforge.core.errors import PublishNotAllowed, ReleaseError, UploadError
from releaseforge.core.retry import Backoff
from releaseforge.models.artifacts import Artifact, ReleaseKey
from releaseforge.publish.store import ReleaseStore

logger = logging.getLogger(__name__)


class PublishResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: ReleaseKey
    sha256: str
    attempts: int


class Publisher:
    """Puts artifacts into a ``ReleaseStore``.

    Retryable store errors (``UploadError``, ``TransientNetworkError``) are
    retried up to ``attempts`` times with ``backoff`` between tries; the
    last one is re-raised as ``UploadError``.  Re-publishing a key
    overwrites it.
    """

    def __init__(
        self,
        store: ReleaseStore,
        *,
        attempts: int = 4,
        backoff: Backoff | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self._attempts = max(1, attempts)
        self._backoff = backoff or Backoff(initial=2.0, maximum=30.0)
        self._sleep = sleep

    def publish(
        self, artifact: Artifact, tag: str, platform: str, *, eligible: bool
    ) -> PublishResult:
        """Upload *artifact* as ``(tag, platform, artifact.filename)``.

        *eligible* is the pipeline's word that the artifact reached
        ``signed`` (or ``notarized`` on the gatekeeper platform); without it
        nothing is uploaded and ``PublishNotAllowed`` is raised.
        """
        if not eligible:
            raise PublishNotAllowed(
                f"{platform} artifact {artifact.filename} is not signed/notarized"
            )
        key = ReleaseKey(tag=tag, platform=platform, filename=artifact.filename)
        data = artifact.read_bytes()
        delays = self._backoff.delays()

        attempt = 0
        while True:
            attempt += 1
            try:
                self.store.put(key, data)
            except ReleaseError as exc:
                if not exc.retryable:
                    raise
                if attempt == self._attempts:
                    raise UploadError(
                        f"upload of {key} failed after {attempt} attempts: {exc}"
                    ) from exc
                delay = next(delays)
                logger.warning(
                    "Upload of %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    key, attempt, self._attempts, delay, exc,
                )
                self._sleep(delay)
                continue

            logger.info("Published %s (sha256=%s)", key, artifact.sha256[:12])
            return PublishResult(key=key, sha256=artifact.sha256, attempts=attempt)
