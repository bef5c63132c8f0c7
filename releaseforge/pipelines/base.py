"""Abstract platform pipeline with a fixed phase dispatch.

A pipeline owns the collaborators for one platform (toolchain, packager,
signer, optional notarizer, publisher) and knows how to run each phase
against a ``PlatformJob``.  It does not touch job status; the orchestrator
drives the ``JobMachine`` around each ``run_phase()`` call.

Subclasses set ``platform`` and may override individual phase methods;
``run_phase()`` itself is **not overridable**.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from typing import ClassVar, final

from releaseforge.core.errors import ReleaseError
from releaseforge.credentials.store import CredentialStore
from releaseforge.models.artifacts import Artifact
from releaseforge.models.jobs import Phase, PlatformId, PlatformJob
from releaseforge.models.tags import ReleaseTag
from releaseforge.notarize.notarizer import Notarizer
from releaseforge.packaging.base import Packager
from releaseforge.publish.publisher import Publisher
from releaseforge.signing.base import Signer
from releaseforge.toolchain.driver import ToolchainDriver

logger = logging.getLogger(__name__)


class RenameFailed(ReleaseError):
    """The artifact could not be copied to its release filename."""

    phase: ClassVar[str] = "rename"


class PlatformPipeline:
    """Phase implementations for one platform.

    Parameters
    ----------
    toolchain:
        Builds one binary per target triple.
    packager, signer, publisher:
        Phase collaborators.
    credentials:
        Read-only secret source; checked out inside the phase that needs it.
    product_name:
        Prefix of the normalized release filename.
    targets:
        Target triples to build.
    notarizer:
        Required when the platform is a gatekeeper platform.
    """

    platform: ClassVar[PlatformId]

    def __init__(
        self,
        *,
        toolchain: ToolchainDriver,
        packager: Packager,
        signer: Signer,
        publisher: Publisher,
        credentials: CredentialStore,
        product_name: str,
        targets: list[str],
        notarizer: Notarizer | None = None,
    ) -> None:
        if self.requires_notarization and notarizer is None:
            raise ValueError(f"{self.platform.value} pipeline requires a notarizer")
        if not targets:
            raise ValueError(f"{self.platform.value} pipeline needs at least one target")
        self.toolchain = toolchain
        self.packager = packager
        self.signer = signer
        self.publisher = publisher
        self.notarizer = notarizer
        self.credentials = credentials
        self.product_name = product_name
        self.targets = list(targets)

    @property
    def requires_notarization(self) -> bool:
        return self.platform.is_gatekeeper

    def phases(self) -> list[Phase]:
        """Phases in execution order, validation excluded."""
        order = [Phase.BUILD, Phase.PACKAGE, Phase.SIGN]
        if self.requires_notarization:
            order.append(Phase.NOTARIZE)
        order += [Phase.RENAME, Phase.PUBLISH]
        return order

    def release_filename(self) -> str:
        """``<Product>-<platform>.<ext>``, e.g. ``Lapce-macos.dmg``."""
        return f"{self.product_name}-{self.platform.value}.{self.packager.extension}"

    # ------------------------------------------------------------------
    # Dispatch (not overridable)
    # ------------------------------------------------------------------

    @final
    def run_phase(self, phase: Phase, job: PlatformJob, tag: ReleaseTag) -> None:
        """Run *phase* for *job*, updating its binaries/artifact/key in place."""
        handlers: dict[Phase, Callable[[PlatformJob, ReleaseTag], None]] = {
            Phase.BUILD: self.build,
            Phase.PACKAGE: self.package,
            Phase.SIGN: self.sign,
            Phase.NOTARIZE: self.notarize,
            Phase.RENAME: self.rename,
            Phase.PUBLISH: self.publish,
        }
        if phase not in self.phases():
            raise ValueError(f"{phase.value} is not a phase of the {self.platform.value} pipeline")
        if phase is not Phase.BUILD and phase is not Phase.PACKAGE and job.artifact is None:
            raise ReleaseError(f"{job.run_id}: no artifact before {phase.value}")
        logger.debug("%s: running %s", job.run_id, phase.value)
        handlers[phase](job, tag)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def build(self, job: PlatformJob, tag: ReleaseTag) -> None:
        job.binaries = [self.toolchain.build(target) for target in job.targets]

    def package(self, job: PlatformJob, tag: ReleaseTag) -> None:
        version = f"{tag.major}.{tag.minor}.{tag.patch}"
        job.artifact = self.packager.package(job.binaries, job.workdir, version)

    def sign(self, job: PlatformJob, tag: ReleaseTag) -> None:
        credential = self.credentials.get_signing_credential(self.platform)
        job.artifact = self.signer.sign(job.artifact, credential)

    def notarize(self, job: PlatformJob, tag: ReleaseTag) -> None:
        credential = self.credentials.get_notarization_credential()
        job.artifact = self.notarizer.notarize(job.artifact, credential)

    def rename(self, job: PlatformJob, tag: ReleaseTag) -> None:
        source = job.artifact.path
        dest = source.with_name(self.release_filename())
        if dest != source:
            try:
                shutil.copy2(source, dest)
            except OSError as exc:
                raise RenameFailed(f"could not copy {source.name} to {dest.name}: {exc}") from exc
        job.artifact = Artifact.from_path(dest)
        logger.info("%s: release file is %s", job.run_id, dest.name)

    def publish(self, job: PlatformJob, tag: ReleaseTag) -> None:
        result = self.publisher.publish(
            job.artifact,
            str(tag),
            self.platform.value,
            eligible=job.publish_ready,
        )
        job.published_key = result.key

    def __repr__(self) -> str:
        return f"<{type(self).__name__} phases={[p.value for p in self.phases()]}>"
