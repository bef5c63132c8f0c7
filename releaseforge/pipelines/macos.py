"""macOS pipeline: universal binary, disk image, codesign, notarize and staple."""

from __future__ import annotations

import logging
from typing import ClassVar

from releaseforge.models.jobs import PlatformId, PlatformJob
from releaseforge.models.tags import ReleaseTag
from releaseforge.packaging.dmg import DiskImagePackager
from releaseforge.pipelines.base import PlatformPipeline
from releaseforge.signing.codesign import CodesignSigner

logger = logging.getLogger(__name__)


class MacOSPipeline(PlatformPipeline):
    """build -> package (.dmg) -> sign -> notarize -> rename -> publish.

    macOS is the gatekeeper platform, so the notarize phase (submit, wait
    for an accepted verdict, staple) is mandatory and publish refuses an
    artifact whose job never reached ``notarized``.

    The sign phase signs the staged ``.app`` bundle first, rebuilds the
    disk image around the signed bundle, then signs the image.  The notary
    inspects nested code and rejects an image whose app is unsigned.
    """

    platform: ClassVar[PlatformId] = PlatformId.MACOS

    packager: DiskImagePackager
    signer: CodesignSigner

    def sign(self, job: PlatformJob, tag: ReleaseTag) -> None:
        credential = self.credentials.get_signing_credential(self.platform)
        bundle = self.packager.bundle_path(job.workdir)
        self.signer.sign_bundle(bundle, credential)
        logger.info("%s: resealing %s around the signed bundle", job.run_id, job.artifact.filename)
        job.artifact = self.signer.sign(self.packager.reseal(job.workdir), credential)
