"""Windows pipeline: cargo build, WiX installer table, signtool."""

from __future__ import annotations

from typing import ClassVar

from releaseforge.models.jobs import PlatformId
from releaseforge.pipelines.base import PlatformPipeline


class WindowsPipeline(PlatformPipeline):
    """build -> package (.msi) -> sign -> rename -> publish."""

    platform: ClassVar[PlatformId] = PlatformId.WINDOWS
