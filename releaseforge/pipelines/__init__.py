"""Per-platform release pipelines."""

from releaseforge.pipelines.base import PlatformPipeline
from releaseforge.pipelines.macos import MacOSPipeline
from releaseforge.pipelines.registry import build_default_pipelines
from releaseforge.pipelines.windows import WindowsPipeline

__all__ = [
    "PlatformPipeline",
    "WindowsPipeline",
    "MacOSPipeline",
    "build_default_pipelines",
]
