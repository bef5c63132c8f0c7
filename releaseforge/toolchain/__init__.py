"""Toolchain drivers — turn source into platform binaries."""

from releaseforge.toolchain.driver import CargoDriver, ToolchainDriver

__all__ = ["CargoDriver", "ToolchainDriver"]
