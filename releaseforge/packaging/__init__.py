"""Installer packagers: WiX installer tables and macOS disk images."""

from releaseforge.packaging.base import Packager
from releaseforge.packaging.dmg import DiskImagePackager
from releaseforge.packaging.wix import SUPPRESSED_ICE_CODES, InstallerTablePackager

__all__ = [
    "Packager",
    "InstallerTablePackager",
    "DiskImagePackager",
    "SUPPRESSED_ICE_CODES",
]
