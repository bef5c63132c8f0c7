"""Installer-table packager (WiX ``candle`` + ``light``).

``light`` runs ICE validation on the linked MSI.  Two checks fail on a
per-user install layout without indicating a broken package, so they are
suppressed by name:

* ICE61 — upgrade table allows the same version to be re-installed.
* ICE91 — file installed to a per-user profile directory.

Every other ICE error still fails the link.  ``SUPPRESSED_ICE_CODES`` is
the complete list.
"""

from __future__ import annotations

from pathlib import Path
from typing import ClassVar

from releaseforge.core.commands import CommandRunner
from releaseforge.core.errors import PackagingFailed
from releaseforge.packaging.base import Packager

SUPPRESSED_ICE_CODES: tuple[str, ...] = ("ICE61", "ICE91")

WIX_EXTENSIONS: tuple[str, ...] = ("WixUIExtension", "WixUtilExtension")


def suppression_flags() -> list[str]:
    return [f"-sice:{code}" for code in SUPPRESSED_ICE_CODES]


class InstallerTablePackager(Packager):
    """Compiles the ``.wxs`` description and links it into an ``.msi``.

    Parameters
    ----------
    wxs_path:
        Declarative installer description.  It receives the binary path
        and product version as ``-d`` preprocessor variables.
    wix_bin_dir:
        Directory holding ``candle.exe`` and ``light.exe``; ``None`` means
        resolve them from ``PATH``.
    arch:
        ``candle -arch`` value.
    """

    extension: ClassVar[str] = "msi"

    def __init__(
        self,
        runner: CommandRunner,
        product_name: str,
        wxs_path: Path,
        *,
        wix_bin_dir: Path | None = None,
        arch: str = "x64",
    ) -> None:
        super().__init__(runner, product_name)
        self._wxs_path = Path(wxs_path)
        self._wix_bin_dir = wix_bin_dir
        self._arch = arch

    def _tool(self, name: str) -> str:
        return str(self._wix_bin_dir / name) if self._wix_bin_dir else name

    def _extension_flags(self) -> list[str]:
        flags: list[str] = []
        for ext in WIX_EXTENSIONS:
            flags += ["-ext", ext]
        return flags

    def _assemble(self, binaries: list[Path], workdir: Path, version: str) -> Path:
        if len(binaries) != 1:
            raise PackagingFailed(
                f"installer table expects exactly one binary, got {len(binaries)}"
            )
        if not self._wxs_path.is_file():
            raise PackagingFailed(f"installer description not found: {self._wxs_path}")

        wixobj = workdir / f"{self._wxs_path.stem}.wixobj"
        msi = workdir / f"{self.product_name}.{self.extension}"

        self._runner.run(
            [
                self._tool("candle.exe"),
                "-arch", self._arch,
                *self._extension_flags(),
                f"-dBinaryPath={binaries[0]}",
                f"-dProductVersion={version}",
                "-out", str(wixobj),
                str(self._wxs_path),
            ]
        )
        self._runner.run(
            [
                self._tool("light.exe"),
                *self._extension_flags(),
                "-out", str(msi),
                *suppression_flags(),
                str(wixobj),
            ]
        )
        return msi
