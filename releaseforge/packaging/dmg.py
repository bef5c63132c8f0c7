"""Disk-image packager: universal binary -> ``.app`` bundle -> UDZO ``.dmg``.

The staging folder the image is built from stays in the workdir, so the
sign phase can sign the bundle in place and ``reseal()`` the image around
it before signing the image itself.
"""

from __future__ import annotations

import plistlib
import shutil
from pathlib import Path
from typing import ClassVar

from releaseforge.core.commands import CommandFailed, CommandRunner
from releaseforge.core.errors import PackagingFailed
from releaseforge.models.artifacts import Artifact
from releaseforge.packaging.base import Packager


class DiskImagePackager(Packager):
    """Assembles a multi-architecture app bundle into a mountable disk image.

    Parameters
    ----------
    binary_name:
        Executable name inside ``Contents/MacOS``.
    bundle_id:
        ``CFBundleIdentifier`` for the generated ``Info.plist``.
    info_plist_template:
        Optional template; ``@PRODUCT_NAME@``, ``@BUNDLE_ID@``,
        ``@VERSION@``, ``@EXECUTABLE@`` and ``@ICON_FILE@`` are substituted.
    icon_path:
        Optional ``.icns`` copied into ``Contents/Resources``.
    """

    extension: ClassVar[str] = "dmg"

    def __init__(
        self,
        runner: CommandRunner,
        product_name: str,
        binary_name: str,
        bundle_id: str,
        *,
        info_plist_template: Path | None = None,
        icon_path: Path | None = None,
    ) -> None:
        super().__init__(runner, product_name)
        self._binary_name = binary_name
        self._bundle_id = bundle_id
        self._info_plist_template = info_plist_template
        self._icon_path = icon_path

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _universal_binary(self, binaries: list[Path], workdir: Path) -> Path:
        out_dir = workdir / "universal"
        out_dir.mkdir(parents=True, exist_ok=True)
        universal = out_dir / self._binary_name
        if len(binaries) == 1:
            shutil.copy2(binaries[0], universal)
        else:
            self._runner.run(
                ["lipo", "-create", "-output", str(universal), *map(str, binaries)]
            )
        return universal

    def _info_plist(self, version: str, icon_file: str) -> bytes:
        if self._info_plist_template is not None:
            text = self._info_plist_template.read_text(encoding="utf-8")
            for key, value in {
                "@PRODUCT_NAME@": self.product_name,
                "@BUNDLE_ID@": self._bundle_id,
                "@VERSION@": version,
                "@EXECUTABLE@": self._binary_name,
                "@ICON_FILE@": icon_file,
            }.items():
                text = text.replace(key, value)
            return text.encode("utf-8")

        plist = {
            "CFBundleName": self.product_name,
            "CFBundleDisplayName": self.product_name,
            "CFBundleIdentifier": self._bundle_id,
            "CFBundleExecutable": self._binary_name,
            "CFBundlePackageType": "APPL",
            "CFBundleShortVersionString": version,
            "CFBundleVersion": version,
            "LSMinimumSystemVersion": "10.11",
            "NSHighResolutionCapable": True,
        }
        if icon_file:
            plist["CFBundleIconFile"] = icon_file
        return plistlib.dumps(plist)

    def _app_bundle(self, universal: Path, staging: Path, version: str) -> Path:
        app = staging / f"{self.product_name}.app"
        contents = app / "Contents"
        macos_dir = contents / "MacOS"
        resources = contents / "Resources"
        macos_dir.mkdir(parents=True, exist_ok=True)
        resources.mkdir(parents=True, exist_ok=True)

        exe = macos_dir / self._binary_name
        shutil.copy2(universal, exe)
        exe.chmod(0o755)

        icon_file = ""
        if self._icon_path is not None and self._icon_path.is_file():
            shutil.copy2(self._icon_path, resources / self._icon_path.name)
            icon_file = self._icon_path.stem

        (contents / "Info.plist").write_bytes(self._info_plist(version, icon_file))
        (contents / "PkgInfo").write_text("APPL????", encoding="utf-8")
        return app

    def _assemble(self, binaries: list[Path], workdir: Path, version: str) -> Path:
        universal = self._universal_binary(binaries, workdir)

        staging = self._staging(workdir)
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)
        self._app_bundle(universal, staging, version)
        (staging / "Applications").symlink_to("/Applications")
        return self._seal(workdir)

    def _seal(self, workdir: Path) -> Path:
        staging = self._staging(workdir)
        dmg = workdir / f"{self.product_name}.{self.extension}"
        self._runner.run(
            [
                "hdiutil", "create",
                "-fs", "HFS+",
                "-srcfolder", str(staging),
                "-volname", self.product_name,
                "-ov",
                "-format", "UDZO",
                str(dmg),
            ]
        )
        return dmg

    # ------------------------------------------------------------------
    # Staging folder
    # ------------------------------------------------------------------

    @staticmethod
    def _staging(workdir: Path) -> Path:
        return workdir / "dmg"

    def bundle_path(self, workdir: Path) -> Path:
        """The ``.app`` bundle staged for the image in *workdir*."""
        return self._staging(workdir) / f"{self.product_name}.app"

    def reseal(self, workdir: Path) -> Artifact:
        """Rebuild the image from the staging folder, e.g. after signing the bundle."""
        if not self.bundle_path(workdir).is_dir():
            raise PackagingFailed(f"no staged bundle to reseal in {self._staging(workdir)}")
        try:
            output = self._seal(workdir)
        except CommandFailed as exc:
            raise PackagingFailed(str(exc)) from exc
        if not output.is_file():
            raise PackagingFailed(f"hdiutil reported success but {output} is missing")
        return Artifact.from_path(output)
