"""Default pipeline wiring from ``ReleaseSettings``."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from releaseforge.config import ReleaseSettings
from releaseforge.core.commands import CommandRunner, SubprocessRunner
from releaseforge.credentials.store import CredentialStore
from releaseforge.models.jobs import PlatformId
from releaseforge.notarize.notarizer import Notarizer
from releaseforge.notarize.service import NotaryService, NotarytoolService
from releaseforge.packaging.dmg import DiskImagePackager
from releaseforge.packaging.wix import InstallerTablePackager
from releaseforge.pipelines.base import PlatformPipeline
from releaseforge.pipelines.macos import MacOSPipeline
from releaseforge.pipelines.windows import WindowsPipeline
from releaseforge.publish.publisher import Publisher
from releaseforge.publish.store import GitHubReleaseStore, LocalReleaseStore, ReleaseStore
from releaseforge.signing.codesign import CodesignSigner
from releaseforge.signing.signtool import SigntoolSigner
from releaseforge.toolchain.driver import CargoDriver, ToolchainDriver

logger = logging.getLogger(__name__)


def build_release_store(config: ReleaseSettings, credentials: CredentialStore) -> ReleaseStore:
    """The store named by ``config.release_store``."""
    if config.release_store == "github":
        return GitHubReleaseStore(
            config.github_repository,
            credentials.get_release_token(),
            api_url=config.github_api_url,
        )
    return LocalReleaseStore(config.release_root)


def build_default_pipelines(
    config: ReleaseSettings,
    *,
    runner: CommandRunner | None = None,
    credentials: CredentialStore | None = None,
    store: ReleaseStore | None = None,
    toolchain: ToolchainDriver | None = None,
    notary: NotaryService | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> dict[PlatformId, PlatformPipeline]:
    """Wire both platform pipelines.  Any collaborator may be overridden."""
    runner = runner or SubprocessRunner(timeout_seconds=config.command_timeout_seconds)
    credentials = credentials or CredentialStore()
    store = store or build_release_store(config, credentials)
    toolchain = toolchain or CargoDriver(runner, config.project_dir, config.binary_name)
    keychain_dir = config.work_dir / "keychains"

    publisher = Publisher(
        store,
        attempts=config.upload_attempts,
        backoff=config.upload_backoff,
        sleep=sleep,
    )
    notarizer = Notarizer(
        notary or NotarytoolService(runner, keychain_dir=keychain_dir),
        deadline_seconds=config.notarize_deadline_seconds,
        backoff=config.notarize_backoff,
        sleep=sleep,
        clock=clock,
    )

    windows = WindowsPipeline(
        toolchain=toolchain,
        packager=InstallerTablePackager(
            runner,
            config.product_name,
            config.wxs_path,
            wix_bin_dir=config.wix_bin_dir,
        ),
        signer=SigntoolSigner(runner, timestamp_url=config.signtool_timestamp_url),
        publisher=publisher,
        credentials=credentials,
        product_name=config.product_name,
        targets=config.windows_targets,
    )
    macos = MacOSPipeline(
        toolchain=toolchain,
        packager=DiskImagePackager(
            runner,
            config.product_name,
            config.binary_name,
            config.bundle_id,
            info_plist_template=config.info_plist_template,
            icon_path=config.icon_path,
        ),
        signer=CodesignSigner(runner, keychain_dir=keychain_dir),
        publisher=publisher,
        credentials=credentials,
        product_name=config.product_name,
        targets=config.macos_targets,
        notarizer=notarizer,
    )
    logger.debug("Wired pipelines with %s", type(store).__name__)
    return {PlatformId.WINDOWS: windows, PlatformId.MACOS: macos}
