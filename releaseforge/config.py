"""Release configuration — env-driven via pydantic-settings.

Reads ``RELEASEFORGE_*`` environment variables and an optional ``.env``
file.  Secrets are *not* settings: they are read by the credential store
from the CI secret variables at the moment a phase needs them.

Examples
--------
Override via environment::

    export RELEASEFORGE_PRODUCT_NAME=Lapce
    export RELEASEFORGE_RELEASE_STORE=github
    export RELEASEFORGE_GITHUB_REPOSITORY=lapce/lapce
    export RELEASEFORGE_NOTARIZE_DEADLINE_SECONDS=5400
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from releaseforge.core.retry import Backoff


class ReleaseSettings(BaseSettings):
    """All tunables for a release run, with environment overrides."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="RELEASEFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Product identity (naming only; contents are decided elsewhere)
    product_name: str = "Product"
    binary_name: str = "product"
    bundle_id: str = "io.example.product"

    # Source tree and tooling
    project_dir: Path = Path(".")
    wxs_path: Path = Path("extra/windows/wix/product.wxs")
    wix_bin_dir: Path | None = None
    info_plist_template: Path | None = None
    icon_path: Path | None = None
    windows_targets: list[str] = ["x86_64-pc-windows-msvc"]
    macos_targets: list[str] = ["x86_64-apple-darwin", "aarch64-apple-darwin"]
    signtool_timestamp_url: str = "http://timestamp.digicert.com"

    # Storage paths
    work_dir: Path = Path(".releaseforge/work")
    ledger_path: Path = Path(".releaseforge/ledger.db")

    # Release store
    release_store: Literal["local", "github"] = "local"
    release_root: Path = Path(".releaseforge/releases")
    github_repository: str = ""
    github_api_url: str = "https://api.github.com"

    # Notarization polling
    notarize_deadline_seconds: float = 3600.0
    notarize_poll_initial_seconds: float = 15.0
    notarize_poll_max_seconds: float = 120.0
    notarize_poll_multiplier: float = 1.5

    # Upload retries
    upload_attempts: int = 4
    upload_backoff_initial_seconds: float = 2.0
    upload_backoff_max_seconds: float = 30.0

    # Concurrency
    max_parallel_platforms: int = 2
    command_timeout_seconds: float | None = None

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"

    @property
    def notarize_backoff(self) -> Backoff:
        return Backoff(
            initial=self.notarize_poll_initial_seconds,
            multiplier=self.notarize_poll_multiplier,
            maximum=self.notarize_poll_max_seconds,
        )

    @property
    def upload_backoff(self) -> Backoff:
        return Backoff(
            initial=self.upload_backoff_initial_seconds,
            maximum=self.upload_backoff_max_seconds,
        )


# Module-level singleton: import as `from releaseforge.config import settings`
settings = ReleaseSettings()
