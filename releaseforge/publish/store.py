"""Release stores.

A store maps a ``ReleaseKey`` ``(tag, platform, filename)`` to bytes.
``put`` always overwrites, so publishing the same key twice leaves exactly
one object behind.  Stores raise ``TransientNetworkError`` for failures
worth retrying and ``UploadError`` for everything else.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import SecretStr

from releaseforge.core.errors import TransientNetworkError, UploadError
from releaseforge.models.artifacts import ReleaseKey
from releaseforge.models.tags import ReleaseTag

logger = logging.getLogger(__name__)


@runtime_checkable
class ReleaseStore(Protocol):
    """Destination for published artifacts."""

    def put(self, key: ReleaseKey, data: bytes) -> None:
        """Store *data* under *key*, replacing any existing object."""
        ...


class LocalReleaseStore:
    """Filesystem store laid out as ``<root>/<tag>/<platform>/<filename>``.

    Writes go to a temp file in the destination directory and are moved
    into place with :func:`os.replace`, so readers never see a partial file.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, key: ReleaseKey) -> Path:
        return self.root / key.tag / key.platform / key.filename

    def put(self, key: ReleaseKey, data: bytes) -> None:
        dest = self.path_for(key)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=dest.parent, prefix=f".{key.filename}.")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp, dest)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise UploadError(f"could not write {dest}: {exc}") from exc
        logger.info("Stored %s (%d bytes) at %s", key, len(data), dest)

    def get(self, key: ReleaseKey) -> bytes:
        return self.path_for(key).read_bytes()

    def keys(self) -> list[ReleaseKey]:
        """Every key currently stored, sorted."""
        found = []
        for path in sorted(self.root.glob("*/*/*")):
            if path.is_file() and not path.name.startswith("."):
                tag, platform = path.parts[-3], path.parts[-2]
                found.append(ReleaseKey(tag=tag, platform=platform, filename=path.name))
        return found


class GitHubReleaseStore:
    """Uploads assets to the GitHub release named after the tag.

    The release is created on first use (marked as a pre-release when the
    tag carries a ``-suffix``).  An existing asset with the same filename
    is deleted before the upload, which is how GitHub overwrite works.

    Parameters
    ----------
    repository:
        ``owner/name``.
    token:
        API token with ``contents: write``.
    api_url:
        REST API base; override for GitHub Enterprise.
    client:
        Optional pre-built ``httpx.Client`` (tests pass one with a mock
        transport).
    """

    def __init__(
        self,
        repository: str,
        token: SecretStr,
        *,
        api_url: str = "https://api.github.com",
        client: httpx.Client | None = None,
        timeout: float = 300.0,
    ) -> None:
        self.repository = repository
        self.api_url = api_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            resp = self._client.request(
                method, url, headers={**self._headers, **(headers or {})}, **kwargs
            )
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"{method} {url}: {exc}") from exc
        if resp.status_code >= 500 or resp.status_code == 429:
            raise TransientNetworkError(f"{method} {url} returned {resp.status_code}")
        return resp

    @staticmethod
    def _fail(resp: httpx.Response, action: str) -> UploadError:
        logger.error("GitHub %s returned %d: %s", action, resp.status_code, resp.text)
        return UploadError(f"GitHub {action} failed with {resp.status_code}")

    def _release(self, tag: str) -> dict:
        base = f"{self.api_url}/repos/{self.repository}/releases"
        resp = self._request("GET", f"{base}/tags/{tag}")
        if resp.status_code == 200:
            return resp.json()
        if resp.status_code != 404:
            raise self._fail(resp, f"lookup of release {tag}")

        prerelease = ReleaseTag.parse(tag).is_prerelease
        resp = self._request(
            "POST",
            base,
            json={"tag_name": tag, "name": tag, "prerelease": prerelease},
        )
        if resp.status_code == 201:
            logger.info("Created GitHub release %s (prerelease=%s)", tag, prerelease)
            return resp.json()
        if resp.status_code == 422:
            # Another platform created it between our GET and POST.
            resp = self._request("GET", f"{base}/tags/{tag}")
            if resp.status_code == 200:
                return resp.json()
        raise self._fail(resp, f"creation of release {tag}")

    # ------------------------------------------------------------------
    # ReleaseStore
    # ------------------------------------------------------------------

    def put(self, key: ReleaseKey, data: bytes) -> None:
        release = self._release(key.tag)

        for asset in release.get("assets", []):
            if asset.get("name") == key.filename:
                url = f"{self.api_url}/repos/{self.repository}/releases/assets/{asset['id']}"
                resp = self._request("DELETE", url)
                if resp.status_code not in (204, 404):
                    raise self._fail(resp, f"delete of asset {key.filename}")
                logger.info("Replaced existing asset %s on release %s", key.filename, key.tag)

        upload_url = release["upload_url"].split("{", 1)[0]
        resp = self._request(
            "POST",
            upload_url,
            params={"name": key.filename},
            content=data,
            headers={"Content-Type": "application/octet-stream"},
        )
        if resp.status_code != 201:
            raise self._fail(resp, f"upload of {key.filename}")
        logger.info("Uploaded %s (%d bytes) to %s", key, len(data), self.repository)
