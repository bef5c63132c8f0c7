"""Publishing signed artifacts to a release store."""

from releaseforge.publish.publisher import Publisher, PublishResult
from releaseforge.publish.store import GitHubReleaseStore, LocalReleaseStore, ReleaseStore

__all__ = [
    "Publisher",
    "PublishResult",
    "ReleaseStore",
    "LocalReleaseStore",
    "GitHubReleaseStore",
]
