"""Release tag model — the only trigger input the pipeline accepts."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, field_validator

from releaseforge.core.errors import InvalidTag

TAG_PATTERN = re.compile(
    r"^v(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?P<suffix>[-+.][0-9A-Za-z.+-]+)?$"
)

_REF_PREFIX = "refs/tags/"


class ReleaseTag(BaseModel):
    """An immutable, validated version tag such as ``v1.2.3`` or ``v1.2.3-rc.1``.

    Use :meth:`parse` for raw trigger input; it strips the ``refs/tags/``
    prefix a push event carries and raises :class:`InvalidTag` on anything
    that does not match :data:`TAG_PATTERN`.
    """

    model_config = ConfigDict(frozen=True)

    value: str

    @field_validator("value")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        if not TAG_PATTERN.match(value):
            raise InvalidTag(value)
        return value

    @classmethod
    def parse(cls, raw: str) -> ReleaseTag:
        """Validate a raw tag or ref string and return a ``ReleaseTag``."""
        return cls(value=raw.strip().removeprefix(_REF_PREFIX))

    @property
    def _match(self) -> re.Match[str]:
        match = TAG_PATTERN.match(self.value)
        assert match is not None
        return match

    @property
    def major(self) -> int:
        return int(self._match["major"])

    @property
    def minor(self) -> int:
        return int(self._match["minor"])

    @property
    def patch(self) -> int:
        return int(self._match["patch"])

    @property
    def suffix(self) -> str:
        return self._match["suffix"] or ""

    @property
    def is_prerelease(self) -> bool:
        return self.suffix.startswith("-")

    def __str__(self) -> str:
        return self.value
