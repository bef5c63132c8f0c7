"""Bounded exponential backoff shared by notarization polling and uploads."""

from __future__ import annotations

from collections.abc import Iterator

from pydantic import BaseModel, ConfigDict, Field


class Backoff(BaseModel):
    """Exponential delay schedule: ``initial * multiplier**n``, capped at ``maximum``."""

    model_config = ConfigDict(frozen=True)

    initial: float = Field(default=5.0, gt=0)
    multiplier: float = Field(default=2.0, ge=1.0)
    maximum: float = Field(default=60.0, gt=0)

    def delays(self) -> Iterator[float]:
        """Yield delays forever; callers bound the loop themselves."""
        delay = self.initial
        while True:
            yield min(delay, self.maximum)
            delay *= self.multiplier

    def schedule(self, count: int) -> list[float]:
        """The first *count* delays."""
        it = self.delays()
        return [next(it) for _ in range(count)]
