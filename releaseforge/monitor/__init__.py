"""Terminal rendering of release results and ledger history."""

from releaseforge.monitor.renderer import ResultRenderer

__all__ = ["ResultRenderer"]
