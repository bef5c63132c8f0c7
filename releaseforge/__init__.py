"""releaseforge: tag-triggered release packaging for Windows and macOS.

One tag in, one signed installer per platform out:
  - Windows: cargo build -> WiX installer table (.msi) -> signtool
  - macOS: universal binary -> disk image (.dmg) -> codesign -> notarize + staple
  - Both: rename to <Product>-<platform>.<ext> -> publish with overwrite
  - Platforms run in parallel; each ends ``success`` or ``failed:<phase>``
  - Every status change is sealed into a hash-chained SQLite ledger
"""

__version__ = "0.1.0"
__description__ = "Build, sign, notarize and publish tagged releases"

from releaseforge.core.orchestrator import Orchestrator
from releaseforge.cli.app import app

__all__ = ["Orchestrator", "app", "__version__"]
