"""Production configuration guard.

Runs once when the orchestrator is built from settings and fails hard
(``ProductionConfigError``) if a production release would be unsafe.
Other code should not scatter ``if is_production`` checks.
"""

from __future__ import annotations

import logging

from releaseforge.config import ReleaseSettings

logger = logging.getLogger(__name__)


class ProductionConfigError(RuntimeError):
    """Raised when production configuration constraints are violated.

    It must not be caught and ignored; the process should exit.
    """


def enforce_release_constraints(config: ReleaseSettings) -> None:
    """Validate production-critical settings; no-op outside production.

    Constraints enforced
    --------------------
    1. Debug mode must be disabled.
    2. Releases must go to the GitHub release store with a repository set.
    3. The notarization deadline must be positive.
    """
    if not config.is_production:
        return

    violations: list[str] = []

    if config.debug:
        violations.append(
            "debug=True is not allowed in production. Set RELEASEFORGE_DEBUG=false."
        )

    if config.release_store != "github":
        violations.append(
            "release_store must be 'github' in production. "
            "Set RELEASEFORGE_RELEASE_STORE=github."
        )
    elif not config.github_repository:
        violations.append(
            "github_repository is required in production. "
            "Set RELEASEFORGE_GITHUB_REPOSITORY=<owner>/<repo>."
        )

    if config.notarize_deadline_seconds <= 0:
        violations.append("notarize_deadline_seconds must be positive.")

    if violations:
        msg = "Production configuration guard failed.\n" + "\n".join(
            f"  - {v}" for v in violations
        )
        logger.critical(msg)
        raise ProductionConfigError(msg)

    logger.info("Production configuration guard passed.")
