"""Notarization: submission, verdict polling and stapling."""

from releaseforge.notarize.notarizer import Notarizer
from releaseforge.notarize.service import NotaryService, NotarytoolService

__all__ = ["Notarizer", "NotaryService", "NotarytoolService"]
