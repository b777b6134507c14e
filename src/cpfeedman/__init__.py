"""cpfeedman - Kick Check Point network feeds from queue events."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("cpfeedman")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from cpfeedman.checkpoint.session import CheckPointSession
from cpfeedman.config import Settings
from cpfeedman.service import FeedService

__all__ = ["CheckPointSession", "FeedService", "Settings"]
