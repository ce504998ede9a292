"""
Detecting the replicator's own version.

The version is determined only once at startup when the code is loaded,
from the installed distribution's metadata (if installed at all).
"""
import importlib.metadata

DISTRIBUTION_NAME = 'k8s-replicator'

version: str | None = None

try:
    version = importlib.metadata.version(DISTRIBUTION_NAME)
except importlib.metadata.PackageNotFoundError:
    pass  # running from a source tree, not installed.
