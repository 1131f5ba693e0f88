"""buildcache: archive and restore a build's compiled-source tree.

Snapshots the build's work directories into one compressed archive,
splits it under the release host's per-asset size limit with a manifest
and checksum, and later locates, downloads, verifies, reassembles and
unpacks it so repeated builds can skip recompilation.
"""

__version__ = "1.0.0"
__description__ = "Release-hosted build cache: archive, split, verify, restore"

from buildcache.core.pipeline import ArchivePipeline, RestorePipeline
from buildcache.cli.app import app as cli

__all__ = ["ArchivePipeline", "RestorePipeline", "cli", "__version__"]
