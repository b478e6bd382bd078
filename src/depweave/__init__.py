"""depweave: dependency resolution and build identity for compiled-language packages."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Lock file marker; bump the trailing number with any format change.
_LOCKFILE_MARK = "# depweave lock-file v"
