"""Package-wide constants."""

from __future__ import annotations

PACKAGE_VERSION = "0.4.0"
DEFAULT_KEY_PREFIX = "stepflow"
DEFAULT_SEGMENT = "default"
KEY_SEPARATOR = ":"
