"""Shared utilities for Mender.

Contains cross-cutting utilities used by multiple modules.
"""

from mender.utils.files import atomic_write_json
from mender.utils.time import age_of, ensure_utc, utc_now

__all__ = ["age_of", "atomic_write_json", "ensure_utc", "utc_now"]
