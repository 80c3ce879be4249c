"""
Screening retention engine - keeps saved patient screening drafts alive.
"""

from .core.config import VERSION as __version__
