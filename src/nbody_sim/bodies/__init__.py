"""
Bodies module: handle-addressed body storage and quaternion helpers.
"""

from . import rotation
from .body_store import BodyStore

__all__ = [
    "BodyStore",
    "rotation",
]
