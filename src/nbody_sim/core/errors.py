"""
Exception types raised by the N-body core.

A stale body handle is deliberately not represented here: inserting a handle
that no longer resolves to a live body is a no-op, because the index is
rebuilt from a fresh snapshot every tick.
"""


class MalformedInputError(ValueError):
    """
    A body was supplied with non-positive mass or non-finite state.

    Raised before any such value can reach the physics, where a single NaN
    would poison every aggregate computed afterwards.
    """


class DegenerateGeometryError(RuntimeError):
    """
    Two or more bodies cannot be separated by cube subdivision.

    Raised by the octree when bodies share a position (or the subdivision
    depth limit is reached) and the index was built with
    ``coincident="raise"``.
    """

    def __init__(self, message: str, handles=(), depth: int = 0):
        super().__init__(message)
        self.handles = tuple(handles)
        self.depth = depth
