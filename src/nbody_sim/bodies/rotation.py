"""
Quaternion helpers for body orientation.

Quaternions are stored as ``(x, y, z, w)`` with the identity ``(0, 0, 0, 1)``.
All functions accept a single quaternion of shape (4,) or a batch of shape
(N, 4) and broadcast over the leading axis.
"""

import numpy as np

from ..core.interfaces import NDArrayFloat

IDENTITY = np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)


def identity(n: int) -> NDArrayFloat:
    """Batch of ``n`` identity quaternions."""
    return np.tile(IDENTITY, (n, 1))


def from_scaled_axis(v: NDArrayFloat) -> NDArrayFloat:
    """
    Rotation of angle |v| about the axis v / |v|.

    A zero vector gives the identity rotation.
    """
    v = np.asarray(v, dtype=np.float64)
    angle = np.linalg.norm(v, axis=-1, keepdims=True)
    half = 0.5 * angle
    # sin(|v|/2) / |v| with the removable singularity at 0 set to its limit 1/2
    with np.errstate(invalid="ignore", divide="ignore"):
        scale = np.where(angle > 0.0, np.sin(half) / angle, 0.5)
    return np.concatenate([v * scale, np.cos(half)], axis=-1)


def multiply(a: NDArrayFloat, b: NDArrayFloat) -> NDArrayFloat:
    """Hamilton product ``a * b`` (apply ``b`` first, then ``a``)."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    ax, ay, az, aw = np.moveaxis(a, -1, 0)
    bx, by, bz, bw = np.moveaxis(b, -1, 0)
    return np.stack([
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
        aw * bw - ax * bx - ay * by - az * bz,
    ], axis=-1)


def normalize(q: NDArrayFloat) -> NDArrayFloat:
    """Rescale to unit length; degenerate (zero) quaternions become the identity."""
    q = np.asarray(q, dtype=np.float64)
    norm = np.linalg.norm(q, axis=-1, keepdims=True)
    safe = np.where(norm > 0.0, norm, 1.0)
    return np.where(norm > 0.0, q / safe, IDENTITY)


def rotate(q: NDArrayFloat, v: NDArrayFloat) -> NDArrayFloat:
    """Rotate vector(s) ``v`` by unit quaternion(s) ``q``."""
    q = np.asarray(q, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    u = q[..., :3]
    w = q[..., 3:]
    t = 2.0 * np.cross(u, v)
    return v + w * t + np.cross(u, t)
