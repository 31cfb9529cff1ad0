"""
I/O module: HDF5 body snapshots.
"""

from nbody_sim.io.hdf5 import (
    HDF5Writer,
    write_snapshot,
    read_snapshot,
)

__all__ = [
    'HDF5Writer',
    'write_snapshot',
    'read_snapshot',
]
