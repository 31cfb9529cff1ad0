"""
HDF5 snapshot I/O for N-body simulations.

This module provides snapshot storage and retrieval using HDF5 format with
compression.

Design:
- Organized group structure: /bodies, /metadata
- Compression enabled (gzip level 4) for efficient storage
- float64 datasets, so a snapshot restores a bit-identical state

Example usage:
    >>> writer = HDF5Writer()
    >>> writer.write_snapshot(
    ...     "snapshot_0000.h5",
    ...     bodies.as_dict(),
    ...     time=0.0,
    ...     metadata={"G": 6.6743e-11}
    ... )
    >>> data = writer.read_snapshot("snapshot_0000.h5")
"""

import h5py
import numpy as np
from typing import Dict, Any, List, Optional
from pathlib import Path
from datetime import datetime

from nbody_sim import __version__
from nbody_sim.core.interfaces import NDArrayFloat

REQUIRED_FIELDS = ('positions', 'velocities', 'masses')


class HDF5Writer:
    """
    HDF5-based snapshot writer for body state.

    Attributes
    ----------
    compression : str
        Compression algorithm (default: 'gzip')
    compression_level : int
        Compression level 0-9 (default: 4, balances speed vs size)
    code_version : str
        Version identifier written into every snapshot
    """

    def __init__(
        self,
        compression: Optional[str] = "gzip",
        compression_level: int = 4,
        code_version: str = __version__
    ):
        self.compression = compression
        self.compression_level = compression_level if compression == "gzip" else None
        self.code_version = code_version

    def write_snapshot(
        self,
        filename: str,
        bodies: Dict[str, NDArrayFloat],
        time: float,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Write body snapshot to HDF5 file.

        Parameters
        ----------
        filename : str
            Path to output HDF5 file. Parent directories are created.
        bodies : Dict[str, NDArrayFloat]
            Body arrays, typically ``BodyStore.as_dict()``. Required keys:
            'positions' (N, 3), 'velocities' (N, 3), 'masses' (N,).
        time : float
            Current simulation time.
        metadata : Dict[str, Any], optional
            Additional metadata; scalars and strings become attributes,
            arrays and lists become datasets.
        """
        Path(filename).parent.mkdir(parents=True, exist_ok=True)

        missing = [f for f in REQUIRED_FIELDS if f not in bodies]
        if missing:
            raise ValueError(f"Missing required body fields: {missing}")

        n_bodies = len(bodies['masses'])

        with h5py.File(filename, 'w') as f:
            body_group = f.create_group('bodies')

            for key, array in bodies.items():
                array = np.asarray(array)
                # Chunked compression needs at least one element
                compress = self.compression if array.size else None
                body_group.create_dataset(
                    key,
                    data=array,
                    compression=compress,
                    compression_opts=self.compression_level if compress else None,
                )

            body_group.attrs['n_bodies'] = n_bodies
            body_group.attrs['time'] = time

            meta_group = f.create_group('metadata')
            meta_group.attrs['code_version'] = self.code_version
            meta_group.attrs['creation_time'] = datetime.now().isoformat()
            meta_group.attrs['simulation_time'] = time
            meta_group.attrs['n_bodies'] = n_bodies

            if metadata is not None:
                for key, value in metadata.items():
                    if isinstance(value, (int, float, str, bool, np.integer, np.floating)):
                        meta_group.attrs[key] = value
                    elif isinstance(value, (list, tuple)) and len(value) == 0:
                        # An empty list has no element type; store it as an empty name list
                        meta_group.create_dataset(key, shape=(0,), dtype=h5py.string_dtype())
                    elif isinstance(value, (list, tuple, np.ndarray)):
                        array = np.asarray(value)
                        if array.dtype.kind in ('U', 'O'):
                            meta_group.create_dataset(
                                key, data=array.astype(object), dtype=h5py.string_dtype()
                            )
                        else:
                            meta_group.create_dataset(key, data=array)
                    else:
                        # Store string representation for complex types
                        meta_group.attrs[key] = str(value)

            f.attrs['time'] = time
            f.attrs['n_bodies'] = n_bodies
            f.attrs['code_version'] = self.code_version

    def read_snapshot(
        self,
        filename: str,
        load_metadata: bool = True
    ) -> Dict[str, Any]:
        """
        Read body snapshot from HDF5 file.

        Returns
        -------
        data : Dict[str, Any]
            - 'bodies': Dict of body arrays
            - 'time': float - simulation time
            - 'n_bodies': int - number of bodies
            - 'metadata': Dict - additional metadata (if load_metadata=True)
        """
        if not Path(filename).exists():
            raise FileNotFoundError(f"Snapshot file not found: {filename}")

        with h5py.File(filename, 'r') as f:
            bodies = {key: f['bodies'][key][()] for key in f['bodies'].keys()}

            result = {
                'bodies': bodies,
                'time': float(f.attrs['time']),
                'n_bodies': int(f.attrs['n_bodies']),
            }

            if load_metadata and 'metadata' in f:
                meta_group = f['metadata']
                metadata = {key: meta_group.attrs[key] for key in meta_group.attrs.keys()}
                for key in meta_group.keys():
                    dataset = meta_group[key]
                    if h5py.check_string_dtype(dataset.dtype) is not None:
                        metadata[key] = [s for s in dataset.asstr()[()]]
                    else:
                        metadata[key] = dataset[()]
                result['metadata'] = metadata

            return result

    def list_snapshots(self, directory: str, pattern: str = "snapshot_*.h5") -> List[Path]:
        """
        List all snapshot files in a directory, sorted by name.
        """
        dir_path = Path(directory)
        if not dir_path.exists():
            raise ValueError(f"Directory not found: {directory}")
        return sorted(dir_path.glob(pattern))


def write_snapshot(
    filename: str,
    bodies: Dict[str, NDArrayFloat],
    time: float,
    metadata: Optional[Dict[str, Any]] = None,
    **kwargs
) -> None:
    """
    Convenience function to write a snapshot with default settings.

    Examples
    --------
    >>> write_snapshot("snap.h5", bodies.as_dict(), time=1.0, metadata={"G": 1.0})
    """
    writer = HDF5Writer(**kwargs)
    writer.write_snapshot(filename, bodies, time, metadata)


def read_snapshot(filename: str, **kwargs) -> Dict[str, Any]:
    """
    Convenience function to read a snapshot with default settings.

    Examples
    --------
    >>> data = read_snapshot("snap.h5")
    >>> positions = data['bodies']['positions']
    """
    writer = HDF5Writer()
    return writer.read_snapshot(filename, **kwargs)
