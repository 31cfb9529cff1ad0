"""
Configuration and body-file loaders for YAML, JSON and TOML files.

This module provides functions to load and validate simulation configurations
from YAML/JSON files (nested sections are flattened onto SimulationConfig
fields) and to load initial body parameters into a BodyStore.

A body file holds an array of tables under ``body`` (or ``bodies``):

    [[body]]
    name = "Earth"
    mass = 5.972e24
    r = 6.371e6
    position = { x = 1.496e11, y = 0.0, z = 0.0 }
    velocity = { x = 0.0, y = 29780.0, z = 0.0 }
    angular_vel = { x = 0.0, y = 7.292e-5, z = 0.0 }

Absent fields default to mass 1, zero vectors, name "Unnamed" and radius 1.
"""

from typing import Any, Dict, List, Optional, Union
from pathlib import Path
import json
import tomllib
import yaml

from nbody_sim.bodies import BodyStore
from nbody_sim.core.errors import MalformedInputError
from nbody_sim.core.simulation import SimulationConfig

CONFIG_SUFFIXES = ('.yaml', '.yml', '.json')
BODY_SUFFIXES = ('.yaml', '.yml', '.json', '.toml')

# Field mapping for nested config sections
FIELD_MAPPINGS = {
    'simulation': {
        'G': 'G',
        'gravitational_constant': 'G',
        't_start': 't_start',
        't_end': 't_end',
        'dt': 'dt',
        'tick': 'dt',
        'max_ticks_per_advance': 'max_ticks_per_advance',
        'verbose': 'verbose',
    },
    'index': {
        'enabled': 'build_index',
        'origin': 'index_origin',
        'size': 'index_size',
        'max_depth': 'index_max_depth',
        'coincident_policy': 'coincident_policy',
    },
    'output': {
        'output_dir': 'output_dir',
        'snapshot_interval': 'snapshot_interval',
        'log_interval': 'log_interval',
    },
    'diagnostics': {
        'energy_tolerance': 'energy_tolerance',
    },
}


def load_config(filename: Union[str, Path], **overrides) -> SimulationConfig:
    """
    Load simulation configuration from YAML or JSON file.

    Parameters
    ----------
    filename : str or Path
        Path to configuration file (.yaml, .yml, or .json)
    **overrides : keyword arguments
        Override specific config values (e.g., dt=0.01, verbose=False)

    Returns
    -------
    config : SimulationConfig
        Validated simulation configuration

    Raises
    ------
    FileNotFoundError
        If configuration file does not exist
    ValueError
        If file format is unsupported, the file cannot be parsed, or the
        config is invalid

    Examples
    --------
    >>> config = load_config("solar_system.yaml")
    >>> config = load_config("config.yaml", dt=0.001, build_index=False)
    """
    filepath = Path(filename)

    if not filepath.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    suffix = filepath.suffix.lower()
    if suffix not in CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config file format: {suffix}. "
            "Use .yaml, .yml, or .json"
        )
    config_dict = _load_mapping(filepath)
    if not isinstance(config_dict, dict):
        raise ValueError(
            f"Configuration in {filepath} must be a mapping, got {type(config_dict).__name__}"
        )

    flat_config = flatten_config(config_dict)
    flat_config.update(overrides)

    try:
        config = SimulationConfig(**flat_config)
    except Exception as e:
        raise ValueError(
            f"Configuration validation failed for {filepath}: {e}"
        ) from e

    return config


def load_yaml(filepath: Path) -> Any:
    """Load a YAML file (an empty file loads as an empty dict)."""
    with open(filepath, 'r') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {filepath}: {e}") from e
    return {} if data is None else data


def load_json(filepath: Path) -> Any:
    """Load a JSON file."""
    with open(filepath, 'r') as f:
        return json.load(f)


def load_toml(filepath: Path) -> Dict[str, Any]:
    """Load a TOML file."""
    with open(filepath, 'rb') as f:
        return tomllib.load(f)


def _load_mapping(filepath: Path) -> Any:
    suffix = filepath.suffix.lower()
    if suffix in ('.yaml', '.yml'):
        return load_yaml(filepath)
    if suffix == '.json':
        return load_json(filepath)
    return load_toml(filepath)


def flatten_config(config_dict: Dict[str, Any], parent_key: str = '') -> Dict[str, Any]:
    """
    Flatten nested configuration dictionary.

    Converts nested structures like:
        {'index': {'size': 4.0, 'max_depth': 32}}
    to:
        {'index_size': 4.0, 'index_max_depth': 32}

    Sections without a mapping are flattened recursively with their keys
    passed through unchanged.
    """
    flat = {}

    for key, value in config_dict.items():
        if key in FIELD_MAPPINGS and isinstance(value, dict):
            for subkey, subvalue in value.items():
                flat[FIELD_MAPPINGS[key].get(subkey, subkey)] = subvalue
        elif isinstance(value, dict):
            flat.update(flatten_config(value, parent_key=key))
        else:
            flat[key] = value

    return flat


def save_config(config: SimulationConfig, filename: Union[str, Path]) -> None:
    """
    Save SimulationConfig to a YAML or JSON file, grouped into sections.
    """
    filepath = Path(filename)
    c = config.model_dump()

    organized = {
        'simulation': {
            'G': c['G'],
            't_start': c['t_start'],
            't_end': c['t_end'],
            'dt': c['dt'],
            'max_ticks_per_advance': c['max_ticks_per_advance'],
            'verbose': c['verbose'],
        },
        'index': {
            'enabled': c['build_index'],
            'origin': list(c['index_origin']),
            'size': c['index_size'],
            'max_depth': c['index_max_depth'],
            'coincident_policy': c['coincident_policy'],
        },
        'output': {
            'output_dir': c['output_dir'],
            'snapshot_interval': c['snapshot_interval'],
            'log_interval': c['log_interval'],
        },
        'diagnostics': {
            'energy_tolerance': c['energy_tolerance'],
        },
    }

    suffix = filepath.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        with open(filepath, 'w') as f:
            yaml.dump(organized, f, default_flow_style=False, sort_keys=False)
    elif suffix == '.json':
        with open(filepath, 'w') as f:
            json.dump(organized, f, indent=2)
    else:
        raise ValueError(f"Unsupported output format: {suffix}. Use .yaml or .json")


def config_from_dict(config_dict: Dict[str, Any]) -> SimulationConfig:
    """
    Create SimulationConfig from dictionary (helper for programmatic use).
    """
    return SimulationConfig(**flatten_config(config_dict))


# ----------------------------------------------------------------------
# Body files
# ----------------------------------------------------------------------

def load_bodies(filename: Union[str, Path]) -> BodyStore:
    """
    Load initial bodies from a YAML, JSON or TOML file.

    Parameters
    ----------
    filename : str or Path
        Path to body file (.yaml, .yml, .json or .toml)

    Returns
    -------
    bodies : BodyStore
        One body per entry, in file order.

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    ValueError
        If the format is unsupported or there is no body list
    MalformedInputError
        If a body has a non-positive mass or a malformed/non-finite vector
    """
    filepath = Path(filename)

    if not filepath.exists():
        raise FileNotFoundError(f"Body file not found: {filepath}")

    suffix = filepath.suffix.lower()
    if suffix not in BODY_SUFFIXES:
        raise ValueError(
            f"Unsupported body file format: {suffix}. "
            "Use .yaml, .yml, .json, or .toml"
        )

    data = _load_mapping(filepath)
    entries = _body_entries(data, filepath)
    return bodies_from_dicts(entries)


def bodies_from_dicts(entries: List[Dict[str, Any]]) -> BodyStore:
    """Build a BodyStore from body tables, applying loader defaults."""
    store = BodyStore()
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise MalformedInputError(f"Body #{i} must be a table, got {type(entry).__name__}")
        name = str(entry.get('name', 'Unnamed'))
        store.add_body(
            position=parse_vec3(entry.get('position'), f"position of body '{name}'"),
            velocity=parse_vec3(entry.get('velocity'), f"velocity of body '{name}'"),
            mass=_parse_float(entry.get('mass'), 1.0, f"mass of body '{name}'"),
            angular_velocity=parse_vec3(
                entry.get('angular_vel', entry.get('angular_velocity')),
                f"angular velocity of body '{name}'",
            ),
            name=name,
            radius=_parse_float(entry.get('r', entry.get('radius')), 1.0, f"radius of body '{name}'"),
        )
    return store


def _body_entries(data: Any, filepath: Path) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ('body', 'bodies'):
            if key in data:
                entries = data[key]
                if not isinstance(entries, list):
                    raise ValueError(f"'{key}' in {filepath} must be an array of tables")
                return entries
    raise ValueError(f"No 'body' array found in {filepath}")


def parse_vec3(value: Any, label: str = "vector") -> List[float]:
    """
    Parse a 3-vector given as an ``{x, y, z}`` table or a 3-element list.

    ``None`` (field absent) gives the zero vector.
    """
    if value is None:
        return [0.0, 0.0, 0.0]
    if isinstance(value, dict):
        missing = [k for k in ('x', 'y', 'z') if k not in value]
        if missing:
            raise MalformedInputError(f"{label} is missing components {missing}")
        components = [value['x'], value['y'], value['z']]
    elif isinstance(value, (list, tuple)):
        if len(value) != 3:
            raise MalformedInputError(f"{label} must have 3 components, got {len(value)}")
        components = list(value)
    else:
        raise MalformedInputError(f"{label} must be a table or list, got {type(value).__name__}")
    return [_parse_float(c, None, label) for c in components]


def _parse_float(value: Any, default: Optional[float], label: str) -> float:
    if value is None and default is not None:
        return default
    # PyYAML reads exponents without a sign or dot (e.g. 5.972e24) as strings
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            raise MalformedInputError(f"{label} must be a number, got {value!r}") from None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedInputError(f"{label} must be a number, got {value!r}")
    return float(value)
