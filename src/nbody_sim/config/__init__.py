"""
Configuration module: parameter management and body files.

Provides YAML/JSON configuration loading and validation, and YAML/JSON/TOML
initial-body loading.
"""

from nbody_sim.config.loaders import (
    load_config,
    save_config,
    config_from_dict,
    flatten_config,
    load_bodies,
    bodies_from_dicts,
    parse_vec3,
)

__all__ = [
    'load_config',
    'save_config',
    'config_from_dict',
    'flatten_config',
    'load_bodies',
    'bodies_from_dicts',
    'parse_vec3',
]
