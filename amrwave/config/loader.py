"""
YAML configuration loader with validation.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Union
from dataclasses import fields, is_dataclass

from .schema import (
    ConfigurationError, SimulationConfig, MeshConfig,
    quick_preset, default_preset, production_preset,
)


def _merge_dict(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def _coerce_type(value, field_type):
    """Coerce value to the expected field type."""
    # Handle string representations of numbers (e.g., "1e-3")
    if field_type == float and isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    if field_type == float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if field_type == int and isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return value
    return value


def _dict_to_dataclass(cls, data: dict):
    """Convert a nested dictionary to a dataclass instance."""
    if not is_dataclass(cls):
        return data

    field_types = {f.name: f.type for f in fields(cls)}
    kwargs = {}

    for key, value in data.items():
        if key not in field_types:
            continue  # Skip unknown fields

        field_type = field_types[key]

        # Handle nested dataclasses; an empty section keeps its defaults
        if is_dataclass(field_type):
            if value is None:
                continue
            if not isinstance(value, dict):
                raise ConfigurationError(f"Section '{key}' must be a mapping, got {value!r}")
            kwargs[key] = _dict_to_dataclass(field_type, value)
        else:
            # Coerce types for primitive values
            kwargs[key] = _coerce_type(value, field_type)

    return cls(**kwargs)


def load_yaml(path: Union[str, Path]) -> SimulationConfig:
    """
    Load simulation configuration from a YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        SimulationConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ConfigurationError: If a section is not a mapping
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top level of {path} must be a mapping")

    return from_dict(data)


def from_dict(data: Dict[str, Any]) -> SimulationConfig:
    """
    Create SimulationConfig from a dictionary.

    Handles nested structures and applies defaults for missing values.
    A ``preset`` key selects one of the mesh presets; explicit ``mesh``
    entries override the preset.
    """
    data = dict(data)
    preset = data.pop('preset', None)
    if preset:
        mesh_preset = {
            'quick': quick_preset(),
            'default': default_preset(),
            'production': production_preset(),
        }.get(preset)
        if mesh_preset:
            mesh_data = data.get('mesh') or {}
            if not isinstance(mesh_data, dict):
                raise ConfigurationError(f"Section 'mesh' must be a mapping, got {mesh_data!r}")
            preset_dict = {f.name: getattr(mesh_preset, f.name) for f in fields(MeshConfig)}
            data['mesh'] = _merge_dict(preset_dict, mesh_data)

    return _dict_to_dataclass(SimulationConfig, data)


def apply_cli_overrides(config: SimulationConfig, args) -> SimulationConfig:
    """
    Apply command-line argument overrides to a configuration.

    Only overrides values that were explicitly set (not default).

    Args:
        config: Base configuration
        args: argparse.Namespace with CLI arguments

    Returns:
        Updated SimulationConfig
    """
    config_dict = config.to_dict()

    # Map CLI args to config paths
    cli_mapping = {
        # Discretization
        'degree': ('discretization', 'degree'),
        'dimension': ('discretization', 'dimension'),

        # Time window
        'cfl': ('time', 'cfl'),
        'final_time': ('time', 'final_time'),
        'output_interval': ('time', 'output_interval'),
        'max_steps': ('time', 'max_time_steps'),

        # Mesh
        'n_refinements': ('mesh', 'n_refinements'),
        'n_adaptive': ('mesh', 'n_adaptive_refinements'),
        'adapt_interval': ('mesh', 'adaptive_refinement_interval'),

        # Integrator
        'integrator': ('integrator', 'kind'),
        'ssp_stages': ('integrator', 'ssp_stages'),
        'ssp_order': ('integrator', 'ssp_order'),

        # Problem
        'case': ('problem', 'case'),

        # Output and logging
        'output_dir': ('output', 'directory'),
        'log_level': ('logging', 'level'),
    }

    for cli_name, config_path in cli_mapping.items():
        if hasattr(args, cli_name):
            value = getattr(args, cli_name)
            if value is not None:
                # Navigate to the right nested dict
                target = config_dict
                for key in config_path[:-1]:
                    target = target[key]
                target[config_path[-1]] = value

    # Boolean switches only ever turn a feature on or off
    if getattr(args, 'stability', False):
        config_dict['stability']['enabled'] = True
    if getattr(args, 'no_output', False):
        config_dict['output']['enabled'] = False

    return from_dict(config_dict)


def save_yaml(config: SimulationConfig, path: Union[str, Path]) -> None:
    """Save configuration to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w') as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
