"""
Configuration module for the adaptive wave solver.

Provides YAML-based configuration with dataclass schema.
"""

from .schema import (
    ConfigurationError,
    SimulationConfig,
    DiscretizationConfig,
    TimeConfig,
    MeshConfig,
    AdaptivityConfig,
    IntegratorConfig,
    ProblemConfig,
    StabilityConfig,
    OutputConfig,
    LoggingConfig,
    validate_config,
    quick_preset,
    default_preset,
    production_preset,
)

from .loader import (
    load_yaml,
    from_dict,
    apply_cli_overrides,
    save_yaml,
)

__all__ = [
    # Schema classes
    'ConfigurationError',
    'SimulationConfig',
    'DiscretizationConfig',
    'TimeConfig',
    'MeshConfig',
    'AdaptivityConfig',
    'IntegratorConfig',
    'ProblemConfig',
    'StabilityConfig',
    'OutputConfig',
    'LoggingConfig',
    'validate_config',
    # Presets
    'quick_preset',
    'default_preset',
    'production_preset',
    # Loader functions
    'load_yaml',
    'from_dict',
    'apply_cli_overrides',
    'save_yaml',
]
