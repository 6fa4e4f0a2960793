"""
Configuration schema for the adaptive wave solver.

Dataclass-based configuration that can be loaded from YAML or constructed programmatically.
"""

from dataclasses import dataclass, field, fields, asdict
from numbers import Integral, Real
from typing import Optional, List

from amrwave.constants import SUPPORTED_DEGREES, SUPPORTED_DIMENSIONS


class ConfigurationError(ValueError):
    """Raised for unsupported or inconsistent configuration values."""
    pass


@dataclass
class DiscretizationConfig:
    """Spatial discretization configuration."""

    degree: int = 2            # Polynomial degree (1-5), sets quadrature order
    dimension: int = 2         # Space dimension (2 or 3)


@dataclass
class TimeConfig:
    """Time integration window."""

    cfl: float = 0.2                   # Courant number: dt = cfl * min cell size
    final_time: float = 1.0
    output_interval: float = 0.25
    max_time_steps: Optional[int] = None  # None = unbounded


@dataclass
class MeshConfig:
    """Mesh configuration."""

    n_refinements: int = 3                 # Baseline uniform refinement (min level)
    n_adaptive_refinements: int = 1        # Adaptive budget above baseline
    adaptive_refinement_interval: int = 10 # Steps between adaptation events
    length: float = 1.0                    # Edge length of the periodic box


@dataclass
class AdaptivityConfig:
    """Error-driven refinement policy."""

    refine_fraction: float = 0.1     # Worst fraction of cells flagged for refinement
    coarsen_fraction: float = 0.6    # Best fraction of cells flagged for coarsening
    refine_threshold: float = 0.1    # Drop refinement below this fraction of the baseline
    coarsen_threshold: float = 0.05  # Force coarsening below this fraction of the baseline


@dataclass
class IntegratorConfig:
    """Explicit time integrator selection."""

    # One of: expleuler, classrk4, lsrk33reg2, lsrk45reg2, lsrk59reg2,
    #         lsrk45reg3, ssprk
    kind: str = "lsrk45reg2"
    ssp_stages: int = 10       # Only used for ssprk
    ssp_order: int = 4         # Only used for ssprk


@dataclass
class ProblemConfig:
    """Initial condition and physical parameters."""

    case: int = 1              # 1 = plane sine wave, 2 = Gaussian pulse
    sound_speed: float = 1.0
    amplitude: float = 1.0
    # Integer wave vector keeps the solution periodic in the box
    wave_vector: List[int] = field(default_factory=lambda: [1, 0, 0])
    pulse_width: float = 0.05  # Standard deviation of the pulse (in phase units)


@dataclass
class StabilityConfig:
    """Courant number stability search."""

    enabled: bool = False
    iterations: int = 12
    growth_factor: float = 100.0     # Error growth that marks a run unstable
    magnitude_factor: float = 1.5    # Error relative to the solution norm
    decrement: float = 0.1           # Step down while no stable bound is known
    increment: float = 0.05          # Step up while no unstable bound is known
    threshold: float = 0.15          # Switch from decrement to division by 3
    divisor: float = 3.0


@dataclass
class OutputConfig:
    """Output configuration."""

    enabled: bool = True
    directory: str = "output/amrwave"
    write_vtk: bool = True
    plot_history: bool = True


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    show_time: bool = True
    to_file: bool = True       # Also write amrwave.log into the output directory


@dataclass
class SimulationConfig:
    """Complete simulation configuration."""

    discretization: DiscretizationConfig = field(default_factory=DiscretizationConfig)
    time: TimeConfig = field(default_factory=TimeConfig)
    mesh: MeshConfig = field(default_factory=MeshConfig)
    adaptivity: AdaptivityConfig = field(default_factory=AdaptivityConfig)
    integrator: IntegratorConfig = field(default_factory=IntegratorConfig)
    problem: ProblemConfig = field(default_factory=ProblemConfig)
    stability: StabilityConfig = field(default_factory=StabilityConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def min_level(self) -> int:
        return self.mesh.n_refinements

    @property
    def max_level(self) -> int:
        return self.mesh.n_refinements + self.mesh.n_adaptive_refinements

    def to_dict(self) -> dict:
        """Convert to nested dictionary."""
        return asdict(self)


LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def _type_matches(value, field_type) -> bool:
    """Bools are rejected wherever a number is expected."""
    if field_type == Optional[int] and value is None:
        return True
    if field_type in (int, Optional[int]):
        return isinstance(value, Integral) and not isinstance(value, bool)
    if field_type is float:
        return isinstance(value, Real) and not isinstance(value, bool)
    if field_type == List[int]:
        return isinstance(value, (list, tuple)) and all(_type_matches(v, float) for v in value)
    return isinstance(value, field_type)


def check_types(config: SimulationConfig) -> None:
    """Raise ConfigurationError if a section or value has the wrong type."""
    for section in fields(SimulationConfig):
        value = getattr(config, section.name)
        if not isinstance(value, section.type):
            raise ConfigurationError(
                f"Section '{section.name}' must be a mapping, got {value!r}")
        for f in fields(section.type):
            item = getattr(value, f.name)
            if not _type_matches(item, f.type):
                raise ConfigurationError(
                    f"{section.name}.{f.name} has the wrong type: {item!r}")


def validate_config(config: SimulationConfig) -> SimulationConfig:
    """
    Check a configuration before any mesh is built or step is taken.

    Raises
    ------
    ConfigurationError
        For unsupported degree/dimension, unknown integrator kind or SSP
        pair, wrongly typed values and out-of-range numeric values.
    """
    # Imported here: the integrator registry imports this module
    from amrwave.solvers.time_stepping import IntegratorType, check_ssp_pair

    check_types(config)

    disc = config.discretization
    if disc.degree not in SUPPORTED_DEGREES:
        raise ConfigurationError(
            f"Unsupported degree {disc.degree}; expected one of {SUPPORTED_DEGREES}")
    if disc.dimension not in SUPPORTED_DIMENSIONS:
        raise ConfigurationError(
            f"Unsupported dimension {disc.dimension}; expected one of {SUPPORTED_DIMENSIONS}")

    t = config.time
    if not t.cfl > 0:
        raise ConfigurationError(f"cfl must be positive, got {t.cfl}")
    if not t.final_time > 0:
        raise ConfigurationError(f"final_time must be positive, got {t.final_time}")
    if not t.output_interval > 0:
        raise ConfigurationError(f"output_interval must be positive, got {t.output_interval}")
    if t.max_time_steps is not None and t.max_time_steps < 1:
        raise ConfigurationError(f"max_time_steps must be >= 1 or null, got {t.max_time_steps}")

    m = config.mesh
    if m.n_refinements < 0 or m.n_adaptive_refinements < 0:
        raise ConfigurationError("Refinement counts must be non-negative")
    if m.adaptive_refinement_interval < 1:
        raise ConfigurationError(
            f"adaptive_refinement_interval must be >= 1, got {m.adaptive_refinement_interval}")
    if not m.length > 0:
        raise ConfigurationError(f"Domain length must be positive, got {m.length}")

    a = config.adaptivity
    for name in ('refine_fraction', 'coarsen_fraction'):
        value = getattr(a, name)
        if not 0.0 <= value <= 1.0:
            raise ConfigurationError(f"{name} must lie in [0, 1], got {value}")
    if a.refine_fraction + a.coarsen_fraction > 1.0:
        raise ConfigurationError("refine_fraction + coarsen_fraction must not exceed 1")
    if a.refine_threshold < 0 or a.coarsen_threshold < 0:
        raise ConfigurationError("Adaptivity thresholds must be non-negative")

    kinds = [k.value for k in IntegratorType]
    if config.integrator.kind not in kinds:
        raise ConfigurationError(
            f"Unknown integrator '{config.integrator.kind}'; expected one of {kinds}")
    if config.integrator.kind == IntegratorType.SSPRK.value:
        check_ssp_pair(config.integrator.ssp_stages, config.integrator.ssp_order)

    p = config.problem
    if p.case not in (1, 2):
        raise ConfigurationError(f"Unknown initial case {p.case}; expected 1 or 2")
    if not p.sound_speed > 0:
        raise ConfigurationError(f"sound_speed must be positive, got {p.sound_speed}")
    if len(p.wave_vector) < disc.dimension:
        raise ConfigurationError(
            f"wave_vector needs {disc.dimension} components, got {p.wave_vector}")
    if any(not float(k).is_integer() for k in p.wave_vector):
        raise ConfigurationError(f"wave_vector must be integer for periodicity, got {p.wave_vector}")
    if not any(p.wave_vector[:disc.dimension]):
        raise ConfigurationError("wave_vector must have a non-zero component")
    if not p.pulse_width > 0:
        raise ConfigurationError(f"pulse_width must be positive, got {p.pulse_width}")

    s = config.stability
    if s.iterations < 1:
        raise ConfigurationError(f"stability.iterations must be >= 1, got {s.iterations}")
    if s.divisor <= 1.0:
        raise ConfigurationError(f"stability.divisor must exceed 1, got {s.divisor}")
    if not s.decrement > 0 or not s.increment > 0:
        raise ConfigurationError("stability.decrement and stability.increment must be positive")
    if s.decrement >= s.threshold:
        raise ConfigurationError(
            f"stability.decrement ({s.decrement}) must be below stability.threshold ({s.threshold})")

    if config.logging.level not in LOG_LEVELS:
        raise ConfigurationError(
            f"Unknown logging level '{config.logging.level}'; expected one of {LOG_LEVELS}")

    return config


# Preset configurations
def quick_preset() -> MeshConfig:
    """Coarse mesh for fast testing."""
    return MeshConfig(
        n_refinements=2,
        n_adaptive_refinements=1,
        adaptive_refinement_interval=5,
    )


def default_preset() -> MeshConfig:
    """Moderate mesh for interactive runs."""
    return MeshConfig(
        n_refinements=4,
        n_adaptive_refinements=2,
        adaptive_refinement_interval=10,
    )


def production_preset() -> MeshConfig:
    """Fine mesh for accurate results."""
    return MeshConfig(
        n_refinements=6,
        n_adaptive_refinements=3,
        adaptive_refinement_interval=20,
    )
