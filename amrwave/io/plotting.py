"""
Visualization utilities for adaptive wave runs.

This module provides functions for plotting the error history of a run
and the progress of a Courant number stability search.
"""

import os
import numpy as np
from typing import Optional, Sequence
from pathlib import Path

# Lazy import matplotlib to avoid issues when not installed
_plt = None
_matplotlib = None


def _ensure_matplotlib():
    """Ensure matplotlib is available and configured."""
    global _plt, _matplotlib
    if _plt is None:
        import matplotlib
        matplotlib.use('Agg')  # Non-interactive backend
        import matplotlib.pyplot as plt
        _matplotlib = matplotlib
        _plt = plt
    return _plt


def plot_error_history(history: Sequence, output_dir: str,
                       case_name: str = "run") -> Optional[str]:
    """
    Plot L2 error norms over time.

    Parameters
    ----------
    history : sequence of OutputRecord
        One record per output event (time, error norms, cell count).
    output_dir : str
        Output directory.
    case_name : str
        Base name for output file.

    Returns
    -------
    output_path : str or None
        Path to saved PDF, or None if not enough data.
    """
    if len(history) < 2:
        return None

    plt = _ensure_matplotlib()

    times = np.array([r.time for r in history])
    fig, (ax, ax_cells) = plt.subplots(2, 1, figsize=(10, 8), sharex=True)

    for attr, label, style in (('error_density', 'density', 'b-'),
                               ('error_momentum', 'momentum', 'r--'),
                               ('error_energy', 'energy', 'g-.')):
        values = np.array([getattr(r, attr) for r in history])
        # semilogy cannot show exact zeros or non-finite values
        mask = np.isfinite(values) & (values > 0)
        if np.any(mask):
            ax.semilogy(times[mask], values[mask], style, lw=1.5, label=label)

    ax.set_ylabel('L2 error')
    ax.set_title('Error History')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='best')

    ax_cells.step(times, [r.n_cells for r in history], 'k-', where='post')
    ax_cells.set_xlabel('Time')
    ax_cells.set_ylabel('Active cells')
    ax_cells.grid(True, alpha=0.3)

    plt.tight_layout()

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    output_path = os.path.join(output_dir, f'{case_name}_errors.pdf')
    plt.savefig(output_path, dpi=100)
    plt.close(fig)

    return output_path


def plot_stability_search(bracket, degree: int, output_dir: str,
                          case_name: str = "cfl_search") -> Optional[str]:
    """
    Plot the tested Courant numbers of a stability search, coloured by verdict.

    The y axis shows the scaled value cfl * degree^1.5 that is reported in
    the log.
    """
    if not bracket.trials:
        return None

    plt = _ensure_matplotlib()

    scale = degree ** 1.5
    fig, ax = plt.subplots(figsize=(10, 6))

    iterations = np.array([t.iteration for t in bracket.trials])
    scaled = np.array([t.cfl * scale for t in bracket.trials])
    stable = np.array([t.stable for t in bracket.trials], dtype=bool)

    ax.plot(iterations, scaled, 'k:', lw=1.0)
    ax.plot(iterations[stable], scaled[stable], 'go', label='stable')
    ax.plot(iterations[~stable], scaled[~stable], 'rx', ms=8, label='unstable')
    if bracket.stable is not None:
        ax.axhline(bracket.stable * scale, color='g', alpha=0.4)
    if bracket.unstable is not None:
        ax.axhline(bracket.unstable * scale, color='r', alpha=0.4)

    ax.set_xlabel('Iteration')
    ax.set_ylabel(r'CFL $\cdot$ degree$^{1.5}$')
    ax.set_title('Courant Number Stability Search')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='best')

    plt.tight_layout()

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    output_path = os.path.join(output_dir, f'{case_name}.pdf')
    plt.savefig(output_path, dpi=100)
    plt.close(fig)

    return output_path
