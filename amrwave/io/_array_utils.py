"""
Array utility functions for safe handling of NaN/Inf values.
"""

import numpy as np


def sanitize_array(arr: np.ndarray, fill_value: float = 0.0) -> np.ndarray:
    """Replace NaN and Inf values with a finite fill value.

    Unstable runs may leave non-finite values in the state; VTK readers
    reject them, so output goes through this filter.

    Parameters
    ----------
    arr : np.ndarray
        Input array that may contain NaN/Inf values.
    fill_value : float
        Value to replace NaN/Inf with (default: 0.0).

    Returns
    -------
    np.ndarray
        Copy of the array with all NaN/Inf values replaced.
    """
    result = np.array(arr, dtype=np.float64)
    mask = ~np.isfinite(result)
    if np.any(mask):
        result[mask] = fill_value
    return result

