"""Utility functions for validating arguments and coercing arrays."""

import numbers
import numpy as np
from hastings.errors import ConfigurationError


def as_state_array(value):
    """Convert a state value to a one-dimensional float array.

    Scalar values are promoted to arrays of shape `(1,)` so that univariate
    and multivariate targets share a single code path.

    Args:
        value (float or array_like): Scalar or one-dimensional state value.

    Returns:
        array: Copy of value as a one-dimensional `float64` array.
    """
    array = np.array(value, dtype=np.float64)
    if array.ndim == 0:
        array = array.reshape(1)
    elif array.ndim != 1:
        raise ConfigurationError(
            f'States must be scalars or one-dimensional arrays, got an array '
            f'with shape {array.shape}.')
    return array


def to_scalar(value, description):
    """Convert a function output to a Python float.

    Accepts any value with a single element, such as a float, a zero
    dimensional array or an array of shape `(1,)`.

    Args:
        value (object): Value to convert.
        description (str): Description of value for error messages.

    Returns:
        float: Converted value.
    """
    array = np.asarray(value, dtype=np.float64)
    if array.size != 1:
        raise ConfigurationError(
            f'{description} should return a scalar value, got an array with '
            f'shape {array.shape}.')
    return float(array.reshape(()))


def check_positive(value, name):
    """Check a scalar or array parameter has strictly positive entries.

    Args:
        value (float or array_like): Parameter value to check.
        name (str): Name of parameter for error messages.

    Returns:
        float or array: `value` as a float or float array.
    """
    array = np.asarray(value, dtype=np.float64)
    if not np.all(np.isfinite(array)) or not np.all(array > 0):
        raise ConfigurationError(
            f'{name} must be finite and positive, got {value}.')
    return float(array) if array.ndim == 0 else array


def check_positive_int(value, name):
    """Check a parameter is a strictly positive integer.

    Args:
        value (int): Parameter value to check.
        name (str): Name of parameter for error messages.

    Returns:
        int: `value` as a Python integer.
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ConfigurationError(f'{name} must be an integer, got {value!r}.')
    if value < 1:
        raise ConfigurationError(f'{name} must be positive, got {value}.')
    return int(value)


def check_dimension(array, dim, name):
    """Check a per-dimension parameter array is compatible with a state size.

    Scalars are compatible with any dimension.

    Args:
        array (float or array): Parameter value.
        dim (int): State dimension.
        name (str): Name of parameter for error messages.
    """
    if np.ndim(array) == 1 and np.shape(array)[0] != dim:
        raise ConfigurationError(
            f'{name} has {np.shape(array)[0]} entries but state dimension is '
            f'{dim}.')
