"""
Utility functions for the vbgrowth JAX/NumPyro implementation.

This module contains utility functions for JAX, including random state management,
floating point precision and array coercion.
"""

from typing import Tuple, Union

import jax
import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jaxtyping import ArrayLike

# Type definitions
KeyArray = jnp.ndarray  # JAX random key type


@beartype
def create_key(seed: int) -> KeyArray:
    """Create a JAX random key from a seed.

    Args:
        seed: Integer seed for random number generation

    Returns:
        JAX random key
    """
    return jax.random.PRNGKey(seed)


@beartype
def split_key(key: KeyArray, num: int = 2) -> Tuple[KeyArray, ...]:
    """Split a JAX random key into multiple keys.

    Args:
        key: JAX random key
        num: Number of keys to split into

    Returns:
        Tuple of JAX random keys
    """
    return tuple(jax.random.split(key, num))


@beartype
def enable_x64() -> None:
    """Enable 64-bit floating point precision in JAX."""
    jax.config.update("jax_enable_x64", True)


@beartype
def ensure_array(array: Union[ArrayLike, list, tuple]) -> jnp.ndarray:
    """Ensure that the input is a floating point JAX array.

    Args:
        array: Input array or array-like object

    Returns:
        JAX array with a floating point dtype
    """
    array = jnp.asarray(array)
    if not jnp.issubdtype(array.dtype, jnp.floating):
        array = array.astype(jnp.result_type(float))
    return array


@beartype
def to_numpy(array: Union[ArrayLike, list, tuple]) -> np.ndarray:
    """Convert a JAX array (or array-like) to a host NumPy array."""
    return np.asarray(jax.device_get(array))
