"""Diagonal noise models used to weight residuals."""

import jax.numpy as jnp
from jax import Array
from flax import struct


@struct.dataclass
class NoiseModel:
    """Per-row standard deviations of a residual.

    A sigma of zero marks a hard (constrained) row. Whitening divides soft
    rows by their sigma and leaves hard rows unscaled; elimination reads the
    sigmas to keep hard rows exact.
    """
    sigmas: Array

    @classmethod
    def constrained(cls, dim: int) -> "NoiseModel":
        return cls(jnp.zeros(dim, dtype=jnp.float64))

    @classmethod
    def isotropic(cls, dim: int, sigma: float) -> "NoiseModel":
        if sigma < 0:
            raise ValueError(f"sigma must be non-negative, got {sigma}")
        return cls(jnp.full(dim, sigma, dtype=jnp.float64))

    @classmethod
    def unit(cls, dim: int) -> "NoiseModel":
        return cls.isotropic(dim, 1.0)

    @classmethod
    def diagonal(cls, sigmas) -> "NoiseModel":
        sigmas = jnp.asarray(sigmas, dtype=jnp.float64).reshape(-1)
        return cls(sigmas)

    @property
    def dim(self) -> int:
        return self.sigmas.shape[0]

    @property
    def is_constrained(self) -> bool:
        return bool(jnp.any(self.sigmas == 0))

    @property
    def weights(self) -> Array:
        safe = jnp.where(self.sigmas == 0, 1.0, self.sigmas)
        return jnp.where(self.sigmas == 0, 1.0, 1.0 / safe)

    def whiten(self, v: Array) -> Array:
        """Whiten a residual vector (dim,) or a Jacobian (dim, n)."""
        w = self.weights
        return w * v if v.ndim == 1 else w[:, None] * v
