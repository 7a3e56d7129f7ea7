"""Residual descriptors handed to an external solver.

A Residual names the variables it involves, carries a noise model and an
error function. The error function receives the variables' values in key
order and returns the error vector together with one Jacobian per variable
(right-tangent Jacobians for poses). Linearizing a residual at some values
gives a LinearRelation that the elimination utility can consume.
"""

from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

import jax.numpy as jnp
from jax import Array

from ..keys import Key
from ..linear.gaussian import LinearRelation
from ..linear.noise import NoiseModel
from ..values import Values

ErrorFunction = Callable[..., Tuple[Array, Sequence[Array]]]


@dataclass(frozen=True)
class Residual:
    """One relation over named variables.

    Attributes:
        kind: Relation family, e.g. "pose", "twist", "torque".
        keys: Variables involved, in the order the function takes them.
        noise: Weighting of the error rows.
        function: (*values) -> (error, [jacobian per key]).
    """
    kind: str
    keys: Tuple[Key, ...]
    noise: NoiseModel
    function: ErrorFunction

    @property
    def dim(self) -> int:
        return self.noise.dim

    def evaluate(self, values: Values) -> Tuple[Array, List[Array]]:
        """Unwhitened error and (dim, key_dim) Jacobians at `values`.

        Raises:
            MissingVariableError: if a key is absent from values.
        """
        error, jacobians = self.function(*[values.at(key) for key in self.keys])
        error = jnp.asarray(error).reshape(-1)
        return error, [jnp.asarray(H).reshape(error.shape[0], -1) for H in jacobians]

    def error(self, values: Values) -> Array:
        """0.5 * |whitened error|^2."""
        e, _ = self.evaluate(values)
        e = self.noise.whiten(e)
        return 0.5 * jnp.dot(e, e)

    def linearize(self, values: Values) -> LinearRelation:
        """First-order model H dx = -e around `values`."""
        e, jacobians = self.evaluate(values)
        return LinearRelation.create(list(zip(self.keys, jacobians)), -e, self.noise)
