"""Linear relations, conditionals and Bayes nets.

A LinearRelation is the linear least-squares block  sum_k A_k x_k = b  with a
noise model. Eliminating a variable from a set of relations produces a
GaussianConditional  R x + sum_p S_p x_p = d  expressing it in terms of the
remaining ones. A GaussianBayesNet is an ordered list of conditionals that
can be solved by back-substitution.
"""

from dataclasses import dataclass
from typing import Dict, Hashable, Iterator, Mapping, Optional, Sequence, Tuple, Union

import jax.numpy as jnp
import jax.scipy.linalg
from jax import Array

from .noise import NoiseModel

Terms = Union[Mapping[Hashable, Array], Sequence[Tuple[Hashable, Array]]]


def _as_matrix(A) -> Array:
    A = jnp.asarray(A, dtype=jnp.float64)
    if A.ndim == 0:
        return A.reshape(1, 1)
    if A.ndim == 1:
        # A (dim,) block acts on a scalar variable
        return A[:, None]
    return A


@dataclass(frozen=True)
class LinearRelation:
    """Linear relation sum_k A_k x_k = b with noise model `noise`."""
    terms: Tuple[Tuple[Hashable, Array], ...]
    rhs: Array
    noise: NoiseModel

    @classmethod
    def create(cls, terms: Terms, rhs, noise: Optional[NoiseModel] = None) -> "LinearRelation":
        """Build a relation, normalizing blocks to 2-D float64 matrices.

        Raises:
            ValueError: if blocks and right-hand side disagree on row count,
                or a key appears twice.
        """
        items = terms.items() if isinstance(terms, Mapping) else terms
        blocks = tuple((key, _as_matrix(A)) for key, A in items)
        rhs = jnp.asarray(rhs, dtype=jnp.float64).reshape(-1)

        keys = [key for key, _ in blocks]
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate keys in linear relation: {keys}")
        for key, A in blocks:
            if A.shape[0] != rhs.shape[0]:
                raise ValueError(
                    f"Block for {key} has {A.shape[0]} rows, right-hand side has {rhs.shape[0]}")
        noise = NoiseModel.unit(rhs.shape[0]) if noise is None else noise
        if noise.dim != rhs.shape[0]:
            raise ValueError(f"Noise model dimension {noise.dim} does not match {rhs.shape[0]} rows")
        return cls(blocks, rhs, noise)

    @property
    def keys(self) -> Tuple[Hashable, ...]:
        return tuple(key for key, _ in self.terms)

    @property
    def dim(self) -> int:
        return self.rhs.shape[0]

    def block(self, key: Hashable) -> Array:
        for k, A in self.terms:
            if k == key:
                return A
        raise KeyError(key)

    def unwhitened_error(self, solution: Mapping[Hashable, Array]) -> Array:
        """A x - b."""
        total = -self.rhs
        for key, A in self.terms:
            total = total + A @ jnp.asarray(solution[key]).reshape(-1)
        return total

    def error(self, solution: Mapping[Hashable, Array]) -> Array:
        """0.5 * |W (A x - b)|^2."""
        e = self.noise.whiten(self.unwhitened_error(solution))
        return 0.5 * jnp.dot(e, e)

    def whitened(self) -> "LinearRelation":
        """The equivalent relation with a unit noise model."""
        terms = tuple((key, self.noise.whiten(A)) for key, A in self.terms)
        return LinearRelation(terms, self.noise.whiten(self.rhs), NoiseModel.unit(self.dim))


@dataclass(frozen=True)
class GaussianConditional:
    """R x_frontal + sum_p S_p x_p = d, with R upper triangular."""
    frontal: Hashable
    R: Array
    parents: Tuple[Tuple[Hashable, Array], ...]
    d: Array

    @classmethod
    def create(cls, frontal: Hashable, R, d, parents: Terms = ()) -> "GaussianConditional":
        items = parents.items() if isinstance(parents, Mapping) else parents
        return cls(
            frontal,
            _as_matrix(R),
            tuple((key, _as_matrix(S)) for key, S in items),
            jnp.asarray(d, dtype=jnp.float64).reshape(-1),
        )

    @property
    def parent_keys(self) -> Tuple[Hashable, ...]:
        return tuple(key for key, _ in self.parents)

    def _rhs(self, solution: Mapping[Hashable, Array]) -> Array:
        rhs = self.d
        for key, S in self.parents:
            rhs = rhs - S @ jnp.asarray(solution[key]).reshape(-1)
        return rhs

    def solve(self, solution: Mapping[Hashable, Array]) -> Array:
        """Frontal value given values for all parents."""
        return jax.scipy.linalg.solve_triangular(self.R, self._rhs(solution), lower=False)

    def error(self, solution: Mapping[Hashable, Array]) -> Array:
        e = self.R @ jnp.asarray(solution[self.frontal]).reshape(-1) - self._rhs(solution)
        return 0.5 * jnp.dot(e, e)

    def equals(self, other: "GaussianConditional", tol: float = 1e-9) -> bool:
        if self.frontal != other.frontal or self.parent_keys != other.parent_keys:
            return False
        pairs = [(self.R, other.R), (self.d, other.d)]
        pairs += [(S, T) for (_, S), (_, T) in zip(self.parents, other.parents)]
        return all(a.shape == b.shape and bool(jnp.allclose(a, b, atol=tol, rtol=0)) for a, b in pairs)


class GaussianBayesNet:
    """Conditionals in elimination order."""

    def __init__(self, conditionals: Sequence[GaussianConditional] = ()):
        self.conditionals: Tuple[GaussianConditional, ...] = tuple(conditionals)

    @property
    def ordering(self) -> Tuple[Hashable, ...]:
        return tuple(c.frontal for c in self.conditionals)

    def optimize(self) -> Dict[Hashable, Array]:
        """Back-substitute in reverse elimination order."""
        solution: Dict[Hashable, Array] = {}
        for conditional in reversed(self.conditionals):
            solution[conditional.frontal] = conditional.solve(solution)
        return solution

    def error(self, solution: Mapping[Hashable, Array]) -> Array:
        return sum((c.error(solution) for c in self.conditionals), jnp.zeros(()))

    def equals(self, other: "GaussianBayesNet", tol: float = 1e-9) -> bool:
        return len(self) == len(other) and all(
            a.equals(b, tol) for a, b in zip(self.conditionals, other.conditionals))

    def __len__(self) -> int:
        return len(self.conditionals)

    def __iter__(self) -> Iterator[GaussianConditional]:
        return iter(self.conditionals)

    def __getitem__(self, i: int) -> GaussianConditional:
        return self.conditionals[i]

    def __repr__(self):
        return f"GaussianBayesNet({list(self.ordering)})"
