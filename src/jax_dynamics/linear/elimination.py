"""Sequential variable elimination that preserves the given ordering.

Variables are eliminated strictly in the caller's order. For each variable,
every remaining relation touching it is removed, the stack is reduced by QR
into a conditional on that variable plus one joint relation on the other
variables, and the joint relation is put back into the remaining set. The
i-th conditional of the result always belongs to the i-th ordered variable.

Hard rows (sigma 0) are satisfied exactly: when any are present, the
conditional comes from the hard rows alone and is substituted into the soft
rows, which then only constrain the separator.
"""

import logging
from collections import defaultdict
from typing import Dict, Hashable, List, Optional, Sequence, Tuple

import jax.numpy as jnp
import jax.scipy.linalg
from jax import Array

from ..errors import UnderdeterminedSystemError
from .gaussian import GaussianBayesNet, GaussianConditional, LinearRelation
from .noise import NoiseModel

logger = logging.getLogger(__name__)

# Pivots smaller than this (relative to the largest entry) count as singular.
SINGULAR_TOL = 1e-12


def _upper(Ab: Array, d_f: int, key: Hashable) -> Tuple[Array, Array]:
    """QR-reduce [A | b] and split it into the frontal rows and the rest.

    The frontal rows get a positive diagonal.
    """
    if Ab.shape[0] < d_f:
        raise UnderdeterminedSystemError(key, f"{Ab.shape[0]} rows for a variable of dimension {d_f}")
    R = jnp.linalg.qr(Ab, mode="r")
    signs = jnp.where(jnp.diagonal(R[:d_f, :d_f]) < 0, -1.0, 1.0)
    top = R[:d_f] * signs[:, None]
    scale = jnp.maximum(1.0, jnp.max(jnp.abs(Ab)))
    if jnp.min(jnp.abs(jnp.diagonal(top[:, :d_f]))) <= SINGULAR_TOL * scale:
        raise UnderdeterminedSystemError(key, "the reduced system is singular")
    return top, R[d_f:, d_f:]


def eliminate(
    relations: Sequence[LinearRelation], key: Hashable
) -> Tuple[GaussianConditional, Optional[LinearRelation]]:
    """Eliminate one variable from the relations that involve it.

    Returns:
        The conditional on `key` (with a positive diagonal) and the joint
        relation left on the separator, or None when the separator is empty.
        Hard rows of the joint relation stay hard.

    Raises:
        UnderdeterminedSystemError: if there are no relations, fewer rows than
            the variable's dimension, the reduced system is singular, or hard
            rows touch the variable without determining it.
        ValueError: if a variable has inconsistent dimensions across relations.
    """
    if not relations:
        raise UnderdeterminedSystemError(key)

    dims: Dict[Hashable, int] = {}
    for relation in relations:
        for k, A in relation.terms:
            if dims.setdefault(k, A.shape[1]) != A.shape[1]:
                raise ValueError(f"Variable {k} has inconsistent dimensions {dims[k]} and {A.shape[1]}")
    if key not in dims:
        raise UnderdeterminedSystemError(key)

    # Columns: frontal variable first, then separator in order of appearance
    separator = [k for k in dims if k != key]
    offsets = {}
    n = 0
    for k in [key] + separator:
        offsets[k] = n
        n += dims[k]

    hard_rows, soft_rows = [], []
    for relation in relations:
        whitened = relation.whitened()
        block = jnp.zeros((whitened.dim, n + 1), dtype=jnp.float64)
        for k, A in whitened.terms:
            block = block.at[:, offsets[k]:offsets[k] + dims[k]].set(A)
        block = block.at[:, n].set(whitened.rhs)
        hard = relation.noise.sigmas == 0
        hard_rows.append(block[hard])
        soft_rows.append(block[~hard])
    hard_Ab = jnp.concatenate(hard_rows, axis=0)
    soft_Ab = jnp.concatenate(soft_rows, axis=0)

    d_f = dims[key]
    # Hard rows that do not involve the frontal variable pass straight through
    touches = jnp.any(hard_Ab[:, :d_f] != 0, axis=1)
    carried = hard_Ab[~touches][:, d_f:]
    hard_Ab = hard_Ab[touches]

    if hard_Ab.shape[0] == 0:
        top, soft_joint = _upper(soft_Ab, d_f, key)
        hard_joint = carried
    else:
        if hard_Ab.shape[0] < d_f:
            raise UnderdeterminedSystemError(key, "hard relations do not determine it")
        top, remaining = _upper(hard_Ab, d_f, key)
        # x_f = R^-1 (d - S x_sep), substituted into the soft rows
        K = jax.scipy.linalg.solve_triangular(top[:, :d_f], top[:, d_f:], lower=False)
        soft_joint = soft_Ab[:, d_f:] - soft_Ab[:, :d_f] @ K
        if soft_joint.shape[0] > soft_joint.shape[1]:
            soft_joint = jnp.linalg.qr(soft_joint, mode="r")
        hard_joint = jnp.concatenate([remaining, carried], axis=0)
    joint_rows = jnp.concatenate([hard_joint, soft_joint], axis=0)
    joint_sigmas = jnp.concatenate([jnp.zeros(hard_joint.shape[0]), jnp.ones(soft_joint.shape[0])])

    conditional = GaussianConditional(
        frontal=key,
        R=top[:, :d_f],
        parents=tuple((k, top[:, offsets[k]:offsets[k] + dims[k]]) for k in separator),
        d=top[:, n],
    )

    if not separator or joint_rows.shape[0] == 0:
        return conditional, None

    joint_relation = LinearRelation.create(
        [(k, joint_rows[:, offsets[k] - d_f:offsets[k] - d_f + dims[k]]) for k in separator],
        joint_rows[:, -1],
        NoiseModel.diagonal(joint_sigmas),
    )
    return conditional, joint_relation


def eliminate_sequential(
    relations: Sequence[LinearRelation], ordering: Sequence[Hashable]
) -> GaussianBayesNet:
    """Eliminate all variables in exactly the given order.

    Args:
        relations: Linear relations over the variables.
        ordering: Every variable of the relations, each exactly once.

    Returns:
        A GaussianBayesNet whose conditionals follow `ordering`.

    Raises:
        UnderdeterminedSystemError: if some variable has no relation left
            touching it when its turn comes.
        ValueError: if the ordering repeats a variable or misses one.
    """
    ordering = list(ordering)
    if len(set(ordering)) != len(ordering):
        raise ValueError("Ordering contains duplicate variables")
    missing = {k for relation in relations for k in relation.keys} - set(ordering)
    if missing:
        raise ValueError(f"Ordering does not include variables {sorted(map(repr, missing))}")

    graph: Dict[int, LinearRelation] = dict(enumerate(relations))
    index: Dict[Hashable, List[int]] = defaultdict(list)
    for i, relation in graph.items():
        for k in relation.keys:
            index[k].append(i)
    next_id = len(graph)

    conditionals = []
    for key in ordering:
        ids = [i for i in index.pop(key, []) if i in graph]
        if not ids:
            raise UnderdeterminedSystemError(key)
        conditional, joint_relation = eliminate([graph.pop(i) for i in ids], key)
        conditionals.append(conditional)
        logger.debug("Eliminated %r using %d relations", key, len(ids))

        if joint_relation is not None:
            graph[next_id] = joint_relation
            for k in joint_relation.keys:
                index[k].append(next_id)
            next_id += 1

    return GaussianBayesNet(conditionals)
