"""Tests for linear relations and order-preserving sequential elimination."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from jax_dynamics.errors import UnderdeterminedSystemError
from jax_dynamics.keys import joint_accel_key, torque_key
from jax_dynamics.linear import (
    GaussianBayesNet,
    GaussianConditional,
    LinearRelation,
    NoiseModel,
    eliminate,
    eliminate_sequential,
)


def _three_variable_relations():
    """x0 = 0, x1 = 0 and x2 + x0 = 0, all scalar with unit noise."""
    return [
        LinearRelation.create({0: jnp.eye(1)}, jnp.zeros(1)),
        LinearRelation.create({1: jnp.eye(1)}, jnp.zeros(1)),
        LinearRelation.create({2: jnp.eye(1), 0: jnp.eye(1)}, jnp.zeros(1)),
    ]


def test_eliminate_sequential_three_variables():
    bayes_net = eliminate_sequential(_three_variable_relations(), [0, 1, 2])

    expected = GaussianBayesNet([
        GaussianConditional.create(0, [[jnp.sqrt(2.0)]], [0.0], [(2, [[1 / jnp.sqrt(2.0)]])]),
        GaussianConditional.create(1, [[1.0]], [0.0]),
        GaussianConditional.create(2, [[1 / jnp.sqrt(2.0)]], [0.0]),
    ])
    assert bayes_net.equals(expected, tol=1e-9)
    assert bayes_net.ordering == (0, 1, 2)


@pytest.mark.parametrize("ordering", [[2, 1, 0], [1, 2, 0], [0, 2, 1]])
def test_ordering_is_preserved(ordering):
    bayes_net = eliminate_sequential(_three_variable_relations(), ordering)
    assert bayes_net.ordering == tuple(ordering)
    for conditional in bayes_net:
        assert conditional.R[0, 0] > 0


def _random_system(seed, dims=(2, 3, 1, 2), rows=(4, 5, 3, 4)):
    keys = jax.random.split(jax.random.PRNGKey(seed), 2 * len(rows))
    variables = list(range(len(dims)))
    relations = []
    for i, m in enumerate(rows):
        # Each relation touches two neighbouring variables
        involved = [variables[i], variables[(i + 1) % len(variables)]]
        blocks = {}
        for n, k in enumerate(involved):
            blocks[k] = jax.random.normal(jax.random.fold_in(keys[2 * i], n), (m, dims[k]))
        rhs = jax.random.normal(keys[2 * i + 1], (m,))
        relations.append(LinearRelation.create(blocks, rhs, NoiseModel.isotropic(m, 0.5 + 0.1 * i)))
    return relations, dims


def _dense(relations, ordering, dims):
    offsets = np.cumsum([0] + [dims[k] for k in ordering])
    index = dict(zip(ordering, offsets[:-1]))
    A_rows, b_rows = [], []
    for relation in relations:
        w = relation.whitened()
        A = np.zeros((w.dim, offsets[-1]))
        for k, block in w.terms:
            A[:, index[k]:index[k] + dims[k]] = np.asarray(block)
        A_rows.append(A)
        b_rows.append(np.asarray(w.rhs))
    return np.vstack(A_rows), np.concatenate(b_rows), index


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_back_substitution_matches_least_squares(seed):
    relations, dims = _random_system(seed)
    ordering = [3, 0, 2, 1]
    bayes_net = eliminate_sequential(relations, ordering)
    solution = bayes_net.optimize()

    A, b, index = _dense(relations, ordering, dims)
    expected, *_ = np.linalg.lstsq(A, b, rcond=None)
    for k in ordering:
        np.testing.assert_allclose(solution[k], expected[index[k]:index[k] + dims[k]], atol=1e-8)


def test_bayes_net_error_matches_relations():
    """Eliminating zero-rhs relations preserves the total error at any point."""
    relations = _three_variable_relations()
    bayes_net = eliminate_sequential(relations, [0, 1, 2])
    point = {0: jnp.array([0.3]), 1: jnp.array([-1.2]), 2: jnp.array([2.0])}

    total = sum(relation.error(point) for relation in relations)
    np.testing.assert_allclose(bayes_net.error(point), total, atol=1e-12)


def test_eliminate_single_variable():
    relations = [
        LinearRelation.create({"a": jnp.array([[2.0]])}, [4.0]),
        LinearRelation.create({"a": jnp.array([[1.0]]), "b": jnp.array([[-1.0]])}, [0.0]),
    ]
    conditional, remaining = eliminate(relations, "a")
    assert conditional.frontal == "a"
    assert conditional.parent_keys == ("b",)
    assert remaining is not None
    assert remaining.keys == ("b",)

    conditional, remaining = eliminate(relations[:1], "a")
    assert remaining is None
    np.testing.assert_allclose(conditional.solve({}), jnp.array([2.0]), atol=1e-12)


def test_hard_rows_are_kept():
    """A precise soft relation cannot pull x off its hard relation."""
    relations = [
        LinearRelation.create({"x": jnp.eye(2)}, [1.0, 2.0], NoiseModel.constrained(2)),
        LinearRelation.create({"x": jnp.eye(2)}, [3.0, 4.0], NoiseModel.isotropic(2, 1e-3)),
    ]
    solution = eliminate_sequential(relations, ["x"]).optimize()
    np.testing.assert_allclose(solution["x"], jnp.array([1.0, 2.0]), atol=1e-9)


def test_hard_scalar_relation_is_exact():
    relations = [
        LinearRelation.create({"x": jnp.eye(1)}, [0.0], NoiseModel.constrained(1)),
        LinearRelation.create({"x": jnp.eye(1)}, [1.0], NoiseModel.isotropic(1, 1e-3)),
    ]
    solution = eliminate_sequential(relations, ["x"]).optimize()
    np.testing.assert_allclose(solution["x"], jnp.array([0.0]), atol=1e-12)


@pytest.mark.parametrize("ordering", [["x", "y"], ["y", "x"]])
def test_hard_relation_substituted_into_soft(ordering):
    """x = y exactly; the soft relations then pick the weighted mean."""
    relations = [
        LinearRelation.create({"x": jnp.eye(1), "y": -jnp.eye(1)}, [0.0], NoiseModel.constrained(1)),
        LinearRelation.create({"x": jnp.eye(1)}, [1.0], NoiseModel.isotropic(1, 1e-3)),
        LinearRelation.create({"y": jnp.eye(1)}, [3.0]),
    ]
    solution = eliminate_sequential(relations, ordering).optimize()

    expected = (1e6 * 1.0 + 3.0) / (1e6 + 1.0)
    np.testing.assert_allclose(solution["x"], solution["y"], atol=1e-12)
    np.testing.assert_allclose(solution["x"], jnp.array([expected]), atol=1e-9)


@pytest.mark.parametrize("A_x, A_y, rhs", [
    # The second row does not involve x and is carried over as is
    ([[1.0], [0.0]], [[1.0], [1.0]], [3.0, 2.0]),
    # Both rows involve x; QR leaves one row on y alone
    ([[1.0], [1.0]], [[0.0], [1.0]], [1.0, 3.0]),
])
def test_leftover_hard_rows_stay_hard(A_x, A_y, rhs):
    """Hard rows passed on to the separator still beat a precise soft relation."""
    hard = LinearRelation.create({"x": jnp.array(A_x), "y": jnp.array(A_y)}, rhs, NoiseModel.constrained(2))
    soft = LinearRelation.create({"y": jnp.eye(1)}, [10.0], NoiseModel.isotropic(1, 1e-3))

    _, remaining = eliminate([hard], "x")
    assert remaining.keys == ("y",)
    np.testing.assert_allclose(remaining.noise.sigmas, jnp.zeros(1))

    solution = eliminate_sequential([hard, soft], ["x", "y"]).optimize()
    np.testing.assert_allclose(solution["x"], jnp.array([1.0]), atol=1e-9)
    np.testing.assert_allclose(solution["y"], jnp.array([2.0]), atol=1e-9)


def test_hard_rows_must_determine_variable():
    relations = [
        LinearRelation.create({"x": jnp.array([[1.0, 0.0]])}, [0.0], NoiseModel.constrained(1)),
        LinearRelation.create({"x": jnp.eye(2)}, [1.0, 1.0]),
    ]
    with pytest.raises(UnderdeterminedSystemError) as info:
        eliminate_sequential(relations, ["x"])
    assert info.value.key == "x"


def test_missing_variable_in_ordering():
    with pytest.raises(ValueError):
        eliminate_sequential(_three_variable_relations(), [0, 1])


def test_duplicate_variable_in_ordering():
    with pytest.raises(ValueError):
        eliminate_sequential(_three_variable_relations(), [0, 1, 1, 2])


def test_variable_without_relations():
    with pytest.raises(UnderdeterminedSystemError) as info:
        eliminate_sequential(_three_variable_relations(), [0, 1, 2, 3])
    assert info.value.key == 3


def test_too_few_rows():
    relations = [LinearRelation.create({"x": jnp.eye(3)[:2]}, jnp.zeros(2))]
    with pytest.raises(UnderdeterminedSystemError):
        eliminate_sequential(relations, ["x"])


def test_singular_system():
    relations = [
        LinearRelation.create({"x": jnp.array([[1.0, 1.0]])}, [1.0]),
        LinearRelation.create({"x": jnp.array([[2.0, 2.0]])}, [2.0]),
    ]
    with pytest.raises(UnderdeterminedSystemError):
        eliminate_sequential(relations, ["x"])


def test_underdetermined_separator():
    """Eliminating x first leaves nothing to determine y."""
    relations = [LinearRelation.create({"x": jnp.eye(1), "y": jnp.eye(1)}, [1.0])]
    with pytest.raises(UnderdeterminedSystemError) as info:
        eliminate_sequential(relations, ["x", "y"])
    assert info.value.key == "y"


def test_with_dynamics_keys():
    """Keys from the relation builders work as elimination variables."""
    tau, a = torque_key(0, 1), joint_accel_key(0, 1)
    relations = [
        LinearRelation.create({tau: jnp.eye(1)}, [2.0], NoiseModel.constrained(1)),
        LinearRelation.create({a: jnp.array([[3.0]]), tau: -jnp.eye(1)}, [0.0], NoiseModel.constrained(1)),
    ]
    solution = eliminate_sequential(relations, [a, tau]).optimize()
    np.testing.assert_allclose(solution[a], jnp.array([2.0 / 3.0]), atol=1e-12)
    np.testing.assert_allclose(solution[tau], jnp.array([2.0]), atol=1e-12)


def test_linear_relation_validation():
    with pytest.raises(ValueError):
        LinearRelation.create([("x", jnp.eye(2)), ("x", jnp.eye(2))], jnp.zeros(2))
    with pytest.raises(ValueError):
        LinearRelation.create({"x": jnp.eye(2)}, jnp.zeros(3))
    with pytest.raises(ValueError):
        LinearRelation.create({"x": jnp.eye(2)}, jnp.zeros(2), NoiseModel.unit(3))


def test_noise_model():
    noise = NoiseModel.diagonal([0.5, 0.0, 2.0])
    assert noise.dim == 3
    assert noise.is_constrained
    np.testing.assert_allclose(noise.whiten(jnp.array([1.0, 1.0, 1.0])), jnp.array([2.0, 1.0, 0.5]))
    with pytest.raises(ValueError):
        NoiseModel.isotropic(2, -1.0)
