"""Shared fixtures: a two-link pendulum and a three-link chain."""

import jax.numpy as jnp
import pytest

from jax_dynamics.core import Joint, Link, Prismatic, Revolute, Robot, Screw
from jax_dynamics.transforms import se3


def make_links():
    l1 = Link.create("l1", 0, mass=100.0, inertia=jnp.diag(jnp.array([3.0, 2.0, 1.0])),
                     w_T_com=se3.from_position(jnp.array([0.0, 0.0, 1.0])))
    l2 = Link.create("l2", 1, mass=15.0, inertia=jnp.diag(jnp.array([1.0, 2.0, 3.0])),
                     w_T_com=se3.from_position(jnp.array([0.0, 0.0, 3.0])))
    return l1, l2


@pytest.fixture
def links():
    return make_links()


@pytest.fixture
def revolute_joint(links):
    """Joint at (0, 0, 2) rotating about x, between COMs at z=1 and z=3."""
    l1, l2 = links
    w_T_j = se3.from_position(jnp.array([0.0, 0.0, 2.0]))
    return Joint.create("j1", 0, Revolute((1, 0, 0)), w_T_j, l1, l2)


@pytest.fixture
def joints(links):
    """One joint of every moving kind, each with a rotated joint frame."""
    l1, l2 = links
    w_T_j = se3.from_position_and_rotation(
        jnp.array([0.3, -0.2, 2.0]), se3.get_rotation(se3.exp(jnp.array([0.2, -0.4, 0.5, 0.0, 0.0, 0.0]))))
    return [
        Joint.create("revolute", 0, Revolute((0, 0, 1)), w_T_j, l1, l2),
        Joint.create("prismatic", 0, Prismatic((0, 1, 0)), w_T_j, l1, l2),
        Joint.create("screw", 0, Screw((1, 0, 0), 0.5), w_T_j, l1, l2),
    ]


@pytest.fixture
def chain_robot():
    """Three links stacked along z, joined by revolute joints about x."""
    links = [
        Link.create(f"link{i}", i, w_T_com=se3.from_position(jnp.array([0.0, 0.0, 2.0 * i + 1.0])))
        for i in range(3)
    ]
    joints = [
        Joint.create(f"joint{i}", i, Revolute((1, 0, 0)),
                     se3.from_position(jnp.array([0.0, 0.0, 2.0 * i + 2.0])), links[i], links[i + 1])
        for i in range(2)
    ]
    return Robot.create(links, joints)
