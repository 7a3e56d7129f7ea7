"""Key-value store for variable assignments.

Values maps Keys to JAX arrays. Scalars (joint angles, torques) are stored as
0-d arrays, twists and wrenches as (6,) arrays and poses as (4, 4) matrices.
"""

from typing import Dict, Hashable, Iterator, Mapping, Optional

import jax
import jax.numpy as jnp

from .errors import MissingVariableError
from .keys import (
    Key,
    joint_accel_key,
    joint_angle_key,
    joint_vel_key,
    pose_key,
    torque_key,
    twist_accel_key,
    twist_key,
    wrench_key,
)
from .transforms import se3

Array = jax.Array


class Values:
    """Mutable store of variable values, looked up by key."""

    def __init__(self, items: Optional[Mapping[Hashable, Array]] = None):
        self._data: Dict[Hashable, Array] = {}
        if items is not None:
            for key, value in items.items():
                self.insert(key, value)

    def insert(self, key: Hashable, value) -> None:
        """Add a new value; raises ValueError if the key is already present."""
        if key in self._data:
            raise ValueError(f"Variable {key} already exists in values")
        self._data[key] = jnp.asarray(value, dtype=jnp.float64)

    def update(self, key: Hashable, value) -> None:
        """Replace an existing value; raises MissingVariableError otherwise."""
        if key not in self._data:
            raise MissingVariableError(key)
        self._data[key] = jnp.asarray(value, dtype=jnp.float64)

    def at(self, key: Hashable) -> Array:
        """Return the value stored under key.

        Raises:
            MissingVariableError: if the key is absent.
        """
        try:
            return self._data[key]
        except KeyError:
            raise MissingVariableError(key) from None

    def retract(self, delta: Mapping[Hashable, Array]) -> "Values":
        """Return a copy moved by delta along each variable's tangent space.

        Poses are perturbed on the right, T @ exp(d); everything else is
        updated additively. Keys absent from delta are copied unchanged.
        """
        result = Values()
        for key, value in self._data.items():
            if key in delta:
                d = jnp.asarray(delta[key], dtype=jnp.float64)
                if isinstance(key, Key) and key.is_pose:
                    value = se3.retract(value, d)
                else:
                    value = value + d.reshape(value.shape)
            result._data[key] = value
        return result

    def keys(self):
        return self._data.keys()

    def items(self):
        return self._data.items()

    def __contains__(self, key) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._data)

    def __repr__(self):
        return f"Values({list(self._data)})"


# Typed getters, mirroring the key factories.
def pose(values: Values, link_id: int, t: int = 0) -> Array:
    return values.at(pose_key(link_id, t))


def twist(values: Values, link_id: int, t: int = 0) -> Array:
    return values.at(twist_key(link_id, t))


def twist_accel(values: Values, link_id: int, t: int = 0) -> Array:
    return values.at(twist_accel_key(link_id, t))


def joint_angle(values: Values, joint_id: int, t: int = 0) -> Array:
    return values.at(joint_angle_key(joint_id, t))


def joint_vel(values: Values, joint_id: int, t: int = 0) -> Array:
    return values.at(joint_vel_key(joint_id, t))


def joint_accel(values: Values, joint_id: int, t: int = 0) -> Array:
    return values.at(joint_accel_key(joint_id, t))


def torque(values: Values, joint_id: int, t: int = 0) -> Array:
    return values.at(torque_key(joint_id, t))


def wrench(values: Values, link_id: int, joint_id: int, t: int = 0) -> Array:
    return values.at(wrench_key(link_id, joint_id, t))
