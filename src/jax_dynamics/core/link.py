"""Link PyTree: a rigid body with mass properties."""

import jax.numpy as jnp
from jax import Array
from flax import struct

from ..transforms import se3


@struct.dataclass
class Link:
    """Immutable rigid body referenced by joints through its integer id.

    Attributes:
        name: Link name. Static field.
        id: Index of the link in its robot's link table. Static field.
        mass: Scalar mass.
        inertia: (3, 3) rotational inertia about the center of mass,
                 expressed in the COM frame.
        w_T_com: (4, 4) pose of the COM frame in the world at rest.
    """
    name: str = struct.field(pytree_node=False)
    id: int = struct.field(pytree_node=False)
    mass: Array
    inertia: Array
    w_T_com: Array

    @classmethod
    def create(cls, name: str, id: int, mass=1.0, inertia=None, w_T_com=None) -> "Link":
        inertia = jnp.eye(3) if inertia is None else jnp.asarray(inertia, dtype=jnp.float64)
        w_T_com = se3.identity() if w_T_com is None else jnp.asarray(w_T_com, dtype=jnp.float64)
        if inertia.shape != (3, 3):
            raise ValueError(f"inertia must have shape (3, 3), got {inertia.shape}")
        if w_T_com.shape != (4, 4):
            raise ValueError(f"w_T_com must have shape (4, 4), got {w_T_com.shape}")
        return cls(
            name=name,
            id=id,
            mass=jnp.asarray(mass, dtype=jnp.float64),
            inertia=inertia,
            w_T_com=w_T_com,
        )

    def inertia_matrix(self) -> Array:
        """6x6 spatial inertia in the COM frame, [[I, 0], [0, m * I3]]."""
        zeros = jnp.zeros((3, 3), dtype=self.inertia.dtype)
        top = jnp.concatenate([self.inertia, zeros], axis=-1)
        bottom = jnp.concatenate([zeros, self.mass * jnp.eye(3, dtype=self.inertia.dtype)], axis=-1)
        return jnp.concatenate([top, bottom], axis=-2)
