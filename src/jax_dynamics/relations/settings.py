"""Solver-facing configuration for relation emission."""

from flax import struct

from ..linear.noise import NoiseModel


@struct.dataclass
class OptimizerSettings:
    """Standard deviations of each relation family.

    A sigma of 0 makes the family hard. Use `.replace(...)` to derive
    modified settings.

    Attributes:
        p_sigma: Pose (loop closure) relations.
        v_sigma: Twist composition relations.
        f_sigma: Wrench equivalence relations.
        t_sigma: Torque extraction relations.
        planar_sigma: Planar wrench relations.
        jl_sigma: Joint limit penalties.
        prior_sigma: Priors on known quantities.
    """
    p_sigma: float = struct.field(pytree_node=False, default=1e-3)
    v_sigma: float = struct.field(pytree_node=False, default=1e-3)
    f_sigma: float = struct.field(pytree_node=False, default=1e-3)
    t_sigma: float = struct.field(pytree_node=False, default=1e-3)
    planar_sigma: float = struct.field(pytree_node=False, default=1e-3)
    jl_sigma: float = struct.field(pytree_node=False, default=1e-3)
    prior_sigma: float = struct.field(pytree_node=False, default=1e-3)

    def noise(self, family: str, dim: int) -> NoiseModel:
        """Noise model for a relation family, e.g. noise("p", 6)."""
        try:
            sigma = getattr(self, f"{family}_sigma")
        except AttributeError:
            raise ValueError(f"Unknown relation family '{family}'") from None
        if sigma == 0:
            return NoiseModel.constrained(dim)
        return NoiseModel.isotropic(dim, sigma)
