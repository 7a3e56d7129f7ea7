"""Variable keys identifying per-time-step quantities.

A key combines the kind of quantity, the ids of the entities it belongs to
and a discrete time index. Two keys are equal exactly when all three agree.
"""

import enum
from dataclasses import dataclass
from typing import Tuple


class Quantity(enum.Enum):
    POSE = "pose"
    TWIST = "twist"
    TWIST_ACCEL = "twist_accel"
    JOINT_ANGLE = "q"
    JOINT_VEL = "v"
    JOINT_ACCEL = "a"
    TORQUE = "torque"
    WRENCH = "wrench"


# Quantities living on SE(3); every other quantity is a plain vector.
POSE_QUANTITIES = frozenset({Quantity.POSE})


@dataclass(frozen=True)
class Key:
    """Hashable identifier of one variable.

    Attributes:
        kind: Which quantity this is.
        ids: Entity ids, (link_id,) or (joint_id,) or (link_id, joint_id).
        t: Time index.
    """
    kind: Quantity
    ids: Tuple[int, ...]
    t: int = 0

    @property
    def is_pose(self) -> bool:
        return self.kind in POSE_QUANTITIES

    def __repr__(self):
        ids = ",".join(str(i) for i in self.ids)
        return f"{self.kind.value}({ids})@{self.t}"


def pose_key(link_id: int, t: int = 0) -> Key:
    return Key(Quantity.POSE, (link_id,), t)


def twist_key(link_id: int, t: int = 0) -> Key:
    return Key(Quantity.TWIST, (link_id,), t)


def twist_accel_key(link_id: int, t: int = 0) -> Key:
    return Key(Quantity.TWIST_ACCEL, (link_id,), t)


def joint_angle_key(joint_id: int, t: int = 0) -> Key:
    return Key(Quantity.JOINT_ANGLE, (joint_id,), t)


def joint_vel_key(joint_id: int, t: int = 0) -> Key:
    return Key(Quantity.JOINT_VEL, (joint_id,), t)


def joint_accel_key(joint_id: int, t: int = 0) -> Key:
    return Key(Quantity.JOINT_ACCEL, (joint_id,), t)


def torque_key(joint_id: int, t: int = 0) -> Key:
    return Key(Quantity.TORQUE, (joint_id,), t)


def wrench_key(link_id: int, joint_id: int, t: int = 0) -> Key:
    """Wrench exerted by joint `joint_id` on link `link_id`."""
    return Key(Quantity.WRENCH, (link_id, joint_id), t)
