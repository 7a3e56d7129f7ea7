"""Forward kinematics over a robot's link tree using the joint engine.

Poses and twists are propagated breadth first from a root link through
``kinodynamics.transform_to`` and ``kinodynamics.twist_to``. In a closed
chain the joints closing loops are skipped; their consistency is left to the
loop-closure relations.
"""

import logging
from collections import deque
from typing import Dict, Mapping, NamedTuple, Optional, Union

import jax.numpy as jnp
from jax import Array

from . import kinodynamics
from .core import Robot
from .errors import MissingVariableError
from .keys import joint_angle_key, joint_vel_key, pose_key, twist_key
from .values import Values

logger = logging.getLogger(__name__)

JointInput = Union[None, Array, Mapping[str, float]]


class LinkStates(NamedTuple):
    poses: Dict[str, Array]    # world COM poses, (4, 4)
    twists: Dict[str, Array]   # twists in each COM frame, (6,)


def _per_joint(robot: Robot, values: JointInput) -> Dict[int, Array]:
    """Map joint id -> scalar from an array in joint order or a name mapping."""
    if values is None:
        return {joint.id: jnp.zeros(()) for joint in robot.joints}
    if isinstance(values, Mapping):
        for joint in robot.joints:
            if joint.name not in values:
                raise MissingVariableError(joint.name)
        return {joint.id: jnp.asarray(values[joint.name], dtype=jnp.float64) for joint in robot.joints}
    values = jnp.asarray(values, dtype=jnp.float64).reshape(-1)
    if values.shape[0] != len(robot.joints):
        raise ValueError(f"Expected {len(robot.joints)} joint values, got {values.shape[0]}")
    return {joint.id: values[i] for i, joint in enumerate(robot.joints)}


def forward_kinematics(
    robot: Robot,
    q: JointInput,
    q_dot: JointInput = None,
    root: Optional[str] = None,
    root_pose: Optional[Array] = None,
    root_twist: Optional[Array] = None,
) -> LinkStates:
    """Compute world poses and body twists of every link reachable from root.

    Args:
        robot: Robot containing links and joints
        q: Joint coordinates, in robot.joints order or by joint name
        q_dot: Joint velocities, same format as q; zero when omitted
        root: Name of the root link; the first link when omitted
        root_pose: World pose of the root COM; its rest pose when omitted
        root_twist: Twist of the root link; zero when omitted

    Returns:
        LinkStates mapping link names to poses and twists

    Raises:
        MissingVariableError: if a name mapping lacks one of the joints.
        ValueError: if an array has the wrong length or root is unknown.
    """
    angles = _per_joint(robot, q)
    vels = _per_joint(robot, q_dot)

    root_link = robot.links[0] if root is None else robot.link(root)
    poses = {root_link.id: root_link.w_T_com if root_pose is None else jnp.asarray(root_pose)}
    twists = {root_link.id: jnp.zeros(6) if root_twist is None else jnp.asarray(root_twist)}

    queue = deque([root_link.id])
    while queue:
        this_id = queue.popleft()
        for joint in robot.joints_of(this_id):
            other_id = joint.other_link_id(this_id)
            if other_id in poses:
                continue
            q_j = angles[joint.id]
            poses[other_id] = poses[this_id] @ kinodynamics.transform_to(joint, this_id, q_j)
            twists[other_id] = kinodynamics.twist_to(joint, other_id, q_j, vels[joint.id], twists[this_id])
            queue.append(other_id)

    if len(poses) < len(robot.links):
        logger.debug("%d links are not connected to root '%s'", len(robot.links) - len(poses), root_link.name)

    names = {link.id: link.name for link in robot.links}
    return LinkStates(
        poses={names[i]: pose for i, pose in poses.items()},
        twists={names[i]: twist for i, twist in twists.items()},
    )


def forward_kinematics_values(robot: Robot, t: int, q: JointInput, q_dot: JointInput = None, **kwargs) -> Values:
    """Forward kinematics as a Values store at time t.

    Holds pose and twist keys for every reached link and joint angle and
    velocity keys for every joint, ready to seed relation builders.
    """
    states = forward_kinematics(robot, q, q_dot, **kwargs)
    angles = _per_joint(robot, q)
    vels = _per_joint(robot, q_dot)

    values = Values()
    for link in robot.links:
        if link.name in states.poses:
            values.insert(pose_key(link.id, t), states.poses[link.name])
            values.insert(twist_key(link.id, t), states.twists[link.name])
    for joint in robot.joints:
        values.insert(joint_angle_key(joint.id, t), angles[joint.id])
        values.insert(joint_vel_key(joint.id, t), vels[joint.id])
    return values
