"""Robot PyTree: the topology container owning links and joints.

Links are stored in a table indexed by their id; joints refer to links by id
only. Adjacency is validated once, in ``Robot.create``, so the joint engine
never has to check it.
"""

import logging
from typing import Sequence, Tuple

from flax import struct

from ..errors import TopologyError
from .joint import Joint
from .link import Link

logger = logging.getLogger(__name__)


@struct.dataclass
class Robot:
    """Immutable PyTree representation of a mechanism.

    Attributes:
        links: Tuple of links; links[i].id == i.
        joints: Tuple of joints connecting the links.
    """
    links: Tuple[Link, ...]
    joints: Tuple[Joint, ...]

    @classmethod
    def create(cls, links: Sequence[Link], joints: Sequence[Joint]) -> "Robot":
        """Validate the topology and build a Robot.

        Raises:
            TopologyError: if link ids do not match their positions, names are
                duplicated, or a joint refers to a missing link.
        """
        links = tuple(links)
        joints = tuple(joints)

        for i, link in enumerate(links):
            if link.id != i:
                raise TopologyError(f"Link '{link.name}' has id {link.id} but is stored at index {i}")
        _check_unique([link.name for link in links], "link")
        _check_unique([joint.name for joint in joints], "joint")
        _check_unique([joint.id for joint in joints], "joint id")

        for joint in joints:
            for link_id in joint.link_ids:
                if not 0 <= link_id < len(links):
                    raise TopologyError(f"Joint '{joint.name}' refers to unknown link {link_id}")
            if joint.parent_id == joint.child_id:
                raise TopologyError(f"Joint '{joint.name}' connects link {joint.parent_id} to itself")

        logger.debug("Validated robot with %d links and %d joints", len(links), len(joints))
        return cls(links=links, joints=joints)

    @property
    def link_names(self) -> Tuple[str, ...]:
        return tuple(link.name for link in self.links)

    @property
    def joint_names(self) -> Tuple[str, ...]:
        return tuple(joint.name for joint in self.joints)

    def link(self, name: str) -> Link:
        for link in self.links:
            if link.name == name:
                return link
        raise ValueError(f"Link '{name}' not found in robot model")

    def joint(self, name: str) -> Joint:
        for joint in self.joints:
            if joint.name == name:
                return joint
        raise ValueError(f"Joint '{name}' not found in robot model")

    def joints_of(self, link_id: int) -> Tuple[Joint, ...]:
        """All joints adjacent to a link."""
        return tuple(joint for joint in self.joints if link_id in joint.link_ids)


def _check_unique(items, what: str) -> None:
    seen = set()
    for item in items:
        if item in seen:
            raise TopologyError(f"Duplicate {what} '{item}'")
        seen.add(item)
