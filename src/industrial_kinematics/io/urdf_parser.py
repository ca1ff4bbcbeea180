"""URDF parser for loading 6-axis serial arms into KinematicChain structures.

Only unbranched chains are supported. Fixed joints are folded into their
neighbours: those before the first moving joint become the base offset, those
between moving joints become part of the next joint offset and those after the
last moving joint become the tool offset.
"""

from logging import getLogger
from typing import Dict, List, Optional

import numpy as np
from lxml import etree

from ..core import NUM_JOINTS, JointSpec, KinematicChain
from ..errors import InvalidJointCount
from ..transforms import RigidTransform, se3

logger = getLogger(__name__)


def load_urdf(urdf_path: str, name: Optional[str] = None) -> KinematicChain:
    """Load a URDF file describing a 6-axis arm.

    Args:
        urdf_path: Path to the URDF file to load.
        name: Chain name; defaults to the ``<robot name>`` attribute.

    Returns:
        KinematicChain: The arm's immutable chain.

    Raises:
        ValueError: If the file does not describe a single unbranched chain of
            revolute/continuous and fixed joints.
        InvalidJointCount: If the chain does not have exactly 6 moving joints.
    """
    tree = etree.parse(urdf_path)
    root = tree.getroot()

    all_links = set()
    for link in root.findall('.//link'):
        all_links.add(link.get('name'))

    # Collect joints and build parent-child relationships
    joints_by_parent: Dict[str, List] = {}
    child_links = set()
    for joint in root.findall('.//joint'):
        parent_elem = joint.find('parent')
        child_elem = joint.find('child')
        if parent_elem is None or child_elem is None:
            raise ValueError(f"Joint '{joint.get('name')}' is missing its parent or child link")
        joints_by_parent.setdefault(parent_elem.get('link'), []).append(joint)
        child_links.add(child_elem.get('link'))

    # Find root link (not a child of any joint)
    root_links = all_links - child_links
    if len(root_links) != 1:
        raise ValueError(f"Expected exactly one root link, found: {root_links}")
    current_link = root_links.pop()

    pending = np.eye(4)
    base_offset = None
    specs: List[JointSpec] = []
    visited = {current_link}

    while True:
        children = joints_by_parent.get(current_link, [])
        if not children:
            break
        if len(children) > 1:
            names = [j.get('name') for j in children]
            raise ValueError(f"Link '{current_link}' branches into joints {names}; only serial chains are supported")

        joint_elem = children[0]
        joint_name = joint_elem.get('name')
        joint_type = joint_elem.get('type')
        origin = _parse_origin(joint_elem)

        if joint_type == 'fixed':
            logger.debug("Folding fixed joint '%s' into the neighbouring offset", joint_name)
            pending = pending @ origin
        elif joint_type in ('revolute', 'continuous'):
            if base_offset is None:
                base_offset = pending
                offset = origin
            else:
                offset = pending @ origin
            pending = np.eye(4)
            lower, upper = _parse_limits(joint_elem, joint_type)
            specs.append(JointSpec(
                name=joint_name,
                offset=RigidTransform.from_homogeneous(offset),
                lower_limit=lower,
                upper_limit=upper,
                axis=_parse_axis(joint_elem),
            ))
        else:
            raise ValueError(f"Joint '{joint_name}' has unsupported type '{joint_type}'")

        current_link = joint_elem.find('child').get('link')
        if current_link in visited:
            raise ValueError(f"Link '{current_link}' is reached twice; the URDF is not a chain")
        visited.add(current_link)

    if len(specs) != NUM_JOINTS:
        raise InvalidJointCount(NUM_JOINTS, len(specs))

    return KinematicChain.from_joints(
        name or root.get('name', 'urdf_robot'),
        specs,
        base_offset=RigidTransform.from_homogeneous(base_offset),
        tool_offset=RigidTransform.from_homogeneous(pending),
    )


def _parse_origin(joint_elem) -> np.ndarray:
    origin_elem = joint_elem.find('origin')
    if origin_elem is None:
        return np.eye(4)
    xyz = [float(x) for x in origin_elem.get('xyz', '0 0 0').split()]
    rpy = [float(x) for x in origin_elem.get('rpy', '0 0 0').split()]
    return np.asarray(se3.from_xyz_rpy(xyz, rpy))


def _parse_axis(joint_elem):
    axis_elem = joint_elem.find('axis')
    if axis_elem is None:
        return (1.0, 0.0, 0.0)  # URDF default axis
    return tuple(float(x) for x in axis_elem.get('xyz', '1 0 0').split())


def _parse_limits(joint_elem, joint_type: str):
    if joint_type == 'continuous':
        return -np.inf, np.inf
    limit_elem = joint_elem.find('limit')
    if limit_elem is None:
        raise ValueError(f"Revolute joint '{joint_elem.get('name')}' has no <limit> element")
    return float(limit_elem.get('lower', '0')), float(limit_elem.get('upper', '0'))
