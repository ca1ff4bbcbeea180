"""Geometry tables for the FANUC CRX collaborative arm family.

Both sizes share one joint topology and differ only in the constants of their
:class:`CrxGeometry` record. Lengths are in meters, angles in radians.

Frame layout at the zero configuration (world axes X forward, Z up):

* J1 turns about +Z at shoulder height.
* J2 and J3 turn about +Y; the upper arm points straight up from J2 to J3.
* The forearm points along +X from J3 to the J4/J5 intersection; J4 turns
  about the forearm.
* J5 turns about +Y through the end of the forearm.
* J6 turns about -Z, ``wrist_offset`` towards -Y from the forearm axis. The
  flange sits ``flange_length`` below J5, so the tool frame at zero has its Z
  axis pointing down.
"""

import math
from dataclasses import dataclass
from typing import Tuple

from ..core import JointSpec, KinematicChain
from ..transforms import RigidTransform

_HALF_PI = math.pi / 2


def _deg(value: float) -> float:
    return math.radians(value)


@dataclass(frozen=True)
class CrxGeometry:
    """Per-model constants for a CRX arm.

    Attributes:
        model: Model name.
        shoulder_height: Height of the J2 axis above the mounting plane.
        upper_arm: Distance between the J2 and J3 axes.
        forearm: Distance from the J3 axis to the J5 axis along the forearm.
        wrist_offset: Lateral offset of the J6 axis from the forearm axis.
        flange_length: Distance from the J5 axis to the tool flange along J6.
        joint_limits: (lower, upper) radians for J1..J6.
        link_radii: Radius of the cylinder used to draw each link.
    """

    model: str
    shoulder_height: float
    upper_arm: float
    forearm: float
    wrist_offset: float
    flange_length: float
    joint_limits: Tuple[Tuple[float, float], ...]
    link_radii: Tuple[float, ...]


CRX_5IA = CrxGeometry(
    model="CRX-5iA",
    shoulder_height=0.185,
    upper_arm=0.410,
    forearm=0.430,
    wrist_offset=0.130,
    flange_length=0.145,
    joint_limits=(
        (_deg(-180.0), _deg(180.0)),
        (_deg(-180.0), _deg(180.0)),
        (_deg(-270.0), _deg(270.0)),
        (_deg(-190.0), _deg(190.0)),
        (_deg(-180.0), _deg(180.0)),
        (_deg(-225.0), _deg(225.0)),
    ),
    link_radii=(0.075, 0.060, 0.055, 0.050, 0.045, 0.040),
)

CRX_10IA = CrxGeometry(
    model="CRX-10iA",
    shoulder_height=0.245,
    upper_arm=0.540,
    forearm=0.540,
    wrist_offset=0.150,
    flange_length=0.160,
    joint_limits=(
        (_deg(-180.0), _deg(180.0)),
        (_deg(-180.0), _deg(180.0)),
        (_deg(-270.0), _deg(270.0)),
        (_deg(-190.0), _deg(190.0)),
        (_deg(-180.0), _deg(180.0)),
        (_deg(-225.0), _deg(225.0)),
    ),
    link_radii=(0.090, 0.075, 0.065, 0.060, 0.055, 0.045),
)


def crx_chain(geometry: CrxGeometry) -> KinematicChain:
    """Create the kinematic chain described by a CRX geometry record."""
    g = geometry
    offsets = [
        RigidTransform.from_xyz_rpy((0.0, 0.0, g.shoulder_height)),
        RigidTransform.from_xyz_rpy((0.0, 0.0, 0.0), (-_HALF_PI, 0.0, 0.0)),
        # J2 frame has its -Y along world +Z, so the upper arm runs along -Y
        RigidTransform.from_xyz_rpy((0.0, -g.upper_arm, 0.0)),
        RigidTransform.from_xyz_rpy((g.forearm, 0.0, 0.0), (0.0, _HALF_PI, 0.0)),
        RigidTransform.from_xyz_rpy((g.wrist_offset, 0.0, 0.0), (0.0, -_HALF_PI, 0.0)),
        RigidTransform.from_xyz_rpy((0.0, 0.0, 0.0), (-_HALF_PI, 0.0, 0.0)),
    ]
    joints = [
        JointSpec(
            name=f"J{i + 1}",
            offset=offset,
            lower_limit=lower,
            upper_limit=upper,
        )
        for i, (offset, (lower, upper)) in enumerate(zip(offsets, g.joint_limits))
    ]
    return KinematicChain.from_joints(
        g.model,
        joints,
        base_offset=RigidTransform.identity(),
        tool_offset=RigidTransform.from_translation((0.0, 0.0, g.flange_length)),
    )
