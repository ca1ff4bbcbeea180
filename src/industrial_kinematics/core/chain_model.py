"""Immutable kinematic-chain model for 6-axis serial arms.

A chain is described by one :class:`JointSpec` per axis plus fixed base and
tool offsets. :class:`KinematicChain` stores the same data as stacked JAX
arrays in a flax PyTree so it can be handed straight to jitted kernels.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import jax.numpy as jnp
import numpy as np
from flax import struct
from jax import Array

from ..errors import InvalidJointCount
from ..transforms import RigidTransform

NUM_JOINTS = 6


@dataclass(frozen=True)
class JointSpec:
    """Static description of one revolute joint.

    Attributes:
        name: Joint name, e.g. "J1".
        offset: Fixed transform from the previous joint frame (or the base) to
            this joint's frame before the joint rotates.
        lower_limit: Minimum joint angle in radians.
        upper_limit: Maximum joint angle in radians.
        axis: Rotation axis in the offset frame; normalized on construction.
    """

    name: str
    offset: RigidTransform
    lower_limit: float
    upper_limit: float
    axis: Tuple[float, float, float] = (0.0, 0.0, 1.0)

    def __post_init__(self) -> None:
        if not self.lower_limit <= self.upper_limit:
            raise ValueError(
                f"joint {self.name!r}: lower limit {self.lower_limit} exceeds upper limit {self.upper_limit}"
            )
        axis = np.asarray(self.axis, dtype=np.float64)
        norm = float(np.linalg.norm(axis))
        if axis.shape != (3,) or norm < 1e-12:
            raise ValueError(f"joint {self.name!r}: axis must be a non-zero 3-vector, got {self.axis}")
        object.__setattr__(self, "axis", tuple(float(v) for v in axis / norm))


@struct.dataclass
class KinematicChain:
    """Immutable PyTree representation of a 6-axis serial chain.

    Attributes:
        name: Model name. Static field for JIT compilation.
        joint_names: Names of the joints in chain order. Static field.
        joint_offsets: (6, 4, 4) fixed transforms from each parent frame to
            the joint frame, applied before the joint rotation.
        joint_axes: (6, 3) unit rotation axes expressed in the offset frames.
        lower_limits: (6,) lower joint limits in radians.
        upper_limits: (6,) upper joint limits in radians.
        base_offset: (4, 4) transform from the world to the chain's base.
        tool_offset: (4, 4) transform from the last joint frame to the tool.
    """
    name: str = struct.field(pytree_node=False)
    joint_names: Tuple[str, ...] = struct.field(pytree_node=False)
    joint_offsets: Array
    joint_axes: Array
    lower_limits: Array
    upper_limits: Array
    base_offset: Array
    tool_offset: Array

    @classmethod
    def from_joints(
        cls,
        name: str,
        joints: Sequence[JointSpec],
        base_offset: Optional[RigidTransform] = None,
        tool_offset: Optional[RigidTransform] = None,
    ) -> "KinematicChain":
        joints = tuple(joints)
        if len(joints) != NUM_JOINTS:
            raise InvalidJointCount(NUM_JOINTS, len(joints))
        base_offset = base_offset or RigidTransform.identity()
        tool_offset = tool_offset or RigidTransform.identity()
        return cls(
            name=name,
            joint_names=tuple(j.name for j in joints),
            joint_offsets=jnp.stack([j.offset.as_matrix() for j in joints]),
            joint_axes=jnp.array([j.axis for j in joints], dtype=jnp.float64),
            lower_limits=jnp.array([j.lower_limit for j in joints], dtype=jnp.float64),
            upper_limits=jnp.array([j.upper_limit for j in joints], dtype=jnp.float64),
            base_offset=base_offset.as_matrix(),
            tool_offset=tool_offset.as_matrix(),
        )

    @property
    def num_joints(self) -> int:
        return len(self.joint_names)

    @property
    def joints(self) -> Tuple[JointSpec, ...]:
        return tuple(
            JointSpec(
                name=self.joint_names[i],
                offset=RigidTransform.from_homogeneous(self.joint_offsets[i]),
                lower_limit=float(self.lower_limits[i]),
                upper_limit=float(self.upper_limits[i]),
                axis=tuple(float(v) for v in self.joint_axes[i]),
            )
            for i in range(self.num_joints)
        )

    @property
    def base(self) -> RigidTransform:
        return RigidTransform.from_homogeneous(self.base_offset)

    @property
    def tool(self) -> RigidTransform:
        return RigidTransform.from_homogeneous(self.tool_offset)

    @property
    def max_reach(self) -> float:
        """Upper bound on the distance from the base origin to the tool origin.

        Joint rotations never translate, so the tool can be no further away
        than the sum of the offset lengths along the chain.
        """
        links = float(jnp.sum(jnp.linalg.norm(self.joint_offsets[:, :3, 3], axis=-1)))
        return links + float(jnp.linalg.norm(self.tool_offset[:3, 3]))

    def validate_joints(self, joints) -> Array:
        """Return ``joints`` as a float64 vector, raising InvalidJointCount on bad length."""
        q = np.asarray(joints, dtype=np.float64)
        if q.ndim != 1 or q.shape[0] != self.num_joints:
            raise InvalidJointCount(self.num_joints, int(q.size))
        return jnp.asarray(q)

    def clamp_to_limits(self, joints: Array) -> Array:
        return jnp.clip(joints, self.lower_limits, self.upper_limits)

    def within_limits(self, joints, tolerance: float = 0.0) -> bool:
        q = self.validate_joints(joints)
        return bool(
            jnp.all(q >= self.lower_limits - tolerance) and jnp.all(q <= self.upper_limits + tolerance)
        )
