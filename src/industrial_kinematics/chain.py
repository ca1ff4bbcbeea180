"""Forward kinematics and Jacobian computation.

Forward kinematics is a pure function of (KinematicChain, joint vector). The
jitted array kernels below work on (4, 4) matrices; the public functions
validate the joint vector and wrap the results in :class:`RigidTransform`.
Joint limits are not enforced here, so out-of-limit configurations can still
be evaluated and inspected.
"""

from typing import Tuple

import jax
import jax.numpy as jnp
from jax import Array

from .core import KinematicChain
from .transforms import RigidTransform, se3

PoseSet = Tuple[RigidTransform, ...]


@jax.jit
def forward_kinematics_world(chain: KinematicChain, q: Array) -> Array:
    """Internal FK returning every frame as one array.

    Args:
        chain: KinematicChain describing the robot
        q: Joint angles of shape (6,)

    Returns:
        Array of shape (7, 4, 4): the six joint frames followed by the tool frame
    """

    def scan_body(T_parent, inputs):
        offset, axis, angle = inputs
        T_joint = se3.multiply(se3.multiply(T_parent, offset), se3.revolute(axis, angle))
        return T_joint, T_joint

    T_last, frames = jax.lax.scan(
        scan_body, chain.base_offset, (chain.joint_offsets, chain.joint_axes, q)
    )
    T_tool = se3.multiply(T_last, chain.tool_offset)
    return jnp.concatenate([frames, T_tool[None]], axis=0)


@jax.jit
def geometric_jacobian(chain: KinematicChain, frames: Array) -> Array:
    """6xN world-frame Jacobian of the tool frame from precomputed frames.

    Column i is [w_i x (p_tool - o_i); w_i] where w_i is joint i's axis in the
    world and o_i the origin of its frame.
    """
    axes_world = jnp.einsum("nij,nj->ni", frames[:-1, :3, :3], chain.joint_axes)
    origins = frames[:-1, :3, 3]
    p_tool = frames[-1, :3, 3]
    linear = jnp.cross(axes_world, p_tool[None, :] - origins)
    return jnp.concatenate([linear, axes_world], axis=-1).T


def forward_all(chain: KinematicChain, joints) -> PoseSet:
    """Compute the pose of every joint frame and of the tool.

    Args:
        chain: KinematicChain of the robot
        joints: Sequence of 6 joint angles in radians

    Returns:
        Tuple of 7 RigidTransform: one per joint frame, then the end effector

    Raises:
        InvalidJointCount: If ``joints`` does not have 6 entries.
    """
    q = chain.validate_joints(joints)
    frames = forward_kinematics_world(chain, q)
    return tuple(RigidTransform.from_homogeneous(frames[i]) for i in range(frames.shape[0]))


def forward_end(chain: KinematicChain, joints) -> RigidTransform:
    """Compute only the end-effector pose."""
    q = chain.validate_joints(joints)
    return RigidTransform.from_homogeneous(forward_kinematics_world(chain, q)[-1])


def jacobian(chain: KinematicChain, joints) -> Array:
    """Compute the 6x6 geometric Jacobian of the end effector.

    Rows are the linear velocity of the tool origin followed by the angular
    velocity, both in the world frame, per unit joint velocity.
    """
    q = chain.validate_joints(joints)
    return geometric_jacobian(chain, forward_kinematics_world(chain, q))


def home_pose(chain: KinematicChain) -> RigidTransform:
    """Tool pose with every joint at zero: base, offsets and tool composed."""
    pose = chain.base
    for joint in chain.joints:
        pose = pose.compose(joint.offset)
    return pose.compose(chain.tool)
