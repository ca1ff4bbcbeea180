"""SE(3) rigid body transforms as 4x4 homogeneous matrices in JAX.

This is the array-level layer used inside jitted kinematics kernels. All
functions are pure and operate on (optionally batched) JAX arrays.
"""

import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transform from position and rotation.

    Args:
        p: (..., 3) position vector
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    p = jnp.asarray(p)
    R = jnp.asarray(R)
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    dtype = jnp.result_type(p.dtype, R.dtype)
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=dtype)
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    T = T.at[..., 3, 3].set(1.0)

    return T


def from_xyz_rpy(xyz, rpy=(0.0, 0.0, 0.0)) -> Array:
    """
    Build a transform from a translation and URDF-style roll-pitch-yaw.

    Args:
        xyz: (3,) translation
        rpy: (3,) [roll, pitch, yaw] in radians

    Returns:
        (4, 4) homogeneous transformation matrix
    """
    return from_position_and_rotation(
        jnp.asarray(xyz, dtype=jnp.float64), so3.from_rpy(jnp.asarray(rpy, dtype=jnp.float64))
    )


def revolute(axis: Array, angle: Array) -> Array:
    """
    Pure rotation about ``axis`` through the origin.

    Args:
        axis: (..., 3) unit rotation axis
        angle: (...) joint angle in radians

    Returns:
        (..., 4, 4) transformation matrix
    """
    R = so3.rotation_about(axis, angle)
    return from_position_and_rotation(jnp.zeros(R.shape[:-2] + (3,), dtype=R.dtype), R)


def multiply(T1: Array, T2: Array) -> Array:
    """
    Multiply two SE(3) transformation matrices.

    Args:
        T1: (..., 4, 4) first transformation matrix
        T2: (..., 4, 4) second transformation matrix

    Returns:
        (..., 4, 4) result of T1 @ T2
    """
    return jnp.matmul(T1, T2)


def inverse(T: Array) -> Array:
    """
    Compute inverse of SE(3) transformation matrix.

    Uses the block structure: T^-1 = [[R^T, -R^T @ t], [0, 1]]

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 4, 4) inverse transformation matrix
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]

    R_inv = jnp.swapaxes(R, -1, -2)
    t_inv = -jnp.einsum("...ij,...j->...i", R_inv, t)

    return from_position_and_rotation(t_inv, R_inv)


def apply(T: Array, points: Array) -> Array:
    """
    Apply SE(3) transformation to points.

    Args:
        T: (..., 4, 4) transformation matrix
        points: (..., 3) or (..., N, 3) points to transform

    Returns:
        (..., 3) or (..., N, 3) transformed points
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]
    if points.ndim == T.ndim - 1:
        return jnp.einsum("...ij,...j->...i", R, points) + t
    return jnp.einsum("...ij,...nj->...ni", R, points) + t[..., None, :]


def get_position(T: Array) -> Array:
    """Extract the (..., 3) position from a (..., 4, 4) transform."""
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    """Extract the (..., 3, 3) rotation from a (..., 4, 4) transform."""
    return T[..., :3, :3]


def pose_error(T_current: Array, T_target: Array) -> Array:
    """
    6D error that takes ``T_current`` to ``T_target``, in the world frame.

    The first three components are the translation difference, the last three
    the axis-angle vector of R_current^T R_target rotated back into the world
    frame, so the error pairs with a world-frame geometric Jacobian.

    Args:
        T_current: (..., 4, 4) current pose
        T_target: (..., 4, 4) desired pose

    Returns:
        (..., 6) error [dx, dy, dz, rx, ry, rz]
    """
    R_c = get_rotation(T_current)
    dp = get_position(T_target) - get_position(T_current)
    local = so3.log(jnp.matmul(so3.inverse(R_c), get_rotation(T_target)))
    dr = jnp.einsum("...ij,...j->...i", R_c, local)
    return jnp.concatenate([dp, dr], axis=-1)
