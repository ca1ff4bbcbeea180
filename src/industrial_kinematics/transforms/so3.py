"""SO(3) and so(3) operations in JAX.

This module implements the rotation algebra used by the rest of the library:
rotation matrices, axis-angle vectors and quaternions. All functions are pure,
JIT-able, and operate on (optionally batched) JAX arrays.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def exp(log_r: Array) -> Array:
    """
    SO(3) exponential map: convert axis-angle vector to rotation matrix.

    Implements Rodrigues' formula for a 3D axis-angle vector (so(3)).

    Args:
        log_r: (..., 3) array of axis-angle vectors

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    angle = jnp.linalg.norm(log_r, axis=-1, keepdims=True)

    small_angle = angle < 1e-8

    # Taylor expansion below the threshold, full Rodrigues formula above it
    cos_angle = jnp.where(small_angle, 1.0 - 0.5 * angle**2, jnp.cos(angle))
    sin_angle = jnp.where(small_angle, angle - angle**3 / 6.0, jnp.sin(angle))

    safe_angle = jnp.where(small_angle, 1.0, angle)
    axis = jnp.where(small_angle, log_r, log_r / safe_angle)

    K = skew_symmetric(axis)

    I = jnp.eye(3, dtype=log_r.dtype)
    I = jnp.broadcast_to(I, log_r.shape[:-1] + (3, 3))

    return I + sin_angle[..., None] * K + (1.0 - cos_angle)[..., None] * jnp.matmul(K, K)


def rotation_about(axis: Array, angle: Array) -> Array:
    """
    Rotation by ``angle`` about a unit ``axis``.

    Unlike :func:`exp` there is no division by the angle, so the result is
    smooth everywhere and exactly the identity at zero.

    Args:
        axis: (..., 3) unit rotation axis
        angle: (...) rotation angle in radians

    Returns:
        (..., 3, 3) rotation matrices
    """
    angle = jnp.asarray(angle)
    K = skew_symmetric(axis)
    I = jnp.broadcast_to(jnp.eye(3, dtype=K.dtype), K.shape)
    return (I
            + jnp.sin(angle)[..., None, None] * K
            + (1.0 - jnp.cos(angle))[..., None, None] * jnp.matmul(K, K))


def log(R: Array) -> Array:
    """
    SO(3) logarithm map: convert rotation matrix to axis-angle vector.

    This is the inverse of exp(). The IK solver uses it to express
    orientation error.

    Args:
        R: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 3) array of axis-angle vectors
    """
    trace = jnp.trace(R, axis1=-2, axis2=-1)

    # axis = [R21 - R12, R02 - R20, R10 - R01] / (2 sin(angle))
    skew_part = jnp.stack([
        R[..., 2, 1] - R[..., 1, 2],
        R[..., 0, 2] - R[..., 2, 0],
        R[..., 1, 0] - R[..., 0, 1]
    ], axis=-1)

    # atan2 keeps the angle accurate near 0 and pi where arccos is not
    cos_angle = (trace - 1.0) / 2.0
    sin_abs = 0.5 * jnp.linalg.norm(skew_part, axis=-1)
    angle = jnp.arctan2(sin_abs, cos_angle)

    small_angle = angle < 1e-8
    near_pi = angle > jnp.pi - 1e-6

    sin_angle = jnp.where(small_angle | near_pi, 1.0, sin_abs)

    axis_small = skew_part / 2.0
    axis_general = skew_part / (2.0 * sin_angle[..., None])

    # Near pi the skew part vanishes; (R + I) / 2 = a a^T, so its largest
    # column is parallel to the axis.
    B = (R + jnp.eye(3, dtype=R.dtype)) / 2.0
    diag_vals = jnp.diagonal(B, axis1=-2, axis2=-1)
    max_idx = jnp.argmax(diag_vals, axis=-1)
    axis_pi = jnp.take_along_axis(B, max_idx[..., None, None], axis=-1)[..., 0]
    axis_pi = axis_pi / jnp.linalg.norm(axis_pi, axis=-1, keepdims=True)
    # pick the sign that agrees with whatever skew part is left
    sign = jnp.where(jnp.sum(axis_pi * skew_part, axis=-1, keepdims=True) < 0, -1.0, 1.0)
    axis_pi = axis_pi * sign

    angle_or_one = jnp.where(small_angle, 1.0, angle)
    return jnp.where(
        small_angle[..., None],
        axis_small,
        angle_or_one[..., None] * jnp.where(near_pi[..., None], axis_pi, axis_general),
    )


def multiply(R1: Array, R2: Array) -> Array:
    """Multiply two rotation matrices: (..., 3, 3) x (..., 3, 3)."""
    return jnp.matmul(R1, R2)


def inverse(R: Array) -> Array:
    """
    Compute inverse of rotation matrix.

    For rotation matrices, the inverse is simply the transpose.
    """
    return jnp.swapaxes(R, -1, -2)


def apply(R: Array, v: Array) -> Array:
    """
    Apply rotation to vector(s).

    Args:
        R: (..., 3, 3) rotation matrix
        v: (..., 3) or (..., N, 3) vector(s) to rotate

    Returns:
        (..., 3) or (..., N, 3) rotated vector(s)
    """
    if v.ndim == R.ndim - 1:
        return jnp.einsum('...ij,...j->...i', R, v)
    else:
        return jnp.einsum('...ij,...nj->...ni', R, v)


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric matrix.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    v = jnp.asarray(v)
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def from_rpy(rpy: Array) -> Array:
    """
    Convert fixed-axis roll-pitch-yaw angles to a rotation matrix.

    Uses the URDF convention R = Rz(yaw) @ Ry(pitch) @ Rx(roll).

    Args:
        rpy: (..., 3) array of [roll, pitch, yaw] in radians

    Returns:
        (..., 3, 3) rotation matrices
    """
    rpy = jnp.asarray(rpy, dtype=jnp.float64)
    roll, pitch, yaw = rpy[..., 0], rpy[..., 1], rpy[..., 2]
    ex = jnp.broadcast_to(jnp.array([1.0, 0.0, 0.0]), rpy.shape)
    ey = jnp.broadcast_to(jnp.array([0.0, 1.0, 0.0]), rpy.shape)
    ez = jnp.broadcast_to(jnp.array([0.0, 0.0, 1.0]), rpy.shape)
    return jnp.matmul(
        rotation_about(ez, yaw),
        jnp.matmul(rotation_about(ey, pitch), rotation_about(ex, roll)),
    )


def project(R: Array) -> Array:
    """
    Project a (near-)rotation matrix onto SO(3).

    Returns the closest orthonormal matrix in the Frobenius sense, U @ V^T
    from the SVD, with the sign of the last singular direction fixed so the
    determinant is +1.
    """
    U, _, Vt = jnp.linalg.svd(R)
    d = jnp.sign(jnp.linalg.det(jnp.matmul(U, Vt)))
    U = U.at[..., :, -1].multiply(d[..., None])
    return jnp.matmul(U, Vt)


def orthonormality_error(R: Array) -> Array:
    """Largest absolute entry of R^T R - I."""
    I = jnp.eye(3, dtype=R.dtype)
    return jnp.max(jnp.abs(jnp.matmul(inverse(R), R) - I), axis=(-2, -1))


def from_quaternion(quaternions: Array) -> Array:
    """
    Convert quaternions to rotation matrices.

    Args:
        quaternions: (..., 4) array of quaternions in (w, x, y, z) format

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    quaternions = quaternions / jnp.linalg.norm(quaternions, axis=-1, keepdims=True)

    w, x, y, z = jnp.moveaxis(quaternions, -1, 0)

    xx, yy, zz = x*x, y*y, z*z
    wx, wy, wz = w*x, w*y, w*z
    xy, xz, yz = x*y, x*z, y*z

    matrix = jnp.stack([
        jnp.stack([1 - 2*(yy + zz), 2*(xy - wz), 2*(xz + wy)], axis=-1),
        jnp.stack([2*(xy + wz), 1 - 2*(xx + zz), 2*(yz - wx)], axis=-1),
        jnp.stack([2*(xz - wy), 2*(yz + wx), 1 - 2*(xx + yy)], axis=-1)
    ], axis=-2)

    return matrix


def to_quaternion(matrix: Array) -> Array:
    """
    Convert rotation matrices to quaternions (w, x, y, z).
    Batch-safe and JIT-friendly implementation.

    Args:
        matrix: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 4) array of quaternions in (w, x, y, z) format, w >= 0
    """
    m00 = matrix[..., 0, 0]
    m01 = matrix[..., 0, 1]
    m02 = matrix[..., 0, 2]
    m10 = matrix[..., 1, 0]
    m11 = matrix[..., 1, 1]
    m12 = matrix[..., 1, 2]
    m20 = matrix[..., 2, 0]
    m21 = matrix[..., 2, 1]
    m22 = matrix[..., 2, 2]

    trace = m00 + m11 + m22

    eps = jnp.finfo(matrix.dtype).eps

    # Four candidates, each well conditioned for a different dominant component
    q0 = jnp.stack([trace + 1.0, m21 - m12, m02 - m20, m10 - m01], axis=-1) * 0.5
    q1 = jnp.stack([m21 - m12, m00 - m11 - m22 + 1.0, m01 + m10, m02 + m20], axis=-1) * 0.5
    q2 = jnp.stack([m02 - m20, m01 + m10, m11 - m00 - m22 + 1.0, m12 + m21], axis=-1) * 0.5
    q3 = jnp.stack([m10 - m01, m02 + m20, m12 + m21, m22 - m00 - m11 + 1.0], axis=-1) * 0.5

    s0 = 1.0 / jnp.sqrt(jnp.maximum(1.0 + trace, eps))
    s1 = 1.0 / jnp.sqrt(jnp.maximum(1.0 + m00 - m11 - m22, eps))
    s2 = 1.0 / jnp.sqrt(jnp.maximum(1.0 + m11 - m00 - m22, eps))
    s3 = 1.0 / jnp.sqrt(jnp.maximum(1.0 + m22 - m00 - m11, eps))

    q0 = q0 * s0[..., None]
    q1 = q1 * s1[..., None]
    q2 = q2 * s2[..., None]
    q3 = q3 * s3[..., None]

    mask0 = (trace > 0)
    mask1 = (~mask0) & (m00 > m11) & (m00 > m22)
    mask2 = (~mask0) & (~mask1) & (m11 > m22)
    mask3 = (~mask0) & (~mask1) & (~mask2)

    quaternion = (
        jnp.where(mask0[..., None], q0, 0) +
        jnp.where(mask1[..., None], q1, 0) +
        jnp.where(mask2[..., None], q2, 0) +
        jnp.where(mask3[..., None], q3, 0)
    )

    quaternion = jnp.where(quaternion[..., 0:1] < 0, -quaternion, quaternion)
    quaternion = quaternion / jnp.linalg.norm(quaternion, axis=-1, keepdims=True)

    return quaternion
