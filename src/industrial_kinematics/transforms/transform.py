"""Immutable rigid-body transform value type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import jax
import jax.numpy as jnp
import numpy as np
from jax.tree_util import register_pytree_node_class

from ..errors import InvalidTransform
from . import se3, so3

Array = jax.Array

# Largest |R^T R - I| entry accepted by from_matrix before projecting onto SO(3).
ORTHONORMAL_TOLERANCE = 1e-4


@register_pytree_node_class  # usable as an argument to jit / vmap
@dataclass(frozen=True, eq=False)
class RigidTransform:
    """A 3D pose: orthonormal rotation (det +1) followed by a translation.

    Instances are never mutated; every operation returns a new transform.
    Applying the transform to a point p gives ``rotation @ p + translation``.

    The constructor trusts its arguments and does not check the rotation;
    use :meth:`from_matrix` or :meth:`validated` for untrusted input.
    """
    rotation: Array  # (3, 3)
    translation: Array  # (3,)

    # Constructors
    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls(jnp.eye(3, dtype=jnp.float64), jnp.zeros(3, dtype=jnp.float64))

    @classmethod
    def from_translation(cls, xyz: Sequence[float]) -> "RigidTransform":
        return cls(jnp.eye(3, dtype=jnp.float64), jnp.asarray(xyz, dtype=jnp.float64))

    @classmethod
    def from_rotation(cls, rotation: Array) -> "RigidTransform":
        return cls(jnp.asarray(rotation, dtype=jnp.float64), jnp.zeros(3, dtype=jnp.float64))

    @classmethod
    def from_xyz_rpy(cls, xyz: Sequence[float], rpy: Sequence[float] = (0.0, 0.0, 0.0)) -> "RigidTransform":
        return cls.from_homogeneous(se3.from_xyz_rpy(xyz, rpy))

    @classmethod
    def from_pos_quat(cls, pos: Sequence[float], quat: Optional[Sequence[float]] = None) -> "RigidTransform":
        """Build from a position and an optional (w, x, y, z) quaternion."""
        if quat is None:
            return cls.from_translation(pos)
        rotation = so3.from_quaternion(jnp.asarray(quat, dtype=jnp.float64))
        return cls(rotation, jnp.asarray(pos, dtype=jnp.float64))

    @classmethod
    def from_homogeneous(cls, matrix: Array) -> "RigidTransform":
        """Wrap a (4, 4) array that is already known to be rigid.

        No validation happens here; use :meth:`from_matrix` for untrusted input.
        """
        matrix = jnp.asarray(matrix, dtype=jnp.float64)
        return cls(matrix[:3, :3], matrix[:3, 3])

    @classmethod
    def from_matrix(cls, values) -> "RigidTransform":
        """Decompose a row-major homogeneous matrix given as 16 values or (4, 4).

        A rotation block that is orthonormal to within ``ORTHONORMAL_TOLERANCE``
        is projected back onto SO(3). Anything else raises
        :class:`InvalidTransform`.
        """
        try:
            m = np.asarray(values, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise InvalidTransform(f"matrix entries must be real numbers: {exc}") from exc

        if m.shape not in ((16,), (4, 4)):
            raise InvalidTransform(f"expected 16 values or a 4x4 matrix, got shape {m.shape}")
        m = m.reshape(4, 4)

        if not np.all(np.isfinite(m)):
            raise InvalidTransform("matrix contains non-finite entries")
        if np.max(np.abs(m[3] - np.array([0.0, 0.0, 0.0, 1.0]))) > ORTHONORMAL_TOLERANCE:
            raise InvalidTransform(f"last row must be [0, 0, 0, 1], got {m[3].tolist()}")

        R = m[:3, :3]
        det = np.linalg.det(R)
        if det <= 0.0:
            kind = "reflective" if det < 0.0 else "singular"
            raise InvalidTransform(f"rotation block is {kind} (det={det:.6g})")

        residual = float(so3.orthonormality_error(jnp.asarray(R)))
        if residual > ORTHONORMAL_TOLERANCE:
            raise InvalidTransform(
                f"rotation block is not orthonormal (max |R^T R - I| = {residual:.3g})"
            )

        return cls(so3.project(jnp.asarray(R)), jnp.asarray(m[:3, 3]))

    def validated(self) -> "RigidTransform":
        """Run this transform through :meth:`from_matrix`.

        Raises:
            InvalidTransform: If the rotation is not orthonormal with det +1
                or an entry is not finite.
        """
        return RigidTransform.from_matrix(np.asarray(self.as_matrix()))

    # PyTree boiler-plate
    def tree_flatten(self):
        return (self.rotation, self.translation), None

    @classmethod
    def tree_unflatten(cls, aux, children):
        rotation, translation = children
        return cls(rotation, translation)

    # Basic operations
    def compose(self, other: "RigidTransform") -> "RigidTransform":
        """Self ∘ other: apply *other* in this transform's frame."""
        return RigidTransform(
            so3.multiply(self.rotation, other.rotation),
            so3.apply(self.rotation, other.translation) + self.translation,
        )

    def __matmul__(self, other: "RigidTransform") -> "RigidTransform":
        if not isinstance(other, RigidTransform):
            return NotImplemented
        return self.compose(other)

    def inverse(self) -> "RigidTransform":
        R_inv = so3.inverse(self.rotation)
        return RigidTransform(R_inv, -so3.apply(R_inv, self.translation))

    def normalized(self) -> "RigidTransform":
        """Same pose with the rotation re-projected onto SO(3)."""
        return RigidTransform(so3.project(self.rotation), self.translation)

    # Conversions
    def as_matrix(self) -> Array:
        """(4, 4) homogeneous matrix."""
        return se3.from_position_and_rotation(self.translation, self.rotation)

    def to_matrix(self) -> Array:
        """(16,) row-major homogeneous matrix; the last four entries are 0, 0, 0, 1."""
        return self.as_matrix().reshape(16)

    def tolist(self) -> list:
        return [float(v) for v in np.asarray(self.to_matrix())]

    @property
    def quaternion(self) -> Array:
        """Rotation as a (w, x, y, z) quaternion with w >= 0."""
        return so3.to_quaternion(self.rotation)

    # Point transformation
    def transform_points(self, points: Array) -> Array:
        """Apply the transform to a (3,) point or an (N, 3) array of points."""
        points = jnp.asarray(points, dtype=self.rotation.dtype)
        if points.shape[-1] != 3 or points.ndim not in (1, 2):
            raise ValueError("points must have shape (3,) or (N, 3)")
        return se3.apply(self.as_matrix(), points)

    def allclose(self, other: "RigidTransform", atol: float = 1e-9) -> bool:
        return bool(
            jnp.allclose(self.rotation, other.rotation, rtol=0.0, atol=atol)
            and jnp.allclose(self.translation, other.translation, rtol=0.0, atol=atol)
        )

    def __repr__(self) -> str:
        t = np.asarray(self.translation).round(6).tolist()
        q = np.asarray(self.quaternion).round(6).tolist()
        return f"RigidTransform(translation={t}, quaternion_wxyz={q})"


def compose(a: RigidTransform, b: RigidTransform) -> RigidTransform:
    return a.compose(b)


def invert(a: RigidTransform) -> RigidTransform:
    return a.inverse()


def to_matrix(a: RigidTransform) -> Array:
    return a.to_matrix()


def from_matrix(values) -> RigidTransform:
    return RigidTransform.from_matrix(values)
