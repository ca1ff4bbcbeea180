"""Static per-link triangle meshes.

Every robot model exposes one :class:`LinkMesh` per joint frame, expressed in
that frame, so mesh ``i`` lines up with entry ``i`` of ``forward_all``. The
meshes are built once from the model's geometry record out of capped
cylinders and then shared read-only.
"""

import threading
from dataclasses import dataclass
from logging import getLogger
from typing import Dict, Sequence, Tuple, Union

import numpy as np
import trimesh
from numpy.typing import NDArray

from .robots import CrxGeometry, RobotVariant, get_geometry, resolve_variant
from .transforms import RigidTransform

logger = getLogger(__name__)

DEFAULT_SEGMENTS = 24

_meshes: Dict[RobotVariant, Tuple["LinkMesh", ...]] = {}
_meshes_lock = threading.Lock()


@dataclass(frozen=True, eq=False)
class LinkMesh:
    """Indexed triangle mesh in a link's local frame.

    Attributes:
        vertices: (N, 3) float64 vertex positions.
        faces: (M, 3) uint32 vertex indices, counter-clockwise seen from outside.
    """

    vertices: NDArray[np.float64]
    faces: NDArray[np.uint32]

    def __post_init__(self) -> None:
        vertices = np.array(self.vertices, dtype=np.float64)
        faces = np.array(self.faces, dtype=np.uint32)
        if vertices.ndim != 2 or vertices.shape[1] != 3:
            raise ValueError(f"vertices must have shape (N, 3), got {vertices.shape}")
        if faces.ndim != 2 or faces.shape[1] != 3:
            raise ValueError(f"faces must have shape (M, 3), got {faces.shape}")
        if faces.size and int(faces.max()) >= len(vertices):
            raise ValueError("faces reference vertices that do not exist")
        vertices.flags.writeable = False
        faces.flags.writeable = False
        object.__setattr__(self, "vertices", vertices)
        object.__setattr__(self, "faces", faces)

    def as_buffers(self) -> Tuple[NDArray[np.float64], NDArray[np.uint32]]:
        return self.vertices, self.faces

    def transformed(self, pose: RigidTransform) -> "LinkMesh":
        """Copy of this mesh with every vertex mapped through ``pose``."""
        return LinkMesh(np.asarray(pose.transform_points(self.vertices)), self.faces)

    def as_trimesh(self) -> trimesh.Trimesh:
        """Copy of this mesh as a ``trimesh.Trimesh`` without vertex merging."""
        return trimesh.Trimesh(vertices=self.vertices.copy(), faces=self.faces.astype(np.int64), process=False)

    @classmethod
    def from_trimesh(cls, mesh: trimesh.Trimesh) -> "LinkMesh":
        return cls(mesh.vertices, mesh.faces)


def cylinder(start: Sequence[float], end: Sequence[float], radius: float,
             segments: int = DEFAULT_SEGMENTS) -> LinkMesh:
    """Closed cylinder between two points."""
    segment = np.array([start, end], dtype=np.float64)
    length = float(np.linalg.norm(segment[1] - segment[0]))
    if length <= 0.0 or radius <= 0.0 or segments < 3:
        raise ValueError("cylinder needs distinct end points, a positive radius and at least 3 segments")
    return LinkMesh.from_trimesh(
        trimesh.creation.cylinder(radius=radius, segment=segment, sections=segments)
    )


def merge_meshes(meshes: Sequence[LinkMesh]) -> LinkMesh:
    """Concatenate meshes into one, re-indexing the faces."""
    return LinkMesh.from_trimesh(trimesh.util.concatenate([m.as_trimesh() for m in meshes]))


def crx_link_meshes(g: CrxGeometry) -> Tuple[LinkMesh, ...]:
    """Meshes for the six moving links of a CRX arm.

    Coordinates follow the joint frames built by ``crx_chain``: link 0 is
    the J1 frame (Z up), links 1 and 2 the J2/J3 frames (upper arm along -Y,
    forearm along +X, joint axes along Z), link 3 the J4 frame (wrist offset
    along +X), link 4 the J5 frame and link 5 the J6 frame (flange along +Z).
    """
    r = g.link_radii
    return (
        merge_meshes([
            cylinder((0.0, 0.0, -g.shoulder_height), (0.0, 0.0, 0.0), r[0]),
            cylinder((0.0, -r[0], 0.0), (0.0, r[0], 0.0), r[1]),
        ]),
        merge_meshes([
            cylinder((0.0, 0.0, 0.0), (0.0, -g.upper_arm, 0.0), r[1]),
            cylinder((0.0, -g.upper_arm, -r[1]), (0.0, -g.upper_arm, r[1]), r[2]),
        ]),
        cylinder((0.0, 0.0, 0.0), (g.forearm, 0.0, 0.0), r[2]),
        cylinder((0.0, 0.0, 0.0), (g.wrist_offset, 0.0, 0.0), r[3]),
        cylinder((0.0, 0.0, -r[4]), (0.0, 0.0, r[4]), r[4]),
        cylinder((0.0, 0.0, 0.0), (0.0, 0.0, g.flange_length), r[5]),
    )


def link_meshes(variant: Union[RobotVariant, str]) -> Tuple[LinkMesh, ...]:
    """Return the shared link meshes of a robot model, one per joint frame.

    The meshes are built on first use; concurrent first calls share one build.

    Raises:
        UnknownRobotVariant: If ``variant`` is not a supported model.
    """
    variant = resolve_variant(variant)
    with _meshes_lock:
        meshes = _meshes.get(variant)
        if meshes is None:
            meshes = _meshes[variant] = crx_link_meshes(get_geometry(variant))
            logger.debug(
                "Built %d link meshes for %s (%d triangles)",
                len(meshes),
                variant.value,
                sum(len(m.faces) for m in meshes),
            )
    return meshes
