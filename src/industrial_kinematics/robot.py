"""High-level robot object bundling a model's chain, solver and meshes."""

from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from jax import Array

from .chain import PoseSet, forward_all, forward_end, jacobian
from .core import KinematicChain
from .ik import IKResult, IKSolver, SolverConfig
from .mesh import LinkMesh, link_meshes
from .robots import RobotVariant, get_chain, resolve_variant
from .transforms import RigidTransform


class Robot:
    """A 6-axis arm: forward/inverse kinematics plus link meshes.

    Instances are cheap; the chain and meshes of a model are shared between
    all robots of that model and never modified.
    """

    def __init__(
        self,
        chain: KinematicChain,
        meshes: Tuple[LinkMesh, ...] = (),
        variant: Optional[RobotVariant] = None,
        config: Optional[SolverConfig] = None,
    ) -> None:
        self._chain = chain
        self._meshes = tuple(meshes)
        self._variant = variant
        self._solver = IKSolver(chain, config)

    @classmethod
    def from_variant(
        cls, variant: Union[RobotVariant, str], config: Optional[SolverConfig] = None
    ) -> "Robot":
        variant = resolve_variant(variant)
        return cls(get_chain(variant), link_meshes(variant), variant, config)

    @classmethod
    def new_5ia(cls) -> "Robot":
        return cls.from_variant(RobotVariant.CRX_5IA)

    @classmethod
    def new_10ia(cls) -> "Robot":
        return cls.from_variant(RobotVariant.CRX_10IA)

    @property
    def chain(self) -> KinematicChain:
        return self._chain

    @property
    def variant(self) -> Optional[RobotVariant]:
        return self._variant

    @property
    def solver(self) -> IKSolver:
        return self._solver

    def fk(self, joints: Sequence[float]) -> RigidTransform:
        return forward_end(self._chain, joints)

    def fk_all(self, joints: Sequence[float]) -> PoseSet:
        return forward_all(self._chain, joints)

    def jacobian(self, joints: Sequence[float]) -> Array:
        return jacobian(self._chain, joints)

    def ik(self, target: Union[RigidTransform, Sequence[float]], seed: Sequence[float]) -> Array:
        return self._solver.solve(target, seed).joints

    def ik_detailed(self, target: Union[RigidTransform, Sequence[float]], seed: Sequence[float]) -> IKResult:
        return self._solver.solve(target, seed)

    def get_meshes(self) -> Tuple[LinkMesh, ...]:
        return self._meshes

    # Flat row-major matrix interface
    def fk_matrix(self, joints: Sequence[float]) -> List[float]:
        """End-effector pose as 16 row-major homogeneous matrix values."""
        return self.fk(joints).tolist()

    def ik_matrix(self, target: Sequence[float], seed: Sequence[float]) -> List[float]:
        """Solve for a target given as 16 row-major values; returns 6 joint angles."""
        return [float(v) for v in np.asarray(self.ik(RigidTransform.from_matrix(target), seed))]

    def __repr__(self) -> str:
        return f"Robot({self._chain.name!r})"
