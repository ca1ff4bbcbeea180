"""Damped least-squares inverse kinematics.

The solver runs a Levenberg-Marquardt iteration on the 6D pose error::

    dq = (J^T J + lambda I)^{-1} J^T e

where *J* is the world-frame geometric Jacobian and *e* stacks the
translation error with the world-frame axis-angle orientation error. A trial
step is accepted only if it lowers ``|e|^2``; lambda shrinks after an accepted
step and grows after a rejected one, which keeps steps bounded near
singularities and lets the iteration become Gauss-Newton close to a solution.

The search is local: it returns the first configuration that converges from
the given seed, so the seed selects the solution branch (elbow up/down, wrist
flip).
"""

from dataclasses import dataclass
from logging import getLogger
from typing import Optional, Tuple, Union

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from .chain import forward_kinematics_world, geometric_jacobian
from .core import KinematicChain
from .errors import NoSolutionFound, UnreachablePose
from .transforms import RigidTransform, se3

logger = getLogger(__name__)


@dataclass(frozen=True)
class SolverConfig:
    """Configuration for the IK solver.

    Attributes:
        max_iterations: Maximum number of damped least-squares steps.
        position_tolerance: Convergence threshold for position error (meters).
        orientation_tolerance: Convergence threshold for orientation error (radians).
        damping: Initial damping factor lambda.
        damping_increase: Factor applied to lambda after a rejected step.
        damping_decrease: Factor applied to lambda after an accepted step.
        min_damping: Lower bound for lambda.
        max_damping: Upper bound for lambda.
        max_step: Largest joint-space step norm per iteration (radians).
        check_reachability: Reject targets beyond the chain's reach before iterating.
    """

    max_iterations: int = 100
    position_tolerance: float = 1e-4  # 0.1 mm
    orientation_tolerance: float = 1e-4
    damping: float = 1e-2
    damping_increase: float = 4.0
    damping_decrease: float = 0.5
    min_damping: float = 1e-6
    max_damping: float = 1e3
    max_step: float = 0.5
    check_reachability: bool = True


@dataclass(frozen=True)
class IKResult:
    """Result from the IK solver.

    Attributes:
        joints: (6,) joint angles in radians.
        iterations: Number of iterations used.
        position_error: Final Euclidean position error in meters.
        orientation_error: Final orientation error in radians.
    """

    joints: Array
    iterations: int
    position_error: float
    orientation_error: float


@jax.jit
def _evaluate(chain: KinematicChain, q: Array, T_target: Array) -> Tuple[Array, Array]:
    frames = forward_kinematics_world(chain, q)
    error = se3.pose_error(frames[-1], T_target)
    return error, geometric_jacobian(chain, frames)


@jax.jit
def _damped_step(
    chain: KinematicChain, q: Array, error: Array, J: Array, damping: Array, max_step: Array
) -> Array:
    JtJ = jnp.matmul(J.T, J)
    dq = jnp.linalg.solve(JtJ + damping * jnp.eye(JtJ.shape[0], dtype=J.dtype), jnp.matmul(J.T, error))
    norm = jnp.linalg.norm(dq)
    dq = dq * jnp.minimum(1.0, max_step / jnp.maximum(norm, 1e-12))
    return chain.clamp_to_limits(q + dq)


def _error_norms(error: Array) -> Tuple[float, float]:
    e = np.asarray(error)
    return float(np.linalg.norm(e[:3])), float(np.linalg.norm(e[3:]))


class IKSolver:
    """Seed-directed damped least-squares IK for one kinematic chain.

    The solver holds no per-call state, so a single instance can serve many
    threads at once.
    """

    def __init__(self, chain: KinematicChain, config: Optional[SolverConfig] = None) -> None:
        self._chain = chain
        self._config = config or SolverConfig()

    @property
    def chain(self) -> KinematicChain:
        return self._chain

    @property
    def config(self) -> SolverConfig:
        return self._config

    def solve(self, target: Union[RigidTransform, Array], seed) -> IKResult:
        """Find joints whose end-effector pose matches ``target``.

        Args:
            target: Desired tool pose, as a RigidTransform or as 16 row-major
                homogeneous matrix values.
            seed: (6,) initial joint angles in radians.

        Returns:
            IKResult holding the converged joint vector.

        Raises:
            InvalidJointCount: If ``seed`` does not have 6 entries.
            InvalidTransform: If ``target`` is not a rigid transform.
            UnreachablePose: If the target is beyond the chain's reach.
            NoSolutionFound: If the iteration budget runs out first.
        """
        cfg = self._config
        chain = self._chain
        q = chain.validate_joints(seed)
        if isinstance(target, RigidTransform):
            target = target.validated()
        else:
            target = RigidTransform.from_matrix(target)
        if cfg.check_reachability:
            self._check_reachable(target)

        T_target = target.as_matrix()
        damping = cfg.damping
        error, J = _evaluate(chain, q, T_target)
        cost = float(jnp.dot(error, error))
        rejected = 0

        for iteration in range(cfg.max_iterations):
            pos_err, ori_err = _error_norms(error)
            if self._converged(pos_err, ori_err):
                return IKResult(q, iteration, pos_err, ori_err)

            q_trial = _damped_step(chain, q, error, J, damping, cfg.max_step)
            error_trial, J_trial = _evaluate(chain, q_trial, T_target)
            cost_trial = float(jnp.dot(error_trial, error_trial))

            # NaN compares False, so a non-finite trial is rejected too
            if cost_trial < cost:
                q, error, J, cost = q_trial, error_trial, J_trial, cost_trial
                damping = max(damping * cfg.damping_decrease, cfg.min_damping)
            else:
                damping = min(damping * cfg.damping_increase, cfg.max_damping)
                rejected += 1

        pos_err, ori_err = _error_norms(error)
        result = IKResult(q, cfg.max_iterations, pos_err, ori_err)
        if self._converged(pos_err, ori_err):
            return result

        logger.debug(
            "IK did not converge after %d iterations (%d rejected steps). "
            "Position error: %.6f m, Orientation error: %.6f rad",
            cfg.max_iterations,
            rejected,
            pos_err,
            ori_err,
        )
        raise NoSolutionFound(
            f"IK did not converge within {cfg.max_iterations} iterations "
            f"(position error {pos_err:.3g}, orientation error {ori_err:.3g})",
            result,
        )

    def _converged(self, pos_err: float, ori_err: float) -> bool:
        cfg = self._config
        return pos_err < cfg.position_tolerance and ori_err < cfg.orientation_tolerance

    def _check_reachable(self, target: RigidTransform) -> None:
        base = np.asarray(self._chain.base_offset[:3, 3])
        distance = float(np.linalg.norm(np.asarray(target.translation) - base))
        max_reach = self._chain.max_reach
        if distance > max_reach + self._config.position_tolerance:
            logger.debug("Target %.6f away is beyond max reach %.6f", distance, max_reach)
            raise UnreachablePose(distance, max_reach)


def inverse(
    chain: KinematicChain,
    target: Union[RigidTransform, Array],
    seed,
    config: Optional[SolverConfig] = None,
) -> Array:
    """Convenience wrapper returning only the solved joint vector."""
    return IKSolver(chain, config).solve(target, seed).joints
