"""Tests for the damped least-squares IK solver."""

import dataclasses

import jax
import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from industrial_kinematics import ik as ik_module
from industrial_kinematics.chain import forward_end
from industrial_kinematics.core import KinematicChain
from industrial_kinematics.errors import (
    InvalidJointCount,
    InvalidTransform,
    KinematicsError,
    NoSolutionFound,
    UnreachablePose,
)
from industrial_kinematics.ik import IKResult, IKSolver, SolverConfig, inverse
from industrial_kinematics.robots import RobotVariant, get_chain
from industrial_kinematics.transforms import RigidTransform, se3

# Configurations well away from the wrist (|J5| = pi/2), elbow (|J3| = pi/2)
# and shoulder (wrist on the J1 axis) singularities.
WELL_CONDITIONED = [
    [0.3, -0.4, 0.5, 0.2, -0.6, 0.4],
    [-1.0, 0.6, -0.3, 1.2, 0.8, -1.5],
    [2.0, 0.2, 0.9, -0.7, -1.0, 2.5],
    [0.0, -0.8, -0.5, 0.0, 0.4, 0.0],
]
SEED_OFFSET = 0.15 * jnp.array([1.0, -1.0, 1.0, -1.0, 1.0, -1.0])


def assert_pose_reached(chain, joints, target, config=SolverConfig()):
    reached = forward_end(chain, joints)
    error = se3.pose_error(reached.as_matrix(), target.as_matrix())
    assert float(jnp.linalg.norm(error[:3])) < config.position_tolerance
    assert float(jnp.linalg.norm(error[3:])) < config.orientation_tolerance


@pytest.mark.parametrize("variant", list(RobotVariant))
@pytest.mark.parametrize("q_true", WELL_CONDITIONED)
def test_ik_converges_from_perturbed_seed(variant, q_true):
    chain = get_chain(variant)
    q_true = jnp.array(q_true)
    target = forward_end(chain, q_true)

    result = IKSolver(chain).solve(target, q_true + SEED_OFFSET)

    assert isinstance(result, IKResult)
    assert 0 < result.iterations <= 100
    assert result.position_error < 1e-4
    assert result.orientation_error < 1e-4
    assert_pose_reached(chain, result.joints, target)
    assert chain.within_limits(result.joints)


@given(st.integers(min_value=0, max_value=10_000))
@settings(deadline=None, max_examples=15)
def test_ik_seeded_with_solution_returns_immediately(seed):
    """Forward/inverse consistency: seeding with J converges at once."""
    chain = get_chain(RobotVariant.CRX_10IA)
    q = jax.random.uniform(jax.random.PRNGKey(seed), (6,), minval=-1.5, maxval=1.5)
    target = forward_end(chain, q)

    result = IKSolver(chain).solve(target, q)

    assert result.iterations == 0
    assert_pose_reached(chain, result.joints, target)


def test_ik_accepts_flat_matrix_target():
    chain = get_chain(RobotVariant.CRX_5IA)
    q_true = jnp.array(WELL_CONDITIONED[0])
    target = forward_end(chain, q_true)

    joints = inverse(chain, target.tolist(), q_true + SEED_OFFSET)

    assert joints.shape == (6,)
    assert_pose_reached(chain, joints, target)


def test_ik_is_deterministic():
    chain = get_chain(RobotVariant.CRX_10IA)
    q_true = jnp.array(WELL_CONDITIONED[1])
    target = forward_end(chain, q_true)
    seed = q_true + SEED_OFFSET

    a = inverse(chain, target, seed)
    b = inverse(chain, target, seed)

    np.testing.assert_array_equal(a, b)


def test_ik_unreachable_fast_path():
    chain = get_chain(RobotVariant.CRX_10IA)
    far = RigidTransform.from_translation((1000.0 * chain.max_reach, 0.0, 0.0))

    with pytest.raises(UnreachablePose) as excinfo:
        IKSolver(chain).solve(far, jnp.zeros(6))

    assert excinfo.value.max_reach == pytest.approx(chain.max_reach)
    assert excinfo.value.distance > chain.max_reach


def test_ik_unreachable_without_fast_path_exhausts_budget():
    """Without the reach check the solver still refuses to return a wrong answer."""
    chain = get_chain(RobotVariant.CRX_10IA)
    far = RigidTransform.from_translation((1000.0 * chain.max_reach, 0.0, 0.0))
    config = SolverConfig(check_reachability=False)

    with pytest.raises(NoSolutionFound) as excinfo:
        IKSolver(chain, config).solve(far, jnp.zeros(6))

    result = excinfo.value.result
    assert isinstance(result, IKResult)
    assert result.iterations == config.max_iterations
    assert result.position_error > 100.0


def test_ik_no_solution_within_tiny_budget():
    chain = get_chain(RobotVariant.CRX_10IA)
    target = forward_end(chain, jnp.array(WELL_CONDITIONED[2]))
    config = SolverConfig(max_iterations=1)

    with pytest.raises(NoSolutionFound) as excinfo:
        IKSolver(chain, config).solve(target, jnp.zeros(6))

    # Budget exhaustion is a solver outcome, not an input error
    assert isinstance(excinfo.value, KinematicsError)
    assert not isinstance(excinfo.value, ValueError)


@pytest.mark.parametrize("seed", [[0.0] * 5, [0.0] * 7, [1.0, 2.0, 3.0]])
def test_ik_invalid_seed_length(seed):
    chain = get_chain(RobotVariant.CRX_10IA)
    target = forward_end(chain, jnp.zeros(6))
    with pytest.raises(InvalidJointCount):
        IKSolver(chain).solve(target, seed)


def test_ik_invalid_target_matrix():
    chain = get_chain(RobotVariant.CRX_10IA)
    with pytest.raises(InvalidTransform):
        IKSolver(chain).solve([float(i) for i in range(16)], jnp.zeros(6))


def chain_with_j1_limits(lower, upper):
    """CRX-10iA with the J1 range narrowed to [lower, upper]."""
    chain = get_chain(RobotVariant.CRX_10IA)
    joints = list(chain.joints)
    joints[0] = dataclasses.replace(joints[0], lower_limit=lower, upper_limit=upper)
    return KinematicChain.from_joints("CRX-10iA narrow J1", joints, chain.base, chain.tool)


@pytest.fixture
def visited(monkeypatch):
    """Record every joint vector the solver evaluates."""
    seen = []
    evaluate = ik_module._evaluate

    def recording(chain, q, T_target):
        seen.append(np.asarray(q))
        return evaluate(chain, q, T_target)

    monkeypatch.setattr(ik_module, "_evaluate", recording)
    return seen


def assert_within(chain, qs):
    lower = np.asarray(chain.lower_limits)
    upper = np.asarray(chain.upper_limits)
    for q in qs:
        assert np.all(q >= lower) and np.all(q <= upper), q


def test_clamp_to_limits():
    chain = chain_with_j1_limits(-0.1, 0.1)
    q = jnp.array([0.5, -10.0, 10.0, 0.0, -0.05, 0.0])

    clamped = chain.clamp_to_limits(q)

    np.testing.assert_allclose(
        clamped, [0.1, -np.pi, np.radians(270.0), 0.0, -0.05, 0.0], atol=1e-12
    )
    assert chain.within_limits(clamped)
    assert not chain.within_limits(q)


def test_ik_never_steps_past_joint_limit(visited):
    """The nearby solution needs J1 = 0.3 but J1 is capped at 0.1."""
    chain = chain_with_j1_limits(-0.1, 0.1)
    q_true = jnp.array(WELL_CONDITIONED[0])
    target = forward_end(get_chain(RobotVariant.CRX_10IA), q_true)
    seed = (q_true + SEED_OFFSET).at[0].set(0.0)

    try:
        result = IKSolver(chain).solve(target, seed)
    except NoSolutionFound as exc:
        result = exc.result
    else:
        # Only another branch inside the limits may be reported as a solution
        assert_pose_reached(chain, result.joints, target)

    assert len(visited) > 1
    assert_within(chain, visited)
    assert chain.within_limits(result.joints)
    assert float(result.joints[0]) <= 0.1


def test_ik_converges_from_seed_on_joint_limit(visited):
    chain = chain_with_j1_limits(0.0, 0.32)
    q_true = jnp.array(WELL_CONDITIONED[0])
    target = forward_end(chain, q_true)
    seed = (q_true + SEED_OFFSET).at[0].set(0.32)

    result = IKSolver(chain).solve(target, seed)

    assert_pose_reached(chain, result.joints, target)
    assert_within(chain, visited)
    np.testing.assert_allclose(result.joints[0], 0.3, atol=1e-3)


def test_ik_rejects_non_rigid_transform_target():
    chain = get_chain(RobotVariant.CRX_10IA)
    scaled = RigidTransform(2.0 * jnp.eye(3), jnp.array([0.3, 0.0, 0.5]))

    with pytest.raises(InvalidTransform):
        IKSolver(chain).solve(scaled, jnp.zeros(6))


def test_solver_exposes_chain_and_config():
    chain = get_chain(RobotVariant.CRX_5IA)
    config = SolverConfig(max_iterations=50)
    solver = IKSolver(chain, config)

    assert solver.chain is chain
    assert solver.config.max_iterations == 50
    assert IKSolver(chain).config == SolverConfig()
