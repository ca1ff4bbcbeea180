"""Tests for forward kinematics and Jacobian computation."""

import threading
from concurrent.futures import ThreadPoolExecutor

import jax
import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from industrial_kinematics import robots
from industrial_kinematics.chain import (
    forward_all,
    forward_end,
    forward_kinematics_world,
    home_pose,
    jacobian,
)
from industrial_kinematics.errors import InvalidJointCount
from industrial_kinematics.robots import RobotVariant, get_chain, get_geometry
from industrial_kinematics.transforms import so3

Q_SAMPLE = jnp.array([0.1, -0.2, 0.3, -0.4, 0.5, -0.6])


@pytest.fixture(params=list(RobotVariant))
def variant(request):
    return request.param


def assert_valid_se3(T):
    T = np.asarray(T)
    np.testing.assert_allclose(T[3, :], [0.0, 0.0, 0.0, 1.0], atol=1e-12)
    R = T[:3, :3]
    np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-10)
    np.testing.assert_allclose(np.linalg.det(R), 1.0, atol=1e-10)


def test_fk_zero_configuration(variant):
    """At zero the tool hangs below the offset wrist pointing straight down."""
    chain = get_chain(variant)
    g = get_geometry(variant)

    end = forward_end(chain, jnp.zeros(6))

    expected_pos = [g.forearm, -g.wrist_offset, g.shoulder_height + g.upper_arm - g.flange_length]
    np.testing.assert_allclose(end.translation, expected_pos, atol=1e-12)
    np.testing.assert_allclose(end.rotation, np.diag([1.0, -1.0, -1.0]), atol=1e-12)


def test_fk_zero_matches_home_pose(variant):
    chain = get_chain(variant)
    end = forward_end(chain, [0.0] * 6)
    assert end.allclose(home_pose(chain), atol=1e-12)


def test_fk_joint_frames_at_zero():
    chain = get_chain(RobotVariant.CRX_10IA)
    g = get_geometry(RobotVariant.CRX_10IA)
    top = g.shoulder_height + g.upper_arm

    poses = forward_all(chain, jnp.zeros(6))

    expected_origins = [
        (0.0, 0.0, g.shoulder_height),
        (0.0, 0.0, g.shoulder_height),
        (0.0, 0.0, top),
        (g.forearm, 0.0, top),
        (g.forearm, -g.wrist_offset, top),
        (g.forearm, -g.wrist_offset, top),
        (g.forearm, -g.wrist_offset, top - g.flange_length),
    ]
    assert len(poses) == 7
    for pose, origin in zip(poses, expected_origins):
        np.testing.assert_allclose(pose.translation, origin, atol=1e-12)


def test_fk_all_frames_valid(variant):
    chain = get_chain(variant)

    poses = forward_all(chain, Q_SAMPLE)

    assert len(poses) == 7
    for pose in poses:
        assert_valid_se3(pose.as_matrix())
    assert poses[-1].allclose(forward_end(chain, Q_SAMPLE), atol=0.0)


def test_fk_j1_rotates_about_vertical():
    chain = get_chain(RobotVariant.CRX_10IA)
    p0 = np.asarray(forward_end(chain, jnp.zeros(6)).translation)

    p1 = forward_end(chain, [jnp.pi / 2, 0.0, 0.0, 0.0, 0.0, 0.0]).translation

    np.testing.assert_allclose(p1, [-p0[1], p0[0], p0[2]], atol=1e-12)


def test_fk_positive_j2_leans_forward():
    chain = get_chain(RobotVariant.CRX_10IA)
    g = get_geometry(RobotVariant.CRX_10IA)

    poses = forward_all(chain, [0.0, jnp.pi / 2, 0.0, 0.0, 0.0, 0.0])

    np.testing.assert_allclose(poses[2].translation, [g.upper_arm, 0.0, g.shoulder_height], atol=1e-12)


def test_fk_variants_differ():
    p5 = forward_end(get_chain(RobotVariant.CRX_5IA), Q_SAMPLE).translation
    p10 = forward_end(get_chain(RobotVariant.CRX_10IA), Q_SAMPLE).translation
    assert float(jnp.linalg.norm(p5 - p10)) > 1e-2


def test_fk_ignores_joint_limits():
    """Out-of-limit angles are evaluated, not rejected."""
    chain = get_chain(RobotVariant.CRX_5IA)
    q = jnp.array([10.0, -10.0, 7.0, 0.0, 12.0, -20.0])
    assert not chain.within_limits(q)

    for pose in forward_all(chain, q):
        assert_valid_se3(pose.as_matrix())


@pytest.mark.parametrize("joints", [[1.0, 2.0, 3.0], [0.0] * 7, [], [[0.0] * 6]])
def test_fk_invalid_joint_count(joints):
    chain = get_chain(RobotVariant.CRX_10IA)
    with pytest.raises(InvalidJointCount):
        forward_end(chain, joints)
    with pytest.raises(InvalidJointCount):
        forward_all(chain, joints)


def test_invalid_joint_count_is_value_error():
    with pytest.raises(ValueError, match="Expected 6 joint angles, got 3"):
        forward_end(get_chain(RobotVariant.CRX_10IA), [1.0, 2.0, 3.0])


def test_fk_jit_compatibility():
    """forward_kinematics_world accepts the chain as a traced PyTree."""
    chain = get_chain(RobotVariant.CRX_10IA)

    @jax.jit
    def jit_fk(q):
        return forward_kinematics_world(chain, q)

    world_transforms = jit_fk(Q_SAMPLE)
    assert world_transforms.shape == (7, 4, 4)
    for i in range(7):
        assert_valid_se3(world_transforms[i])


def test_chain_is_pytree():
    chain = get_chain(RobotVariant.CRX_5IA)

    flat, tree_def = jax.tree_util.tree_flatten(chain)
    rebuilt = jax.tree_util.tree_unflatten(tree_def, flat)

    assert rebuilt.name == chain.name
    assert rebuilt.joint_names == ("J1", "J2", "J3", "J4", "J5", "J6")
    np.testing.assert_array_equal(rebuilt.joint_offsets, chain.joint_offsets)
    np.testing.assert_array_equal(rebuilt.lower_limits, chain.lower_limits)


def test_chain_is_shared_singleton():
    assert get_chain(RobotVariant.CRX_10IA) is get_chain("crx10ia")


def test_chain_built_once_under_concurrent_first_use(monkeypatch):
    """Threads racing into the first get_chain call share one instance."""
    monkeypatch.setattr(robots, "_chains", {})
    num_threads = 16
    barrier = threading.Barrier(num_threads)

    def first_use(_):
        barrier.wait()
        return get_chain("crx5ia")

    with ThreadPoolExecutor(max_workers=num_threads) as pool:
        chains = list(pool.map(first_use, range(num_threads)))

    assert len({id(c) for c in chains}) == 1
    assert get_chain(RobotVariant.CRX_5IA) is chains[0]


def test_jacobian_shape_and_linear_rows(variant):
    """Linear rows equal the autodiff derivative of the tool position."""
    chain = get_chain(variant)

    J = jacobian(chain, Q_SAMPLE)
    J_pos = jax.jacfwd(lambda q: forward_kinematics_world(chain, q)[-1, :3, 3])(Q_SAMPLE)

    assert J.shape == (6, 6)
    np.testing.assert_allclose(J[:3], J_pos, atol=1e-10)


def test_jacobian_angular_rows_numerical():
    """Angular rows match finite differences of the tool orientation."""
    chain = get_chain(RobotVariant.CRX_10IA)
    delta = 1e-6

    J = jacobian(chain, Q_SAMPLE)

    for i in range(6):
        step = jnp.zeros(6).at[i].set(delta)
        R_plus = forward_end(chain, Q_SAMPLE + step).rotation
        R_minus = forward_end(chain, Q_SAMPLE - step).rotation
        omega = so3.log(R_plus @ R_minus.T) / (2 * delta)
        np.testing.assert_allclose(J[3:, i], omega, atol=1e-6)


def test_jacobian_j1_column_is_vertical_axis():
    chain = get_chain(RobotVariant.CRX_10IA)
    J = jacobian(chain, Q_SAMPLE)
    np.testing.assert_allclose(J[3:, 0], [0.0, 0.0, 1.0], atol=1e-12)


@given(st.integers(min_value=0, max_value=10_000))
@settings(deadline=None, max_examples=20)
def test_fk_random_configs_within_reach(seed):
    """Property test: frames stay rigid and the tool never exceeds max_reach."""
    chain = get_chain(RobotVariant.CRX_10IA)
    q = jax.random.uniform(jax.random.PRNGKey(seed), (6,), minval=-jnp.pi, maxval=jnp.pi)

    poses = forward_all(chain, q)

    for pose in poses:
        assert_valid_se3(pose.as_matrix())
    distance = float(jnp.linalg.norm(poses[-1].translation - chain.base_offset[:3, 3]))
    assert distance <= chain.max_reach + 1e-12


def test_fk_concurrent_matches_sequential():
    """Many threads sharing one chain get the same answers as a serial loop."""
    chain = get_chain(RobotVariant.CRX_10IA)
    qs = jax.random.uniform(jax.random.PRNGKey(0), (32, 6), minval=-2.0, maxval=2.0)

    sequential = [np.asarray(forward_end(chain, q).to_matrix()) for q in qs]
    with ThreadPoolExecutor(max_workers=8) as pool:
        concurrent = list(pool.map(lambda q: np.asarray(forward_end(chain, q).to_matrix()), qs))

    for a, b in zip(sequential, concurrent):
        np.testing.assert_array_equal(a, b)
