"""Exceptions raised by industrial_kinematics.

Structural problems with the caller's input (wrong vector length, a matrix that
is not a rigid transform, an unknown robot model) derive from ``ValueError``.
Solver outcomes derive only from :class:`KinematicsError` so that callers can
tell "retry with another seed" apart from "the input is malformed".
"""

from typing import Optional


class KinematicsError(Exception):
    """Base class for every error raised by this package."""


class InvalidJointCount(KinematicsError, ValueError):
    """A joint vector did not have the number of entries the chain expects."""

    def __init__(self, expected: int, got: int):
        super().__init__(f"Expected {expected} joint angles, got {got}")
        self.expected = expected
        self.got = got


class InvalidTransform(KinematicsError, ValueError):
    """A matrix could not be interpreted as a rigid-body transform."""


class UnknownRobotVariant(KinematicsError, ValueError):
    """The requested robot model is not in the variant table."""

    def __init__(self, variant):
        super().__init__(f"Unknown robot variant: {variant!r}")
        self.variant = variant


class NoSolutionFound(KinematicsError):
    """The IK solver used up its iteration budget without converging.

    Attributes:
        result: The best ``IKResult`` reached before giving up, if any.
    """

    def __init__(self, message: str, result: Optional[object] = None):
        super().__init__(message)
        self.result = result


class UnreachablePose(KinematicsError):
    """The target lies outside the sphere the chain can possibly reach."""

    def __init__(self, distance: float, max_reach: float):
        super().__init__(
            f"Target is {distance:.6f} from the base but the chain reaches at most {max_reach:.6f}"
        )
        self.distance = distance
        self.max_reach = max_reach
