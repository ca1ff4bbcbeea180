"""Supported robot models.

Each model is a plain geometry record selected through the closed
:class:`RobotVariant` enumeration. Adding a model means adding a record and a
table entry below.
"""

import enum
import threading
from logging import getLogger
from typing import Dict, Union

from ..core import KinematicChain
from ..errors import UnknownRobotVariant
from .crx import CRX_5IA, CRX_10IA, CrxGeometry, crx_chain

logger = getLogger(__name__)


class RobotVariant(enum.Enum):
    CRX_5IA = "crx5ia"
    CRX_10IA = "crx10ia"


_GEOMETRY: Dict[RobotVariant, CrxGeometry] = {
    RobotVariant.CRX_5IA: CRX_5IA,
    RobotVariant.CRX_10IA: CRX_10IA,
}

_chains: Dict[RobotVariant, KinematicChain] = {}
_chains_lock = threading.Lock()


def resolve_variant(variant: Union[RobotVariant, str]) -> RobotVariant:
    """Accept an enum member, its value ("crx10ia") or its name ("CRX_10IA")."""
    if isinstance(variant, RobotVariant):
        return variant
    if isinstance(variant, str):
        key = variant.strip().lower().replace("-", "").replace("_", "")
        for member in RobotVariant:
            if key == member.value:
                return member
    raise UnknownRobotVariant(variant)


def get_geometry(variant: Union[RobotVariant, str]) -> CrxGeometry:
    variant = resolve_variant(variant)
    try:
        return _GEOMETRY[variant]
    except KeyError:
        raise UnknownRobotVariant(variant) from None


def get_chain(variant: Union[RobotVariant, str]) -> KinematicChain:
    """Return the shared, immutable chain of a robot model.

    The chain is built on first use. Concurrent first calls wait on a lock and
    all receive the same instance.
    """
    variant = resolve_variant(variant)
    with _chains_lock:
        chain = _chains.get(variant)
        if chain is None:
            logger.debug("Building kinematic chain for %s", variant.value)
            chain = _chains[variant] = crx_chain(get_geometry(variant))
    return chain


__all__ = [
    "CrxGeometry",
    "RobotVariant",
    "get_chain",
    "get_geometry",
    "resolve_variant",
]
