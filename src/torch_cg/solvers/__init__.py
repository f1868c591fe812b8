"""Conjugate Gradient solvers for symmetric positive definite systems.

This module provides:
- cg / cg_: solve A x = b with a fresh or caller-supplied initial guess.
- cg_iterator: steppable iteration state, for custom driver loops.
- CGIterable / PCGIterable: the unpreconditioned and preconditioned states.
"""

from .cg import cg, cg_
from .iterators import CGIterable, PCGIterable, cg_iterator, default_tol

__all__ = [
    "CGIterable",
    "PCGIterable",
    "cg",
    "cg_",
    "cg_iterator",
    "default_tol",
]
