""" Matrix-free Conjugate Gradient solvers in PyTorch """

from .history import ConvergenceHistory
from .operators import (
    DiagonalPreconditioner,
    Identity,
    LinearOperator,
    OperatorPreconditioner,
    Preconditioner,
    matvec,
    num_columns,
    zerox,
)
from .solvers import CGIterable, PCGIterable, cg, cg_, cg_iterator, default_tol

__all__ = [
    "CGIterable",
    "ConvergenceHistory",
    "DiagonalPreconditioner",
    "Identity",
    "LinearOperator",
    "OperatorPreconditioner",
    "PCGIterable",
    "Preconditioner",
    "cg",
    "cg_",
    "cg_iterator",
    "default_tol",
    "matvec",
    "num_columns",
    "zerox",
]
