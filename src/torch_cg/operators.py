"""Linear operator and preconditioner abstractions.

This module provides the capabilities consumed by the Krylov iterations:
- LinearOperator: type alias for anything that can be applied to a vector.
- Preconditioner: abstract base class for approximate inverses of A.
- Identity: marker for "no preconditioning".
- DiagonalPreconditioner: Jacobi (diagonal) preconditioner.
- OperatorPreconditioner: wraps an arbitrary linear operator.

None of these are checked for symmetry, definiteness or shape
compatibility: that is the caller's responsibility.
"""
# pylint: disable=invalid-name

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Union

import torch
from torch import Tensor
from torch_sparse import SparseTensor


LinearOperator = Union[Tensor, SparseTensor, Callable[[Tensor], Tensor]]


def matvec(A: LinearOperator, x: Tensor) -> Tensor:
    """Apply linear operator A to vector x.

    Args:
        A (LinearOperator): dense/sparse matrix or callable operator.
        x (Tensor): input tensor, (n,) or (n, d).

    Returns:
        A(x) as Tensor, same shape as x.
    """
    if isinstance(A, SparseTensor):
        if x.ndim == 1:
            return A.matmul(x.unsqueeze(-1)).squeeze(-1)
        return A.matmul(x)
    if callable(A) and not isinstance(A, Tensor):
        return A(x)
    return A @ x


def num_columns(A: LinearOperator, b: Tensor) -> int:
    """Column dimension of A.

    Callables carry no size information unless they expose a ``shape``
    attribute; otherwise the number of entries of b is used.
    """
    if isinstance(A, SparseTensor):
        return A.sparse_size(1)
    if isinstance(A, Tensor):
        return A.size(-1)
    shape = getattr(A, "shape", None)
    if shape is not None:
        return int(shape[-1])
    return b.numel()


def zerox(A: LinearOperator, b: Tensor) -> Tensor:
    """Zero initial guess for A x = b.

    The dtype is promoted between A (when it has one) and b, so that a
    complex operator applied to a real right-hand side gets a complex x.
    """
    dtype = b.dtype
    if isinstance(A, SparseTensor):
        A_dtype = A.dtype()
    else:
        A_dtype = getattr(A, "dtype", None)
    if isinstance(A_dtype, torch.dtype):
        dtype = torch.promote_types(A_dtype, dtype)
    return torch.zeros(b.shape, dtype=dtype, device=b.device)


class Preconditioner(ABC):
    """Abstract base class for preconditioners.

    A preconditioner M approximates A^{-1} and should itself be symmetric
    positive definite. Given a residual r, apply_inverse(out, r) writes an
    approximation of A^{-1} r into the preallocated buffer out.
    """

    @abstractmethod
    def apply_inverse(self, out: Tensor, r: Tensor) -> Tensor:
        """Apply preconditioner to residual r.

        Args:
            out (Tensor): destination buffer, same shape as r. Overwritten.
            r (Tensor): residual tensor. Must not be modified.

        Returns:
            out, holding an approximation of A^{-1} r.
        """


class Identity(Preconditioner):
    """No preconditioning.

    cg_iterator recognizes this class and selects the plain CG recurrence,
    so apply_inverse is never called on that path.
    """

    def apply_inverse(self, out: Tensor, r: Tensor) -> Tensor:
        return out.copy_(r)

    def __repr__(self) -> str:
        return "Identity()"


def _sparse_diagonal(A: Tensor) -> Tensor:
    """Main diagonal of a torch sparse matrix (COO, CSR, CSC, ...)."""
    coo = A if A.layout == torch.sparse_coo else A.to_sparse()
    coo = coo.coalesce()
    row, col = coo.indices()
    on_diag = row == col
    diag = torch.zeros(min(A.shape), dtype=A.dtype, device=A.device)
    return diag.index_add_(0, row[on_diag], coo.values()[on_diag])


class DiagonalPreconditioner(Preconditioner):
    """Jacobi preconditioner M^{-1} = diag(A)^{-1}.

    apply_inverse divides r entry-wise by diag and stores the result in
    out. For (n, d) residuals every column is scaled by the same diagonal.

    Args:
        diag (Tensor): (n,) tensor of diagonal entries of A, all non-zero.
    """

    def __init__(self, diag: Tensor):
        self._diag = diag

    @classmethod
    def from_matrix(cls, A: Union[Tensor, SparseTensor]) -> "DiagonalPreconditioner":
        """Build the Jacobi preconditioner of an explicit matrix.

        Accepts dense tensors, torch sparse tensors of any layout and
        torch_sparse SparseTensors. Sparse inputs stay sparse.
        """
        if isinstance(A, SparseTensor):
            return cls(A.get_diag())
        if A.layout != torch.strided:
            return cls(_sparse_diagonal(A))
        return cls(A.diagonal())

    def apply_inverse(self, out: Tensor, r: Tensor) -> Tensor:
        if r.ndim == 1:
            return torch.div(r, self._diag, out=out)
        return torch.div(r, self._diag.unsqueeze(-1), out=out)


class OperatorPreconditioner(Preconditioner):
    """Preconditioner given directly as an approximate inverse P.

    apply_inverse evaluates P(r) with matvec and copies the result into
    out, so P may return a fresh tensor.

    Args:
        operator (LinearOperator): matrix or callable with P(r) close to
            A^{-1} r.
    """

    def __init__(self, operator: LinearOperator):
        self._op = operator

    def apply_inverse(self, out: Tensor, r: Tensor) -> Tensor:
        return out.copy_(matvec(self._op, r))
