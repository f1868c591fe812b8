"""Steppable Conjugate Gradient iterations.

This module holds the iteration state of the Conjugate Gradient (CG)
method and of its preconditioned variant (PCG) for symmetric positive
definite systems A x = b. Both are plain Python iterators:

    it = cg_iterator(x, A, b)
    for residual in it:
        ...

Each pull checks the stopping criterion first and then runs one step of
the recurrence, updating x, r and the search direction in place. The
iterators are not restartable: iterating again continues from wherever
the previous loop stopped, and a fresh solve needs a fresh iterator.

Which recurrence is used is decided once by cg_iterator, from the type of
the preconditioner. The unpreconditioned path never touches it.
"""
# pylint: disable=invalid-name

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import torch
from torch import Tensor

from ..operators import Identity, LinearOperator, Preconditioner, matvec, num_columns


def _dot(x: Tensor, y: Tensor) -> Tensor:
    """Inner product over all entries, conjugating x."""
    return torch.vdot(x.reshape(-1), y.reshape(-1))


def _norm(x: Tensor) -> Tensor:
    return torch.linalg.vector_norm(x)


def default_tol(b: Tensor) -> float:
    """Square root of the machine epsilon of b's real dtype."""
    dtype = b.real.dtype if b.is_complex() else b.dtype
    if not dtype.is_floating_point:
        dtype = torch.get_default_dtype()
    return torch.finfo(dtype).eps ** 0.5


class _CGState(ABC):
    """Iteration state shared by CG and PCG.

    Attributes:
        A (LinearOperator): system operator, borrowed.
        x (Tensor): current solution; the caller's buffer, updated in place.
        r (Tensor): residual b - A x.
        c (Tensor): scratch buffer for A u (and P r in PCG).
        u (Tensor): search direction.
        tol (float): relative tolerance.
        reltol (Tensor): absolute stopping threshold tol * |b|.
        residual (Tensor): current residual norm |r|.
        maxiter (int): iteration cap.
        mv_products (int): matrix-vector products performed so far.
        iteration (int): steps taken so far.
    """

    def __init__(
        self,
        A: LinearOperator,
        x: Tensor,
        r: Tensor,
        c: Tensor,
        u: Tensor,
        tol: float,
        reltol: Tensor,
        residual: Tensor,
        maxiter: int,
        mv_products: int,
    ):
        self.A = A
        self.x = x
        self.r = r
        self.c = c
        self.u = u
        self.tol = tol
        self.reltol = reltol
        self.residual = residual
        self.maxiter = maxiter
        self.mv_products = mv_products
        self.iteration = 0

    def converged(self) -> bool:
        return bool(self.residual <= self.reltol)

    def done(self, iteration: int) -> bool:
        return iteration >= self.maxiter or self.converged()

    @abstractmethod
    def step(self) -> tuple[Tensor, int]:
        """Run one step of the recurrence, whatever the stopping criterion says.

        Returns:
            (residual, iteration): the new residual norm and the number of
            steps taken so far.
        """

    def __iter__(self):
        return self

    def __next__(self) -> Tensor:
        if self.done(self.iteration):
            raise StopIteration
        residual, _ = self.step()
        return residual


class CGIterable(_CGState):
    """Unpreconditioned CG.

    Keeps the previous residual norm; beta and alpha are formed from the
    squared norms, which equal r . r.
    """

    def __init__(self, A, x, r, c, u, tol, reltol, residual, prev_residual, maxiter, mv_products):
        super().__init__(A, x, r, c, u, tol, reltol, residual, maxiter, mv_products)
        self.prev_residual = prev_residual

    def step(self) -> tuple[Tensor, int]:
        # u := r + beta u
        beta = self.residual ** 2 / self.prev_residual ** 2
        self.u.mul_(beta).add_(self.r)

        # c := A u
        self.c.copy_(matvec(self.A, self.u))
        self.mv_products += 1
        alpha = self.residual ** 2 / _dot(self.u, self.c)

        self.x.addcmul_(alpha, self.u)
        self.r.addcmul_(alpha, self.c, value=-1)

        self.prev_residual = self.residual
        self.residual = _norm(self.r)

        self.iteration += 1
        return self.residual, self.iteration


class PCGIterable(_CGState):
    """Preconditioned CG.

    rho is the inner product of the preconditioned residual with the
    residual, not |r|^2. The scratch buffer c holds P r first, then A u.
    """

    def __init__(self, Pl, A, x, r, c, u, tol, reltol, residual, rho, maxiter, mv_products):
        super().__init__(A, x, r, c, u, tol, reltol, residual, maxiter, mv_products)
        self.Pl = Pl
        self.rho = rho

    def step(self) -> tuple[Tensor, int]:
        # c := P r
        self.Pl.apply_inverse(self.c, self.r)

        rho_prev = self.rho
        self.rho = _dot(self.c, self.r)

        # u := c + beta u
        beta = self.rho / rho_prev
        self.u.mul_(beta).add_(self.c)

        # c := A u
        self.c.copy_(matvec(self.A, self.u))
        self.mv_products += 1
        alpha = self.rho / _dot(self.u, self.c)

        self.x.addcmul_(alpha, self.u)
        self.r.addcmul_(alpha, self.c, value=-1)

        self.residual = _norm(self.r)

        self.iteration += 1
        return self.residual, self.iteration


def cg_iterator(
    x: Tensor,
    A: LinearOperator,
    b: Tensor,
    Pl: Optional[Preconditioner] = None,
    tol: Optional[float] = None,
    maxiter: Optional[int] = None,
    initially_zero: bool = False,
) -> CGIterable | PCGIterable:
    """Build the iteration state for solving A x = b.

    Args:
        x (Tensor): initial guess, updated in place while iterating.
        A (LinearOperator): symmetric positive definite operator.
        b (Tensor): right-hand side, same shape as x.
        Pl (Preconditioner | None): symmetric positive definite
            preconditioner. None or Identity() selects plain CG.
        tol (float | None): relative tolerance on |r| / |b|. Defaults to
            the square root of the machine epsilon of b.
        maxiter (int | None): maximum number of iterations. Defaults to
            the column dimension of A.
        initially_zero (bool): assume x is zero and skip computing A x.

    Returns:
        CGIterable or PCGIterable.

    Raises:
        ValueError: if tol or maxiter is negative.
    """
    if tol is None:
        tol = default_tol(b)
    if maxiter is None:
        maxiter = num_columns(A, b)
    if tol < 0:
        raise ValueError(f"tol must be non-negative, got {tol}")
    if maxiter < 0:
        raise ValueError(f"maxiter must be non-negative, got {maxiter}")
    if Pl is None:
        Pl = Identity()

    u = torch.zeros_like(x)
    r = torch.empty_like(x).copy_(b)
    c = torch.empty_like(x)

    if initially_zero:
        mv_products = 0
        residual = _norm(b)
        reltol = residual * tol
    else:
        mv_products = 1
        c.copy_(matvec(A, x))
        r.sub_(c)
        residual = _norm(r)
        reltol = _norm(b) * tol

    if isinstance(Pl, Identity):
        return CGIterable(
            A, x, r, c, u,
            tol, reltol, residual, torch.ones_like(residual),
            maxiter, mv_products,
        )
    return PCGIterable(
        Pl, A, x, r, c, u,
        tol, reltol, residual, torch.ones((), dtype=x.dtype, device=x.device),
        maxiter, mv_products,
    )
