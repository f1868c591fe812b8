"""Conjugate Gradient solver entry points.

cg allocates a zero initial guess; cg_ works in place on a caller-supplied
x, following the PyTorch trailing-underscore convention. Both drive the
iterators of torch_cg.solvers.iterators to completion and optionally
record a ConvergenceHistory.
"""
# pylint: disable=invalid-name

from __future__ import annotations

import logging
from typing import Optional, Union

from torch import Tensor

from ..history import ConvergenceHistory
from ..operators import LinearOperator, Preconditioner, zerox
from .iterators import cg_iterator

logger = logging.getLogger(__name__)


def cg(
    A: LinearOperator, b: Tensor, **kwargs
) -> Union[Tensor, tuple[Tensor, ConvergenceHistory]]:
    """Same as cg_, but starts from a zero initial guess.

    One matrix-vector product is saved since the initial residual is b.
    """
    return cg_(zerox(A, b), A, b, initially_zero=True, **kwargs)


def cg_(
    x: Tensor,
    A: LinearOperator,
    b: Tensor,
    tol: Optional[float] = None,
    maxiter: Optional[int] = None,
    log: bool = False,
    verbose: bool = False,
    Pl: Optional[Preconditioner] = None,
    initially_zero: bool = False,
) -> Union[Tensor, tuple[Tensor, ConvergenceHistory]]:
    """Solve the SPD linear system A x = b in place via (preconditioned) CG.

    Iteration stops once |b - A x| <= tol * |b| or after maxiter steps.
    Running out of iterations is not an error: check the history (or
    call cg_iterator directly) to find out whether the solve converged.

    Args:
        x (Tensor): initial guess, updated in place.
        A (LinearOperator): symmetric positive definite operator.
        b (Tensor): right-hand side, same shape as x.
        tol (float | None): relative tolerance. Defaults to the square root
            of the machine epsilon of b.
        maxiter (int | None): maximum number of iterations. Defaults to
            the column dimension of A.
        log (bool): also return a ConvergenceHistory with the residual
            norm ("resnorm") and a copy of x ("x") at each iteration.
        verbose (bool): print the residual norm at each iteration.
        Pl (Preconditioner | None): left preconditioner, symmetric
            positive definite like A. Defaults to Identity().
        initially_zero (bool): assume x is zero, saving one matvec.

    Returns:
        x if log is False, else (x, history).
    """
    iterable = cg_iterator(
        x, A, b, Pl, tol=tol, maxiter=maxiter, initially_zero=initially_zero
    )
    logger.debug(
        "%s: n=%d, tol=%.3e, maxiter=%d",
        type(iterable).__name__, x.numel(), iterable.tol, iterable.maxiter,
    )

    history = ConvergenceHistory(partial=not log)
    history["tol"] = iterable.tol
    if log:
        rows = iterable.maxiter + 1
        history.reserve("resnorm", rows, dtype=x.real.dtype, device=x.device)
        history.reserve("x", rows, *x.shape, dtype=x.dtype, device=x.device)
        history.mvps = iterable.mv_products

    debug = logger.isEnabledFor(logging.DEBUG)
    for iteration, residual in enumerate(iterable, start=1):
        if log:
            history.nextiter(mvps=1)
            history.push("resnorm", residual)
            history.push("x", iterable.x)
        if verbose:
            print("%3d\t%1.2e" % (iteration, float(residual)))
        if debug:
            logger.debug("iteration %d: residual %.3e", iteration, float(residual))

    if verbose:
        print()

    converged = iterable.converged()
    if converged:
        if logger.isEnabledFor(logging.INFO):
            logger.info(
                "CG converged after %d iterations (%d matvecs), residual %.3e",
                iterable.iteration, iterable.mv_products, float(iterable.residual),
            )
    elif logger.isEnabledFor(logging.WARNING):
        logger.warning(
            "CG stopped after %d iterations without converging, "
            "residual %.3e > %.3e",
            iterable.iteration, float(iterable.residual), float(iterable.reltol),
        )

    if log:
        history.set_converged(converged)
        history.shrink()
        return iterable.x, history
    return iterable.x
