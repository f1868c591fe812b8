"""Convergence history of an iterative solve.

A ConvergenceHistory collects scalar settings (e.g. the stopping
tolerance) together with per-iteration series (residual norms, solution
snapshots). Series are preallocated with reserve() and filled with push(),
then cut down to the rows actually written with shrink().
"""

from __future__ import annotations

from typing import Any, Union

import torch
from torch import Tensor


class ConvergenceHistory:
    """Record of a single solver run.

    Args:
        partial (bool): if True, only the summary (iterations, matvecs,
            convergence flag and scalar entries) is kept; reserve() and
            push() become no-ops.

    Attributes:
        iters (int): number of iterations performed.
        mvps (int): number of matrix-vector products performed.
        isconverged (bool): whether the solver met its tolerance.
        data (dict): scalar entries and reserved series, by name.
    """

    def __init__(self, partial: bool = True):
        self.partial = partial
        self.iters = 0
        self.mvps = 0
        self.isconverged = False
        self.data: dict[str, Any] = {}
        self._filled: dict[str, int] = {}

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.data[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def __repr__(self) -> str:
        status = "converged" if self.isconverged else "not converged"
        return (
            f"ConvergenceHistory({status}, iters={self.iters}, "
            f"mvps={self.mvps}, keys={sorted(self.data)})"
        )

    def reserve(
        self,
        key: str,
        capacity: int,
        *dims: int,
        dtype: torch.dtype = torch.float64,
        device: Union[torch.device, str, None] = None,
    ) -> None:
        """Preallocate a series of capacity rows, each of shape dims.

        Args:
            key (str): series name.
            capacity (int): maximum number of rows.
            *dims (int): shape of one row; scalar rows if empty.
            dtype (torch.dtype): storage dtype.
            device (torch.device | str | None): storage device.
        """
        if self.partial:
            return
        self.data[key] = torch.empty((capacity, *dims), dtype=dtype, device=device)
        self._filled[key] = 0

    def push(self, key: str, value: Union[Tensor, float]) -> None:
        """Write value into the next free row of a reserved series.

        Raises:
            KeyError: if key was never reserved.
            IndexError: if the series is already full.
        """
        if self.partial:
            return
        if key not in self._filled:
            raise KeyError(f"series '{key}' was not reserved")
        series = self.data[key]
        row = self._filled[key]
        if row >= series.shape[0]:
            raise IndexError(
                f"series '{key}' is full ({series.shape[0]} rows reserved)"
            )
        if isinstance(value, Tensor):
            series[row].copy_(value.detach())
        else:
            series[row] = value
        self._filled[key] = row + 1

    def nextiter(self, mvps: int = 0) -> None:
        """Advance the iteration counter, adding mvps matvecs."""
        self.iters += 1
        self.mvps += mvps

    def record_matvecs(self, count: int) -> None:
        self.mvps += count

    def set_converged(self, converged: bool) -> None:
        self.isconverged = bool(converged)

    def shrink(self) -> None:
        """Truncate every reserved series to the rows actually written."""
        for key, filled in self._filled.items():
            self.data[key] = self.data[key][:filled]

    shrink_to_actual_length = shrink
