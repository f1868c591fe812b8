import pytest
import torch

from torch_cg import ConvergenceHistory


def test_reserve_push_shrink():
    ch = ConvergenceHistory(partial=False)
    ch.reserve("resnorm", 5)
    ch.reserve("x", 5, 3)

    for k in range(3):
        ch.nextiter(mvps=1)
        ch.push("resnorm", float(k))
        ch.push("x", torch.full((3,), float(k)))

    ch.shrink()
    assert ch.iters == 3
    assert ch.mvps == 3
    assert ch["resnorm"].tolist() == [0.0, 1.0, 2.0]
    assert ch["x"].shape == (3, 3)
    assert ch["x"][2].tolist() == [2.0, 2.0, 2.0]


def test_pushed_tensors_are_copied():
    ch = ConvergenceHistory(partial=False)
    ch.reserve("x", 2, 2)
    v = torch.zeros(2, dtype=torch.float64)
    ch.push("x", v)
    v += 1
    assert ch["x"][0].tolist() == [0.0, 0.0]


def test_partial_history_keeps_summary_only():
    ch = ConvergenceHistory()
    ch["tol"] = 1e-6
    ch.reserve("resnorm", 4)
    ch.push("resnorm", 1.0)
    ch.nextiter(mvps=1)
    ch.record_matvecs(1)
    ch.set_converged(True)
    ch.shrink()

    assert "resnorm" not in ch
    assert ch["tol"] == 1e-6
    assert ch.iters == 1
    assert ch.mvps == 2
    assert ch.isconverged


def test_push_to_unreserved_series():
    ch = ConvergenceHistory(partial=False)
    with pytest.raises(KeyError):
        ch.push("resnorm", 1.0)


def test_push_past_capacity():
    ch = ConvergenceHistory(partial=False)
    ch.reserve("resnorm", 1)
    ch.push("resnorm", 1.0)
    with pytest.raises(IndexError):
        ch.push("resnorm", 2.0)


def test_shrink_to_actual_length_alias():
    ch = ConvergenceHistory(partial=False)
    ch.reserve("resnorm", 10)
    ch.push("resnorm", torch.tensor(0.5, dtype=torch.float64))
    ch.shrink_to_actual_length()
    assert ch["resnorm"].shape == (1,)


def test_repr():
    ch = ConvergenceHistory(partial=False)
    ch.nextiter(mvps=2)
    assert repr(ch) == "ConvergenceHistory(not converged, iters=1, mvps=2, keys=[])"
    ch.set_converged(True)
    assert "converged, iters=1" in repr(ch)
