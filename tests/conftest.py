import pytest
import torch


def make_spd(n: int, seed: int = 0, dtype: torch.dtype = torch.float64):
    """Well-conditioned SPD matrix and right-hand side."""
    gen = torch.Generator().manual_seed(seed)
    M = torch.randn(n, n, generator=gen, dtype=dtype)
    A = M @ M.T + n * torch.eye(n, dtype=dtype)
    b = torch.randn(n, generator=gen, dtype=dtype)
    return A, b


@pytest.fixture
def spd_problem():
    return make_spd(20)


@pytest.fixture
def diag_problem():
    A = torch.diag(torch.tensor([4.0, 9.0], dtype=torch.float64))
    b = torch.tensor([4.0, 18.0], dtype=torch.float64)
    return A, b
