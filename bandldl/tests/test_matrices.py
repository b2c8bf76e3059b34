from .utils import get_test_devices, init_device, band_to_scipy
from bandldl.matrices import (
    hilbert_band, laplacian_band, random_band, rhs_from_solution)
from scipy.linalg import solveh_banded, hilbert
import numpy as np
import torch
import pytest

devices = get_test_devices()


@pytest.mark.parametrize("device", devices)
def test_laplacian_pivots(device):
    device = init_device(device)
    n = 10
    store = laplacian_band(n, dtype=torch.float64, device=device)
    store.decompose()
    k = torch.arange(n, dtype=torch.float64, device=device)
    assert torch.allclose(store.diag, (k + 2) / (k + 1)), "D"
    assert torch.allclose(store.band[1:, 0], -(k[:-1] + 1) / (k[:-1] + 2)), "L"


def test_laplacian_order_one():
    store = laplacian_band(1)
    assert (store.n, store.m) == (1, 0)
    x = store.decompose().solve([4.])
    assert x.item() == pytest.approx(2.)


@pytest.mark.parametrize("device", devices)
def test_laplacian_mixed_precision(device):
    device = init_device(device)
    n = 50
    store = laplacian_band(n, dtype=torch.float32, acc_dtype=torch.float64,
                           device=device)
    x_true = torch.linspace(-1, 1, n, device=device)
    f = rhs_from_solution(store, x_true)
    x = store.decompose().solve(f)
    assert store.acc_dtype == torch.float64
    assert x.dtype == torch.float32
    assert torch.allclose(x, x_true, rtol=1e-3, atol=1e-3)

    with pytest.warns(RuntimeWarning):
        laplacian_band(n, dtype=torch.float32).decompose() \
            .solve(f.double())


def test_hilbert_entries():
    store = hilbert_band(6, 2, dtype=torch.float64)
    full = torch.as_tensor(hilbert(6))
    mask = (torch.arange(6)[:, None] - torch.arange(6)[None, :]).abs() <= 2
    assert torch.allclose(store.to_dense(), full * mask)


def test_hilbert_full_band():
    # m = n - 1: the band is the whole (positive definite) Hilbert matrix
    n = 5
    store = hilbert_band(n, n - 1, dtype=torch.float64)
    f = torch.ones(n, dtype=torch.float64)
    x = store.clone().decompose().solve(f)
    x_nativ = torch.linalg.solve(torch.as_tensor(hilbert(n)), f)
    assert torch.allclose(x, x_nativ, rtol=1e-6)
    assert torch.allclose(store.matvec(x), f, atol=1e-8)


@pytest.mark.parametrize("n,m", [(6, 1), (13, 3), (20, 5)])
def test_against_scipy(n, m):
    generator = torch.Generator().manual_seed(n)
    store = random_band(n, m, dtype=torch.float64, generator=generator)
    f = np.random.default_rng(m).standard_normal(n)
    x_scipy = solveh_banded(band_to_scipy(store), f, lower=True)
    x = store.decompose().solve(torch.as_tensor(f))
    assert np.allclose(x.numpy(), x_scipy)


def test_random_band_is_symmetric_dominant():
    store = random_band(12, 3, dtype=torch.float64)
    full = store.to_dense()
    assert torch.equal(full, full.T)
    offdiag = full.abs().sum(-1) - full.diagonal().abs()
    assert (full.diagonal() > offdiag).all()
    assert (torch.linalg.eigvalsh(full) > 0).all()
