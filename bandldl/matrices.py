r"""
## Overview

Generators of banded symmetric test problems.

- `hilbert_band`: the Hilbert matrix $H_{ij} = 1/(i+j+1)$, truncated to
  a band. It is notoriously ill-conditioned and is useful to observe the
  effect of the storage and accumulation precisions.
- `laplacian_band`: the 1D finite-difference Laplacian
  $\mathrm{tridiag}(-1, 2, -1)$, which is positive definite.
- `random_band`: a random diagonally dominant (hence positive
  definite) banded matrix.

---
"""
__all__ = ['hilbert_band', 'laplacian_band', 'random_band',
           'rhs_from_solution']
import torch
from torch import Tensor
from typing import Optional
from .band import BandedStore
from ._impl.band import band_mask
from .typing import TensorLike, DTypeLike, DeviceLike


def hilbert_band(n: int, m: int, dtype: DTypeLike = None,
                 acc_dtype: DTypeLike = None,
                 device: DeviceLike = None) -> BandedStore:
    """Hilbert matrix truncated to a band of half-width `m`.

    Parameters
    ----------
    n : `int`
        Matrix order.
    m : `int`
        Half-bandwidth.

    Returns
    -------
    store : `BandedStore`

    """
    store = BandedStore(n, m, dtype=dtype, acc_dtype=acc_dtype, device=device)
    rows = torch.arange(n, dtype=torch.float64, device=store.device)
    store.diag.copy_(1 / (2 * rows + 1))
    if m:
        cols = rows[:, None] - m + torch.arange(m, device=store.device)
        band = 1 / (rows[:, None] + cols + 1)
        band.masked_fill_(~band_mask(n, m, store.device), 0)
        store.band.copy_(band)
    return store


def laplacian_band(n: int, dtype: DTypeLike = None,
                   acc_dtype: DTypeLike = None,
                   device: DeviceLike = None) -> BandedStore:
    """Second-order finite-difference Laplacian (Dirichlet boundaries)."""
    if n == 1:
        store = BandedStore(1, 0, dtype=dtype, acc_dtype=acc_dtype,
                            device=device)
        store.diag.fill_(2)
        return store
    store = BandedStore(n, 1, dtype=dtype, acc_dtype=acc_dtype, device=device)
    store.diag.fill_(2)
    store.band[1:, 0] = -1
    return store


def random_band(n: int, m: int, dtype: DTypeLike = None,
                acc_dtype: DTypeLike = None, device: DeviceLike = None,
                generator: Optional[torch.Generator] = None) -> BandedStore:
    """Random symmetric positive definite banded matrix.

    Off-diagonal entries are drawn uniformly in `[-1, 1]` and the
    diagonal is made strictly dominant.
    """
    store = BandedStore(n, m, dtype=dtype, acc_dtype=acc_dtype, device=device)
    band = torch.rand([n, m], generator=generator, dtype=torch.float64)
    band = band.mul_(2).sub_(1).to(store.device)
    band.masked_fill_(~band_mask(n, m, store.device), 0)
    store.band.copy_(band)
    # row sums of |A|, lower and upper parts
    weight = band.abs().sum(-1)
    for k in range(1, m + 1):
        weight[:-k] += band[k:, m - k].abs()
    store.diag.copy_(weight + 1)
    return store


def rhs_from_solution(store: BandedStore, x: TensorLike) -> Tensor:
    """Right-hand side `A @ x` of a problem with known solution `x`."""
    return store.matvec(x)
