__all__ = [
    'band_slot', 'band_get', 'band_set', 'band_mask', 'band_isfinite',
    'band_to_full', 'full_to_band', 'band_matvec',
    'band_ldlt_', 'band_forward', 'band_diagonal', 'band_backward',
    'band_ldlt_solve', 'band_ldlt_to_full', 'band_unit_lower',
]
import math
import torch
from torch import Tensor
from typing import Optional
from warnings import warn
from ..errors import OutOfBandAccessError, SingularPivotError

# Storage layout
# --------------
# A symmetric matrix of order n with half-bandwidth m is stored as
#   - band: (n, m) tensor, band[i, m - i + j] = A[i, j] for i-m <= j < i
#   - diag: (n,) tensor,   diag[i] = A[i, i]
# Each row of `band` is right-aligned on the diagonal, so that the
# k-th sub-diagonal of A (k = i - j) is the column `m - k` of `band`,
# read from row k onwards:
#
#     [ a00 a01  .   .  ]        band = [ *   *  ]   diag = [ a00 ]
#     [ a10 a11 a12  .  ]  m=2           [ *  a10 ]          [ a11 ]
#     [ a20 a21 a22 a23 ]   =>           [a20 a21 ]          [ a22 ]
#     [  .  a31 a32 a33 ]                [a31 a32 ]          [ a33 ]
#
# Cells marked `*` correspond to negative column indices. They are
# never read nor written.


def band_slot(row: int, col: int, n: int, m: int) -> int:
    if not (0 <= row < n and 0 <= col < n):
        raise IndexError('Entry ({}, {}) is out of bounds for a matrix '
                         'of order {}.'.format(row, col, n))
    if col > row:
        row, col = col, row
    if col == row or row - col > m:
        raise OutOfBandAccessError(row, col, m)
    return m - row + col


def band_get(band: Tensor, diag: Tensor, row: int, col: int) -> Tensor:
    n, m = band.shape
    if not (0 <= row < n and 0 <= col < n):
        raise IndexError('Entry ({}, {}) is out of bounds for a matrix '
                         'of order {}.'.format(row, col, n))
    if row == col:
        return diag[row]
    if abs(row - col) > m:
        # implicit zero: storage is not touched
        return diag.new_zeros([])
    if col > row:
        row, col = col, row
    return band[row, band_slot(row, col, n, m)]


def band_set(band: Tensor, diag: Tensor, row: int, col: int, value):
    n, m = band.shape
    if row == col:
        if not (0 <= row < n):
            raise IndexError('Entry ({}, {}) is out of bounds for a matrix '
                             'of order {}.'.format(row, col, n))
        diag[row] = value
        return
    if col > row:
        row, col = col, row
    band[row, band_slot(row, col, n, m)] = value


def band_mask(n: int, m: int, device=None) -> Tensor:
    # True for band slots that map to a non-negative column
    rows = torch.arange(n, device=device)[:, None]
    slots = torch.arange(m, device=device)[None, :]
    return rows - m + slots >= 0


def band_isfinite(band: Tensor, diag: Tensor) -> bool:
    n, m = band.shape
    if not torch.isfinite(diag).all():
        return False
    for k in range(1, m + 1):
        if not torch.isfinite(band[k:, m - k]).all():
            return False
    return True


def band_to_full(band: Tensor, diag: Tensor) -> Tensor:
    n, m = band.shape
    full = band.new_zeros([n, n])
    full.diagonal(0).copy_(diag)
    for k in range(1, m + 1):
        subdiag = band[k:, m - k]
        full.diagonal(-k).copy_(subdiag)
        full.diagonal(k).copy_(subdiag)
    return full


def full_to_band(full: Tensor, m: int):
    n = full.shape[-1]
    band = full.new_zeros([n, m])
    for k in range(1, m + 1):
        band[k:, m - k] = full.diagonal(-k)
    diag = full.diagonal(0).clone()
    return band, diag


def band_matvec(band: Tensor, diag: Tensor, vec: Tensor,
                acc_dtype: Optional[torch.dtype] = None) -> Tensor:
    # One sub-diagonal at a time: A[i, i-k] contributes to row i
    # (lower part) and, by symmetry, to row i-k (upper part).
    n, m = band.shape
    acc_dtype = acc_dtype or band.dtype
    vec = vec.to(acc_dtype)
    out = diag.to(acc_dtype) * vec
    for k in range(1, m + 1):
        subdiag = band[k:, m - k].to(acc_dtype)
        out[k:].addcmul_(subdiag, vec[:-k])
        out[:-k].addcmul_(subdiag, vec[k:])
    return out


def _check_pivot(index, pivot, tol):
    if not math.isfinite(pivot) or abs(pivot) <= tol:
        raise SingularPivotError(index, pivot, tol)


def band_ldlt_(band: Tensor, diag: Tensor,
               acc_dtype: Optional[torch.dtype] = None,
               tol: float = 0., warn_tol: Optional[float] = None):
    n, m = band.shape
    acc_dtype = acc_dtype or band.dtype

    for i in range(n):
        lo = max(0, i - m)

        # pivot: D[i] = A[i, i] - sum_j L[i, j]^2 D[j]
        row_i = band[i, m - i + lo:].to(acc_dtype)
        diag_i = diag[lo:i].to(acc_dtype)
        a_ii = diag[i].item()
        pivot = diag[i].to(acc_dtype) - (row_i * row_i * diag_i).sum()
        diag[i] = pivot
        # divide by the stored (possibly rounded) pivot
        pivot = diag[i].item()
        _check_pivot(i, pivot, tol)
        if warn_tol is not None and abs(pivot) <= warn_tol * abs(a_ii):
            warn('Severe cancellation in pivot D[{0}, {0}] = {1} '
                 '(A[{0}, {0}] = {2}).'.format(i, pivot, a_ii),
                 RuntimeWarning)

        # column i of L: L[j, i] = (A[j, i] - sum_t L[j, t] L[i, t] D[t]) / D[i]
        # L[j, t] is zero (and not stored) for t < j - m
        for j in range(i + 1, min(n, i + m + 1)):
            lo = max(0, j - m)
            row_j = band[j, m - j + lo:m - j + i].to(acc_dtype)
            row_i = band[i, m - i + lo:].to(acc_dtype)
            diag_i = diag[lo:i].to(acc_dtype)
            acc = (row_j * row_i * diag_i).sum()
            band[j, m - j + i] = (band[j, m - j + i].to(acc_dtype) - acc) / pivot

    return band, diag


def band_forward(band: Tensor, vec: Tensor,
                 acc_dtype: Optional[torch.dtype] = None) -> Tensor:
    # L @ y = f, L unit lower triangular
    n, m = band.shape
    acc_dtype = acc_dtype or band.dtype
    out = vec.to(acc_dtype, copy=True)
    for i in range(1, n):
        lo = max(0, i - m)
        row_i = band[i, m - i + lo:].to(acc_dtype)
        out[i] -= (row_i * out[lo:i]).sum()
    return out


def band_diagonal(diag: Tensor, vec: Tensor,
                  acc_dtype: Optional[torch.dtype] = None,
                  tol: float = 0.) -> Tensor:
    # D @ z = y. All rows are independent: single vectorized division.
    acc_dtype = acc_dtype or diag.dtype
    diag = diag.to(acc_dtype)
    singular = diag.abs() <= tol
    singular.logical_or_(~torch.isfinite(diag))
    if singular.any():
        index = singular.nonzero()[0].item()
        raise SingularPivotError(index, diag[index].item(), tol)
    return vec.to(acc_dtype) / diag


def band_backward(band: Tensor, vec: Tensor,
                  acc_dtype: Optional[torch.dtype] = None) -> Tensor:
    # L.T @ x = z. Row i of L.T is column i of L, which lives on an
    # anti-diagonal of `band`: L[j, i] = band[j, m - j + i], j > i.
    n, m = band.shape
    acc_dtype = acc_dtype or band.dtype
    out = vec.to(acc_dtype, copy=True)
    for i in range(n - 2, -1, -1):
        hi = min(n, i + m + 1)
        rows = torch.arange(i + 1, hi, device=band.device)
        col_i = band[rows, m - rows + i].to(acc_dtype)
        out[i] -= (col_i * out[i + 1:hi]).sum()
    return out


def band_ldlt_solve(band: Tensor, diag: Tensor, vec: Tensor,
                    acc_dtype: Optional[torch.dtype] = None,
                    tol: float = 0.) -> Tensor:
    y = band_forward(band, vec, acc_dtype)
    z = band_diagonal(diag, y, acc_dtype, tol)
    x = band_backward(band, z, acc_dtype)
    return x


def band_unit_lower(band: Tensor, dtype: Optional[torch.dtype] = None):
    n, m = band.shape
    dtype = dtype or band.dtype
    lower = torch.eye(n, dtype=dtype, device=band.device)
    for k in range(1, m + 1):
        lower.diagonal(-k).copy_(band[k:, m - k])
    return lower


def band_ldlt_to_full(band: Tensor, diag: Tensor,
                      acc_dtype: Optional[torch.dtype] = None) -> Tensor:
    acc_dtype = acc_dtype or band.dtype
    lower = band_unit_lower(band, acc_dtype)
    full = (lower * diag.to(acc_dtype)).matmul(lower.transpose(-1, -2))
    return full.to(band.dtype)
