r"""
## Overview
This module solves linear systems $\mathbf{Ax} = \mathbf{f}$ where
$\mathbf{A}$ is a symmetric banded matrix, by means of an in-place
$\mathbf{A} = \mathbf{LDL}^\mathrm{T}$ decomposition.

Only the lower band of the matrix is stored. A matrix of order `N`
whose non-zero entries lie at most `M` positions away from the
diagonal (the half-bandwidth) is stored as

- a `(N, M)` tensor `band`, where the row `band[i]` holds the entries
  `A[i, i-M] ... A[i, i-1]`, right-aligned on the diagonal, i.e.,
  `A[i, j] == band[i, M - i + j]`;
- a `(N,)` tensor `diag`, where `diag[i] == A[i, i]`.

The first `M` rows of `band` contain a few slots that would map to
negative columns. These slots are never read nor written.

    [ a00 a01  .   .  ]              [ *   *  ]          [ a00 ]
    [ a10 a11 a12  .  ]  =>   band = [ *  a10 ]   diag = [ a11 ]
    [ a20 a21 a22 a23 ]              [a20 a21 ]          [ a22 ]
    [  .  a31 a32 a33 ]              [a31 a32 ]          [ a33 ]

After decomposition, the same two tensors hold the strictly lower part
of the unit lower-triangular factor $\mathbf{L}$ and the diagonal of
$\mathbf{D}$. Pivots can take any non-zero value (the matrix need not
be positive definite), but no pivoting is performed: a vanishing pivot
raises a `SingularPivotError`.

Two interfaces are provided:

- functions (`band_ldlt`, `band_ldlt_solve`, `band_solve`,
  `band_matvec`, `band_to_full`, `full_to_band`) that act on raw
  `(band, diag)` tensors;
- a `BandedStore` object that owns its tensors, remembers whether it
  has been decomposed, and exposes the individual substitution phases.

---
"""
__all__ = [
    'BandedStore',
    'band_to_full', 'full_to_band', 'band_matvec',
    'band_ldlt', 'band_ldlt_solve', 'band_solve',
]
import torch
from torch import Tensor
from typing import Optional, Tuple
from warnings import warn
from .errors import DimensionError, SingularPivotError
from .typing import TensorLike, DTypeLike, DeviceLike
from .utils import to_dtype, as_float_tensor, wider_dtype
from ._impl import band as impl


def _check_order(n: int, m: int):
    if n <= 0:
        raise DimensionError('Matrix order must be positive. Got {}.'
                             .format(n))
    if m < 0:
        raise DimensionError('Half-bandwidth must be non-negative. Got {}.'
                             .format(m))
    if m >= n:
        raise DimensionError('Half-bandwidth must be smaller than the '
                             'matrix order. Got m={} >= n={}.'.format(m, n))


def _check_band(band: Tensor, diag: Tensor):
    if band.dim() != 2:
        raise DimensionError('Expected a (N, M) band. Got shape {}.'
                             .format(tuple(band.shape)))
    if diag.dim() != 1:
        raise DimensionError('Expected a (N,) diagonal. Got shape {}.'
                             .format(tuple(diag.shape)))
    if band.shape[0] != diag.shape[0]:
        raise DimensionError('Band and diagonal have a different number '
                             'of rows: {} != {}.'
                             .format(band.shape[0], diag.shape[0]))
    _check_order(*band.shape)


def _check_vec(vec: Tensor, n: int):
    if vec.dim() != 1 or vec.shape[0] != n:
        raise DimensionError('Expected a vector of length {}. Got shape {}.'
                             .format(n, tuple(vec.shape)))


def _check_finite(*tensors):
    for tensor in tensors:
        if not torch.isfinite(tensor).all():
            raise ValueError('Input has non finite values.')


def band_to_full(band: TensorLike, diag: TensorLike) -> Tensor:
    r"""Transform a banded symmetric matrix into a full matrix

    Parameters
    ----------
    band : `(N, M) tensor`
        Lower band, with `A[i, j] == band[i, M - i + j]`.
    diag : `(N,) tensor`
        Main diagonal.

    Returns
    -------
    full : `(N, N) tensor`
        Full symmetric matrix. Entries outside of the band are zero.

    """
    band = as_float_tensor(band)
    diag = as_float_tensor(diag, band.dtype, band.device)
    _check_band(band, diag)
    return impl.band_to_full(band, diag)


def full_to_band(mat: TensorLike, m: int) -> Tuple[Tensor, Tensor]:
    r"""Extract the lower band of a symmetric matrix

    !!! note
        Only the lower triangle is read. Entries further than `m`
        positions from the diagonal are discarded.

    Parameters
    ----------
    mat : `(N, N) tensor`
        Full symmetric matrix.
    m : `int`
        Half-bandwidth.

    Returns
    -------
    band : `(N, M) tensor`
        Lower band.
    diag : `(N,) tensor`
        Main diagonal.

    """
    mat = as_float_tensor(mat)
    if mat.dim() != 2 or mat.shape[0] != mat.shape[1]:
        raise DimensionError('Expected square matrix. Got {}.'
                             .format(tuple(mat.shape)))
    _check_order(mat.shape[0], m)
    return impl.full_to_band(mat, m)


def band_matvec(band: TensorLike, diag: TensorLike, vec: TensorLike,
                acc_dtype: DTypeLike = None) -> Tensor:
    r"""Matrix-vector product with a banded symmetric matrix

    The full matrix is never built.

    Parameters
    ----------
    band : `(N, M) tensor`
        Lower band.
    diag : `(N,) tensor`
        Main diagonal.
    vec : `(N,) tensor`
        Vector.
    acc_dtype : `torch.dtype`, optional
        Data type used to accumulate products. Default: `band.dtype`.

    Returns
    -------
    matvec : `(N,) tensor`
        Matrix-vector product, with the data type of `band`.

    """
    band = as_float_tensor(band)
    diag = as_float_tensor(diag, band.dtype, band.device)
    vec = as_float_tensor(vec, device=band.device)
    _check_band(band, diag)
    _check_vec(vec, band.shape[0])
    acc_dtype = to_dtype(acc_dtype or band.dtype)
    return impl.band_matvec(band, diag, vec, acc_dtype).to(band.dtype)


def band_ldlt(
        band: TensorLike,
        diag: TensorLike,
        inplace: bool = False,
        acc_dtype: DTypeLike = None,
        tol: float = 0.,
        warn_tol: Optional[float] = None,
        check_finite: bool = True,
) -> Tuple[Tensor, Tensor]:
    r"""$\mathbf{LDL}^\mathrm{T}$ decomposition of a banded symmetric matrix

    For `i = 0 .. N-1`:

    $$D_{ii} = A_{ii} - \sum_{j=i-M}^{i-1} L_{ij}^2 D_{jj}$$
    $$L_{ji} = \frac{1}{D_{ii}}\left(A_{ji} - \sum_{t=j-M}^{i-1} L_{jt} L_{it} D_{tt}\right), \quad i < j \leq i + M$$

    The cost is $\mathcal{O}(NM^2)$. Rows are processed one after the
    other: each row depends on all the rows above it.

    Parameters
    ----------
    band : `(N, M) tensor`
        Lower band of the symmetric matrix.
    diag : `(N,) tensor`
        Main diagonal of the symmetric matrix.
    inplace : `bool`, default=False
        If `True`, overwrite `band` and `diag` (which must then be
        floating point tensors).
    acc_dtype : `torch.dtype`, optional
        Data type used to accumulate sums. Default: `band.dtype`.
        Using `torch.float64` with `torch.float32` storage improves
        accuracy at a negligible memory cost.
    tol : `float`, default=0
        Pivots whose absolute value is less than or equal to `tol`
        are considered singular.
    warn_tol : `float`, optional
        If provided, warn when a pivot is smaller than
        `warn_tol * abs(A[i, i])` (severe cancellation).
    check_finite : `bool`, default=True
        If `True`, checks that the input matrix does not contain any
        non finite value.

    Returns
    -------
    band : `(N, M) tensor`
        Strictly lower part of the unit lower triangular factor $\mathbf{L}$.
    diag : `(N,) tensor`
        Diagonal of $\mathbf{D}$.

    Raises
    ------
    DimensionError
        If the shapes are inconsistent, or `M >= N`.
    SingularPivotError
        If a pivot vanishes.

    """
    band = as_float_tensor(band)
    diag = as_float_tensor(diag, band.dtype, band.device)
    _check_band(band, diag)
    if check_finite and not impl.band_isfinite(band, diag):
        raise ValueError('Input has non finite values.')
    if not inplace:
        band, diag = band.clone(), diag.clone()
    acc_dtype = to_dtype(acc_dtype or band.dtype)
    return impl.band_ldlt_(band, diag, acc_dtype, tol, warn_tol)


def band_ldlt_solve(
        band: TensorLike,
        diag: TensorLike,
        vec: TensorLike,
        acc_dtype: DTypeLike = None,
        tol: float = 0.,
) -> Tensor:
    r"""Solve a linear system from its $\mathbf{LDL}^\mathrm{T}$ decomposition

    The solution is obtained in three phases:

    1. forward substitution $\mathbf{Ly} = \mathbf{f}$;
    2. diagonal substitution $\mathbf{Dz} = \mathbf{y}$;
    3. backward substitution $\mathbf{L}^\mathrm{T}\mathbf{x} = \mathbf{z}$.

    Parameters
    ----------
    band : `(N, M) tensor`
        Output `band` of `band_ldlt`.
    diag : `(N,) tensor`
        Output `diag` of `band_ldlt`.
    vec : `(N,) tensor`
        Right-hand side. It is not modified.
    acc_dtype : `torch.dtype`, optional
        Data type used for intermediate vectors. Default: `band.dtype`.
    tol : `float`, default=0
        Pivots whose absolute value is less than or equal to `tol`
        are considered singular.

    Returns
    -------
    x : `(N,) tensor`
        Solution, with the data type of `band`.

    """
    band = as_float_tensor(band)
    diag = as_float_tensor(diag, band.dtype, band.device)
    vec = as_float_tensor(vec, device=band.device)
    _check_band(band, diag)
    _check_vec(vec, band.shape[0])
    acc_dtype = to_dtype(acc_dtype or band.dtype)
    return impl.band_ldlt_solve(band, diag, vec, acc_dtype, tol).to(band.dtype)


def band_solve(
        band: TensorLike,
        diag: TensorLike,
        vec: TensorLike,
        acc_dtype: DTypeLike = None,
        tol: float = 0.,
        check_finite: bool = True,
) -> Tensor:
    r"""Left matrix division for banded symmetric matrices.

    `>>> A \ vec`

    !!! note
        The inputs are left untouched: the decomposition is performed
        on a copy. Use `band_ldlt` and `band_ldlt_solve` (or a
        `BandedStore`) to reuse a decomposition across right-hand sides.

    Parameters
    ----------
    band : `(N, M) tensor`
        Lower band of the symmetric matrix.
    diag : `(N,) tensor`
        Main diagonal of the symmetric matrix.
    vec : `(N,) tensor`
        Right-hand side.
    acc_dtype : `torch.dtype`, optional
        Data type used to accumulate sums. Default: `band.dtype`.
    tol : `float`, default=0
        Singular pivot threshold.
    check_finite : `bool`, default=True
        If `True`, checks that the inputs do not contain any
        non finite value.

    Returns
    -------
    x : `(N,) tensor`
        Solution of the linear system.

    """
    band, diag = band_ldlt(band, diag, inplace=False, acc_dtype=acc_dtype,
                           tol=tol, check_finite=check_finite)
    if check_finite:
        _check_finite(as_float_tensor(vec))
    return band_ldlt_solve(band, diag, vec, acc_dtype=acc_dtype, tol=tol)


class BandedStore:
    r"""Compact storage of a symmetric banded matrix, and its LDLt factors.

    A store is created with a fixed order `n` and half-bandwidth `m`
    and is never resized. It first holds the matrix $\mathbf{A}$
    (filled by the caller, through `set`, `band`/`diag`, or one of the
    `from_*` constructors). Calling `decompose()` overwrites it with
    the factors $\mathbf{L}$ and $\mathbf{D}$, after which it can be
    used to solve any number of systems, and shared between readers.

    Parameters
    ----------
    n : `int`
        Matrix order (number of equations).
    m : `int`
        Half-bandwidth, `0 <= m < n`.
    dtype : `torch.dtype`, optional
        Storage data type. Default: `torch.get_default_dtype()`.
    acc_dtype : `torch.dtype`, optional
        Data type used to accumulate sums and hold intermediate vectors.
        Default: same as `dtype`.
    device : `torch.device`, optional
        Storage device.

    Examples
    --------
    ```python
    >>> store = BandedStore(3, 1, dtype=torch.float64)
    >>> store.diag[:] = torch.as_tensor([4., 5., 6.])
    >>> store.set(1, 0, 2.)
    >>> store.set(2, 1, 3.)
    >>> x = store.decompose().solve([1., 2., 3.])
    ```
    """

    def __init__(self, n: int, m: int, dtype: DTypeLike = None,
                 acc_dtype: DTypeLike = None, device: DeviceLike = None):
        _check_order(n, m)
        dtype = to_dtype(dtype)
        self._band = torch.zeros([n, m], dtype=dtype, device=device)
        self._diag = torch.zeros([n], dtype=dtype, device=device)
        self._acc_dtype = to_dtype(acc_dtype or dtype)
        self._decomposed = False
        self._failed = False

    @classmethod
    def from_band(cls, band: TensorLike, diag: TensorLike,
                  acc_dtype: DTypeLike = None) -> 'BandedStore':
        """Build a store from a `(N, M)` band and a `(N,)` diagonal.

        The inputs are copied.
        """
        band = as_float_tensor(band)
        diag = as_float_tensor(diag, band.dtype, band.device)
        _check_band(band, diag)
        store = cls(*band.shape, dtype=band.dtype, acc_dtype=acc_dtype,
                    device=band.device)
        store._band.copy_(band)
        store._diag.copy_(diag)
        return store

    @classmethod
    def from_dense(cls, mat: TensorLike, m: int,
                   acc_dtype: DTypeLike = None) -> 'BandedStore':
        """Build a store from the lower band of a full `(N, N)` matrix."""
        band, diag = full_to_band(mat, m)
        return cls.from_band(band, diag, acc_dtype)

    def clone(self) -> 'BandedStore':
        """Deep copy (keeps the decomposition state)."""
        store = type(self).from_band(self._band, self._diag, self._acc_dtype)
        store._decomposed = self._decomposed
        store._failed = self._failed
        return store

    @property
    def n(self) -> int:
        return self._band.shape[0]

    @property
    def m(self) -> int:
        return self._band.shape[1]

    @property
    def band(self) -> Tensor:
        return self._band

    @property
    def diag(self) -> Tensor:
        return self._diag

    @property
    def dtype(self) -> torch.dtype:
        return self._band.dtype

    @property
    def acc_dtype(self) -> torch.dtype:
        return self._acc_dtype

    @property
    def device(self) -> torch.device:
        return self._band.device

    @property
    def decomposed(self) -> bool:
        return self._decomposed

    @property
    def failed(self) -> bool:
        """True if `decompose()` stopped on a singular pivot."""
        return self._failed

    def __repr__(self):
        return '{}(n={}, m={}, dtype={}, acc_dtype={}, decomposed={})'.format(
            type(self).__name__, self.n, self.m, self.dtype,
            self.acc_dtype, self.decomposed)

    # ------------------------------------------------------------------
    #   Element access
    # ------------------------------------------------------------------

    def slot(self, row: int, col: int) -> int:
        """Column of `band` that stores the off-diagonal entry `(row, col)`.

        Entries of the upper triangle are mirrored into the lower one.
        Raises `OutOfBandAccessError` for diagonal or out-of-band entries.
        """
        return impl.band_slot(row, col, self.n, self.m)

    def get(self, row: int, col: int) -> Tensor:
        """Value of the entry `(row, col)` (zero outside of the band)."""
        return impl.band_get(self._band, self._diag, row, col)

    def set(self, row: int, col: int, value):
        """Set the entry `(row, col)` (and its mirror `(col, row)`)."""
        impl.band_set(self._band, self._diag, row, col, value)
        return self

    # ------------------------------------------------------------------
    #   Decomposition
    # ------------------------------------------------------------------

    def decompose(self, tol: float = 0., warn_tol: Optional[float] = None,
                  check_finite: bool = True) -> 'BandedStore':
        """Overwrite the store with its LDLt factors.

        See `band_ldlt` for the meaning of the parameters.

        Returns
        -------
        self : `BandedStore`

        """
        if self._decomposed:
            raise RuntimeError('Store is already decomposed.')
        self._check_failed()
        try:
            band_ldlt(self._band, self._diag, inplace=True,
                      acc_dtype=self._acc_dtype, tol=tol, warn_tol=warn_tol,
                      check_finite=check_finite)
        except SingularPivotError:
            # rows above the failing one already hold factors
            self._failed = True
            raise
        self._decomposed = True
        return self

    # ------------------------------------------------------------------
    #   Substitution
    # ------------------------------------------------------------------

    def _check_failed(self):
        if self._failed:
            raise RuntimeError('Store holds a partial decomposition that '
                               'failed on a singular pivot.')

    def _check_decomposed(self):
        self._check_failed()
        if not self._decomposed:
            raise RuntimeError('Store must be decomposed first. '
                               'Call `decompose()`.')

    def _as_vec(self, vec: TensorLike) -> Tensor:
        vec = as_float_tensor(vec, device=self.device)
        _check_vec(vec, self.n)
        if wider_dtype(vec.dtype, self._acc_dtype) != self._acc_dtype:
            warn('Right-hand side ({}) is cast to {}.'
                 .format(vec.dtype, self._acc_dtype), RuntimeWarning)
        return vec

    def forward(self, vec: TensorLike) -> Tensor:
        """Forward substitution: solve `L @ y = vec`."""
        self._check_decomposed()
        vec = self._as_vec(vec)
        return impl.band_forward(self._band, vec, self._acc_dtype) \
            .to(self.dtype)

    def diagonal(self, vec: TensorLike, tol: float = 0.) -> Tensor:
        """Diagonal substitution: solve `D @ z = vec`."""
        self._check_decomposed()
        vec = self._as_vec(vec)
        return impl.band_diagonal(self._diag, vec, self._acc_dtype, tol) \
            .to(self.dtype)

    def backward(self, vec: TensorLike) -> Tensor:
        """Backward substitution: solve `L.T @ x = vec`."""
        self._check_decomposed()
        vec = self._as_vec(vec)
        return impl.band_backward(self._band, vec, self._acc_dtype) \
            .to(self.dtype)

    def solve(self, vec: TensorLike, tol: float = 0.) -> Tensor:
        """Solve `A @ x = vec` using the stored decomposition.

        Intermediate vectors are kept in `acc_dtype`; the right-hand
        side is left untouched.

        Parameters
        ----------
        vec : `(N,) tensor`
            Right-hand side.
        tol : `float`, default=0
            Singular pivot threshold.

        Returns
        -------
        x : `(N,) tensor`
            Solution.

        """
        self._check_decomposed()
        vec = self._as_vec(vec)
        return impl.band_ldlt_solve(self._band, self._diag, vec,
                                    self._acc_dtype, tol).to(self.dtype)

    # ------------------------------------------------------------------
    #   Reconstruction / verification
    # ------------------------------------------------------------------

    def to_dense(self) -> Tensor:
        """Expand the band into a full symmetric `(N, N)` matrix.

        On a decomposed store, the result holds `D` on its diagonal
        and `L` (mirrored) off the diagonal.
        """
        return impl.band_to_full(self._band, self._diag)

    def matvec(self, vec: TensorLike) -> Tensor:
        """Matrix-vector product, computed from the band.

        On a decomposed store, the band holds factors rather than a
        matrix, and a `RuntimeWarning` is emitted.
        """
        if self._decomposed or self._failed:
            warn('Matrix-vector product of a decomposed store: the band '
                 'holds the LDLt factors, not the matrix.', RuntimeWarning)
        vec = as_float_tensor(vec, device=self.device)
        _check_vec(vec, self.n)
        return impl.band_matvec(self._band, self._diag, vec,
                                self._acc_dtype).to(self.dtype)

    def ldlt_to_dense(self) -> Tensor:
        """Recompute the full matrix `L @ D @ L.T` from the factors."""
        self._check_decomposed()
        return impl.band_ldlt_to_full(self._band, self._diag,
                                      self._acc_dtype)

    def residual(self, x: TensorLike, vec: TensorLike) -> Tensor:
        """Residual `vec - A @ x` (on a store that holds `A`)."""
        if self._decomposed or self._failed:
            raise RuntimeError('Residuals require the original matrix, '
                               'not its decomposition.')
        vec = as_float_tensor(vec, device=self.device)
        _check_vec(vec, self.n)
        return vec.to(self.dtype) - self.matvec(x)
