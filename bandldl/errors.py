"""
## Overview

Exceptions raised by the banded solver. Each of them also derives from
the built-in exception that best describes it, so that callers that
already catch `ValueError` or `ZeroDivisionError` keep working.

---
"""
__all__ = [
    'BandError', 'DimensionError', 'SingularPivotError',
    'OutOfBandAccessError',
]


class BandError(Exception):
    """Base class for all errors raised by `bandldl`."""
    pass


class DimensionError(BandError, ValueError):
    """Invalid matrix order, half-bandwidth, or operand shape."""
    pass


class SingularPivotError(BandError, ZeroDivisionError):
    """A pivot of the LDLt decomposition is zero (or below tolerance).

    Attributes
    ----------
    index : `int`
        Row at which the pivot vanished.
    pivot : `float`
        Value of the offending pivot.
    """

    def __init__(self, index, pivot, tol=0.):
        self.index = index
        self.pivot = pivot
        self.tol = tol
        super().__init__(
            'Singular pivot D[{0}, {0}] = {1} (tol = {2}).'
            .format(index, pivot, tol))


class OutOfBandAccessError(BandError, IndexError):
    """A band slot was requested for an entry outside of the band.

    Attributes
    ----------
    row, col : `int`
        Requested entry.
    m : `int`
        Half-bandwidth of the store.
    """

    def __init__(self, row, col, m):
        self.row = row
        self.col = col
        self.m = m
        super().__init__(
            'Entry ({}, {}) is outside of a band of half-width {}.'
            .format(row, col, m))
