import torch
from .typing import DTypeLike, DeviceLike


def to_dtype(dtype: DTypeLike = None) -> torch.dtype:
    """Convert a dtype-like object (None, str, torch.dtype) into a torch.dtype.

    `None` maps to the default floating point type.
    """
    if dtype is None:
        return torch.get_default_dtype()
    if isinstance(dtype, str):
        name, dtype = dtype, getattr(torch, dtype.split('.')[-1], None)
        if not isinstance(dtype, torch.dtype):
            raise ValueError('Unknown data type {}.'.format(name))
    if not dtype.is_floating_point:
        raise TypeError('Expected a floating point type. Got {}.'
                        .format(dtype))
    return dtype


def as_float_tensor(x, dtype: DTypeLike = None, device: DeviceLike = None):
    """Convert an array-like into a floating point tensor.

    If `dtype` is None, floating point tensors keep their type and
    anything else (integers, lists of ints, ...) is converted to the
    default floating point type. No copy is made when `x` already has
    the requested type and device.
    """
    x = torch.as_tensor(x, device=device)
    if dtype is None and x.dtype.is_floating_point:
        return x
    return x.to(to_dtype(dtype))


def wider_dtype(*dtypes: torch.dtype) -> torch.dtype:
    """Return the floating point type with the largest mantissa."""
    return max(dtypes, key=lambda dt: torch.finfo(dt).bits)


def eps(dtype='float32'):
    """Machine epsilon for different precisions."""
    f16_types = []
    if hasattr(torch, 'float16'):
        f16_types += ['float16', torch.float16]
    f32_types = ['float32', torch.float32]
    f64_types = ['float64', torch.float64]

    if dtype in (torch.bfloat16, 'bfloat16'):
        return 2 ** -7
    if dtype in f16_types:
        return 2 ** -10
    if dtype in f32_types:
        return 2 ** -23
    elif dtype in f64_types:
        return 2 ** -52
    else:
        raise NotImplementedError


def default_tol(dtype='float32'):
    """Tolerance used to compare a reconstruction with its source.

    Roughly `1e-5` in single precision and `1e-12` in double precision.
    """
    return 1e-5 if eps(dtype) > 2 ** -30 else 1e-12
