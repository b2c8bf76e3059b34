import torch
from torch import Tensor
from typing import Union, Sequence

TensorLike = Union[Tensor, Sequence[float], Sequence[Sequence[float]]]
DTypeLike = Union[torch.dtype, str, None]
DeviceLike = Union[torch.device, str, None]
