"""
Banded symmetric linear solver, based on an in-place LDLt decomposition.
"""
from . import band, errors, matrices, utils
from .band import *
from .errors import *
from .matrices import *

__version__ = '0.1.0'
