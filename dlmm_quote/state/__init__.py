"""
State records for DLMM pairs
"""

from .bins import MISSING, Bin, BinPage, Missing, PageArena
from .config import DEFAULT_CONFIG, ProgramConfig
from .pair import PoolSnapshot, StaticParameters, VariableParameters
from .position import FeeInfo, Position

__all__ = [
    "MISSING",
    "Bin",
    "BinPage",
    "Missing",
    "PageArena",
    "DEFAULT_CONFIG",
    "ProgramConfig",
    "PoolSnapshot",
    "StaticParameters",
    "VariableParameters",
    "FeeInfo",
    "Position",
]
