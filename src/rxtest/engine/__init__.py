"""The engine under test and the boundary the harness drives it through."""

from .base import CompileFailure, CompiledPattern, DfaWorkspace, Engine, MatchData
from .backend import RegexEngine
from .posix import PosixRegex, RegFlag

__all__ = [
    "CompileFailure",
    "CompiledPattern",
    "DfaWorkspace",
    "Engine",
    "MatchData",
    "PosixRegex",
    "RegexEngine",
    "RegFlag",
]
