"""
rxtest - A test driver for regular expression engines

Reads scripts of patterns and subject lines, runs them through an engine in
8-bit, 16-bit or 32-bit code unit mode, and writes the results in a fixed
textual form suitable for comparing against expected output.
"""

__version__ = "0.1.0"

from .driver import Outcome, Session, SessionConfig
from .engine import Engine, PosixRegex, RegexEngine
from .errors import (
    AbortRun,
    DataLineError,
    EncodingError,
    ModifierError,
    RxTestError,
)

__all__ = [
    "AbortRun",
    "DataLineError",
    "EncodingError",
    "Engine",
    "ModifierError",
    "Outcome",
    "PosixRegex",
    "RegexEngine",
    "RxTestError",
    "Session",
    "SessionConfig",
]
