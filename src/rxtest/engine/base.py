"""
The boundary between the harness and the engine under test.

Every operation reports failure through its return value: a negative error
code, or a CompileFailure from compile(). Offsets crossing the boundary are
always in code units of the engine's width.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..codec import CodeUnitWidth
from ..constants import UNSET, CompileOption


@dataclass
class CompileFailure:
    """Why a compile failed, and where in the pattern."""
    code: int
    offset: int


class CompiledPattern:
    """A compiled pattern as the harness sees it.

    Engines subclass this to keep their own state alongside the fields the
    harness reads directly.
    """

    def __init__(self, width: CodeUnitWidth, compile_options: int,
                 pattern_options: int = 0):
        self.width = width
        self.compile_options = compile_options
        self.pattern_options = pattern_options
        self.flags = 0
        self.newline_convention = 0
        self.bsr_convention = 0
        self.match_limit: Optional[int] = None
        self.recursion_limit: Optional[int] = None
        self.freed = False

    @property
    def utf(self) -> bool:
        return bool((self.compile_options | self.pattern_options) &
                    CompileOption.UTF)


@dataclass
class MatchData:
    """Results of the most recent match."""

    allocated: int
    oveccount: int = 0
    ovector: List[int] = field(default_factory=list)
    mark: Optional[object] = None
    leftchar: int = 0
    startchar: int = 0
    utf_reason: int = 0
    rc: int = 0
    subject: Optional[object] = None
    code: Optional[CompiledPattern] = None

    def __post_init__(self):
        if not self.oveccount:
            self.oveccount = self.allocated
        if not self.ovector:
            self.ovector = [UNSET] * (2 * self.allocated)

    def clear(self) -> None:
        for i in range(len(self.ovector)):
            self.ovector[i] = UNSET
        self.mark = None
        self.leftchar = self.startchar = self.utf_reason = 0


class DfaWorkspace:
    """Scratch space kept between DFA matches, used for restarts."""

    def __init__(self, size: int):
        self.size = size
        self.saved = None

    def reset(self) -> None:
        """Forget any partial match, so that a restart is rejected."""
        self.saved = None


class Engine:
    """Operations on one width of the engine under test."""

    name = "engine"
    version = ""
    # Bytes of a compiled pattern that are not code or name table
    code_block_size = 0

    def __init__(self, width: CodeUnitWidth):
        self.width = width

    def compile(self, units, options: int, context):
        """Compile a pattern.

        Returns:
            A CompiledPattern, or a CompileFailure.
        """
        raise NotImplementedError

    def code_free(self, code: CompiledPattern) -> None:
        code.freed = True

    def jit_compile(self, code: CompiledPattern, level: int) -> int:
        raise NotImplementedError

    def match_data_create(self, oveccount: int) -> MatchData:
        return MatchData(allocated=max(oveccount, 1))

    def match(self, code: CompiledPattern, subject, length: int,
              start_offset: int, options: int, match_data: MatchData,
              context) -> int:
        """Match once.

        Returns:
            One more than the highest capture set, zero if the ovector is
            too small, or a negative error code.
        """
        raise NotImplementedError

    def dfa_match(self, code: CompiledPattern, subject, length: int,
                  start_offset: int, options: int, match_data: MatchData,
                  context, workspace: DfaWorkspace) -> int:
        """Find all the matches that start at the first matching position.

        Returns:
            The number of matches, longest first in the ovector, zero if the
            ovector is too small, or a negative error code.
        """
        raise NotImplementedError

    def pattern_info(self, code: CompiledPattern, what: int) -> Tuple[int, object]:
        """Return (status, value) for an introspection request."""
        raise NotImplementedError

    def get_error_message(self, code: int) -> str:
        raise NotImplementedError

    def substring_copy_bynumber(self, match_data: MatchData, number: int,
                                size: int) -> Tuple[int, object]:
        raise NotImplementedError

    def substring_copy_byname(self, match_data: MatchData, name,
                              size: int) -> Tuple[int, object]:
        raise NotImplementedError

    def substring_get_bynumber(self, match_data: MatchData,
                               number: int) -> Tuple[int, object]:
        raise NotImplementedError

    def substring_get_byname(self, match_data: MatchData,
                             name) -> Tuple[int, object]:
        raise NotImplementedError

    def substring_list_get(self, match_data: MatchData):
        """Return (status, strings, lengths); strings ends with None."""
        raise NotImplementedError

    def print_internal(self, code: CompiledPattern, full: bool, sink) -> None:
        raise NotImplementedError
