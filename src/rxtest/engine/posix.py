"""
A POSIX style wrapper (regcomp, regexec, regerror, regfree) over the 8-bit
engine, as used by the posix control.
"""

import logging
from enum import IntEnum, IntFlag
from typing import List, Optional, Tuple

from ..codec import WIDTH8
from ..constants import (
    COMPILE_ERROR_BACKSLASH_AT_END,
    COMPILE_ERROR_BAD_ESCAPE,
    COMPILE_ERROR_BAD_SUBPATTERN_REFERENCE,
    COMPILE_ERROR_CLASS_RANGE_ORDER,
    COMPILE_ERROR_MISSING_CLOSING_PARENTHESIS,
    COMPILE_ERROR_MISSING_SQUARE_BRACKET,
    COMPILE_ERROR_QUANTIFIER_INVALID,
    COMPILE_ERROR_QUANTIFIER_ORDER,
    COMPILE_ERROR_QUANTIFIER_TOO_BIG,
    COMPILE_ERROR_UNMATCHED_CLOSING_PARENTHESIS,
    CompileOption as CO,
    ERROR_NOMATCH,
    ERROR_PARTIAL,
    MatchOption as MO,
    UNSET,
)
from .backend import RegexEngine
from .base import CompileFailure

logger = logging.getLogger(__name__)


class RegFlag(IntFlag):
    """Flags for regcomp and regexec."""

    ICASE = 0x0001
    NEWLINE = 0x0002
    NOTBOL = 0x0004
    NOTEOL = 0x0008
    DOTALL = 0x0010
    NOSUB = 0x0020
    UTF = 0x0040
    STARTEND = 0x0080
    NOTEMPTY = 0x0100
    UNGREEDY = 0x0200
    UCP = 0x0400


class RegError(IntEnum):
    ASSERT = 1
    BADBR = 2
    BADPAT = 3
    BADRPT = 4
    EBRACE = 5
    EBRACK = 6
    ECOLLATE = 7
    ECTYPE = 8
    EESCAPE = 9
    EMPTY = 10
    EPAREN = 11
    ERANGE = 12
    ESIZE = 13
    ESPACE = 14
    ESUBREG = 15
    INVARG = 16
    NOMATCH = 17


REG_MESSAGES = {
    0: "",
    RegError.ASSERT: "internal error",
    RegError.BADBR: "invalid repeat counts in {}",
    RegError.BADPAT: "pattern error",
    RegError.BADRPT: "? * + invalid",
    RegError.EBRACE: "unbalanced {}",
    RegError.EBRACK: "unbalanced []",
    RegError.ECOLLATE: "collation error - not supported",
    RegError.ECTYPE: "bad class",
    RegError.EESCAPE: "bad escape sequence",
    RegError.EMPTY: "empty expression",
    RegError.EPAREN: "unbalanced ()",
    RegError.ERANGE: "bad range inside []",
    RegError.ESIZE: "expression too big",
    RegError.ESPACE: "failed to get memory",
    RegError.ESUBREG: "bad back reference",
    RegError.INVARG: "bad argument",
    RegError.NOMATCH: "match failed",
}

# Compile errors with a specific POSIX code; the rest are BADPAT
COMPILE_ERROR_CODES = {
    COMPILE_ERROR_BACKSLASH_AT_END: RegError.EESCAPE,
    COMPILE_ERROR_BAD_ESCAPE: RegError.EESCAPE,
    COMPILE_ERROR_QUANTIFIER_ORDER: RegError.BADBR,
    COMPILE_ERROR_QUANTIFIER_TOO_BIG: RegError.BADBR,
    COMPILE_ERROR_MISSING_SQUARE_BRACKET: RegError.EBRACK,
    COMPILE_ERROR_CLASS_RANGE_ORDER: RegError.ERANGE,
    COMPILE_ERROR_QUANTIFIER_INVALID: RegError.BADRPT,
    COMPILE_ERROR_MISSING_CLOSING_PARENTHESIS: RegError.EPAREN,
    COMPILE_ERROR_UNMATCHED_CLOSING_PARENTHESIS: RegError.EPAREN,
    COMPILE_ERROR_BAD_SUBPATTERN_REFERENCE: RegError.ESUBREG,
}

CFLAG_OPTIONS = (
    (RegFlag.ICASE, CO.CASELESS),
    (RegFlag.NEWLINE, CO.MULTILINE),
    (RegFlag.DOTALL, CO.DOTALL),
    (RegFlag.NOSUB, CO.NO_AUTO_CAPTURE),
    (RegFlag.UTF, CO.UTF),
    (RegFlag.UNGREEDY, CO.UNGREEDY),
    (RegFlag.UCP, CO.UCP),
)


class PosixRegex:
    """One compiled POSIX pattern.

    Match offsets are relative to the string given to regexec(). NOTBOL and
    NOTEOL are accepted and have no effect.
    """

    def __init__(self, engine: Optional[RegexEngine] = None):
        self.engine = engine or RegexEngine(WIDTH8)
        self.code = None
        self.nosub = False
        self.re_nsub = 0
        self.erroffset: Optional[int] = None

    def regcomp(self, pattern: bytes, cflags: int, context) -> int:
        options = 0
        for flag, option in CFLAG_OPTIONS:
            if cflags & flag:
                options |= option
        self.nosub = bool(cflags & RegFlag.NOSUB)
        units = WIDTH8.new_units(pattern)
        result = self.engine.compile(units, options, context)
        if isinstance(result, CompileFailure):
            self.erroffset = result.offset
            logger.debug("regcomp failed with error %d", result.code)
            return COMPILE_ERROR_CODES.get(result.code, RegError.BADPAT)
        self.erroffset = None
        self.code = result
        self.re_nsub = result.capture_count
        return 0

    def regexec(self, subject: bytes, nmatch: int,
                eflags: int) -> Tuple[int, List[Tuple[int, int]]]:
        """Match, returning (rc, pmatch) with nmatch (start, end) pairs."""
        if self.code is None:
            return RegError.INVARG, []
        if self.nosub:
            nmatch = 0
        options = MO.NOTEMPTY if eflags & RegFlag.NOTEMPTY else 0
        match_data = self.engine.match_data_create(max(nmatch, 1))
        units = WIDTH8.new_units(subject)
        rc = self.engine.match(self.code, units, len(units), 0, options,
                               match_data, None)
        if rc < 0:
            if rc in (ERROR_NOMATCH, ERROR_PARTIAL):
                return RegError.NOMATCH, []
            return RegError.INVARG, []
        pmatch = []
        for i in range(nmatch):
            start = match_data.ovector[2 * i]
            if start == UNSET:
                pmatch.append((-1, -1))
            else:
                pmatch.append((start, match_data.ovector[2 * i + 1]))
        return 0, pmatch

    def regerror(self, errcode: int) -> str:
        message = REG_MESSAGES.get(errcode, "unknown error code")
        if self.erroffset is None:
            return message
        return f"{message} at offset {self.erroffset:<6d}"

    def regfree(self) -> None:
        if self.code is not None:
            self.engine.code_free(self.code)
        self.code = None
