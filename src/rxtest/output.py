"""
The output stream and the helpers that list options and controls.

Output is binary. Echoed input lines are written back byte for byte, and
rendered text only ever contains characters below 256, which are written as
single bytes.
"""

from typing import BinaryIO, Iterable, Tuple

from .constants import CompileOption as CO
from .constants import Control as CTL
from .constants import MatchOption as MO


class Output:
    """Write-side of a test run."""

    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def write(self, text: str) -> None:
        self.stream.write(text.encode("latin-1", errors="backslashreplace"))

    def writeline(self, text: str = "") -> None:
        self.write(text + "\n")

    def write_bytes(self, data: bytes) -> None:
        self.stream.write(data)

    def flush(self) -> None:
        self.stream.flush()


COMPILE_OPTION_NAMES: Tuple[Tuple[int, str], ...] = (
    (CO.ANCHORED, "anchored"),
    (CO.CASELESS, "caseless"),
    (CO.EXTENDED, "extended"),
    (CO.MULTILINE, "multiline"),
    (CO.FIRSTLINE, "firstline"),
    (CO.DOTALL, "dotall"),
    (CO.DOLLAR_ENDONLY, "dollar_endonly"),
    (CO.UNGREEDY, "ungreedy"),
    (CO.NO_AUTO_CAPTURE, "no_auto_capture"),
    (CO.NO_AUTO_POSSESS, "no_auto_possessify"),
    (CO.UTF, "utf"),
    (CO.UCP, "ucp"),
    (CO.NO_UTF_CHECK, "no_utf_check"),
    (CO.NO_START_OPTIMIZE, "no_start_optimize"),
    (CO.DUPNAMES, "dupnames"),
    (CO.ALT_BSUX, "alt_bsux"),
    (CO.ALLOW_EMPTY_CLASS, "allow_empty_class"),
    (CO.AUTO_CALLOUT, "auto_callout"),
    (CO.MATCH_UNSET_BACKREF, "match_unset_backref"),
    (CO.NEVER_UCP, "never_ucp"),
    (CO.NEVER_UTF, "never_utf"),
)

COMPILE_CONTROL_NAMES: Tuple[Tuple[int, str], ...] = (
    (CTL.AFTERTEXT, "aftertext"),
    (CTL.ALLAFTERTEXT, "allaftertext"),
    (CTL.ALLCAPTURES, "allcaptures"),
    (CTL.ALTGLOBAL, "altglobal"),
    (CTL.BYTECODE, "bytecode"),
    (CTL.FLIPBYTES, "flipbytes"),
    (CTL.FULLBYTECODE, "fullbytecode"),
    (CTL.GLOBAL, "global"),
    (CTL.INFO, "info"),
    (CTL.JITVERIFY, "jitverify"),
    (CTL.MARK, "mark"),
    (CTL.PERLCOMPAT, "perlcompat"),
    (CTL.POSIX, "posix"),
)

MATCH_CONTROL_NAMES: Tuple[Tuple[int, str], ...] = (
    (CTL.AFTERTEXT, "aftertext"),
    (CTL.ALLAFTERTEXT, "allaftertext"),
    (CTL.ALLCAPTURES, "allcaptures"),
    (CTL.ALTGLOBAL, "altglobal"),
    (CTL.CALLOUT_CAPTURE, "callout_capture"),
    (CTL.CALLOUT_NONE, "callout_none"),
    (CTL.DFA, "dfa"),
    (CTL.GETALL, "getall"),
    (CTL.GLOBAL, "global"),
    (CTL.JITVERIFY, "jitverify"),
    (CTL.LIMITS, "limits"),
    (CTL.MARK, "mark"),
    (CTL.MEMORY, "memory"),
)

MATCH_OPTION_NAMES: Tuple[Tuple[int, str], ...] = (
    (MO.ANCHORED, "anchored"),
    (MO.DFA_RESTART, "dfa_restart"),
    (MO.DFA_SHORTEST, "dfa_shortest"),
    (MO.NO_START_OPTIMIZE, "no_start_optimize"),
    (MO.NO_UTF_CHECK, "no_utf_check"),
    (MO.NOTBOL, "notbol"),
    (MO.NOTEMPTY, "notempty"),
    (MO.NOTEMPTY_ATSTART, "notempty_atstart"),
    (MO.NOTEOL, "noteol"),
    (MO.PARTIAL_HARD, "partial_hard"),
    (MO.PARTIAL_SOFT, "partial_soft"),
)


def list_bits(word: int, names: Iterable[Tuple[int, str]]) -> str:
    """Names of the bits set in word, each preceded by a space."""
    return "".join(f" {name}" for bit, name in names if word & bit)


def compile_options_text(options: int) -> str:
    return list_bits(options, COMPILE_OPTION_NAMES)


def compile_controls_text(controls: int) -> str:
    return list_bits(controls, COMPILE_CONTROL_NAMES)


def match_controls_text(controls: int) -> str:
    return list_bits(controls, MATCH_CONTROL_NAMES)


def match_options_text(options: int) -> str:
    return list_bits(options, MATCH_OPTION_NAMES)
