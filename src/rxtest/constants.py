"""
Option, control and status constants.

The option words mirror the layout of the engine's compile and match option
words. Control bits belong to the harness itself; many of them may be set
either on a pattern line or on a data line, so they are all distinct.
"""

from enum import IntEnum, IntFlag, auto


class CompileOption(IntFlag):
    """Bits in a compile options word."""

    ALLOW_EMPTY_CLASS = 0x00000001
    ALT_BSUX = 0x00000002
    AUTO_CALLOUT = 0x00000004
    CASELESS = 0x00000008
    DOLLAR_ENDONLY = 0x00000010
    DOTALL = 0x00000020
    DUPNAMES = 0x00000040
    EXTENDED = 0x00000080
    FIRSTLINE = 0x00000100
    MATCH_UNSET_BACKREF = 0x00000200
    MULTILINE = 0x00000400
    NEVER_UCP = 0x00000800
    NEVER_UTF = 0x00001000
    NO_AUTO_CAPTURE = 0x00002000
    NO_AUTO_POSSESS = 0x00004000
    NO_START_OPTIMIZE = 0x00010000
    UCP = 0x00020000
    UNGREEDY = 0x00040000
    UTF = 0x00080000
    NO_UTF_CHECK = 0x40000000
    ANCHORED = 0x80000000


class MatchOption(IntFlag):
    """Bits in a match options word."""

    NOTBOL = 0x00000001
    NOTEOL = 0x00000002
    NOTEMPTY = 0x00000004
    NOTEMPTY_ATSTART = 0x00000008
    PARTIAL_SOFT = 0x00000010
    PARTIAL_HARD = 0x00000020
    DFA_RESTART = 0x00000040
    DFA_SHORTEST = 0x00000080
    NO_START_OPTIMIZE = 0x00010000
    NO_UTF_CHECK = 0x40000000
    ANCHORED = 0x80000000


class Control(IntFlag):
    """Harness control bits."""

    AFTERTEXT = 0x00000001
    ALLAFTERTEXT = 0x00000002
    ALLCAPTURES = 0x00000004
    ALTGLOBAL = 0x00000008
    BYTECODE = 0x00000010
    CALLOUT_CAPTURE = 0x00000020
    CALLOUT_NONE = 0x00000040
    DFA = 0x00000080
    FLIPBYTES = 0x00000100
    FULLBYTECODE = 0x00000200
    GETALL = 0x00000400
    GLOBAL = 0x00000800
    INFO = 0x00001000
    JITVERIFY = 0x00002000
    LIMITS = 0x00004000
    MARK = 0x00008000
    MEMORY = 0x00010000
    PERLCOMPAT = 0x00020000
    POSIX = 0x00040000


CTL_DEBUG = Control.FULLBYTECODE | Control.INFO   # For setting
CTL_ANYINFO = CTL_DEBUG | Control.BYTECODE        # For testing
CTL_ANYGLOB = Control.ALTGLOBAL | Control.GLOBAL

# Controls that may be set on either a pattern or a data line.
CTL_ALLPD = (Control.AFTERTEXT | Control.ALLAFTERTEXT | Control.ALLCAPTURES |
             Control.ALTGLOBAL | Control.GLOBAL | Control.JITVERIFY |
             Control.MARK | Control.MEMORY)

POSIX_SUPPORTED_COMPILE_OPTIONS = (
    CompileOption.CASELESS | CompileOption.DOTALL | CompileOption.MULTILINE |
    CompileOption.NO_AUTO_CAPTURE | CompileOption.UCP | CompileOption.UTF |
    CompileOption.UNGREEDY)

POSIX_SUPPORTED_COMPILE_CONTROLS = (
    Control.AFTERTEXT | Control.ALLAFTERTEXT | Control.POSIX)

POSIX_SUPPORTED_MATCH_OPTIONS = (
    MatchOption.NOTBOL | MatchOption.NOTEMPTY | MatchOption.NOTEOL)

POSIX_SUPPORTED_MATCH_CONTROLS = 0


class Newline(IntEnum):
    """Newline conventions, in the order of their names."""

    DEFAULT = 0
    CR = 1
    LF = 2
    CRLF = 3
    ANY = 4
    ANYCRLF = 5


NEWLINE_NAMES = tuple(nl.name for nl in Newline)


class Bsr(IntEnum):
    """What \\R matches."""

    DEFAULT = 0
    UNICODE = 1
    ANYCRLF = 2


class PatternFlag(IntFlag):
    """Internal flags kept in a compiled pattern."""

    FIRSTCASELESS = 0x0001
    LASTCASELESS = 0x0002


class PatternInfo(IntEnum):
    """Request codes for pattern introspection."""

    BACKREFMAX = auto()
    BSR_CONVENTION = auto()
    CAPTURECOUNT = auto()
    COMPILE_OPTIONS = auto()
    FIRSTBITMAP = auto()
    FIRSTCODETYPE = auto()
    FIRSTCODEUNIT = auto()
    HASCRORLF = auto()
    JCHANGED = auto()
    JITSIZE = auto()
    LASTCODETYPE = auto()
    LASTCODEUNIT = auto()
    MATCH_EMPTY = auto()
    MATCH_LIMIT = auto()
    MAXLOOKBEHIND = auto()
    MINLENGTH = auto()
    NAMECOUNT = auto()
    NAMEENTRYSIZE = auto()
    NAMETABLE = auto()
    NEWLINE_CONVENTION = auto()
    PATTERN_OPTIONS = auto()
    RECURSION_LIMIT = auto()
    SIZE = auto()


# Negative status codes returned by matching and introspection calls.
ERROR_NOMATCH = -1
ERROR_PARTIAL = -2
ERROR_BADUTF = -3
ERROR_BADDATA = -29
ERROR_BADMODE = -32
ERROR_BADOFFSET = -33
ERROR_BADOPTION = -34
ERROR_BADUTF_OFFSET = -36
ERROR_DFA_BADRESTART = -38
ERROR_DFA_WSSIZE = -43
ERROR_MATCHLIMIT = -47
ERROR_NOMEMORY = -48
ERROR_NOSUBSTRING = -49
ERROR_NOUNIQUESUBSTRING = -50
ERROR_NULL = -51
ERROR_UNAVAILABLE = -54
ERROR_UNSET = -55

# Positive codes reported by a failed compile.
COMPILE_ERROR_BACKSLASH_AT_END = 101
COMPILE_ERROR_BAD_ESCAPE = 103
COMPILE_ERROR_QUANTIFIER_ORDER = 104
COMPILE_ERROR_QUANTIFIER_TOO_BIG = 105
COMPILE_ERROR_MISSING_SQUARE_BRACKET = 106
COMPILE_ERROR_CLASS_RANGE_ORDER = 108
COMPILE_ERROR_QUANTIFIER_INVALID = 109
COMPILE_ERROR_UNRECOGNIZED_AFTER_QUERY = 112
COMPILE_ERROR_MISSING_CLOSING_PARENTHESIS = 114
COMPILE_ERROR_BAD_SUBPATTERN_REFERENCE = 115
COMPILE_ERROR_PARENTHESES_NEST_TOO_DEEP = 119
COMPILE_ERROR_UNMATCHED_CLOSING_PARENTHESIS = 122
COMPILE_ERROR_CHARACTER_VALUE_TOO_LARGE = 134
COMPILE_ERROR_DUPLICATE_SUBPATTERN_NAME = 143
COMPILE_ERROR_SUBPATTERN_NAME_EXPECTED = 162
COMPILE_ERROR_UTF_IS_DISABLED = 174
COMPILE_ERROR_UCP_IS_DISABLED = 175
COMPILE_ERROR_BAD_UTF_STRING = 176
COMPILE_ERROR_PATTERN_NOT_SUPPORTED = 190
COMPILE_ERROR_OPTION_NOT_SUPPORTED = 199

ERROR_MESSAGES = {
    ERROR_NOMATCH: "no match",
    ERROR_PARTIAL: "partial match",
    ERROR_BADUTF: "UTF string is invalid",
    ERROR_BADDATA: "bad data value",
    ERROR_BADMODE: "pattern compiled in wrong mode: 8/16/32-bit error",
    ERROR_BADOFFSET: "bad offset value",
    ERROR_BADOPTION: "bad option value",
    ERROR_BADUTF_OFFSET: "invalid UTF string offset",
    ERROR_DFA_BADRESTART: "invalid data in workspace for DFA restart",
    ERROR_DFA_WSSIZE: "workspace size exceeded in DFA matching",
    ERROR_MATCHLIMIT: "match limit exceeded",
    ERROR_NOMEMORY: "no more memory",
    ERROR_NOSUBSTRING: "unknown or unset substring",
    ERROR_NOUNIQUESUBSTRING: "non-unique substring name",
    ERROR_NULL: "NULL argument passed",
    ERROR_UNAVAILABLE: "requested value is not available",
    ERROR_UNSET: "requested value is not set",
    COMPILE_ERROR_BACKSLASH_AT_END: "\\ at end of pattern",
    COMPILE_ERROR_BAD_ESCAPE: "unrecognized character follows \\",
    COMPILE_ERROR_QUANTIFIER_ORDER: "numbers out of order in {} quantifier",
    COMPILE_ERROR_QUANTIFIER_TOO_BIG: "number too big in {} quantifier",
    COMPILE_ERROR_MISSING_SQUARE_BRACKET:
        "missing terminating ] for character class",
    COMPILE_ERROR_CLASS_RANGE_ORDER: "range out of order in character class",
    COMPILE_ERROR_QUANTIFIER_INVALID:
        "quantifier does not follow a repeatable item",
    COMPILE_ERROR_UNRECOGNIZED_AFTER_QUERY:
        "unrecognized character after (? or (?-",
    COMPILE_ERROR_MISSING_CLOSING_PARENTHESIS: "missing closing parenthesis",
    COMPILE_ERROR_BAD_SUBPATTERN_REFERENCE:
        "reference to non-existent subpattern",
    COMPILE_ERROR_PARENTHESES_NEST_TOO_DEEP: "parentheses are too deeply nested",
    COMPILE_ERROR_UNMATCHED_CLOSING_PARENTHESIS: "unmatched closing parenthesis",
    COMPILE_ERROR_CHARACTER_VALUE_TOO_LARGE:
        "character code point value in \\x{} or \\o{} is too large",
    COMPILE_ERROR_DUPLICATE_SUBPATTERN_NAME:
        "two named subpatterns have the same name (PCRE2_DUPNAMES not set)",
    COMPILE_ERROR_SUBPATTERN_NAME_EXPECTED: "subpattern name expected",
    COMPILE_ERROR_UTF_IS_DISABLED: "using UTF is disabled by the application",
    COMPILE_ERROR_UCP_IS_DISABLED: "using UCP is disabled by the application",
    COMPILE_ERROR_BAD_UTF_STRING: "UTF string in pattern is invalid",
    COMPILE_ERROR_PATTERN_NOT_SUPPORTED: "pattern construct not supported by this engine",
    COMPILE_ERROR_OPTION_NOT_SUPPORTED: "option not supported by this engine",
}

# Reasons attached to ERROR_BADUTF.
UTF_REASON_TRUNCATED = 1
UTF_REASON_BAD_CONTINUATION = 2
UTF_REASON_OVERLONG = 3
UTF_REASON_TOO_LARGE = 4
UTF_REASON_SURROGATE = 5
UTF_REASON_ISOLATED_BYTE = 6
UTF_REASON_BAD_LEAD_BYTE = 7
UTF_REASON_MISSING_LOW_SURROGATE = 8
UTF_REASON_ISOLATED_LOW_SURROGATE = 9

# Offset vector slots that were not set by a match.
UNSET = -1

DEFAULT_OVECCOUNT = 15
DFA_WS_DIMENSION = 1000
LOOPREPEAT = 500000
COPY_BUFFER_UNITS = 256
MAXCPYGET = 10
LENCPYGET = 64
LOCALE_SIZE = 32
SAVE_SIZE = 64
