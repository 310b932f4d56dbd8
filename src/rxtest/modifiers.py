"""
Modifier lists on pattern lines, data lines and #pattern/#data commands.

A modifier list is a comma-separated sequence of items. Each item is a full
modifier name, optionally preceded by '-' (for on/off modifiers) or followed
by '=value'. The very first item may instead be a run of single-letter
abbreviations such as "gi".
"""

import logging
from dataclasses import dataclass, field, replace
from enum import IntEnum, auto
from functools import lru_cache
from typing import List, NamedTuple, Optional

from .constants import (
    Bsr,
    CompileOption,
    Control,
    CTL_DEBUG,
    DEFAULT_OVECCOUNT,
    LENCPYGET,
    LOCALE_SIZE,
    MatchOption,
    MAXCPYGET,
    NEWLINE_NAMES,
    Newline,
    SAVE_SIZE,
)
from .errors import ModifierError

logger = logging.getLogger(__name__)

DEFAULT_MATCH_LIMIT = 10000000
DEFAULT_RECURSION_LIMIT = 10000000
DEFAULT_PARENS_NEST_LIMIT = 250


class Which(IntEnum):
    """Where a modifier may be used."""

    CTC = auto()  # Compile context
    CTM = auto()  # Match context
    PAT = auto()  # Pattern line
    DAT = auto()  # Data line
    PD = auto()   # Pattern or data line


class ModType(IntEnum):
    """What kind of value a modifier sets."""

    CTL = auto()  # Control bit
    BSR = auto()  # BSR convention
    IN2 = auto()  # One or two integers
    INT = auto()  # Integer
    NL = auto()   # Newline convention
    NN = auto()   # Number or name, may occur several times
    OPT = auto()  # Option bit
    STR = auto()  # String


class Ctx(IntEnum):
    """Which set of records a modifier list is being applied to."""

    PAT = auto()     # Active pattern context
    DEFPAT = auto()  # Default pattern context
    DAT = auto()     # Active data (match) context
    DEFDAT = auto()  # Default data (match) context
    DEFANY = auto()  # Any default context, depending on the modifier


@dataclass
class PatternControl:
    """Settings taken from a pattern line."""

    options: int = 0
    control: int = 0
    jit: int = 0
    stackguard_test: int = 0
    tables_id: int = 0
    locale: str = ""
    save: str = ""

    def copy(self) -> "PatternControl":
        return replace(self)


@dataclass
class DataControl:
    """Settings taken from a data line."""

    options: int = 0
    control: int = 0
    cfail: List[int] = field(default_factory=lambda: [0, 0])
    copy_numbers: List[int] = field(default_factory=list)
    get_numbers: List[int] = field(default_factory=list)
    jitstack: int = 0
    oveccount: int = DEFAULT_OVECCOUNT
    offset: int = 0
    copy_names: List[str] = field(default_factory=list)
    get_names: List[str] = field(default_factory=list)

    def copy(self) -> "DataControl":
        return replace(
            self,
            cfail=list(self.cfail),
            copy_numbers=list(self.copy_numbers),
            get_numbers=list(self.get_numbers),
            copy_names=list(self.copy_names),
            get_names=list(self.get_names),
        )


@dataclass
class CompileContext:
    bsr_convention: int = Bsr.DEFAULT
    newline_convention: int = Newline.DEFAULT
    parens_nest_limit: int = DEFAULT_PARENS_NEST_LIMIT
    # Name of the locale whose character tables are in use, if any
    character_tables: str = ""

    def copy(self) -> "CompileContext":
        return replace(self)


@dataclass
class MatchContext:
    match_limit: int = DEFAULT_MATCH_LIMIT
    recursion_limit: int = DEFAULT_RECURSION_LIMIT

    def copy(self) -> "MatchContext":
        return replace(self)


@dataclass
class ContextSet:
    """The active and default compile and match contexts."""

    pattern: CompileContext = field(default_factory=CompileContext)
    default_pattern: CompileContext = field(default_factory=CompileContext)
    match: MatchContext = field(default_factory=MatchContext)
    default_match: MatchContext = field(default_factory=MatchContext)


class Modifier(NamedTuple):
    name: str
    which: Which
    type: ModType
    value: int
    field: str


# Must stay in collating order: it is searched by binary chop.
MODIFIERS = (
    Modifier("aftertext", Which.PD, ModType.CTL, Control.AFTERTEXT, "control"),
    Modifier("allaftertext", Which.PD, ModType.CTL, Control.ALLAFTERTEXT, "control"),
    Modifier("allcaptures", Which.PD, ModType.CTL, Control.ALLCAPTURES, "control"),
    Modifier("allow_empty_class", Which.PAT, ModType.OPT, CompileOption.ALLOW_EMPTY_CLASS, "options"),
    Modifier("alt_bsux", Which.PAT, ModType.OPT, CompileOption.ALT_BSUX, "options"),
    Modifier("altglobal", Which.PD, ModType.CTL, Control.ALTGLOBAL, "control"),
    Modifier("anchored", Which.PD, ModType.OPT, CompileOption.ANCHORED, "options"),
    Modifier("auto_callout", Which.PAT, ModType.OPT, CompileOption.AUTO_CALLOUT, "options"),
    Modifier("bsr", Which.CTC, ModType.BSR, 0, "bsr_convention"),
    Modifier("bytecode", Which.PAT, ModType.CTL, Control.BYTECODE, "control"),
    Modifier("callout_capture", Which.DAT, ModType.CTL, Control.CALLOUT_CAPTURE, "control"),
    Modifier("callout_fail", Which.DAT, ModType.IN2, 0, "cfail"),
    Modifier("callout_none", Which.DAT, ModType.CTL, Control.CALLOUT_NONE, "control"),
    Modifier("caseless", Which.PAT, ModType.OPT, CompileOption.CASELESS, "options"),
    Modifier("copy", Which.DAT, ModType.NN, 0, "copy"),
    Modifier("debug", Which.PAT, ModType.CTL, CTL_DEBUG, "control"),
    Modifier("dfa", Which.DAT, ModType.CTL, Control.DFA, "control"),
    Modifier("dfa_restart", Which.DAT, ModType.OPT, MatchOption.DFA_RESTART, "options"),
    Modifier("dfa_shortest", Which.DAT, ModType.OPT, MatchOption.DFA_SHORTEST, "options"),
    Modifier("dollar_endonly", Which.PAT, ModType.OPT, CompileOption.DOLLAR_ENDONLY, "options"),
    Modifier("dotall", Which.PAT, ModType.OPT, CompileOption.DOTALL, "options"),
    Modifier("dupnames", Which.PAT, ModType.OPT, CompileOption.DUPNAMES, "options"),
    Modifier("extended", Which.PAT, ModType.OPT, CompileOption.EXTENDED, "options"),
    Modifier("firstline", Which.PAT, ModType.OPT, CompileOption.FIRSTLINE, "options"),
    Modifier("flipbytes", Which.PAT, ModType.CTL, Control.FLIPBYTES, "control"),
    Modifier("fullbytecode", Which.PAT, ModType.CTL, Control.FULLBYTECODE, "control"),
    Modifier("get", Which.DAT, ModType.NN, 0, "get"),
    Modifier("getall", Which.DAT, ModType.CTL, Control.GETALL, "control"),
    Modifier("global", Which.PD, ModType.CTL, Control.GLOBAL, "control"),
    Modifier("info", Which.PAT, ModType.CTL, Control.INFO, "control"),
    Modifier("jit", Which.PAT, ModType.INT, 1, "jit"),
    Modifier("jitstack", Which.DAT, ModType.INT, 0, "jitstack"),
    Modifier("jitverify", Which.PD, ModType.CTL, Control.JITVERIFY, "control"),
    Modifier("limits", Which.DAT, ModType.CTL, Control.LIMITS, "control"),
    Modifier("locale", Which.PAT, ModType.STR, LOCALE_SIZE, "locale"),
    Modifier("mark", Which.PD, ModType.CTL, Control.MARK, "control"),
    Modifier("match_limit", Which.CTM, ModType.INT, 0, "match_limit"),
    Modifier("match_unset_backref", Which.PAT, ModType.OPT, CompileOption.MATCH_UNSET_BACKREF, "options"),
    Modifier("memory", Which.PD, ModType.CTL, Control.MEMORY, "control"),
    Modifier("multiline", Which.PAT, ModType.OPT, CompileOption.MULTILINE, "options"),
    Modifier("never_ucp", Which.PAT, ModType.OPT, CompileOption.NEVER_UCP, "options"),
    Modifier("never_utf", Which.PAT, ModType.OPT, CompileOption.NEVER_UTF, "options"),
    Modifier("newline", Which.CTC, ModType.NL, 0, "newline_convention"),
    Modifier("no_auto_capture", Which.PAT, ModType.OPT, CompileOption.NO_AUTO_CAPTURE, "options"),
    Modifier("no_auto_possess", Which.PAT, ModType.OPT, CompileOption.NO_AUTO_POSSESS, "options"),
    Modifier("no_start_optimize", Which.PD, ModType.OPT, CompileOption.NO_START_OPTIMIZE, "options"),
    Modifier("no_utf_check", Which.PD, ModType.OPT, CompileOption.NO_UTF_CHECK, "options"),
    Modifier("notbol", Which.DAT, ModType.OPT, MatchOption.NOTBOL, "options"),
    Modifier("notempty", Which.DAT, ModType.OPT, MatchOption.NOTEMPTY, "options"),
    Modifier("notempty_atstart", Which.DAT, ModType.OPT, MatchOption.NOTEMPTY_ATSTART, "options"),
    Modifier("noteol", Which.DAT, ModType.OPT, MatchOption.NOTEOL, "options"),
    Modifier("offset", Which.DAT, ModType.INT, 0, "offset"),
    Modifier("ovector", Which.DAT, ModType.INT, 0, "oveccount"),
    Modifier("parens_nest_limit", Which.CTC, ModType.INT, 0, "parens_nest_limit"),
    Modifier("partial_hard", Which.DAT, ModType.OPT, MatchOption.PARTIAL_HARD, "options"),
    Modifier("partial_soft", Which.DAT, ModType.OPT, MatchOption.PARTIAL_SOFT, "options"),
    Modifier("perlcompat", Which.PAT, ModType.CTL, Control.PERLCOMPAT, "control"),
    Modifier("posix", Which.PAT, ModType.CTL, Control.POSIX, "control"),
    Modifier("recursion_limit", Which.CTM, ModType.INT, 0, "recursion_limit"),
    Modifier("save", Which.PAT, ModType.STR, SAVE_SIZE, "save"),
    Modifier("stackguard", Which.PAT, ModType.INT, 0, "stackguard_test"),
    Modifier("tables", Which.PAT, ModType.INT, 0, "tables_id"),
    Modifier("ucp", Which.PAT, ModType.OPT, CompileOption.UCP, "options"),
    Modifier("ungreedy", Which.PAT, ModType.OPT, CompileOption.UNGREEDY, "options"),
    Modifier("utf", Which.PAT, ModType.OPT, CompileOption.UTF, "options"),
)

# Single and doubled letter abbreviations. Searched serially.
ABBREVIATIONS = {
    "B": "bytecode",
    "BB": "fullbytecode",
    "D": "debug",
    "I": "info",
    "P": "partial_soft",
    "PP": "partial_hard",
    "g": "global",
    "gg": "altglobal",
    "i": "caseless",
    "m": "multiline",
    "s": "dotall",
    "x": "extended",
}


def scan_modifiers(name: str) -> int:
    """Find a full modifier name by binary chop.

    Returns:
        The index in MODIFIERS, or -1 if the name is not there.
    """
    bot = 0
    top = len(MODIFIERS)
    while top > bot:
        mid = (bot + top) // 2
        entry = MODIFIERS[mid].name
        if name == entry:
            return mid
        if name > entry:
            bot = mid + 1
        else:
            top = mid
    return -1


@lru_cache(maxsize=None)
def abbreviation_index(key: str) -> int:
    """Index of the full modifier for an abbreviation, or -1."""
    fullname = ABBREVIATIONS.get(key)
    if fullname is None:
        return -1
    index = scan_modifiers(fullname)
    if index < 0:
        raise ModifierError(
            f"** Internal error: single-character equivalent modifier "
            f"'{fullname}' not found")
    return index


def _target(modifier: Modifier, ctx: Ctx, contexts: ContextSet,
            pctl: Optional[PatternControl], dctl: Optional[DataControl],
            letter: str = ""):
    """Find the record a modifier updates, checking it is allowed here."""
    target = None
    if modifier.which == Which.CTC:
        if ctx in (Ctx.DEFPAT, Ctx.DEFANY):
            target = contexts.default_pattern
        elif ctx == Ctx.PAT:
            target = contexts.pattern
    elif modifier.which == Which.CTM:
        if ctx in (Ctx.DEFDAT, Ctx.DEFANY):
            target = contexts.default_match
        elif ctx == Ctx.DAT:
            target = contexts.match
    elif modifier.which == Which.DAT:
        target = dctl
    elif modifier.which == Which.PAT:
        target = pctl
    elif modifier.which == Which.PD:
        target = dctl if dctl is not None else pctl

    if target is None:
        if letter:
            raise ModifierError(f"** /{letter} is not valid here")
        raise ModifierError(f"** '{modifier.name}' is not valid here")
    return target


def _is_item_end(text: str, pos: int) -> bool:
    return pos >= len(text) or text[pos] == "," or text[pos].isspace()


def _leading_number(text: str, pos: int):
    """Parse a decimal number; return (value, position after it)."""
    end = pos
    while end < len(text) and text[end].isdigit():
        end += 1
    return int(text[pos:end]), end


def _apply_abbreviations(text: str, start: int, end: int, item: str,
                         off: bool, ctx: Ctx, contexts: ContextSet,
                         pctl: Optional[PatternControl],
                         dctl: Optional[DataControl]) -> None:
    pos = start
    while pos < end:
        letter = text[pos]
        key = letter
        if pos + 1 < end and text[pos + 1] == letter:
            key = letter * 2
        index = abbreviation_index(key)
        if index < 0:
            raise ModifierError(
                f"** Unrecognized modifier '{letter}' in '{item}'")
        modifier = MODIFIERS[index]
        target = _target(modifier, ctx, contexts, pctl, dctl, letter)
        value = getattr(target, modifier.field)
        if off:
            setattr(target, modifier.field, value & ~int(modifier.value))
        else:
            setattr(target, modifier.field, value | int(modifier.value))
        pos += len(key)


def apply_modifiers(text: str, ctx: Ctx, contexts: ContextSet,
                    pctl: Optional[PatternControl] = None,
                    dctl: Optional[DataControl] = None) -> None:
    """Decode a modifier list into the given records.

    At most one of pctl and dctl is relevant to any call. Records are
    updated in place as items are decoded, so a failure part way through
    leaves the earlier items applied.

    Args:
        text: The modifier list.
        ctx: Which contexts compile and match context modifiers update.
        contexts: The active and default contexts.
        pctl: Pattern control record, when pattern modifiers are allowed.
        dctl: Data control record, when data modifiers are allowed.

    Raises:
        ModifierError: With the diagnostic line to show.
    """
    first = True
    pos = 0
    length = len(text)
    limit = len(text.rstrip())

    while True:
        while pos < length and text[pos].isspace():
            pos += 1
        if pos < length and text[pos] == ",":
            first = False
        while pos < length and (text[pos].isspace() or text[pos] == ","):
            pos += 1
        if pos >= length:
            break

        end = pos
        while not _is_item_end(text, end):
            end += 1

        off = False
        if text[pos] == "-":
            off = True
            pos += 1

        name_end = pos
        while name_end < end and text[name_end] != "=":
            name_end += 1
        index = scan_modifiers(text[pos:name_end])

        if index < 0:
            if not first:
                message = f"** Unrecognized modifier '{text[pos:end]}'"
                if end - pos == 1:
                    message += "\n** Single-character modifiers must come first"
                raise ModifierError(message)
            # A run of letters only ends at a comma, so white space in it
            # is reported
            run_end = pos
            while run_end < limit and text[run_end] not in ",\n":
                run_end += 1
            _apply_abbreviations(text, pos, run_end, text[pos:end], off, ctx,
                                 contexts, pctl, dctl)
            pos = run_end
            continue

        modifier = MODIFIERS[index]
        vpos = name_end
        if modifier.type not in (ModType.CTL, ModType.OPT):
            if vpos >= end or text[vpos] != "=":
                raise ModifierError(f"** '=' expected after '{modifier.name}'")
            vpos += 1
            if off:
                raise ModifierError(f"** '-' is not valid for '{modifier.name}'")
        elif vpos != end:
            raise ModifierError(f"** Unrecognized modifier '{text[pos:end]}'")

        value_text = text[vpos:end]
        target = _target(modifier, ctx, contexts, pctl, dctl)
        invalid = ModifierError(f"** Invalid value in '{text[pos:end]}'")
        mtype = modifier.type

        if mtype in (ModType.CTL, ModType.OPT):
            current = getattr(target, modifier.field)
            if off:
                setattr(target, modifier.field, current & ~int(modifier.value))
            else:
                setattr(target, modifier.field, current | int(modifier.value))

        elif mtype == ModType.BSR:
            lowered = value_text.lower()
            if lowered == "anycrlf":
                setattr(target, modifier.field, Bsr.ANYCRLF)
            elif lowered == "unicode":
                setattr(target, modifier.field, Bsr.UNICODE)
            else:
                raise invalid
            vpos = end

        elif mtype == ModType.IN2:
            if not value_text[:1].isdigit():
                raise invalid
            first_value, vpos = _leading_number(text, vpos)
            second_value = 0
            if vpos < end and text[vpos] == "/":
                if vpos + 1 < end and text[vpos + 1].isdigit():
                    second_value, vpos = _leading_number(text, vpos + 1)
                else:
                    vpos += 1
            setattr(target, modifier.field, [first_value, second_value])

        elif mtype == ModType.INT:
            if not value_text[:1].isdigit():
                raise invalid
            number, vpos = _leading_number(text, vpos)
            setattr(target, modifier.field, number)

        elif mtype == ModType.NL:
            upper = value_text.upper()
            if upper not in NEWLINE_NAMES:
                raise invalid
            setattr(target, modifier.field, Newline[upper])
            vpos = end

        elif mtype == ModType.NN:
            if value_text[:1].isdigit():
                numbers = getattr(target, modifier.field + "_numbers")
                if len(numbers) >= MAXCPYGET:
                    raise ModifierError(
                        f"** Too many numeric '{modifier.name}' modifiers")
                number, vpos = _leading_number(text, vpos)
                numbers.append(number)
            else:
                names = getattr(target, modifier.field + "_names")
                used = sum(len(name) + 1 for name in names)
                if used + len(value_text) + 1 > LENCPYGET:
                    raise ModifierError(
                        f"** Too many named '{modifier.name}' modifiers")
                names.append(value_text)
                vpos = end

        elif mtype == ModType.STR:
            if len(value_text) >= modifier.value:
                raise invalid
            setattr(target, modifier.field, value_text)
            vpos = end

        if vpos != end:
            raise ModifierError(
                f"** Comma expected after modifier item '{modifier.name}'")

        logger.debug("applied modifier %s%s", "-" if off else "", modifier.name)
        pos = end
