"""
An engine for every code unit width, built on the regex package.

Patterns are rewritten for the regex package by the translator, and the facts
that introspection reports come from the pattern analyser. Subjects are
converted to str (bytes in 8-bit non-UTF mode) together with a map from
character indexes back to code unit offsets, so every offset that crosses the
engine boundary is in code units.
"""

import bisect
import logging
from typing import Dict, List, Optional, Tuple

import regex

from ..codec import MAX_UNICODE, CodeUnitWidth, decode_utf8_scalar, encode_utf8
from ..constants import (
    Bsr,
    COMPILE_ERROR_BACKSLASH_AT_END,
    COMPILE_ERROR_BAD_ESCAPE,
    COMPILE_ERROR_BAD_SUBPATTERN_REFERENCE,
    COMPILE_ERROR_BAD_UTF_STRING,
    COMPILE_ERROR_CHARACTER_VALUE_TOO_LARGE,
    COMPILE_ERROR_CLASS_RANGE_ORDER,
    COMPILE_ERROR_DUPLICATE_SUBPATTERN_NAME,
    COMPILE_ERROR_MISSING_CLOSING_PARENTHESIS,
    COMPILE_ERROR_MISSING_SQUARE_BRACKET,
    COMPILE_ERROR_OPTION_NOT_SUPPORTED,
    COMPILE_ERROR_PARENTHESES_NEST_TOO_DEEP,
    COMPILE_ERROR_PATTERN_NOT_SUPPORTED,
    COMPILE_ERROR_QUANTIFIER_INVALID,
    COMPILE_ERROR_QUANTIFIER_ORDER,
    COMPILE_ERROR_QUANTIFIER_TOO_BIG,
    COMPILE_ERROR_SUBPATTERN_NAME_EXPECTED,
    COMPILE_ERROR_UCP_IS_DISABLED,
    COMPILE_ERROR_UNMATCHED_CLOSING_PARENTHESIS,
    COMPILE_ERROR_UNRECOGNIZED_AFTER_QUERY,
    COMPILE_ERROR_UTF_IS_DISABLED,
    CompileOption as CO,
    ERROR_BADDATA,
    ERROR_BADMODE,
    ERROR_BADOFFSET,
    ERROR_BADOPTION,
    ERROR_BADUTF,
    ERROR_BADUTF_OFFSET,
    ERROR_DFA_BADRESTART,
    ERROR_MESSAGES,
    ERROR_NOMATCH,
    ERROR_NOMEMORY,
    ERROR_NOSUBSTRING,
    ERROR_PARTIAL,
    ERROR_UNAVAILABLE,
    ERROR_UNSET,
    MatchOption as MO,
    Newline,
    PatternFlag,
    PatternInfo,
    UNSET,
    UTF_REASON_BAD_CONTINUATION,
    UTF_REASON_BAD_LEAD_BYTE,
    UTF_REASON_ISOLATED_BYTE,
    UTF_REASON_ISOLATED_LOW_SURROGATE,
    UTF_REASON_MISSING_LOW_SURROGATE,
    UTF_REASON_OVERLONG,
    UTF_REASON_SURROGATE,
    UTF_REASON_TOO_LARGE,
    UTF_REASON_TRUNCATED,
)
from .analysis import PatternAnalysis, analyse, describe
from .base import CompileFailure, CompiledPattern, DfaWorkspace, Engine, MatchData
from .translate import TranslationError, translate

logger = logging.getLogger(__name__)


LEADING_VERB = regex.compile(
    r"\(\*(UTF(8|16|32)?|UCP|CRLF|CR|LF|ANYCRLF|ANY|BSR_ANYCRLF|BSR_UNICODE|"
    r"LIMIT_MATCH=(\d+)|LIMIT_RECURSION=(\d+)|NO_START_OPT|NO_AUTO_POSSESS)\)")

NEWLINE_VERBS = {
    "CR": Newline.CR,
    "LF": Newline.LF,
    "CRLF": Newline.CRLF,
    "ANYCRLF": Newline.ANYCRLF,
    "ANY": Newline.ANY,
}

# Option letters that may start a pattern, and the option bits they set
OPTION_LETTER_BITS = {
    "i": CO.CASELESS,
    "m": CO.MULTILINE,
    "s": CO.DOTALL,
    "x": CO.EXTENDED,
    "J": CO.DUPNAMES,
    "U": CO.UNGREEDY,
    "n": CO.NO_AUTO_CAPTURE,
}

REGEX_LETTER_FLAGS = {
    "i": regex.IGNORECASE,
    "m": regex.MULTILINE,
    "s": regex.DOTALL,
    "x": regex.VERBOSE,
}

UNSUPPORTED_COMPILE_OPTIONS = (
    CO.ALLOW_EMPTY_CLASS | CO.ALT_BSUX | CO.AUTO_CALLOUT | CO.FIRSTLINE |
    CO.MATCH_UNSET_BACKREF)

MATCH_OPTIONS = (
    MO.ANCHORED | MO.NOTEMPTY | MO.NOTEMPTY_ATSTART | MO.PARTIAL_SOFT |
    MO.PARTIAL_HARD | MO.NO_UTF_CHECK | MO.NO_START_OPTIMIZE)

DFA_MATCH_OPTIONS = MATCH_OPTIONS | MO.DFA_RESTART | MO.DFA_SHORTEST

# Fragments of the regex package's error messages, tried in order
COMPILE_ERRORS = (
    ("bad escape (end of pattern)", COMPILE_ERROR_BACKSLASH_AT_END),
    ("bad escape", COMPILE_ERROR_BAD_ESCAPE),
    ("min repeat greater than max repeat", COMPILE_ERROR_QUANTIFIER_ORDER),
    ("repeat count too big", COMPILE_ERROR_QUANTIFIER_TOO_BIG),
    ("unterminated character set", COMPILE_ERROR_MISSING_SQUARE_BRACKET),
    ("bad character range", COMPILE_ERROR_CLASS_RANGE_ORDER),
    ("nothing to repeat", COMPILE_ERROR_QUANTIFIER_INVALID),
    ("multiple repeat", COMPILE_ERROR_QUANTIFIER_INVALID),
    ("unknown extension", COMPILE_ERROR_UNRECOGNIZED_AFTER_QUERY),
    ("unknown flag", COMPILE_ERROR_UNRECOGNIZED_AFTER_QUERY),
    ("missing )", COMPILE_ERROR_MISSING_CLOSING_PARENTHESIS),
    ("unknown group", COMPILE_ERROR_BAD_SUBPATTERN_REFERENCE),
    ("invalid group reference", COMPILE_ERROR_BAD_SUBPATTERN_REFERENCE),
    ("unbalanced parenthesis", COMPILE_ERROR_UNMATCHED_CLOSING_PARENTHESIS),
    ("missing group name", COMPILE_ERROR_SUBPATTERN_NAME_EXPECTED),
    ("bad character in group name", COMPILE_ERROR_SUBPATTERN_NAME_EXPECTED),
)


def compile_error_code(message: str) -> int:
    """Map a regex package error message to a compile error code."""
    for fragment, code in COMPILE_ERRORS:
        if fragment in message:
            return code
    return COMPILE_ERROR_PATTERN_NOT_SUPPORTED


def encode_text(text: str, width: CodeUnitWidth, utf: bool):
    """Code units for a str, such as a group name."""
    if width.bits == 8:
        return width.new_units(text.encode("utf-8" if utf else "latin-1",
                                           errors="replace"))
    units = width.new_units()
    for c in text:
        units.extend(char_units(ord(c), width, utf))
    return units


def char_units(c: int, width: CodeUnitWidth, utf: bool) -> List[int]:
    """The code units that encode one character."""
    if utf and width.bits == 8 and c >= 0x80:
        return list(encode_utf8(c))
    if utf and width.bits == 16 and c >= 0x10000:
        c -= 0x10000
        return [0xd800 | (c >> 10), 0xdc00 | (c & 0x3ff)]
    return [c]


def find_bad_utf(width: CodeUnitWidth, units, length: int):
    """Check a subject is valid UTF.

    Returns:
        None, or (offset, reason) for the first bad character.
    """
    pos = 0
    if width.bits == 8:
        while pos < length:
            c = units[pos]
            if c < 0x80:
                pos += 1
                continue
            if c < 0xc0:
                return pos, UTF_REASON_ISOLATED_BYTE
            if c >= 0xf8:
                return pos, UTF_REASON_BAD_LEAD_BYTE
            extra = 1 if c < 0xe0 else 2 if c < 0xf0 else 3
            if pos + extra >= length:
                return pos, UTF_REASON_TRUNCATED
            value = c & (0x3f >> extra)
            for i in range(1, extra + 1):
                d = units[pos + i]
                if d & 0xc0 != 0x80:
                    return pos, UTF_REASON_BAD_CONTINUATION
                value = (value << 6) | (d & 0x3f)
            if value < (0x80, 0x800, 0x10000)[extra - 1]:
                return pos, UTF_REASON_OVERLONG
            if value > MAX_UNICODE:
                return pos, UTF_REASON_TOO_LARGE
            if 0xd800 <= value <= 0xdfff:
                return pos, UTF_REASON_SURROGATE
            pos += extra + 1
        return None

    if width.bits == 16:
        while pos < length:
            c = units[pos]
            if 0xd800 <= c < 0xdc00:
                if pos + 1 >= length or not 0xdc00 <= units[pos + 1] <= 0xdfff:
                    return pos, UTF_REASON_MISSING_LOW_SURROGATE
                pos += 2
                continue
            if 0xdc00 <= c <= 0xdfff:
                return pos, UTF_REASON_ISOLATED_LOW_SURROGATE
            pos += 1
        return None

    for pos in range(length):
        c = units[pos]
        if c > MAX_UNICODE:
            return pos, UTF_REASON_TOO_LARGE
        if 0xd800 <= c <= 0xdfff:
            return pos, UTF_REASON_SURROGATE
    return None


def inside_character(width: CodeUnitWidth, units, offset: int,
                     length: int) -> bool:
    """True if offset points into the middle of a UTF character."""
    if offset >= length or width.bits == 32:
        return False
    if width.bits == 8:
        return units[offset] & 0xc0 == 0x80
    return 0xdc00 <= units[offset] <= 0xdfff


class Subject:
    """A subject as the regex package sees it.

    offsets holds the code unit offset of each character, plus the length.
    It is None when every character is one code unit.
    """

    def __init__(self, text, offsets: Optional[List[int]] = None):
        self.text = text
        self.offsets = offsets

    def units_at(self, index: int) -> int:
        if self.offsets is None:
            return index
        return self.offsets[index]

    def index_of(self, offset: int) -> int:
        if self.offsets is None:
            return offset
        return bisect.bisect_left(self.offsets, offset)


def make_subject(width: CodeUnitWidth, units, length: int,
                 utf: bool) -> Optional[Subject]:
    """Convert code units for the regex package, or None if impossible."""
    if width.bits == 8 and not utf:
        return Subject(bytes(units[:length]))
    if not utf:
        if width.bits == 32 and any(u > MAX_UNICODE for u in units[:length]):
            return None
        return Subject("".join(map(chr, units[:length])))

    chars = []
    offsets = []
    pos = 0
    if width.bits == 8:
        data = bytes(units[:length])
        while pos < length:
            c, n = decode_utf8_scalar(data, pos)
            if n <= 0 or c > MAX_UNICODE:
                # Invalid bytes, only seen when checking was turned off
                c, n = 0xdc00 + data[pos], 1
            chars.append(chr(c))
            offsets.append(pos)
            pos += n
    elif width.bits == 16:
        while pos < length:
            c = units[pos]
            n = 1
            if (0xd800 <= c < 0xdc00 and pos + 1 < length and
                    0xdc00 <= units[pos + 1] <= 0xdfff):
                c = 0x10000 + ((c & 0x3ff) << 10) + (units[pos + 1] & 0x3ff)
                n = 2
            chars.append(chr(c))
            offsets.append(pos)
            pos += n
    else:
        if any(u > MAX_UNICODE for u in units[:length]):
            return None
        return Subject("".join(map(chr, units[:length])))

    offsets.append(length)
    return Subject("".join(chars), offsets)


class RegexPattern(CompiledPattern):
    """A pattern compiled by the regex package, with its analysis."""

    def __init__(self, width: CodeUnitWidth, compile_options: int,
                 pattern_options: int, compiled, analysis: PatternAnalysis,
                 unit_length: int):
        super().__init__(width, compile_options, pattern_options)
        self.regex = compiled
        self.analysis = analysis
        self.unit_length = unit_length
        self.jchanged = analysis.jchanged
        self.name_entry_size = 0
        self.name_table = width.new_units()
        self.variants: Dict[str, object] = {}
        # regex group for each capture, and the (group, name) of each mark
        self.group_numbers = list(range(compiled.groups + 1))
        self.marks: List[Tuple[str, str]] = []

    @property
    def capture_count(self) -> int:
        return len(self.group_numbers) - 1

    @property
    def anchored(self) -> bool:
        return bool(self.compile_options & CO.ANCHORED)

    def nonempty(self):
        """The pattern, refusing to match an empty string where it starts."""
        variant = self.variants.get("nonempty")
        if variant is None:
            source = self.regex.pattern
            is_bytes = isinstance(source, bytes)
            if is_bytes:
                source = source.decode("latin-1")
            closing = "\n)" if self.regex.flags & regex.VERBOSE else ")"
            source = "(?:" + source + closing + "(?!\\G)"
            if is_bytes:
                source = source.encode("latin-1")
            variant = regex.compile(source, self.regex.flags)
            self.variants["nonempty"] = variant
        return variant

    def numbers_for(self, name: str) -> List[int]:
        return [number for entry, number in self.analysis.names
                if entry == name]


class RegexEngine(Engine):
    """The engine under test, for one code unit width."""

    name = "Python regex"
    version = getattr(regex, "__version__", "")
    code_block_size = 136

    # Compiling

    def compile(self, units, options: int, context):
        options = int(options)
        length = len(units)
        head = "".join(chr(u) if u < 0x80 else "\x00" for u in units)

        pattern_options = 0
        newline = context.newline_convention
        bsr = context.bsr_convention
        match_limit = recursion_limit = None
        pos = 0
        while True:
            m = LEADING_VERB.match(head, pos)
            if m is None:
                break
            verb = m.group(1)
            if verb.startswith("UTF"):
                if m.group(2) and int(m.group(2)) != self.width.bits:
                    break
                pattern_options |= CO.UTF
            elif verb == "UCP":
                pattern_options |= CO.UCP
            elif verb in NEWLINE_VERBS:
                newline = NEWLINE_VERBS[verb]
            elif verb == "BSR_ANYCRLF":
                bsr = Bsr.ANYCRLF
            elif verb == "BSR_UNICODE":
                bsr = Bsr.UNICODE
            elif verb.startswith("LIMIT_MATCH"):
                match_limit = int(m.group(3))
            elif verb.startswith("LIMIT_RECURSION"):
                recursion_limit = int(m.group(4))
            elif verb == "NO_START_OPT":
                pattern_options |= CO.NO_START_OPTIMIZE
            else:
                pattern_options |= CO.NO_AUTO_POSSESS
            pos = m.end()
        prefix = pos

        all_options = options | pattern_options
        if options & CO.NEVER_UTF and all_options & CO.UTF:
            return CompileFailure(COMPILE_ERROR_UTF_IS_DISABLED, prefix)
        if options & CO.NEVER_UCP and all_options & CO.UCP:
            return CompileFailure(COMPILE_ERROR_UCP_IS_DISABLED, prefix)
        if options & UNSUPPORTED_COMPILE_OPTIONS:
            return CompileFailure(COMPILE_ERROR_OPTION_NOT_SUPPORTED, 0)

        utf = bool(all_options & CO.UTF)
        decoded = self._decode_pattern(units, prefix, utf)
        if isinstance(decoded, CompileFailure):
            return decoded
        text, offsets = decoded

        is_bytes = self.width.bits == 8 and not utf
        try:
            translator = translate(
                text,
                is_bytes=is_bytes,
                bsr=bsr,
                extended=bool(all_options & CO.EXTENDED),
                multiline=bool(all_options & CO.MULTILINE),
                no_auto_capture=bool(all_options & CO.NO_AUTO_CAPTURE),
                ungreedy=bool(all_options & CO.UNGREEDY),
                dollar_endonly=bool(all_options & CO.DOLLAR_ENDONLY),
                dupnames=bool(all_options & CO.DUPNAMES),
            )
        except TranslationError as err:
            return CompileFailure(err.code, offsets[min(err.offset, len(text))])

        if translator.max_depth > context.parens_nest_limit:
            return CompileFailure(COMPILE_ERROR_PARENTHESES_NEST_TOO_DEEP,
                                  offsets[-1])

        flags = self._regex_flags(all_options, translator.leading_flags,
                                  is_bytes, context)
        source = translator.result
        try:
            compiled = regex.compile(
                source.encode("latin-1") if is_bytes else source, flags)
        except regex.error as err:
            index = len(source) if err.pos is None else err.pos
            where = translator.source_offset(index)
            logger.debug("regex rejected %r: %s", source, err.msg)
            return CompileFailure(compile_error_code(err.msg), offsets[where])
        except OverflowError:
            return CompileFailure(COMPILE_ERROR_QUANTIFIER_TOO_BIG, length)

        result = analyse(
            text,
            caseless=bool(all_options & CO.CASELESS),
            multiline=bool(all_options & CO.MULTILINE),
            extended=bool(all_options & CO.EXTENDED),
            dupnames=bool(all_options & CO.DUPNAMES),
            no_auto_capture=bool(all_options & CO.NO_AUTO_CAPTURE),
        )
        if result.duplicate_name is not None:
            return CompileFailure(COMPILE_ERROR_DUPLICATE_SUBPATTERN_NAME,
                                  offsets[result.duplicate_name[1]])

        for letter, on in result.leading_options.items():
            if on and letter in OPTION_LETTER_BITS:
                pattern_options |= OPTION_LETTER_BITS[letter]

        code = RegexPattern(self.width, options, pattern_options, compiled,
                            result, length)
        if translator.marks:
            code.group_numbers = translator.numbers
            code.marks = translator.marks
        code.newline_convention = newline
        code.bsr_convention = bsr
        code.match_limit = match_limit
        code.recursion_limit = recursion_limit
        code.jchanged = result.jchanged or translator.jchanged
        if result.first_caseless:
            code.flags |= PatternFlag.FIRSTCASELESS
        if result.last_caseless:
            code.flags |= PatternFlag.LASTCASELESS
        self._build_name_table(code, utf)

        logger.debug("compiled %r as %r", text, source)
        return code

    def _decode_pattern(self, units, start: int, utf: bool):
        """Pattern characters and their code unit offsets, or a CompileFailure."""
        bits = self.width.bits
        chars = []
        offsets = []
        pos = start
        end = len(units)
        while pos < end:
            c = units[pos]
            n = 1
            if utf and bits == 8 and c >= 0x80:
                c, n = decode_utf8_scalar(bytes(units[pos:pos + 6]))
                if n <= 0 or c > MAX_UNICODE or 0xd800 <= c <= 0xdfff:
                    return CompileFailure(COMPILE_ERROR_BAD_UTF_STRING, pos)
            elif utf and bits == 16 and 0xd800 <= c <= 0xdfff:
                if (c >= 0xdc00 or pos + 1 >= end or
                        not 0xdc00 <= units[pos + 1] <= 0xdfff):
                    return CompileFailure(COMPILE_ERROR_BAD_UTF_STRING, pos)
                c = 0x10000 + ((c & 0x3ff) << 10) + (units[pos + 1] & 0x3ff)
                n = 2
            elif bits == 32 and (c > MAX_UNICODE or
                                 (utf and 0xd800 <= c <= 0xdfff)):
                if utf:
                    return CompileFailure(COMPILE_ERROR_BAD_UTF_STRING, pos)
                return CompileFailure(COMPILE_ERROR_CHARACTER_VALUE_TOO_LARGE,
                                      pos)
            chars.append(chr(c))
            offsets.append(pos)
            pos += n
        offsets.append(end)
        return "".join(chars), offsets

    @staticmethod
    def _regex_flags(options: int, leading: List[str], is_bytes: bool,
                     context) -> int:
        flags = regex.VERSION0
        if options & CO.CASELESS:
            flags |= regex.IGNORECASE
        if options & CO.MULTILINE:
            flags |= regex.MULTILINE
        if options & CO.DOTALL:
            flags |= regex.DOTALL
        if options & CO.EXTENDED:
            flags |= regex.VERBOSE

        # Settings such as (?i) at the very start apply to the whole pattern
        for setting in leading:
            on, _, off = setting.partition("-")
            for letter in on:
                flags |= REGEX_LETTER_FLAGS[letter]
            for letter in off:
                flags &= ~REGEX_LETTER_FLAGS[letter]

        if is_bytes:
            if context.character_tables:
                flags |= regex.LOCALE
        elif options & CO.UCP:
            flags |= regex.UNICODE
        else:
            flags |= regex.ASCII
        return flags

    def _build_name_table(self, code: RegexPattern, utf: bool) -> None:
        """Pack the group names the way the engine's name table is laid out.

        Each entry is the group number (two bytes, most significant first, in
        8-bit mode, otherwise one unit) followed by the zero-terminated name,
        padded to the length of the longest entry.
        """
        imm2 = 2 if self.width.bits == 8 else 1
        encoded = [(encode_text(name, self.width, utf), number)
                   for name, number in code.analysis.names]
        if not encoded:
            return
        entry_size = imm2 + max(len(units) for units, _ in encoded) + 1
        table = self.width.new_units()
        for units, number in encoded:
            if imm2 == 2:
                table.extend((number >> 8, number & 0xff))
            else:
                table.append(number)
            table.extend(units)
            table.extend([0] * (entry_size - imm2 - len(units)))
        code.name_entry_size = entry_size
        code.name_table = table

    def jit_compile(self, code: CompiledPattern, level: int) -> int:
        return ERROR_UNAVAILABLE

    # Matching

    def _prepare(self, code: RegexPattern, subject, length: int,
                 start_offset: int, options: int, match_data: MatchData):
        """Check and convert a subject.

        Returns:
            A (Subject, start index) pair, or a negative error code.
        """
        if code.width is not self.width:
            return ERROR_BADMODE
        if start_offset > length:
            return ERROR_BADOFFSET
        if code.utf and not options & MO.NO_UTF_CHECK:
            bad = find_bad_utf(self.width, subject, length)
            if bad is not None:
                match_data.startchar, match_data.utf_reason = bad
                return ERROR_BADUTF
            if inside_character(self.width, subject, start_offset, length):
                return ERROR_BADUTF_OFFSET
        converted = make_subject(self.width, subject, length, code.utf)
        if converted is None:
            return ERROR_BADDATA
        return converted, converted.index_of(start_offset)

    def _leftmost(self, code: RegexPattern, text, pos: int, options: int,
                  partial: bool):
        """The first match at or after pos, honouring the notempty options."""
        anchored = code.anchored or bool(options & MO.ANCHORED)
        if options & MO.NOTEMPTY:
            nonempty = code.nonempty()
            positions = [pos] if anchored else range(pos, len(text) + 1)
            for p in positions:
                m = nonempty.match(text, p, partial=partial)
                if m is not None:
                    return m
            return None
        if options & MO.NOTEMPTY_ATSTART:
            m = code.nonempty().match(text, pos, partial=partial)
            if m is not None or anchored or pos >= len(text):
                return m
            pos += 1
        if anchored:
            return code.regex.match(text, pos, partial=partial)
        return code.regex.search(text, pos, partial=partial)

    def _search(self, code: RegexPattern, text, pos: int, options: int):
        if options & MO.PARTIAL_HARD:
            return self._leftmost(code, text, pos, options, True)
        m = self._leftmost(code, text, pos, options, False)
        if m is None and options & MO.PARTIAL_SOFT:
            m = self._leftmost(code, text, pos, options, True)
        return m

    def match(self, code: RegexPattern, subject, length: int,
              start_offset: int, options: int, match_data: MatchData,
              context) -> int:
        options = int(options)
        match_data.clear()
        match_data.code = code
        match_data.subject = subject
        if options & ~MATCH_OPTIONS:
            return self._finish(match_data, ERROR_BADOPTION)
        prepared = self._prepare(code, subject, length, start_offset, options,
                                 match_data)
        if isinstance(prepared, int):
            return self._finish(match_data, prepared)
        converted, pos = prepared

        m = self._search(code, converted.text, pos, options)
        logger.debug("match at %d with options %#x: %r", start_offset,
                     options, m)
        if m is None:
            return self._finish(match_data, ERROR_NOMATCH)

        if m.partial:
            start = converted.units_at(m.start())
            match_data.ovector[0] = start
            match_data.ovector[1] = length
            match_data.leftchar = match_data.startchar = start
            match_data.mark = self._mark(code, m)
            return self._finish(match_data, ERROR_PARTIAL)

        spans = [m.span(group) for group in code.group_numbers]
        match_data.mark = self._mark(code, m)
        top = max(i for i, span in enumerate(spans) if span[0] >= 0) + 1
        rc = top
        if top > match_data.oveccount:
            rc = 0
            top = match_data.oveccount
        for i in range(top):
            start, end = spans[i]
            if start >= 0:
                match_data.ovector[2 * i] = converted.units_at(start)
                match_data.ovector[2 * i + 1] = converted.units_at(end)
        return self._finish(match_data, rc)

    def _mark(self, code: RegexPattern, m):
        """The last mark passed on the way to m, as code units."""
        passed = [(m.start(group), index, name)
                  for index, (group, name) in enumerate(code.marks)
                  if m.start(group) >= 0]
        if not passed:
            return None
        return encode_text(max(passed)[2], self.width, code.utf)

    @staticmethod
    def _finish(match_data: MatchData, rc: int) -> int:
        match_data.rc = rc
        return rc

    def dfa_match(self, code: RegexPattern, subject, length: int,
                  start_offset: int, options: int, match_data: MatchData,
                  context, workspace: DfaWorkspace) -> int:
        """Emulate the alternative matching algorithm.

        All the matches that start at the first position where any match
        starts are found, longest first. A partial match leaves its text in
        the workspace, and dfa_restart continues from it.
        """
        options = int(options)
        match_data.clear()
        match_data.code = code
        match_data.subject = subject
        if options & ~DFA_MATCH_OPTIONS:
            return self._finish(match_data, ERROR_BADOPTION)
        if options & MO.DFA_RESTART and workspace.saved is None:
            return self._finish(match_data, ERROR_DFA_BADRESTART)
        prepared = self._prepare(code, subject, length, start_offset, options,
                                 match_data)
        if isinstance(prepared, int):
            return self._finish(match_data, prepared)
        converted, pos = prepared

        text = converted.text
        carried = 0
        if options & MO.DFA_RESTART:
            carried = len(workspace.saved)
            text = workspace.saved + text
            pos = 0
            options |= MO.ANCHORED
        search_start = pos

        m = self._search(code, text, pos, options)
        workspace.saved = None
        if m is None:
            return self._finish(match_data, ERROR_NOMATCH)

        def units_at(index):
            return converted.units_at(max(index - carried, 0))

        start = m.start()
        if m.partial:
            workspace.saved = text[start:]
            match_data.ovector[0] = units_at(start)
            match_data.ovector[1] = length
            match_data.leftchar = match_data.startchar = units_at(start)
            return self._finish(match_data, ERROR_PARTIAL)

        exclude_empty = bool(options & MO.NOTEMPTY or (
            options & MO.NOTEMPTY_ATSTART and start == search_start))
        ends = [end for end in range(len(text), start - 1, -1)
                if not (exclude_empty and end == start) and
                code.regex.fullmatch(text, start, end) is not None]
        if m.end() not in ends:
            ends.append(m.end())
            ends.sort(reverse=True)
        if options & MO.DFA_SHORTEST:
            ends = ends[-1:]

        rc = len(ends)
        if rc > match_data.oveccount:
            rc = 0
            ends = ends[:match_data.oveccount]
        for i, end in enumerate(ends):
            match_data.ovector[2 * i] = units_at(start)
            match_data.ovector[2 * i + 1] = units_at(end)
        return self._finish(match_data, rc)

    # Substrings

    def _substring(self, match_data: MatchData, number: int):
        if match_data.rc < 0:
            return match_data.rc, None
        code = match_data.code
        if code is None or number > code.capture_count:
            return ERROR_NOSUBSTRING, None
        if number >= match_data.oveccount:
            return ERROR_UNAVAILABLE, None
        count = match_data.rc if match_data.rc > 0 else match_data.oveccount
        start = match_data.ovector[2 * number]
        if number >= count or start == UNSET:
            return ERROR_UNSET, None
        end = match_data.ovector[2 * number + 1]
        return 0, match_data.subject[start:end]

    def _number_for(self, match_data: MatchData, name) -> Optional[int]:
        """The first group with this name that is set, or the first at all."""
        code = match_data.code
        numbers = code.numbers_for(name) if code is not None else []
        if not numbers:
            return None
        for number in numbers:
            if self._substring(match_data, number)[0] == 0:
                return number
        return numbers[0]

    def substring_copy_bynumber(self, match_data, number, size):
        rc, units = self._substring(match_data, number)
        if rc < 0:
            return rc, None
        if len(units) + 1 > size:
            return ERROR_NOMEMORY, None
        return len(units), units

    def substring_copy_byname(self, match_data, name, size):
        number = self._number_for(match_data, name)
        if number is None:
            return ERROR_NOSUBSTRING, None
        return self.substring_copy_bynumber(match_data, number, size)

    def substring_get_bynumber(self, match_data, number):
        rc, units = self._substring(match_data, number)
        if rc < 0:
            return rc, None
        return len(units), units

    def substring_get_byname(self, match_data, name):
        number = self._number_for(match_data, name)
        if number is None:
            return ERROR_NOSUBSTRING, None
        return self.substring_get_bynumber(match_data, number)

    def substring_list_get(self, match_data):
        if match_data.rc < 0:
            return match_data.rc, None, None
        count = match_data.rc if match_data.rc > 0 else match_data.oveccount
        strings = []
        lengths = []
        for i in range(count):
            start = match_data.ovector[2 * i]
            if start == UNSET:
                units = self.width.new_units()
            else:
                units = match_data.subject[start:match_data.ovector[2 * i + 1]]
            strings.append(units)
            lengths.append(len(units))
        strings.append(None)
        return 0, strings, lengths

    # Introspection

    def pattern_info(self, code: RegexPattern, what: int) -> Tuple[int, object]:
        if code.width is not self.width:
            return ERROR_BADMODE, None
        analysis = code.analysis
        utf = code.utf

        if what == PatternInfo.BACKREFMAX:
            return 0, analysis.backref_max
        if what == PatternInfo.BSR_CONVENTION:
            return 0, code.bsr_convention
        if what == PatternInfo.CAPTURECOUNT:
            return 0, code.capture_count
        if what == PatternInfo.COMPILE_OPTIONS:
            return 0, code.compile_options
        if what == PatternInfo.FIRSTBITMAP:
            return 0, self._start_bitmap(code)
        if what == PatternInfo.FIRSTCODETYPE:
            return 0, analysis.first_type
        if what == PatternInfo.FIRSTCODEUNIT:
            if analysis.first_type != 1:
                return 0, 0
            return 0, char_units(analysis.first_char, self.width, utf)[0]
        if what == PatternInfo.HASCRORLF:
            return 0, int(analysis.has_cr_or_lf)
        if what == PatternInfo.JCHANGED:
            return 0, int(code.jchanged)
        if what == PatternInfo.JITSIZE:
            return 0, 0
        if what == PatternInfo.LASTCODETYPE:
            return 0, int(analysis.last_char is not None)
        if what == PatternInfo.LASTCODEUNIT:
            if analysis.last_char is None:
                return 0, 0
            return 0, char_units(analysis.last_char, self.width, utf)[-1]
        if what == PatternInfo.MATCH_EMPTY:
            return 0, int(analysis.min_length == 0)
        if what == PatternInfo.MATCH_LIMIT:
            if code.match_limit is None:
                return ERROR_UNSET, None
            return 0, code.match_limit
        if what == PatternInfo.MAXLOOKBEHIND:
            return 0, analysis.max_lookbehind
        if what == PatternInfo.MINLENGTH:
            return 0, analysis.min_length
        if what == PatternInfo.NAMECOUNT:
            return 0, len(analysis.names)
        if what == PatternInfo.NAMEENTRYSIZE:
            return 0, code.name_entry_size
        if what == PatternInfo.NAMETABLE:
            return 0, code.name_table
        if what == PatternInfo.NEWLINE_CONVENTION:
            return 0, code.newline_convention
        if what == PatternInfo.PATTERN_OPTIONS:
            return 0, code.pattern_options
        if what == PatternInfo.RECURSION_LIMIT:
            if code.recursion_limit is None:
                return ERROR_UNSET, None
            return 0, code.recursion_limit
        if what == PatternInfo.SIZE:
            unit = self.width.unit_size
            names = len(analysis.names) * code.name_entry_size * unit
            body = (code.unit_length + 1 + 2 * code.capture_count) * unit
            return 0, self.code_block_size + names + body
        return ERROR_BADOPTION, None

    def _start_bitmap(self, code: RegexPattern) -> Optional[bytes]:
        """A 256-bit map of the code units a match can start with."""
        chars = code.analysis.start_chars
        if (chars is None or code.analysis.first_type != 0 or
                (code.compile_options | code.pattern_options) &
                CO.NO_START_OPTIMIZE):
            return None
        bitmap = bytearray(32)
        for c in chars:
            if c >= 0x80 and code.utf and self.width.bits == 8:
                c = encode_utf8(c)[0]
            elif c > 0xff:
                c = 0xff
            bitmap[c // 8] |= 1 << (c & 7)
        return bytes(bitmap)

    def get_error_message(self, code: int) -> str:
        return ERROR_MESSAGES.get(code, f"unknown error code {code}")

    def print_internal(self, code: RegexPattern, full: bool, sink) -> None:
        lines = ["Bra"] + describe(code.analysis.ast, 1) + ["Ket", "End"]
        for index, line in enumerate(lines):
            if full:
                sink.write(f"{index:3d} {line}\n")
            else:
                sink.write(f"        {line}\n")
        sink.write("-" * 66 + "\n")
