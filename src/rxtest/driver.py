"""
The test driver: reads a script, compiles patterns and runs data lines.

A script is a sequence of tests. Each test is a pattern line, with optional
modifiers after the closing delimiter, followed by data lines and ended by a
blank line. Lines starting with '#' between tests are comments or commands.
Everything the engine reports is written to the output stream in a fixed
textual form, so that runs can be compared against expected output.
"""

import locale
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional, TextIO

from .codec import (
    CodeUnitWidth,
    ascii_printable,
    get_width,
    locale_printable,
    render_char,
    render_codeunit_string,
)
from .constants import (
    Bsr,
    CompileOption as CO,
    Control as CTL,
    COPY_BUFFER_UNITS,
    CTL_ALLPD,
    CTL_ANYGLOB,
    CTL_ANYINFO,
    DEFAULT_OVECCOUNT,
    DFA_WS_DIMENSION,
    ERROR_BADMODE,
    ERROR_BADUTF,
    ERROR_BADUTF_OFFSET,
    ERROR_NOMATCH,
    ERROR_PARTIAL,
    ERROR_UNSET,
    MatchOption as MO,
    Newline,
    PatternFlag,
    PatternInfo,
    POSIX_SUPPORTED_COMPILE_CONTROLS,
    POSIX_SUPPORTED_COMPILE_OPTIONS,
    POSIX_SUPPORTED_MATCH_CONTROLS,
    POSIX_SUPPORTED_MATCH_OPTIONS,
    UNSET,
)
from .engine import CompileFailure, DfaWorkspace, Engine, PosixRegex, RegexEngine, RegFlag
from .errors import (
    AbortRun,
    DataLineError,
    EncodingError,
    ModifierError,
    UnexpectedEndOfInput,
)
from .modifiers import ContextSet, Ctx, DataControl, PatternControl, apply_modifiers
from .output import (
    Output,
    compile_controls_text,
    compile_options_text,
    match_controls_text,
    match_options_text,
)
from .reader import LineReader
from .subject import SubjectBuffer, decode_data_line

logger = logging.getLogger(__name__)

PATTERN_DELIMITERS = b"\"/!'`-+=:;.,"

RULE = "-" * 66

POSIX_IGNORED = "** Ignored with POSIX interface:"

NEWLINE_DESCRIPTIONS = {
    Newline.CR: "CR",
    Newline.LF: "LF",
    Newline.CRLF: "CRLF",
    Newline.ANYCRLF: "CR, LF, or CRLF",
    Newline.ANY: "any Unicode newline",
}

# The information that every info display needs
INFO_REQUESTS = (
    PatternInfo.BACKREFMAX,
    PatternInfo.BSR_CONVENTION,
    PatternInfo.CAPTURECOUNT,
    PatternInfo.FIRSTBITMAP,
    PatternInfo.FIRSTCODEUNIT,
    PatternInfo.FIRSTCODETYPE,
    PatternInfo.HASCRORLF,
    PatternInfo.JCHANGED,
    PatternInfo.LASTCODEUNIT,
    PatternInfo.LASTCODETYPE,
    PatternInfo.MATCH_EMPTY,
    PatternInfo.MATCH_LIMIT,
    PatternInfo.MAXLOOKBEHIND,
    PatternInfo.MINLENGTH,
    PatternInfo.NAMECOUNT,
    PatternInfo.NAMEENTRYSIZE,
    PatternInfo.NAMETABLE,
    PatternInfo.NEWLINE_CONVENTION,
    PatternInfo.RECURSION_LIMIT,
)


class Outcome(Enum):
    """What the main loop does after a line has been handled."""

    OK = "ok"        # Carry on with the next line
    SKIP = "skip"    # Skip to the next blank line
    ABEND = "abend"  # Abandon the run


@dataclass
class SessionConfig:
    """Settings for one run.

    Attributes:
        width: Code unit width, 8, 16 or 32.
        quiet: Do not write the version banner.
        timeit: Number of times to repeat each compile when timing.
        timeitm: Number of times to repeat each match when timing.
        show_total_times: Write the timing totals at the end.
        default_pattern: Modifiers applied to the default pattern controls.
        default_data: Modifiers applied to the default data controls.
    """

    width: int = 8
    quiet: bool = False
    timeit: int = 0
    timeitm: int = 0
    show_total_times: bool = False
    default_pattern: Optional[str] = None
    default_data: Optional[str] = None


def _elapsed_ms(seconds: float, repeat: int) -> float:
    return seconds * 1000.0 / repeat


class Session:
    """One run of a test script against one width of the engine."""

    def __init__(self, config: SessionConfig, infile: BinaryIO,
                 outfile: BinaryIO, interactive: bool = False,
                 errfile: Optional[TextIO] = None,
                 engine: Optional[Engine] = None):
        self.config = config
        self.width: CodeUnitWidth = get_width(config.width)
        self.engine = engine or RegexEngine(self.width)
        self.out = Output(outfile)
        self.errfile = errfile
        self.interactive = interactive
        self.reader = LineReader(infile, self.out, interactive)

        self.contexts = ContextSet()
        self.default_pctl = PatternControl()
        self.default_dctl = DataControl()
        self.pctl = PatternControl()
        self.dctl = DataControl()

        self.code = None
        self.posix: Optional[PosixRegex] = None
        self.max_oveccount = DEFAULT_OVECCOUNT
        self.match_data = self.engine.match_data_create(self.max_oveccount)
        self.dfa_workspace: Optional[DfaWorkspace] = None
        self.dfa_matched = 0
        self.subject_buffer = SubjectBuffer(self.width)

        self.locale_set = False
        self.printable = ascii_printable
        self.total_compile_time = 0.0
        self.total_match_time = 0.0
        self.skipping = False

    # Top level

    def apply_presets(self) -> bool:
        """Apply the configured default modifiers.

        Errors are written to the error stream.

        Returns:
            False if either modifier list could not be decoded.
        """
        try:
            if self.config.default_pattern is not None:
                apply_modifiers(self.config.default_pattern, Ctx.DEFPAT,
                                self.contexts, pctl=self.default_pctl)
            if self.config.default_data is not None:
                apply_modifiers(self.config.default_data, Ctx.DEFDAT,
                                self.contexts, dctl=self.default_dctl)
        except ModifierError as err:
            self._error(err.message)
            return False
        return True

    def banner(self) -> str:
        return f"{self.engine.name} version {self.engine.version}"

    def run(self) -> int:
        """Process the whole script.

        Returns:
            The exit status: 0, or 1 if the run was abandoned.
        """
        if not self.config.quiet:
            self.out.writeline(self.banner())

        status = 0
        while True:
            expect_data = self.code is not None or self.posix is not None
            line = self.reader.read_line("data> " if expect_data else "  re> ")
            if line is None:
                break
            try:
                outcome = self.process_line(line, expect_data)
            except AbortRun as err:
                self.out.writeline(err.message)
                logger.debug("run abandoned at line %d",
                             self.reader.line_number)
                status = 1
                break
            if outcome is Outcome.SKIP and not self.interactive:
                self.skipping = True
            elif outcome is Outcome.ABEND:
                status = 1
                break

        if status == 0:
            self.finish()
        self.out.flush()
        return status

    def process_line(self, line: bytes, expect_data: bool) -> Outcome:
        """Handle one line read between or within tests."""
        if expect_data or self.skipping:
            if not line.strip():
                self.end_test()
                return Outcome.OK
            if self.skipping:
                return Outcome.OK
            return self.process_data(line)

        first = line[:1]
        if first == b"#":
            second = line[1:2]
            if not second or second.isspace() or second == b"!":
                return Outcome.OK
            return self.process_command(line)

        if first and first in PATTERN_DELIMITERS:
            outcome = self.process_pattern(line)
            self.dfa_matched = 0
            return outcome

        if line.strip():
            self._error(f"** Invalid pattern delimiter '{chr(line[0])}'.")
            return Outcome.SKIP
        return Outcome.OK

    def end_test(self) -> None:
        """Release the compiled pattern at the blank line ending a test."""
        if self.posix is not None:
            self.posix.regfree()
            self.posix = None
        if self.code is not None:
            self.engine.code_free(self.code)
            self.code = None
        self.skipping = False

    def finish(self) -> None:
        if self.interactive:
            self.out.write("\n")
        if self.config.show_total_times:
            self.out.writeline("--------------------------------------")
            if self.config.timeit > 0:
                self.out.writeline(
                    "Total compile time %.4f milliseconds" %
                    _elapsed_ms(self.total_compile_time, self.config.timeit))
            if self.config.timeitm > 0:
                self.out.writeline(
                    "Total match time %.4f milliseconds" %
                    _elapsed_ms(self.total_match_time, self.config.timeitm))

    def process_command(self, line: bytes) -> Outcome:
        """Handle a '#' line that is not a comment."""
        if line.startswith(b"#pattern") and line[8:9].isspace():
            self._modifiers(line[8:], Ctx.DEFPAT, pctl=self.default_pctl)
        elif line.startswith(b"#data") and line[5:6].isspace():
            self._modifiers(line[5:], Ctx.DEFDAT, dctl=self.default_dctl)
        elif line.startswith(b"#load") and line[5:6].isspace():
            raise AbortRun("** #load not yet implemented")
        return Outcome.OK

    # Helpers

    def _error(self, message: str) -> None:
        """Write to the error stream, or to the output if there is none."""
        if self.errfile is None:
            self.out.writeline(message)
        else:
            self.errfile.write(message + "\n")
            self.errfile.flush()

    def _modifiers(self, text: bytes, ctx: Ctx, pctl=None, dctl=None) -> bool:
        try:
            apply_modifiers(text.decode("latin-1"), ctx, self.contexts,
                            pctl=pctl, dctl=dctl)
        except ModifierError as err:
            self.out.writeline(err.message)
            return False
        return True

    def _show(self, units, offset: int, length: int, utf: bool) -> None:
        render_codeunit_string(units, offset, length, utf, self.out,
                               self.printable, self.width)

    def _pattern_info(self, what: PatternInfo):
        """Ask the engine about the current pattern.

        Returns:
            (ok, value). An unset value counts as success, with value None.
        """
        rc, value = self.engine.pattern_info(self.code, what)
        if rc >= 0 or rc == ERROR_UNSET:
            return True, value
        self.out.writeline(
            f"Error {rc} from pattern_info_{self.width.bits}({int(what)})")
        if rc == ERROR_BADMODE:
            self.out.writeline(
                f"Running in {self.width.bits}-bit mode but pattern was "
                f"compiled in {self.code.width.bits}-bit mode")
        return False, value

    def _set_locale(self, name: str) -> bool:
        """Switch character tables for a pattern, or back to the default."""
        if name:
            try:
                locale.setlocale(locale.LC_CTYPE, name)
            except locale.Error:
                self.out.writeline(f'** Failed to set locale "{name}"')
                return False
            logger.debug("locale set to %s", name)
            self.contexts.pattern.character_tables = name
            self.locale_set = True
            self.printable = locale_printable
        elif self.locale_set:
            locale.setlocale(locale.LC_CTYPE, "C")
            logger.debug("locale reset")
            self.locale_set = False
            self.printable = ascii_printable
        return True

    # Patterns

    def _read_pattern(self, line: bytes):
        """Find the end of a pattern, reading more lines if needed.

        Returns:
            The pattern bytes and the modifier text that follows it.

        Raises:
            UnexpectedEndOfInput: The input ended inside the pattern.
        """
        delimiter = line[0]
        buffer = line
        pos = 1
        while True:
            while pos < len(buffer):
                c = buffer[pos]
                if c == 0x5c and pos + 1 < len(buffer):
                    pos += 1
                elif c == delimiter:
                    break
                pos += 1
            if pos < len(buffer):
                break
            more = self.reader.read_line("    > ")
            if more is None:
                raise UnexpectedEndOfInput()
            buffer += more

        pattern = buffer[1:pos]
        rest = pos + 1
        # A backslash straight after the delimiter ends the pattern with one
        if buffer[rest:rest + 1] == b"\\":
            pattern += b"\\"
            rest += 1
        return pattern, buffer[rest:]

    def process_pattern(self, line: bytes) -> Outcome:
        """Read, compile and report on a pattern."""
        self.contexts.pattern = self.contexts.default_pattern.copy()
        self.pctl = self.default_pctl.copy()

        pattern, modifier_text = self._read_pattern(line)
        if not self._modifiers(modifier_text, Ctx.PAT, pctl=self.pctl):
            return Outcome.SKIP
        utf = bool(self.pctl.options & CO.UTF)

        if self.pctl.control & CTL.POSIX:
            return self._compile_posix(pattern, utf)

        if not self._set_locale(self.pctl.locale):
            return Outcome.SKIP

        try:
            units = self.width.from_utf8(pattern, utf)
        except EncodingError as err:
            self.out.writeline(err.message)
            return Outcome.SKIP

        options = self.pctl.options
        context = self.contexts.pattern
        if self.config.timeit > 0:
            start = time.process_time()
            for _ in range(self.config.timeit):
                timed = self.engine.compile(units, options, context)
                if not isinstance(timed, CompileFailure):
                    self.engine.code_free(timed)
            taken = time.process_time() - start
            self.total_compile_time += taken
            self.out.writeline("Compile time %.4f milliseconds" %
                               _elapsed_ms(taken, self.config.timeit))

        result = self.engine.compile(units, options, context)
        if isinstance(result, CompileFailure):
            self.out.writeline(
                f"Failed: error {result.code} at offset {result.offset}: "
                f"{self.engine.get_error_message(result.code)}")
            return Outcome.SKIP
        self.code = result
        logger.debug("compiled %r with options %#x", pattern, int(options))

        if self.pctl.jit:
            self.engine.jit_compile(self.code, self.pctl.jit)

        if self.pctl.control & CTL.MEMORY:
            self._show_memory()

        if self.pctl.control & CTL_ANYINFO:
            return self.show_pattern_info()
        return Outcome.OK

    def _compile_posix(self, pattern: bytes, utf: bool) -> Outcome:
        if self.width.bits != 8:
            self.out.writeline(
                "** The POSIX interface is available only in 8-bit mode")
            return Outcome.SKIP

        pctl = self.pctl
        ignored = ""
        if pctl.locale:
            ignored += " locale"
        if pctl.tables_id:
            ignored += " tables"
        if pctl.stackguard_test:
            ignored += " stackguard"
        if self.config.timeit > 0:
            ignored += " timing"
        if pctl.jit:
            ignored += " JIT"
        if pctl.save:
            ignored += " save"
        ignored += compile_options_text(
            pctl.options & ~POSIX_SUPPORTED_COMPILE_OPTIONS)
        ignored += compile_controls_text(
            pctl.control & ~POSIX_SUPPORTED_COMPILE_CONTROLS)
        if ignored:
            self.out.writeline(POSIX_IGNORED + ignored)

        cflags = 0
        if utf:
            cflags |= RegFlag.UTF
        if pctl.options & CO.UCP:
            cflags |= RegFlag.UCP
        if pctl.options & CO.CASELESS:
            cflags |= RegFlag.ICASE
        if pctl.options & CO.MULTILINE:
            cflags |= RegFlag.NEWLINE
        if pctl.options & CO.DOTALL:
            cflags |= RegFlag.DOTALL
        if pctl.options & CO.NO_AUTO_CAPTURE:
            cflags |= RegFlag.NOSUB
        if pctl.options & CO.UNGREEDY:
            cflags |= RegFlag.UNGREEDY

        posix = PosixRegex(self.engine)
        rc = posix.regcomp(pattern, cflags, self.contexts.pattern)
        if rc != 0:
            self.out.writeline(f"Failed: POSIX code {rc}: {posix.regerror(rc)}")
            return Outcome.SKIP
        self.posix = posix
        return Outcome.OK

    def _show_memory(self) -> None:
        _, size = self._pattern_info(PatternInfo.SIZE)
        _, name_count = self._pattern_info(PatternInfo.NAMECOUNT)
        _, entry_size = self._pattern_info(PatternInfo.NAMEENTRYSIZE)
        names = (name_count or 0) * (entry_size or 0) * self.width.unit_size
        code_space = (size or 0) - names - self.engine.code_block_size
        self.out.writeline(f"Memory allocation (code space): {code_space}")
        if self.pctl.jit:
            _, jit_size = self._pattern_info(PatternInfo.JITSIZE)
            self.out.writeline(f"Memory allocation (JIT code): {jit_size or 0}")

    def _code_unit_line(self, label: str, c: int, caseless: bool) -> None:
        suffix = " (caseless)" if caseless else ""
        if self.printable(c):
            self.out.writeline(f"{label} = '{chr(c)}'{suffix}")
        else:
            self.out.write(f"{label} = ")
            render_char(c, False, self.out, self.printable)
            self.out.writeline(suffix)

    def show_pattern_info(self) -> Outcome:
        """Write the internal listing and information block for a pattern."""
        out = self.out
        if self.pctl.control & (CTL.BYTECODE | CTL.FULLBYTECODE):
            out.writeline(RULE)
            self.engine.print_internal(
                self.code, bool(self.pctl.control & CTL.FULLBYTECODE), out)

        if not self.pctl.control & CTL.INFO:
            return Outcome.OK

        info = {}
        for what in INFO_REQUESTS:
            ok, value = self._pattern_info(what)
            if not ok:
                return Outcome.ABEND
            info[what] = value

        out.writeline(
            f"Capturing subpattern count = {info[PatternInfo.CAPTURECOUNT]}")
        if info[PatternInfo.BACKREFMAX] > 0:
            out.writeline(
                f"Max back reference = {info[PatternInfo.BACKREFMAX]}")
        if info[PatternInfo.MAXLOOKBEHIND] > 0:
            out.writeline(
                f"Max lookbehind = {info[PatternInfo.MAXLOOKBEHIND]}")
        if info[PatternInfo.MATCH_LIMIT]:
            out.writeline(f"Match limit = {info[PatternInfo.MATCH_LIMIT]}")
        if info[PatternInfo.RECURSION_LIMIT]:
            out.writeline(
                f"Recursion limit = {info[PatternInfo.RECURSION_LIMIT]}")

        name_count = info[PatternInfo.NAMECOUNT]
        if name_count > 0:
            self._show_name_table(info[PatternInfo.NAMETABLE], name_count,
                                  info[PatternInfo.NAMEENTRYSIZE])

        if info[PatternInfo.HASCRORLF]:
            out.writeline("Contains explicit CR or LF match")
        if info[PatternInfo.MATCH_EMPTY]:
            out.writeline("May match empty string")

        _, compile_options = self._pattern_info(PatternInfo.COMPILE_OPTIONS)
        _, pattern_options = self._pattern_info(PatternInfo.PATTERN_OPTIONS)
        compile_options = compile_options or 0
        pattern_options = pattern_options or 0
        if not compile_options | pattern_options:
            out.writeline("No options")
        else:
            if compile_options:
                out.writeline("Compile options:" +
                              compile_options_text(compile_options))
            if pattern_options:
                out.writeline("Pattern options:" +
                              compile_options_text(pattern_options))

        if info[PatternInfo.JCHANGED]:
            out.writeline("Duplicate name status changes")

        bsr = info[PatternInfo.BSR_CONVENTION]
        if bsr != Bsr.DEFAULT:
            out.writeline("\\R matches " + ("any Unicode newline"
                                            if bsr == Bsr.UNICODE
                                            else "CR, LF, or CRLF"))

        newline = info[PatternInfo.NEWLINE_CONVENTION]
        if newline in NEWLINE_DESCRIPTIONS:
            out.writeline(f"Newline is {NEWLINE_DESCRIPTIONS[newline]}")

        first_type = info[PatternInfo.FIRSTCODETYPE]
        if first_type == 2:
            out.writeline("First char at start or follows newline")
        elif first_type == 1:
            self._code_unit_line("First code unit",
                                 info[PatternInfo.FIRSTCODEUNIT],
                                 bool(self.code.flags &
                                      PatternFlag.FIRSTCASELESS))
        else:
            out.writeline("No first code unit")

        if info[PatternInfo.LASTCODETYPE] == 0:
            out.writeline("No last code unit")
        else:
            self._code_unit_line("Last code unit",
                                 info[PatternInfo.LASTCODEUNIT],
                                 bool(self.code.flags &
                                      PatternFlag.LASTCASELESS))

        out.writeline(
            f"Subject length lower bound = {info[PatternInfo.MINLENGTH]}")

        start_bits = info[PatternInfo.FIRSTBITMAP]
        if start_bits is None:
            out.writeline("No starting code unit list")
        else:
            self._show_start_bits(start_bits)

        if self.pctl.jit:
            ok, jit_size = self._pattern_info(PatternInfo.JITSIZE)
            if ok:
                if jit_size:
                    out.writeline("JIT study was successful")
                else:
                    out.writeline("JIT support is not available in this "
                                  "version of the engine")
        return Outcome.OK

    def _show_name_table(self, table, count: int, entry_size: int) -> None:
        """List named groups from the engine's packed name table.

        Each entry holds the group number (two units, most significant
        first, in 8-bit mode) followed by the zero-terminated name.
        """
        imm2 = 2 if self.width.bits == 8 else 1
        self.out.writeline("Named capturing subpatterns:")
        for i in range(count):
            entry = i * entry_size
            length = 0
            while table[entry + imm2 + length] != 0:
                length += 1
            self.out.write("  ")
            render_codeunit_string(table, entry + imm2, length, False,
                                   self.out, self.printable, self.width)
            self.out.write(" " * max(entry_size - imm2 - length, 0))
            if imm2 == 2:
                number = (table[entry] << 8) | table[entry + 1]
            else:
                number = table[entry]
            self.out.writeline("%3d" % number)

    def _show_start_bits(self, start_bits: bytes) -> None:
        out = self.out
        out.write("Starting code units: ")
        column = 24
        for i in range(256):
            if not start_bits[i // 8] & (1 << (i & 7)):
                continue
            if column > 75:
                out.write("\n  ")
                column = 2
            if self.printable(i) and i != 0x20:
                out.write(f"{chr(i)} ")
                column += 2
            else:
                out.write(f"\\x{i:02x} ")
                column += 5
        out.write("\n")

    # Data lines

    def process_data(self, line: bytes) -> Outcome:
        """Decode a data line and match it against the current pattern."""
        dctl = self.dctl = self.default_dctl.copy()
        dctl.control |= self.pctl.control & CTL_ALLPD
        self.contexts.match = self.contexts.default_match.copy()

        posix = self.posix is not None
        utf = not posix and self.code.utf

        try:
            modifier_text = decode_data_line(line, self.subject_buffer, utf,
                                             self.out.writeline)
        except DataLineError as err:
            self.out.writeline(err.message)
            return Outcome.OK

        if modifier_text is not None and not self._modifiers(
                modifier_text.encode("latin-1"), Ctx.DAT, dctl=dctl):
            return Outcome.OK

        subject = self.subject_buffer.subject()
        if posix:
            return self._match_posix(subject)
        return self._match_native(subject, utf)

    def _match_posix(self, subject) -> Outcome:
        dctl = self.dctl
        ignored = ""
        if dctl.cfail[0] or dctl.cfail[1]:
            ignored += " callout_fail"
        if dctl.copy_numbers or dctl.copy_names:
            ignored += " copy"
        if dctl.get_numbers or dctl.get_names:
            ignored += " get"
        if dctl.jitstack:
            ignored += " jitstack"
        ignored += match_options_text(
            dctl.options & ~POSIX_SUPPORTED_MATCH_OPTIONS)
        ignored += match_controls_text(
            dctl.control & ~POSIX_SUPPORTED_MATCH_CONTROLS)
        if ignored:
            self.out.writeline(POSIX_IGNORED + ignored)

        eflags = 0
        if dctl.options & MO.NOTBOL:
            eflags |= RegFlag.NOTBOL
        if dctl.options & MO.NOTEOL:
            eflags |= RegFlag.NOTEOL
        if dctl.options & MO.NOTEMPTY:
            eflags |= RegFlag.NOTEMPTY

        text = bytes(subject[dctl.offset:])
        rc, pmatch = self.posix.regexec(text, dctl.oveccount, eflags)
        if rc != 0:
            self.out.writeline(
                f"No match: POSIX code {rc}: {self.posix.regerror(rc)}")
        elif self.pctl.options & CO.NO_AUTO_CAPTURE:
            self.out.writeline("Matched with REG_NOSUB")
        elif dctl.oveccount == 0:
            self.out.writeline("Matched without capture")
        else:
            units = self.width.new_units(text)
            for i, (start, end) in enumerate(pmatch):
                if start < 0:
                    continue
                self.out.write("%2d: " % i)
                self._show(units, start, end - start, False)
                self.out.write("\n")
                if ((i == 0 and dctl.control & CTL.AFTERTEXT) or
                        dctl.control & CTL.ALLAFTERTEXT):
                    self.out.write("%2d+ " % i)
                    self._show(units, end, len(units) - end, False)
                    self.out.write("\n")
        return Outcome.OK

    def _adjust_match_data(self) -> None:
        """Make the ovector as big as the data line asks, never shrinking it."""
        oveccount = self.dctl.oveccount
        if oveccount <= self.max_oveccount:
            self.match_data.oveccount = oveccount
        else:
            self.max_oveccount = oveccount
            self.match_data = self.engine.match_data_create(oveccount)

    def _run_match(self, subject, length: int, options: int, dfa: bool) -> int:
        dctl = self.dctl
        if dfa:
            if self.dfa_workspace is None:
                self.dfa_workspace = DfaWorkspace(DFA_WS_DIMENSION)
            return self.engine.dfa_match(
                self.code, subject, length, dctl.offset, options,
                self.match_data, self.contexts.match, self.dfa_workspace)
        return self.engine.match(self.code, subject, length, dctl.offset,
                                 options, self.match_data, self.contexts.match)

    def _time_match(self, subject, length: int, options: int,
                    dfa: bool) -> bool:
        """Repeat a match for timing; False if it cannot be timed."""
        if dfa and self.dctl.options & MO.DFA_RESTART:
            self.out.writeline("Timing DFA restarts is not supported")
            return False
        repeat = self.config.timeitm
        start = time.process_time()
        for _ in range(repeat):
            self._run_match(subject, length, options, dfa)
        taken = time.process_time() - start
        self.total_match_time += taken
        self.out.writeline("Match time %.4f milliseconds" %
                           _elapsed_ms(taken, repeat))
        return True

    def _match_native(self, subject, utf: bool) -> Outcome:
        dctl = self.dctl
        out = self.out
        dfa = bool(dctl.control & CTL.DFA)

        if dfa and dctl.control & CTL.LIMITS:
            out.writeline("** Finding match limits is not relevant for DFA "
                          "matching: ignored")
        if dctl.control & CTL_ANYGLOB and dctl.oveccount < 1:
            out.writeline("** Global matching requires a non-zero ovector "
                          "count: ignored")
            dctl.control &= ~CTL_ANYGLOB

        length = len(subject)
        g_notempty = 0
        gmatched = 0
        while True:
            self._adjust_match_data()
            md = self.match_data
            options = dctl.options | g_notempty

            if self.config.timeitm > 0:
                if not self._time_match(subject, length, options, dfa):
                    return Outcome.OK

            if dfa:
                if self.dfa_matched == 0 and self.dfa_workspace is not None:
                    self.dfa_workspace.reset()
                self.dfa_matched += 1
            capcount = self._run_match(subject, length, options, dfa)
            logger.debug("match at offset %d returned %d", dctl.offset,
                         capcount)
            if capcount == 0:
                if dfa:
                    out.writeline("Matched, but offsets vector is too small "
                                  "to show all matches")
                else:
                    out.writeline("Matched, but too many substrings")
                capcount = dctl.oveccount

            if capcount >= 0:
                capcount = self._show_match(subject, length, capcount, utf)
                if capcount is None:
                    return Outcome.SKIP

            elif capcount == ERROR_PARTIAL:
                self._show_partial(subject, length, utf)
                break

            elif g_notempty:
                # The retry after an empty match failed; pretend one
                # character matched so that the loop moves on
                start_offset = dctl.offset
                end_offset = start_offset + 1
                newline = self.code.newline_convention
                if (newline in (Newline.CRLF, Newline.ANY, Newline.ANYCRLF) and
                        start_offset < length - 1 and
                        subject[start_offset] == 0x0d and
                        subject[end_offset] == 0x0a):
                    end_offset += 1
                elif utf and self.width.bits == 8:
                    while (end_offset < length and
                           subject[end_offset] & 0xc0 == 0x80):
                        end_offset += 1
                elif utf and self.width.bits == 16:
                    while (end_offset < length and
                           subject[end_offset] & 0xfc00 == 0xdc00):
                        end_offset += 1
                md.ovector[0] = start_offset
                md.ovector[1] = end_offset

            else:
                self._show_failure(capcount, gmatched, utf)
                break

            if not dctl.control & CTL_ANYGLOB:
                break

            end_offset = md.ovector[1]
            if md.ovector[0] == end_offset:
                if end_offset == length:
                    break
                g_notempty = MO.NOTEMPTY_ATSTART | MO.ANCHORED
            else:
                g_notempty = 0

            if dctl.control & CTL.GLOBAL:
                dctl.offset = end_offset
            else:
                subject = subject[end_offset:]
                length -= end_offset
            gmatched += 1

        return Outcome.OK

    def _show_match(self, subject, length: int, capcount: int,
                    utf: bool) -> Optional[int]:
        """Write the captures and requested substrings of a match.

        Returns:
            The number of captures shown, or None if the pattern could not
            be asked its capture count.
        """
        dctl = self.dctl
        md = self.match_data
        out = self.out

        if capcount > dctl.oveccount:
            out.writeline(f"** PCRE error: returned count {capcount} is too "
                          f"big for ovector count {dctl.oveccount}")
            capcount = dctl.oveccount
            if dctl.control & CTL_ANYGLOB:
                out.writeline("** Global loop abandoned")
                dctl.control &= ~CTL_ANYGLOB

        if dctl.control & CTL.ALLCAPTURES:
            ok, count = self._pattern_info(PatternInfo.CAPTURECOUNT)
            if not ok:
                return None
            capcount = min(count + 1, dctl.oveccount)

        for i in range(capcount):
            start = md.ovector[2 * i]
            end = md.ovector[2 * i + 1]
            if start > end:
                start, end = end, start
                out.writeline("Start of matched string is beyond its end - "
                              "displaying from end to start.")
            out.write("%2d: " % i)
            if start == UNSET:
                out.writeline("<unset>")
                continue
            self._show(subject, start, end - start, utf)
            out.write("\n")

            # From the reported end, which \K can put before the start
            if (dctl.control & CTL.ALLAFTERTEXT or
                    (i == 0 and dctl.control & CTL.AFTERTEXT)):
                out.write("%2d+ " % i)
                after = md.ovector[2 * i + 1]
                self._show(subject, after, length - after, utf)
                out.write("\n")

        if dctl.control & CTL.MARK and md.mark is not None:
            out.write("MK: ")
            self._show(md.mark, 0, len(md.mark), utf)
            out.write("\n")

        self._show_substrings(capcount, utf)
        return capcount

    def _engine_name(self, name: str, utf: bool) -> str:
        """A group name from a modifier, as the engine spells it."""
        if utf:
            return name.encode("latin-1").decode("utf-8", errors="replace")
        return name

    def _show_substrings(self, capcount: int, utf: bool) -> None:
        dctl = self.dctl
        md = self.match_data
        engine = self.engine
        out = self.out

        for n in dctl.copy_numbers:
            rc, units = engine.substring_copy_bynumber(md, n, COPY_BUFFER_UNITS)
            if rc < 0:
                out.writeline(f"copy substring {n} failed {rc}")
            else:
                out.write("%2dC " % n)
                self._show(units, 0, rc, utf)
                out.writeline(f" ({rc})")

        for name in dctl.copy_names:
            rc, units = engine.substring_copy_byname(
                md, self._engine_name(name, utf), COPY_BUFFER_UNITS)
            if rc < 0:
                out.writeline(f"copy substring '{name}' failed {rc}")
            else:
                out.write("  C ")
                self._show(units, 0, rc, utf)
                out.writeline(f" ({rc}) {name}")

        for n in dctl.get_numbers:
            rc, units = engine.substring_get_bynumber(md, n)
            if rc < 0:
                out.writeline(f"get substring {n} failed {rc}")
            else:
                out.write("%2dG " % n)
                self._show(units, 0, rc, utf)
                out.writeline(f" ({rc})")

        for name in dctl.get_names:
            rc, units = engine.substring_get_byname(
                md, self._engine_name(name, utf))
            if rc < 0:
                out.writeline(f"get substring '{name}' failed {rc}")
            else:
                out.write("  G ")
                self._show(units, 0, rc, utf)
                out.writeline(f" ({rc}) {name}")

        if dctl.control & CTL.GETALL:
            rc, strings, lengths = engine.substring_list_get(md)
            if rc < 0:
                out.writeline(f"get substring list failed {rc}")
                return
            shown = min(capcount, len(strings) - 1)
            for i in range(shown):
                out.write("%2dL " % i)
                self._show(strings[i], 0, lengths[i], utf)
                out.write("\n")
            if strings[shown] is not None:
                out.writeline("string list not terminated by NULL")

    def _show_partial(self, subject, length: int, utf: bool) -> None:
        md = self.match_data
        out = self.out
        out.write("Partial match")
        if md.leftchar != md.startchar:
            out.write(f" at offset {md.startchar}")
        if self.dctl.control & CTL.MARK and md.mark is not None:
            out.write(", mark=")
            self._show(md.mark, 0, len(md.mark), utf)
        out.write(": ")
        self._show(subject, md.leftchar, length - md.leftchar, utf)
        out.write("\n")

    def _show_failure(self, rc: int, gmatched: int, utf: bool) -> None:
        md = self.match_data
        out = self.out
        if rc == ERROR_NOMATCH:
            if gmatched == 0:
                out.write("No match")
                if self.dctl.control & CTL.MARK and md.mark is not None:
                    out.write(", mark = ")
                    self._show(md.mark, 0, len(md.mark), utf)
                out.write("\n")
        elif rc == ERROR_BADUTF:
            out.writeline(f"Error {rc} (bad UTF-{self.width.bits} string) "
                          f"offset={md.startchar} reason={md.utf_reason}")
        elif rc == ERROR_BADUTF_OFFSET:
            out.writeline(f"Error {rc} (bad UTF-{self.width.bits} offset)")
        else:
            out.writeline(f"Failed: error {rc}: "
                          f"{self.engine.get_error_message(rc)}")
