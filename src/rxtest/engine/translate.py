"""
Rewriting Perl-compatible pattern syntax for the regex package.

Most of the syntax is shared. The differences handled here are the escapes
the regex package spells differently or does not have (\\Q..\\E, \\R, \\h, \\v,
\\N, \\z, \\Z, \\e, \\o{}, \\c, \\g and \\k references, octal escapes), option
settings in the middle of a group, which become scoped groups, and the
no_auto_capture, ungreedy and dollar_endonly options.

Every character written to the output remembers the pattern offset it came
from, so that errors reported by the regex package can be given as offsets
in the original pattern.
"""

from typing import Dict, List, Optional, Tuple

from ..constants import (
    Bsr,
    COMPILE_ERROR_BAD_ESCAPE,
    COMPILE_ERROR_CHARACTER_VALUE_TOO_LARGE,
    COMPILE_ERROR_PATTERN_NOT_SUPPORTED,
)

# The regex package knows these flags inline; others are dropped.
INLINE_FLAGS = "imsx"
OPTION_LETTERS = "imsxJUXn"

HSPACE = ("\\t\\x20\\xa0\\u1680\\u180e\\u2000-\\u200a\\u202f\\u205f"
          "\\u3000")
HSPACE_BYTES = "\\t\\x20\\xa0"
VSPACE = "\\n\\x0b\\f\\r\\x85\\u2028\\u2029"
VSPACE_BYTES = "\\n\\x0b\\f\\r\\x85"


class TranslationError(Exception):
    """A construct the pattern cannot contain, with its compile error code."""

    def __init__(self, code: int, offset: int):
        super().__init__(code, offset)
        self.code = code
        self.offset = offset


class _Frame:
    """One level of parentheses."""

    def __init__(self, branch_reset: bool = False):
        self.wraps: List[str] = []
        self.branch_reset = branch_reset


class PatternTranslator:
    """Translate one pattern."""

    def __init__(self, pattern: str, is_bytes: bool = False,
                 bsr: int = Bsr.DEFAULT, extended: bool = False,
                 multiline: bool = False, no_auto_capture: bool = False,
                 ungreedy: bool = False, dollar_endonly: bool = False,
                 dupnames: bool = False,
                 group_numbers: Optional[List[int]] = None):
        self.pattern = pattern
        self.is_bytes = is_bytes
        self.bsr = bsr
        self.extended = extended
        self.multiline = multiline
        self.no_auto_capture = no_auto_capture
        self.ungreedy = ungreedy
        self.dollar_endonly = dollar_endonly
        self.dupnames = dupnames
        self.seen_names: Dict[str, int] = {}
        self.pos = 0
        self.out: List[str] = []
        self.source_map: List[int] = []
        self.frames = [_Frame()]
        self.group_count = 0
        self.leading_flags: List[str] = []
        self.jchanged = False
        self.at_start = True
        self.result = ""
        self.max_depth = 0
        # Marks become empty groups, so the regex package's group numbers
        # run ahead of the pattern's. numbers[n] is the regex group for
        # capture n; group_numbers is that list from an earlier pass, used
        # to resolve numeric references.
        self.group_numbers = group_numbers
        self.numbers = [0]
        self.regex_groups = 0
        self.marks: List[Tuple[str, str]] = []

    def _peek(self, offset: int = 0) -> Optional[str]:
        if self.pos + offset < len(self.pattern):
            return self.pattern[self.pos + offset]
        return None

    def _advance(self) -> Optional[str]:
        if self.pos < len(self.pattern):
            ch = self.pattern[self.pos]
            self.pos += 1
            return ch
        return None

    def _match(self, text: str) -> bool:
        if self.pattern.startswith(text, self.pos):
            self.pos += len(text)
            return True
        return False

    def _emit(self, text: str, source: Optional[int] = None) -> None:
        if source is None:
            source = self.pos
        self.out.append(text)
        self.source_map.extend([source] * len(text))
        self.at_start = False

    def source_offset(self, index: int) -> int:
        """Pattern offset for an index into the translated pattern."""
        if not self.source_map:
            return 0
        if index >= len(self.source_map):
            return len(self.pattern)
        return self.source_map[index]

    def translate(self) -> str:
        while self.pos < len(self.pattern):
            ch = self.pattern[self.pos]
            if self.extended and ch.isspace():
                self._emit(ch)
                self.pos += 1
            elif self.extended and ch == "#":
                end = self.pattern.find("\n", self.pos)
                end = len(self.pattern) if end < 0 else end
                # A comment running to the end must not swallow closing
                # parentheses added later
                self._emit(self.pattern[self.pos:end] +
                           ("" if end < len(self.pattern) else "\n"))
                self.pos = end
            elif ch == "\\":
                self._translate_escape()
            elif ch == "[":
                self._translate_class()
            elif ch == "(":
                self._translate_group()
            elif ch == ")":
                start = self.pos
                self.pos += 1
                self._close_wraps(self.frames[-1], start)
                if len(self.frames) > 1:
                    self.frames.pop()
                self._emit(")", start)
                self._translate_quantifier()
            elif ch == "|":
                start = self.pos
                self.pos += 1
                frame = self.frames[-1]
                self._close_wraps(frame, start)
                self._emit("|", start)
                for flags in frame.wraps:
                    self._emit(f"(?{flags}:", start)
            elif ch == "^" and self.multiline:
                # Not after a newline that ends the subject
                self._emit("(?:\\A|(?<=\\n)(?!\\Z))")
                self.pos += 1
            elif ch == "$" and self.dollar_endonly and not self.multiline:
                self._emit("\\Z")
                self.pos += 1
            elif ch == "{" and not self._is_quantifier_start():
                self._emit("\\{")
                self.pos += 1
            elif ch in "*+?{":
                self._translate_quantifier()
            else:
                self._emit(ch)
                self.pos += 1
                self._translate_quantifier()

        for frame in reversed(self.frames):
            self._close_wraps(frame, len(self.pattern))
        return "".join(self.out)

    def _push(self, frame: _Frame) -> None:
        self.frames.append(frame)
        self.max_depth = max(self.max_depth, len(self.frames) - 1)

    def _open_capture(self) -> None:
        self.group_count += 1
        self.regex_groups += 1
        self.numbers.append(self.regex_groups)

    def _regex_number(self, number: int) -> int:
        """The regex package's number for a capture group."""
        if self.group_numbers is None or not 0 < number < len(
                self.group_numbers):
            return number
        return self.group_numbers[number]

    def _mark(self, name: str, start: int) -> None:
        group = f"__mark{len(self.marks)}"
        self.marks.append((group, name))
        self.regex_groups += 1
        self._emit(f"(?P<{group}>)", start)

    def _close_wraps(self, frame: _Frame, source: int) -> None:
        if frame.wraps:
            self._emit(")" * len(frame.wraps), source)

    def _is_quantifier_start(self) -> bool:
        i = self.pos + 1
        start = i
        while i < len(self.pattern) and self.pattern[i].isdigit():
            i += 1
        if i == start or i >= len(self.pattern):
            return False
        if self.pattern[i] == "}":
            return True
        if self.pattern[i] == ",":
            i += 1
            while i < len(self.pattern) and self.pattern[i].isdigit():
                i += 1
            return i < len(self.pattern) and self.pattern[i] == "}"
        return False

    def _translate_quantifier(self) -> None:
        """Copy a quantifier, if one is next, adjusting its greediness."""
        if self.extended:
            save = self.pos
            while self._peek() is not None and self._peek().isspace():
                self.pos += 1
            if self._peek() not in ("*", "+", "?", "{"):
                self.pos = save
                return
        ch = self._peek()
        if ch in ("*", "+", "?"):
            self._emit(ch)
            self.pos += 1
        elif ch == "{" and self._is_quantifier_start():
            end = self.pattern.index("}", self.pos)
            self._emit(self.pattern[self.pos:end + 1])
            self.pos = end + 1
        else:
            return

        if self._peek() == "+":
            self._emit("+")
            self.pos += 1
        elif self._peek() == "?":
            if not self.ungreedy:
                self._emit("?")
            self.pos += 1
        elif self.ungreedy:
            self._emit("?")

    def _literal(self, code: int, source: int) -> str:
        """A character written in a form valid inside and outside classes."""
        if self.is_bytes:
            if code > 0xff:
                raise TranslationError(COMPILE_ERROR_CHARACTER_VALUE_TOO_LARGE,
                                       self.pos)
            return f"\\x{code:02x}"
        if code > 0x10ffff:
            raise TranslationError(COMPILE_ERROR_CHARACTER_VALUE_TOO_LARGE,
                                   self.pos)
        if code < 0x80 and chr(code).isalnum():
            return chr(code)
        if code <= 0xff:
            return f"\\x{code:02x}"
        if code <= 0xffff:
            return f"\\u{code:04x}"
        return f"\\U{code:08x}"

    def _parse_hex(self) -> int:
        if self._match("{"):
            end = self.pattern.find("}", self.pos)
            digits = self.pattern[self.pos:end] if end >= 0 else ""
            if end >= 0 and digits and all(
                    c in "0123456789abcdefABCDEF" for c in digits):
                self.pos = end + 1
                return int(digits, 16)
            # Not a valid \x{...}; take it as \x followed by {
            self.pos -= 1
            return 0
        digits = ""
        while len(digits) < 2 and self._peek() is not None and \
                self._peek() in "0123456789abcdefABCDEF":
            digits += self._advance()
        return int(digits or "0", 16)

    def _parse_octal(self, first: str) -> int:
        digits = first
        while len(digits) < 3 and self._peek() is not None and \
                self._peek() in "01234567":
            digits += self._advance()
        return int(digits, 8)

    def _braced_text(self, close: str) -> str:
        end = self.pattern.find(close, self.pos)
        if end < 0:
            text = self.pattern[self.pos:]
            self.pos = len(self.pattern)
            return text
        text = self.pattern[self.pos:end]
        self.pos = end + len(close)
        return text

    def _quoted(self, start: int) -> None:
        """Characters between \\Q and \\E, as literals."""
        end = self.pattern.find("\\E", self.pos)
        if end < 0:
            end = len(self.pattern)
        for offset in range(self.pos, end):
            self.pos = offset
            self._emit(self._literal(ord(self.pattern[offset]), offset), offset)
        self.pos = min(end + 2, len(self.pattern))

    def _common_escape(self, ch: str, start: int) -> Optional[str]:
        """Escapes that mean the same inside and outside a class."""
        if ch == "x":
            return self._literal(self._parse_hex(), start)
        if ch == "o" and self._match("{"):
            digits = self._braced_text("}")
            return self._literal(int(digits or "0", 8), start)
        if ch == "e":
            return self._literal(27, start)
        if ch == "c":
            ctrl = self._advance()
            if ctrl is None:
                return "\\c"
            return self._literal(ord(ctrl.upper()) ^ 0x40, start)
        if ch == "0":
            return self._literal(self._parse_octal("0"), start)
        if ch in "aftnr":
            return "\\" + ch
        if ch in "dDwWsS":
            return "\\" + ch
        if ch in "pP":
            if self._peek() == "{":
                return "\\" + ch + "{" + self._braced_text("}")[1:] + "}"
            return "\\" + ch + (self._advance() or "")
        return None

    def _translate_escape(self) -> None:
        start = self.pos
        self.pos += 1
        ch = self._advance()
        if ch is None:
            # Left for the regex package to report
            self._emit("\\", start)
            return

        if ch == "Q":
            self._quoted(start)
            return
        if ch == "E":
            return

        text = self._common_escape(ch, start)
        if text is not None:
            self._emit(text, start)
            self._translate_quantifier()
            return

        if ch in "123456789":
            self.pos -= 1
            digits_start = self.pos
            while self._peek() is not None and self._peek().isdigit():
                self.pos += 1
            number = int(self.pattern[digits_start:self.pos])
            if number < 10 or number <= self.group_count:
                self._emit(f"(?:\\{self._regex_number(number)})", start)
            else:
                self.pos = digits_start + 1
                if ch in "89":
                    self._emit(ch, start)
                else:
                    self._emit(self._literal(self._parse_octal(ch), start),
                               start)
            self._translate_quantifier()
            return

        if ch == "R":
            self._emit(self._bsr_expansion(), start)
        elif ch == "h":
            self._emit(f"[{HSPACE_BYTES if self.is_bytes else HSPACE}]", start)
        elif ch == "H":
            self._emit(f"[^{HSPACE_BYTES if self.is_bytes else HSPACE}]", start)
        elif ch == "v":
            self._emit(f"[{VSPACE_BYTES if self.is_bytes else VSPACE}]", start)
        elif ch == "V":
            self._emit(f"[^{VSPACE_BYTES if self.is_bytes else VSPACE}]", start)
        elif ch == "N" and self._peek() != "{":
            self._emit("[^\\n]", start)
        elif ch == "z":
            self._emit("\\Z", start)
        elif ch == "Z":
            self._emit("(?=\\n?\\Z)", start)
        elif ch == "g":
            self._emit(self._g_reference(start), start)
        elif ch == "k":
            name = None
            for opener, closer in (("<", ">"), ("'", "'"), ("{", "}")):
                if self._match(opener):
                    name = self._braced_text(closer)
                    break
            if name is None:
                raise TranslationError(COMPILE_ERROR_BAD_ESCAPE, self.pos)
            self._emit(f"(?P={name})", start)
        elif ch in "bBAGKX":
            self._emit("\\" + ch, start)
        elif ch.isascii() and ch.isalnum():
            raise TranslationError(COMPILE_ERROR_BAD_ESCAPE, self.pos)
        else:
            self._emit(self._literal(ord(ch), start), start)
        self._translate_quantifier()

    def _bsr_expansion(self) -> str:
        if self.bsr == Bsr.ANYCRLF:
            return "(?>\\r\\n|[\\r\\n])"
        members = VSPACE_BYTES if self.is_bytes else VSPACE
        return f"(?>\\r\\n|[{members}])"

    def _g_reference(self, start: int) -> str:
        if self._match("<"):
            return self._subroutine(self._braced_text(">"))
        if self._match("'"):
            return self._subroutine(self._braced_text("'"))
        if self._match("{"):
            ref = self._braced_text("}")
        else:
            ref_start = self.pos
            if self._peek() in ("-", "+"):
                self.pos += 1
            while self._peek() is not None and self._peek().isdigit():
                self.pos += 1
            ref = self.pattern[ref_start:self.pos]
        if ref.lstrip("+-").isdigit():
            number = int(ref)
            if ref.startswith("-"):
                number = self.group_count + 1 + number
            return f"(?:\\{self._regex_number(number)})"
        if not ref:
            raise TranslationError(COMPILE_ERROR_BAD_ESCAPE, self.pos)
        return f"(?P={ref})"

    def _subroutine(self, ref: str) -> str:
        if ref.lstrip("+-").isdigit():
            number = int(ref)
            if ref.startswith("-"):
                number += self.group_count + 1
            elif ref.startswith("+"):
                number += self.group_count
            return f"(?{self._regex_number(number)})"
        return f"(?&{ref})"

    def _translate_class(self) -> None:
        start = self.pos
        self.pos += 1
        self._emit("[", start)
        if self._match("^"):
            self._emit("^", start + 1)
        if self._peek() == "]":
            self._emit("\\]", self.pos)
            self.pos += 1

        while self.pos < len(self.pattern):
            ch = self.pattern[self.pos]
            if ch == "]":
                self._emit("]")
                self.pos += 1
                self._translate_quantifier()
                return
            if ch == "[" and self._peek(1) in (":", ".", "="):
                close = self._peek(1) + "]"
                end = self.pattern.find(close, self.pos + 2)
                if end < 0:
                    self._emit("\\[")
                    self.pos += 1
                    continue
                self._emit(self.pattern[self.pos:end + 2])
                self.pos = end + 2
                continue
            if ch == "[":
                self._emit("\\[")
                self.pos += 1
                continue
            if ch != "\\":
                self._emit(ch)
                self.pos += 1
                continue

            escape_start = self.pos
            self.pos += 1
            esc = self._advance()
            if esc is None:
                self._emit("\\", escape_start)
                break
            if esc == "Q":
                self._quoted(escape_start)
                continue
            if esc == "E":
                continue
            text = self._common_escape(esc, escape_start)
            if text is not None:
                self._emit(text, escape_start)
            elif esc == "b":
                self._emit("\\x08", escape_start)
            elif esc in "1234567":
                self._emit(self._literal(self._parse_octal(esc), escape_start),
                           escape_start)
            elif esc == "h":
                self._emit(HSPACE_BYTES if self.is_bytes else HSPACE,
                           escape_start)
            elif esc == "v":
                self._emit(VSPACE_BYTES if self.is_bytes else VSPACE,
                           escape_start)
            elif esc in "HVRXN":
                raise TranslationError(COMPILE_ERROR_PATTERN_NOT_SUPPORTED,
                                       self.pos)
            elif esc.isascii() and esc.isalnum():
                raise TranslationError(COMPILE_ERROR_BAD_ESCAPE, self.pos)
            else:
                self._emit(self._literal(ord(esc), escape_start), escape_start)

        # Unterminated class; the regex package reports it

    def _group_name(self, name: str) -> str:
        """The name to give a named group in the translated pattern.

        The regex package gives groups with the same name the same number.
        Where duplicate names are allowed, later groups are renamed so that
        each keeps its own number; lookups by name use the pattern's own
        name table.
        """
        seen = self.seen_names.get(name, 0)
        self.seen_names[name] = seen + 1
        if not seen or not self.dupnames or any(
                frame.branch_reset for frame in self.frames):
            return name
        return f"{name}_{seen + 1}_"

    def _option_letters(self) -> str:
        start = self.pos
        while self._peek() is not None and (
                self._peek() in OPTION_LETTERS or self._peek() == "-"):
            self.pos += 1
        return self.pattern[start:self.pos]

    def _filter_options(self, letters: str) -> str:
        """Keep the letters the regex package knows, noting (?J)."""
        on, _, off = letters.partition("-")
        if "J" in letters:
            self.jchanged = True
            self.dupnames = "J" in on
        on = "".join(c for c in on if c in INLINE_FLAGS)
        off = "".join(c for c in off if c in INLINE_FLAGS)
        if "x" in on:
            self.extended = True
        if "x" in off:
            self.extended = False
        if "m" in on:
            self.multiline = True
        if "m" in off:
            self.multiline = False
        return on + ("-" + off if off else "")

    def _translate_group(self) -> None:
        start = self.pos
        self.pos += 1

        if self._match("*"):
            verb = self._braced_text(")")
            if verb.startswith("MARK:") or verb.startswith(":"):
                self._mark(verb.partition(":")[2], start)
            else:
                self._emit("(*" + verb + ")", start)
            return

        if not self._match("?"):
            if self.no_auto_capture:
                self._emit("(?:", start)
            else:
                self._open_capture()
                self._emit("(", start)
            self._push(_Frame())
            return

        if self._match("#"):
            self._braced_text(")")
            return

        for opener in (":", "|", ">", "=", "!", "<=", "<!"):
            if self._match(opener):
                self._emit("(?" + opener, start)
                self._push(_Frame(branch_reset=opener == "|"))
                return

        for opener, closer in (("P<", ">"), ("<", ">"), ("'", "'")):
            if self._match(opener):
                name = self._group_name(self._braced_text(closer))
                self._open_capture()
                self._emit(f"(?P<{name}>", start)
                self._push(_Frame())
                return

        if self._match("P="):
            self._emit(f"(?P={self._braced_text(')')})", start)
            self._translate_quantifier()
            return
        if self._match("P>") or self._match("&"):
            self._emit(f"(?&{self._braced_text(')')})", start)
            self._translate_quantifier()
            return
        if self._match("R)"):
            self._emit("(?R)", start)
            self._translate_quantifier()
            return
        if self._peek() is not None and (
                self._peek().isdigit() or self._peek() in "+-" and
                self._peek(1) is not None and self._peek(1).isdigit()):
            self._emit(self._subroutine(self._braced_text(")")), start)
            self._translate_quantifier()
            return

        if self._match("("):
            if self._match("<") or self._match("'"):
                condition = self._braced_text(">" if self.pattern[
                    self.pos - 1] == "<" else "'")
                self._match(")")
                self._emit(f"(?({condition})", start)
            elif self._peek() == "?":
                # Assertion condition
                self.pos -= 1
                self._emit("(?", start)
            else:
                condition = self._braced_text(")")
                if condition.isdigit():
                    condition = str(self._regex_number(int(condition)))
                self._emit("(?(" + condition + ")", start)
            self._push(_Frame())
            return

        was_start = self.at_start and len(self.frames) == 1
        letters = self._option_letters()
        flags = self._filter_options(letters)
        if self._match(")"):
            if was_start:
                self.leading_flags.append(flags)
                return
            if flags:
                self._emit(f"(?{flags}:", start)
                self.frames[-1].wraps.append(flags)
            return
        if self._match(":"):
            self._emit(f"(?{flags}:" if flags else "(?:", start)
            self._push(_Frame())
            return
        # Unknown construct; let the regex package report it
        self._emit("(?" + letters, start)
        self._push(_Frame())


def translate(pattern: str, **options) -> PatternTranslator:
    """Translate a pattern, returning the translator with its results."""
    translator = PatternTranslator(pattern, **options)
    translator.result = translator.translate()
    if translator.marks:
        # References to later groups need the whole pattern's numbering
        translator = PatternTranslator(
            pattern, group_numbers=translator.numbers, **options)
        translator.result = translator.translate()
    return translator
