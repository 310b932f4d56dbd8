"""
Decoding of data lines into subject strings.

A data line is the subject text with backslash escapes, optionally followed
by \\= and a modifier list. The decoded subject is built in a SubjectBuffer
in the active code unit width.
"""

import logging
from array import array
from typing import Callable, Optional

from .codec import CodeUnitWidth, UnitBuffer, decode_utf8_scalar, encode_utf8
from .errors import DataLineError

logger = logging.getLogger(__name__)

SIMPLE_ESCAPES = {
    ord("\\"): ord("\\"),
    ord("a"): 7,
    ord("b"): 8,
    ord("e"): 27,
    ord("f"): 12,
    ord("n"): 10,
    ord("r"): 13,
    ord("t"): 9,
    ord("v"): 11,
}

OCTAL_DIGITS = b"01234567"
HEX_DIGITS = b"0123456789abcdefABCDEF"
DECIMAL_DIGITS = b"0123456789"

MAX_OCTAL_DIGITS = 12
MAX_HEX_DIGITS = 8


class SubjectBuffer(UnitBuffer):
    """Growable buffer holding a decoded subject.

    The subject is always followed by a zero unit. A duplicate sequence
    start is kept as an index, so it survives the buffer growing.
    """

    INITIAL_BYTES = 1 << 14

    def __init__(self, width: CodeUnitWidth):
        super().__init__(width, size=self.INITIAL_BYTES // width.unit_size)
        self.length = 0
        self.start_dup: Optional[int] = None

    def reset(self, source_length: int) -> None:
        # Each source byte yields at most one code unit.
        self.ensure(source_length + 1)
        self.length = 0
        self.start_dup = None

    def append(self, unit: int) -> None:
        self.ensure(self.length + 2)
        self.units[self.length] = unit
        self.length += 1

    def extend(self, units) -> None:
        for unit in units:
            self.append(unit)

    @property
    def duplicating(self) -> bool:
        return self.start_dup is not None

    def start_duplicate(self) -> None:
        self.start_dup = self.length

    def end_duplicate(self, count: int) -> None:
        """Repeat the units since start_duplicate() so they occur count times."""
        span = self.units[self.start_dup:self.length]
        self.ensure(self.length + len(span) * (count - 1) + 1)
        for _ in range(count - 1):
            self.units[self.length:self.length + len(span)] = span
            self.length += len(span)
        self.start_dup = None

    def terminate(self) -> None:
        self.ensure(self.length + 1)
        self.units[self.length] = 0

    def subject(self) -> array:
        """The decoded subject, without its terminating zero."""
        return self.units[:self.length]


def _store8(buffer: SubjectBuffer, c: int, utf: bool, warn) -> None:
    if utf:
        if c > 0x7fffffff:
            raise DataLineError(
                f"** Character \\x{{{c:x}}} is greater than 0x7fffffff and "
                f"so cannot be converted to UTF-8")
        buffer.extend(encode_utf8(c))
    else:
        if c > 0xff:
            warn(f"** Character \\x{{{c:x}}} is greater than 255 and UTF-8 "
                 f"mode is not enabled.")
            warn("** Truncation will probably give the wrong result.")
        buffer.append(c & 0xff)


def _store16(buffer: SubjectBuffer, c: int, utf: bool, warn) -> None:
    if utf:
        if c > 0x10ffff:
            raise DataLineError(
                f"** Failed: character \\x{{{c:x}}} is greater than 0x10ffff "
                f"and so cannot be converted to UTF-16")
        if c >= 0x10000:
            c -= 0x10000
            buffer.append(0xd800 | (c >> 10))
            buffer.append(0xdc00 | (c & 0x3ff))
        else:
            buffer.append(c)
    else:
        if c > 0xffff:
            warn(f"** Character \\x{{{c:x}}} is greater than 0xffff and "
                 f"UTF-16 mode is not enabled.")
            warn("** Truncation will probably give the wrong result.")
        buffer.append(c & 0xffff)


def _store32(buffer: SubjectBuffer, c: int, utf: bool, warn) -> None:
    buffer.append(c)


STORERS = {8: _store8, 16: _store16, 32: _store32}


def check_utf8_line(text: bytes) -> bool:
    """True if text is well-formed UTF-8."""
    pos = 0
    while pos < len(text):
        _, length = decode_utf8_scalar(text, pos)
        if length <= 0:
            return False
        pos += length
    return True


def decode_data_line(line: bytes, buffer: SubjectBuffer, utf: bool,
                     warn: Callable[[str], None]) -> Optional[str]:
    """Decode a data line into buffer.

    Args:
        line: The raw data line.
        buffer: Receives the subject in the buffer's width.
        utf: The pattern was compiled in UTF mode.
        warn: Called with each warning line.

    Returns:
        The modifier text that followed \\=, or None.

    Raises:
        DataLineError: The line cannot be used; the message says why.
    """
    # A zero byte ends the line, as the escapes are the only way to put one
    # in a subject
    text = line.split(b"\x00", 1)[0].strip()
    if utf and not check_utf8_line(text):
        raise DataLineError(
            "** Failed: invalid UTF-8 string cannot be used as input in UTF mode")

    store = STORERS[buffer.width.bits]
    eight_bit = buffer.width.bits == 8
    buffer.reset(len(text))
    pos = 0
    end = len(text)

    while pos < end:
        c = text[pos]
        pos += 1

        if c == ord("]") and buffer.duplicating:
            if pos >= end or text[pos] != ord("{"):
                raise DataLineError("** Expected '{' after \\[....]")
            pos += 1
            count = 0
            while pos < end and text[pos] in DECIMAL_DIGITS:
                count = count * 10 + text[pos] - ord("0")
                pos += 1
            if pos >= end or text[pos] != ord("}"):
                raise DataLineError("** Expected '}' after \\[...]{...")
            pos += 1
            if count == 0:
                raise DataLineError("** Zero repeat not allowed")
            buffer.end_duplicate(count)
            continue

        if c != ord("\\"):
            if utf and c >= 0xc0:
                c, length = decode_utf8_scalar(text, pos - 1)
                pos += length - 1
            store(buffer, c, utf, warn)
            continue

        if pos >= end:
            # A backslash at the end allows for an empty line
            continue
        c = text[pos]
        pos += 1

        if c in SIMPLE_ESCAPES:
            c = SIMPLE_ESCAPES[c]

        elif c in OCTAL_DIGITS:
            c -= ord("0")
            digits = 0
            while digits < 2 and pos < end and text[pos] in OCTAL_DIGITS:
                c = c * 8 + text[pos] - ord("0")
                pos += 1
                digits += 1

        elif c == ord("o"):
            c = ord("o")
            if pos < end and text[pos] == ord("{"):
                scan = pos + 1
                c = 0
                digits = 0
                while scan < end and text[scan] in OCTAL_DIGITS:
                    digits += 1
                    if digits == MAX_OCTAL_DIGITS + 1:
                        warn("** Too many octal digits in \\o{...} item; "
                             "using only the first twelve.")
                    if digits <= MAX_OCTAL_DIGITS:
                        c = c * 8 + text[scan] - ord("0")
                    scan += 1
                if scan < end and text[scan] == ord("}"):
                    pos = scan + 1
                else:
                    warn("** Missing } after \\o{ (assumed)")
                c &= 0xffffffff

        elif c == ord("x"):
            braced = False
            if pos < end and text[pos] == ord("{"):
                scan = pos + 1
                value = 0
                digits = 0
                while scan < end and text[scan] in HEX_DIGITS:
                    digits += 1
                    if digits == MAX_HEX_DIGITS + 1:
                        warn("** Too many hex digits in \\x{...} item; "
                             "using only the first eight.")
                    if digits <= MAX_HEX_DIGITS:
                        value = value * 16 + int(chr(text[scan]), 16)
                    scan += 1
                if scan < end and text[scan] == ord("}"):
                    pos = scan + 1
                    c = value
                    braced = True
            if not braced:
                # \xHH is one code unit; in 8-bit UTF mode it is a raw byte
                # so that invalid UTF-8 can be built.
                c = 0
                digits = 0
                while digits < 2 and pos < end and text[pos] in HEX_DIGITS:
                    c = c * 16 + int(chr(text[pos]), 16)
                    pos += 1
                    digits += 1
                if utf and eight_bit:
                    buffer.append(c)
                    continue

        elif c == ord("="):
            buffer.terminate()
            return text[pos:].decode("latin-1")

        elif c == ord("["):
            if buffer.duplicating:
                raise DataLineError("** Nested duplication is not supported")
            buffer.start_duplicate()
            continue

        else:
            raise DataLineError(
                f"** Unrecognized escape sequence \"\\{chr(c)}\"")

        store(buffer, c, utf, warn)

    buffer.terminate()
    return None
