"""
Conversions between UTF-8 source text and the three code unit widths.

The UTF-8 helpers follow the original RFC 2279 definition, which allows
values up to 0x7fffffff in sequences of up to six bytes. This makes it
possible to build subjects that are deliberately invalid, which is what a
test harness needs for checking an engine's error handling.
"""

import codecs
import locale
import logging
from array import array
from typing import Callable, Optional, Tuple

from .errors import (
    MalformedUTF8Error,
    ValueTooLargeForUTFError,
    ValueTooLargeNonUTFError,
)

logger = logging.getLogger(__name__)

# Largest value for each sequence length, the lead byte marker, and the
# mask for the value bits in the lead byte.
UTF8_TABLE1 = (0x7f, 0x7ff, 0xffff, 0x1fffff, 0x3ffffff, 0x7fffffff)
UTF8_TABLE2 = (0, 0xc0, 0xe0, 0xf0, 0xf8, 0xfc)
UTF8_TABLE3 = (0xff, 0x1f, 0x0f, 0x07, 0x03, 0x01)

MAX_UTF8_VALUE = 0x7fffffff
MAX_UNICODE = 0x10ffff


def decode_utf8_scalar(data: bytes, pos: int = 0) -> Tuple[int, int]:
    """Decode one UTF-8 character.

    Args:
        data: The byte string.
        pos: Where the character starts.

    Returns:
        A (value, length) pair. A positive length is the number of bytes
        consumed. A length of zero or less means the sequence is malformed,
        and its negation is the offset of the offending byte.
    """
    c = data[pos]
    if c < 0x80:
        return c, 1

    extra = 0
    d = c << 1
    while d & 0x80:
        extra += 1
        d <<= 1
        if extra > 5:
            break
    if extra == 0 or extra == 6:
        return 0, 0

    shift = 6 * extra
    value = (c & UTF8_TABLE3[extra]) << shift
    for j in range(extra):
        index = pos + 1 + j
        if index >= len(data) or (data[index] & 0xc0) != 0x80:
            return 0, -(j + 1)
        shift -= 6
        value |= (data[index] & 0x3f) << shift

    # Only the shortest encoding is accepted
    for j, limit in enumerate(UTF8_TABLE1):
        if value <= limit:
            break
    if j != extra:
        return 0, -(extra + 1)

    return value, extra + 1


def encode_utf8(value: int) -> bytes:
    """Encode a value in the range 0 to 0x7fffffff as UTF-8."""
    if value < 0 or value > MAX_UTF8_VALUE:
        raise ValueError(f"value 0x{value:x} cannot be encoded as UTF-8")
    for i, limit in enumerate(UTF8_TABLE1):
        if value <= limit:
            break
    out = bytearray(i + 1)
    for j in range(i, 0, -1):
        out[j] = 0x80 | (value & 0x3f)
        value >>= 6
    out[0] = UTF8_TABLE2[i] | value
    return bytes(out)


def utf8_scalars(data: bytes, width: int):
    """Yield the values in a UTF-8 string, raising on malformed input."""
    pos = 0
    while pos < len(data):
        value, length = decode_utf8_scalar(data, pos)
        if length <= 0:
            raise MalformedUTF8Error(width, pos - length)
        yield value
        pos += length


def reencode_to_width16(data: bytes, utf: bool) -> array:
    """Convert a UTF-8 string to 16-bit code units.

    Values above 0xffff become surrogate pairs in UTF mode. Surrogate values
    in the input are passed through, so that invalid UTF-16 can be built.

    Raises:
        MalformedUTF8Error: The input is not valid UTF-8.
        ValueTooLargeForUTFError: A value is above 0x10ffff.
        ValueTooLargeNonUTFError: A value is above 0xffff outside UTF mode.
    """
    units = array("H")
    for value in utf8_scalars(data, 16):
        if value > MAX_UNICODE:
            raise ValueTooLargeForUTFError(value)
        if value < 0x10000:
            units.append(value)
        else:
            if not utf:
                raise ValueTooLargeNonUTFError(value)
            value -= 0x10000
            units.append(0xd800 | (value >> 10))
            units.append(0xdc00 | (value & 0x3ff))
    return units


def reencode_to_width32(data: bytes, utf: bool) -> array:
    """Convert a UTF-8 string to 32-bit code units, one per character.

    Raises:
        MalformedUTF8Error: The input is not valid UTF-8.
        ValueTooLargeForUTFError: A value is above 0x10ffff in UTF mode.
    """
    units = array("I")
    for value in utf8_scalars(data, 32):
        if utf and value > MAX_UNICODE:
            raise ValueTooLargeForUTFError(value)
        units.append(value)
    return units


# Printable predicates

def ascii_printable(c: int) -> bool:
    return 32 <= c < 127


def locale_printable(c: int) -> bool:
    """True if c is printable in the character set of the active locale."""
    if c > 255:
        return False
    if c < 128:
        return ascii_printable(c)
    encoding = locale.getlocale(locale.LC_CTYPE)[1]
    if not encoding:
        return False
    try:
        info = codecs.lookup(encoding)
    except LookupError:
        return False
    # Multibyte locales have no printable single bytes above ASCII
    if info.name in ("utf-8", "utf-16", "utf-32"):
        return False
    try:
        return bytes((c,)).decode(info.name).isprintable()
    except UnicodeDecodeError:
        return False


def render_char(c: int, utf: bool, sink=None,
                printable: Callable[[int], bool] = ascii_printable) -> int:
    """Render one character literally or as a hex escape.

    Returns the number of characters the rendering takes, whether or not a
    sink was given.
    """
    if printable(c):
        text = chr(c)
    elif c < 0x100 and not utf:
        text = f"\\x{c:02x}"
    else:
        text = f"\\x{{{c:02x}}}"
    if sink is not None:
        sink.write(text)
    return len(text)


class CodeUnitWidth:
    """One of the three code unit widths the engine can be built for."""

    bits = 0
    typecode = ""
    max_unit = 0

    @property
    def unit_size(self) -> int:
        return self.bits // 8

    def __repr__(self) -> str:
        return f"<{self.bits}-bit>"

    def new_units(self, values=()) -> array:
        return array(self.typecode, values)

    def from_utf8(self, data: bytes, utf: bool) -> array:
        """Convert UTF-8 source text to this width."""
        raise NotImplementedError

    def render(self, units, offset: int, length: int, utf: bool, sink=None,
               printable: Callable[[int], bool] = ascii_printable) -> int:
        """Render a code unit string; see render_codeunit_string."""
        raise NotImplementedError

    def char_length(self, units, pos: int, end: int) -> int:
        """Number of units in the UTF character that starts at pos."""
        return 1


class Width8(CodeUnitWidth):
    bits = 8
    typecode = "B"
    max_unit = 0xff

    def from_utf8(self, data: bytes, utf: bool) -> array:
        return array("B", data)

    def render(self, units, offset, length, utf, sink=None,
               printable=ascii_printable):
        data = bytes(units[offset:offset + length])
        pos = 0
        written = 0
        while pos < length:
            if utf:
                value, n = decode_utf8_scalar(data, pos)
                if 0 < n <= length - pos:
                    written += render_char(value, utf, sink, printable)
                    pos += n
                    continue
            written += render_char(data[pos], utf, sink, printable)
            pos += 1
        return written

    def char_length(self, units, pos, end):
        n = 1
        while pos + n < end and (units[pos + n] & 0xc0) == 0x80:
            n += 1
        return n


class Width16(CodeUnitWidth):
    bits = 16
    typecode = "H"
    max_unit = 0xffff

    def from_utf8(self, data: bytes, utf: bool) -> array:
        return reencode_to_width16(data, utf)

    def render(self, units, offset, length, utf, sink=None,
               printable=ascii_printable):
        pos = offset
        end = offset + length
        written = 0
        while pos < end:
            c = units[pos] & 0xffff
            pos += 1
            if utf and 0xd800 <= c < 0xdc00 and pos < end:
                d = units[pos] & 0xffff
                if 0xdc00 <= d <= 0xdfff:
                    c = ((c & 0x3ff) << 10) + (d & 0x3ff) + 0x10000
                    pos += 1
            written += render_char(c, utf, sink, printable)
        return written

    def char_length(self, units, pos, end):
        if (pos + 1 < end and 0xd800 <= units[pos] < 0xdc00 and
                0xdc00 <= units[pos + 1] <= 0xdfff):
            return 2
        return 1


class Width32(CodeUnitWidth):
    bits = 32
    typecode = "I"
    max_unit = 0xffffffff

    def from_utf8(self, data: bytes, utf: bool) -> array:
        return reencode_to_width32(data, utf)

    def render(self, units, offset, length, utf, sink=None,
               printable=ascii_printable):
        written = 0
        for c in units[offset:offset + length]:
            written += render_char(c, utf, sink, printable)
        return written


WIDTH8 = Width8()
WIDTH16 = Width16()
WIDTH32 = Width32()

WIDTHS = {8: WIDTH8, 16: WIDTH16, 32: WIDTH32}


def get_width(bits: int) -> CodeUnitWidth:
    try:
        return WIDTHS[bits]
    except KeyError:
        raise ValueError(f"unsupported code unit width: {bits}") from None


def render_codeunit_string(units, offset: int, length: int, utf: bool,
                           sink=None,
                           printable: Callable[[int], bool] = ascii_printable,
                           width: Optional[CodeUnitWidth] = None) -> int:
    """Render a code unit string for display.

    Args:
        units: An array of code units. Its typecode selects the width unless
            width is given.
        offset: Index of the first unit to render.
        length: Number of units to render.
        utf: Decode multi-unit characters.
        sink: Object with a write(str) method, or None to only count.
        printable: Predicate selecting the characters shown literally.
        width: Explicit code unit width.

    Returns:
        The number of characters written, or that would have been written.
    """
    if width is None:
        width = _width_for(units)
    return width.render(units, offset, length, utf, sink, printable)


def _width_for(units) -> CodeUnitWidth:
    if isinstance(units, (bytes, bytearray)):
        return WIDTH8
    typecode = getattr(units, "typecode", "B")
    for width in WIDTHS.values():
        if width.typecode == typecode:
            return width
    if array(typecode).itemsize == 4:
        return WIDTH32
    return WIDTH8


class UnitBuffer:
    """A growable zero-initialised code unit buffer.

    Capacity doubles when more is needed and never drops below a floor, so
    that repeated small requests do not keep reallocating.
    """

    def __init__(self, width: CodeUnitWidth, size: int = 256, floor: int = 256):
        self.width = width
        self.floor = floor
        self.units = width.new_units([0]) * max(size, floor)

    @property
    def size(self) -> int:
        return len(self.units)

    def ensure(self, needed: int) -> None:
        """Grow, keeping the current contents, until needed units fit."""
        if needed <= len(self.units):
            return
        new_size = max(len(self.units), self.floor)
        while new_size < needed:
            new_size *= 2
        logger.debug("growing %r buffer from %d to %d units",
                     self.width, len(self.units), new_size)
        self.units.extend(self.width.new_units([0]) * (new_size - len(self.units)))

