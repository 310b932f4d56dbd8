"""Tests for UTF-8 helpers, code unit widths and character rendering."""

import io
from array import array

import pytest

from rxtest.codec import (
    UnitBuffer,
    WIDTH8,
    WIDTH16,
    WIDTH32,
    ascii_printable,
    decode_utf8_scalar,
    encode_utf8,
    get_width,
    render_char,
    reencode_to_width16,
    render_codeunit_string,
)
from rxtest.errors import (
    MalformedUTF8Error,
    ValueTooLargeForUTFError,
    ValueTooLargeNonUTFError,
)


class TestUTF8Decoding:
    """Decoding single UTF-8 characters."""

    def test_ascii(self):
        """ASCII bytes decode to themselves."""
        assert decode_utf8_scalar(b"A") == (0x41, 1)

    def test_two_byte(self):
        """A two byte sequence."""
        assert decode_utf8_scalar(b"\xc4\x80") == (0x100, 2)

    def test_offset(self):
        """Decoding starts at the given position."""
        assert decode_utf8_scalar(b"ab\xe2\x82\xac", 2) == (0x20ac, 3)

    def test_six_byte(self):
        """The original six byte form is accepted."""
        assert decode_utf8_scalar(b"\xfd\xbf\xbf\xbf\xbf\xbf") == (0x7fffffff, 6)

    def test_bad_lead_byte(self):
        """A bare continuation byte is malformed."""
        _, length = decode_utf8_scalar(b"\x80")
        assert length <= 0

    def test_truncated(self):
        """A sequence cut short reports the missing byte."""
        assert decode_utf8_scalar(b"\xe2\x82") == (0, -2)

    def test_overlong(self):
        """Only the shortest encoding is accepted."""
        _, length = decode_utf8_scalar(b"\xc0\x80")
        assert length <= 0


class TestUTF8Encoding:
    """Encoding values as UTF-8."""

    def test_ascii(self):
        """Small values are one byte."""
        assert encode_utf8(0x41) == b"A"

    def test_unicode_maximum(self):
        """The largest Unicode value takes four bytes."""
        assert encode_utf8(0x10ffff) == b"\xf4\x8f\xbf\xbf"

    def test_beyond_unicode(self):
        """Values up to 0x7fffffff can be encoded."""
        assert encode_utf8(0x7fffffff) == b"\xfd\xbf\xbf\xbf\xbf\xbf"

    def test_too_large(self):
        """Values above 0x7fffffff are refused."""
        with pytest.raises(ValueError):
            encode_utf8(0x80000000)

    def test_agrees_with_decoder(self):
        """Encoding then decoding gives the value back."""
        for value in (0x7f, 0x80, 0x7ff, 0x800, 0xffff, 0x10000, 0x3ffffff):
            data = encode_utf8(value)
            assert decode_utf8_scalar(data) == (value, len(data))


class TestWidths:
    """Converting pattern text to each code unit width."""

    def test_get_width(self):
        """Widths are looked up by their bit count."""
        assert get_width(8) is WIDTH8
        assert get_width(16) is WIDTH16
        assert get_width(32) is WIDTH32

    def test_unknown_width(self):
        """Only 8, 16 and 32 are valid."""
        with pytest.raises(ValueError):
            get_width(12)

    def test_unit_size(self):
        """Unit size is in bytes."""
        assert [w.unit_size for w in (WIDTH8, WIDTH16, WIDTH32)] == [1, 2, 4]

    def test_8bit_is_bytes(self):
        """8-bit conversion copies the bytes."""
        assert list(WIDTH8.from_utf8("é".encode(), True)) == [0xc3, 0xa9]

    def test_16bit_surrogate_pair(self):
        """Values above 0xffff become a surrogate pair in UTF mode."""
        units = WIDTH16.from_utf8(encode_utf8(0x10000), True)
        assert list(units) == [0xd800, 0xdc00]

    def test_16bit_round_trip(self):
        """Surrogate pairs decode back to the original characters."""
        text = "a\xe9\u20ac\uffff\U00010000\U0010ffffz"
        units = reencode_to_width16(text.encode("utf-8"), True)
        values = []
        pos = 0
        while pos < len(units):
            unit = units[pos]
            if 0xd800 <= unit < 0xdc00:
                low = units[pos + 1]
                assert 0xdc00 <= low < 0xe000
                unit = 0x10000 + ((unit - 0xd800) << 10) + (low - 0xdc00)
                pos += 1
            values.append(unit)
            pos += 1
        assert values == [ord(c) for c in text]

    def test_16bit_non_utf_too_large(self):
        """Outside UTF mode a 16-bit unit cannot hold 0x10000."""
        with pytest.raises(ValueTooLargeNonUTFError) as exc_info:
            WIDTH16.from_utf8(encode_utf8(0x10000), False)
        assert "greater than 0xffff" in exc_info.value.message

    def test_16bit_beyond_unicode(self):
        """Values above 0x10ffff cannot be converted to UTF-16."""
        with pytest.raises(ValueTooLargeForUTFError):
            WIDTH16.from_utf8(encode_utf8(0x110000), True)

    def test_32bit_one_unit_per_character(self):
        """32-bit conversion gives one unit per character."""
        assert list(WIDTH32.from_utf8("a€".encode(), True)) == [0x61, 0x20ac]

    def test_32bit_large_value_outside_utf(self):
        """Outside UTF mode large values pass through."""
        assert list(WIDTH32.from_utf8(encode_utf8(0x110000), False)) == [0x110000]

    def test_32bit_large_value_in_utf(self):
        """In UTF mode large values are refused."""
        with pytest.raises(ValueTooLargeForUTFError):
            WIDTH32.from_utf8(encode_utf8(0x110000), True)

    def test_malformed_input(self):
        """Malformed UTF-8 cannot be converted."""
        with pytest.raises(MalformedUTF8Error) as exc_info:
            WIDTH16.from_utf8(b"a\xff", False)
        assert exc_info.value.message == (
            "** Failed: invalid UTF-8 string cannot be converted to "
            "16-bit string")


class TestRendering:
    """Rendering characters and code unit strings."""

    def test_printable(self):
        """Printable ASCII is shown literally."""
        sink = io.StringIO()
        assert render_char(0x41, False, sink) == 1
        assert sink.getvalue() == "A"

    def test_control_character(self):
        """Unprintable bytes use a two digit escape."""
        sink = io.StringIO()
        assert render_char(7, False, sink) == 4
        assert sink.getvalue() == "\\x07"

    def test_utf_escape(self):
        """In UTF mode escapes are braced."""
        sink = io.StringIO()
        render_char(0x7f, True, sink)
        assert sink.getvalue() == "\\x{7f}"

    def test_large_value(self):
        """Values above 255 are always braced."""
        sink = io.StringIO()
        render_char(0x100, False, sink)
        assert sink.getvalue() == "\\x{100}"

    def test_count_without_sink(self):
        """Without a sink only the length is returned."""
        assert render_char(0x100, False) == 7

    def test_custom_printable(self):
        """The printable predicate can be replaced."""
        sink = io.StringIO()
        render_char(0xe9, False, sink, printable=lambda c: True)
        assert sink.getvalue() == "\xe9"

    def test_ascii_printable(self):
        """Space through tilde are printable."""
        assert ascii_printable(0x20)
        assert ascii_printable(0x7e)
        assert not ascii_printable(0x7f)
        assert not ascii_printable(0x1f)

    def test_8bit_utf_string(self):
        """UTF-8 sequences are shown as one character."""
        sink = io.StringIO()
        units = array("B", b"a\xc4\x80b")
        assert render_codeunit_string(units, 0, 4, True, sink) == 9
        assert sink.getvalue() == "a\\x{100}b"

    def test_8bit_bytes(self):
        """Without UTF each byte is one character."""
        sink = io.StringIO()
        render_codeunit_string(array("B", b"a\xc4\x80"), 0, 3, False, sink)
        assert sink.getvalue() == "a\\xc4\\x80"

    def test_16bit_surrogates(self):
        """Surrogate pairs are combined in UTF mode."""
        sink = io.StringIO()
        units = array("H", [0xd800, 0xdc00])
        render_codeunit_string(units, 0, 2, True, sink, width=WIDTH16)
        assert sink.getvalue() == "\\x{10000}"

    def test_count_matches_output(self):
        """Counting without a sink agrees with what a sink receives."""
        cases = [
            (array("B", b"plain text"), False, None),
            (array("B", b"a\x07\xff"), False, None),
            (array("B", "a\u0100\U00010000".encode()), True, None),
            (array("H", [0x61, 0xd800, 0xdc00, 0x100]), True, WIDTH16),
            (array("I", [0x41, 0x7fffffff]), False, WIDTH32),
        ]
        for units, utf, width in cases:
            sink = io.StringIO()
            written = render_codeunit_string(units, 0, len(units), utf, sink,
                                             width=width)
            counted = render_codeunit_string(units, 0, len(units), utf, None,
                                             width=width)
            assert counted == written == len(sink.getvalue())

    def test_substring(self):
        """Only the requested slice is rendered."""
        sink = io.StringIO()
        render_codeunit_string(array("I", [0x61, 0x62, 0x63]), 1, 1, False,
                               sink, width=WIDTH32)
        assert sink.getvalue() == "b"


class TestUnitBuffer:
    """The growable code unit buffer."""

    def test_initial_size(self):
        """The buffer starts at the requested size."""
        buffer = UnitBuffer(WIDTH16, size=300)
        assert buffer.size == 300
        assert buffer.units.typecode == "H"

    def test_floor(self):
        """The size never starts below the floor."""
        assert UnitBuffer(WIDTH8, size=10).size == 256

    def test_growth_keeps_contents(self):
        """Growing doubles the size and keeps what is there."""
        buffer = UnitBuffer(WIDTH8)
        buffer.units[0] = 42
        buffer.ensure(600)
        assert buffer.size == 1024
        assert buffer.units[0] == 42
