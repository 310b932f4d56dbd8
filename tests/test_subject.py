"""Tests for data line decoding."""

import pytest

from rxtest.codec import WIDTH8, WIDTH16, WIDTH32
from rxtest.errors import DataLineError
from rxtest.subject import SubjectBuffer, decode_data_line


def decode(line, width=WIDTH8, utf=False):
    """Decode a line, returning (units, modifier text, warnings)."""
    warnings = []
    buffer = SubjectBuffer(width)
    modifiers = decode_data_line(line, buffer, utf, warnings.append)
    return list(buffer.subject()), modifiers, warnings


class TestPlainText:
    """Lines without escapes."""

    def test_leading_and_trailing_space(self):
        """Surrounding white space is not part of the subject."""
        units, modifiers, _ = decode(b"    abc  \n")
        assert units == list(b"abc")
        assert modifiers is None

    def test_empty_via_backslash(self):
        """A lone trailing backslash allows an empty subject."""
        assert decode(b"\\\n")[0] == []

    def test_utf8_text_in_utf_mode(self):
        """UTF-8 text is decoded then re-encoded for the width."""
        units, _, _ = decode("a€".encode(), width=WIDTH32, utf=True)
        assert units == [0x61, 0x20ac]

    def test_zero_byte_ends_line(self):
        """Nothing after a zero byte is decoded or validated."""
        units, modifiers, _ = decode(b"    a\x00\xc3\n", utf=True)
        assert units == [0x61]
        assert modifiers is None

    def test_zero_byte_hides_modifiers(self):
        units, modifiers, _ = decode(b"ab\x00c\\=global\n")
        assert units == list(b"ab")
        assert modifiers is None

    def test_invalid_utf8_in_utf_mode(self):
        """Malformed UTF-8 cannot be used in UTF mode."""
        with pytest.raises(DataLineError) as exc_info:
            decode(b"a\xff", utf=True)
        assert "invalid UTF-8 string" in exc_info.value.message


class TestEscapes:
    """Backslash escapes in subjects."""

    def test_simple_escapes(self):
        """Single letter escapes map to control characters."""
        units, _, _ = decode(b"\\t\\n\\r\\e\\\\")
        assert units == [9, 10, 13, 27, 0x5c]

    def test_octal(self):
        """Up to three octal digits."""
        assert decode(b"\\101\\0")[0] == [0x41, 0]

    def test_braced_octal(self):
        """\\o{...} takes any number of octal digits."""
        assert decode(b"\\o{102}", width=WIDTH32)[0] == [0x42]

    def test_missing_octal_brace(self):
        """A missing closing brace is warned about and the digits kept."""
        units, _, warnings = decode(b"\\o{102", width=WIDTH32)
        assert units == [0x42] + list(b"{102")
        assert warnings == ["** Missing } after \\o{ (assumed)"]

    def test_hex(self):
        """Up to two hex digits."""
        assert decode(b"\\x41\\x4")[0] == [0x41, 4]

    def test_braced_hex(self):
        """Braced hex gives a whole character."""
        assert decode(b"\\x{263a}", width=WIDTH16)[0] == [0x263a]

    def test_too_many_hex_digits(self):
        """Only the first eight hex digits are used."""
        units, _, warnings = decode(b"\\x{123456789}", width=WIDTH32)
        assert units == [0x12345678]
        assert warnings == [
            "** Too many hex digits in \\x{...} item; using only the first eight."
        ]

    def test_unrecognized_escape(self):
        """Unknown escapes abandon the line."""
        with pytest.raises(DataLineError) as exc_info:
            decode(b"a\\qb")
        assert exc_info.value.message == '** Unrecognized escape sequence "\\q"'

    def test_raw_byte_in_utf8_mode(self):
        """\\xHH is a single byte in 8-bit UTF mode."""
        assert decode(b"\\xff", utf=True)[0] == [0xff]

    def test_utf8_encoding_of_braced_hex(self):
        """Braced hex is UTF-8 encoded in 8-bit UTF mode."""
        assert decode(b"\\x{100}", utf=True)[0] == [0xc4, 0x80]

    def test_surrogates_in_utf16_mode(self):
        """Values above 0xffff become surrogate pairs."""
        assert decode(b"\\x{10000}", width=WIDTH16, utf=True)[0] == [0xd800, 0xdc00]

    def test_truncation_in_8bit_mode(self):
        """Large values are truncated, with a warning, outside UTF mode."""
        units, _, warnings = decode(b"\\x{141}")
        assert units == [0x41]
        assert warnings == [
            "** Character \\x{141} is greater than 255 and UTF-8 mode is not enabled.",
            "** Truncation will probably give the wrong result.",
        ]

    def test_truncation_in_16bit_mode(self):
        """The 16-bit warning names UTF-16."""
        units, _, warnings = decode(b"\\x{10041}", width=WIDTH16)
        assert units == [0x41]
        assert "UTF-16 mode is not enabled" in warnings[0]

    def test_too_large_for_utf16(self):
        """Values beyond Unicode cannot be stored as UTF-16."""
        with pytest.raises(DataLineError):
            decode(b"\\x{110000}", width=WIDTH16, utf=True)


class TestDuplication:
    """The \\[...]{n} repeat construct."""

    def test_repeat(self):
        """The bracketed text is repeated."""
        assert decode(b"x\\[ab]{3}y")[0] == list(b"xabababy")

    def test_repeat_once(self):
        """A count of one leaves the text alone."""
        assert decode(b"\\[ab]{1}")[0] == list(b"ab")

    def test_large_repeat(self):
        """Repeats can grow the buffer."""
        units, _, _ = decode(b"\\[abcd]{10000}")
        assert len(units) == 40000

    def test_zero_repeat(self):
        """A count of zero is an error."""
        with pytest.raises(DataLineError) as exc_info:
            decode(b"\\[ab]{0}")
        assert exc_info.value.message == "** Zero repeat not allowed"

    def test_missing_open_brace(self):
        """The closing bracket must be followed by a count."""
        with pytest.raises(DataLineError) as exc_info:
            decode(b"\\[ab]x")
        assert exc_info.value.message == "** Expected '{' after \\[....]"

    def test_missing_close_brace(self):
        """The count must be closed."""
        with pytest.raises(DataLineError):
            decode(b"\\[ab]{3")

    def test_nested(self):
        """Repeats cannot be nested."""
        with pytest.raises(DataLineError) as exc_info:
            decode(b"\\[a\\[b]{2}]{2}")
        assert exc_info.value.message == "** Nested duplication is not supported"


class TestModifierText:
    """Text after \\= is returned for modifier decoding."""

    def test_modifiers_returned(self):
        """The text after \\= is returned undecoded."""
        units, modifiers, _ = decode(b"abc\\=global,offset=1")
        assert units == list(b"abc")
        assert modifiers == "global,offset=1"

    def test_empty_modifiers(self):
        """\\= with nothing after it gives an empty modifier list."""
        assert decode(b"abc\\=")[1] == ""
