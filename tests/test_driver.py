"""Tests for running whole scripts through a session."""

import io
import logging

import pytest

from conftest import run_script
from rxtest.codec import WIDTH8
from rxtest.engine import RegexEngine

RULE = "-" * 66


class TestBasicMatching:
    """Patterns, data lines and the blank line that ends a test."""

    def test_match_and_no_match(self, run):
        """Each data line is echoed and followed by its result."""
        output = run("/abc/\n    xabcx\n    xyz\n\n")
        assert output == "/abc/\n    xabcx\n 0: abc\n    xyz\nNo match\n\n"

    def test_captures(self, run):
        """Every capture up to the highest set one is shown."""
        output = run("/(a)(x)?(c)/\n    ac\n\n")
        assert " 0: ac\n 1: a\n 2: <unset>\n 3: c\n" in output

    def test_comments_are_echoed_only(self, run):
        """Comment lines between tests do nothing."""
        output = run("# a comment\n/a/\n    a\n\n")
        assert output == "# a comment\n/a/\n    a\n 0: a\n\n"

    def test_pattern_continues_on_next_line(self, run):
        """A pattern without its closing delimiter reads more lines."""
        output = run("/a\nb/\n    a\\nb\n\n")
        assert output == "/a\nb/\n    a\\nb\n 0: a\\x0ab\n\n"

    def test_other_delimiter(self, run):
        """Any of the delimiter characters may be used."""
        output = run("!a/b!\n    xa/b\n\n")
        assert " 0: a/b\n" in output

    def test_banner(self):
        """Unless quiet, the first line names the engine."""
        _, output = run_script("/a/\n    a\n\n", quiet=False)
        assert output.startswith("Python regex version ")

    def test_end_of_input_without_blank_line(self, run):
        """The last test need not be ended by a blank line."""
        output = run("/a/\n    a\n")
        assert output.endswith(" 0: a\n")


class TestGlobalMatching:
    """The global and altglobal loops."""

    def test_global(self, run):
        """Every match is found."""
        output = run("/a/g\n    aaa\n\n")
        assert output == "/a/g\n    aaa\n 0: a\n 0: a\n 0: a\n\n"

    def test_global_empty_matches(self, run):
        """An empty match is retried as non-empty before moving on."""
        output = run("/x*/g\n    ab\n\n")
        assert output == "/x*/g\n    ab\n 0: \n 0: \n 0: \n\n"

    def test_altglobal(self, run):
        """altglobal moves the subject start instead of the offset."""
        output = run("/a/gg\n    aXa\n\n")
        assert output == "/a/gg\n    aXa\n 0: a\n 0: a\n\n"

    def test_global_on_data_line(self, run):
        """global can be given on a data line."""
        output = run("/b/\n    abcb\\=global\n\n")
        assert output.count(" 0: b\n") == 2

    def test_no_match_after_matches_is_silent(self, run):
        """No match is only reported when nothing matched."""
        output = run("/a/g\n    ab\n\n")
        assert "No match" not in output

    def test_crlf_counts_as_one_character(self, run):
        """Moving past an empty match steps over a whole CRLF."""
        output = run("/x*/g,newline=crlf\n    a\\r\\nb\n\n")
        assert output.count(" 0: \n") == 4

    def test_bare_lf_is_one_character(self, run):
        """Without a CRLF newline each code unit is a step."""
        output = run("/x*/g,newline=lf\n    a\\r\\nb\n\n")
        assert output.count(" 0: \n") == 5

    def test_multiline_start_of_line(self, run):
        """^ does not match after the newline that ends the subject."""
        output = run("/^/mg\n    a\\nb\\n\n\n")
        assert output.count(" 0: \n") == 2

    def test_zero_ovector(self, run):
        """Global matching needs room for the whole match."""
        output = run("/a/g\n    a\\=ovector=0\n\n")
        assert ("** Global matching requires a non-zero ovector count: "
                "ignored\nMatched, but too many substrings\n") in output


class TestMatchControls:
    """Controls that change what is shown for a match."""

    def test_aftertext(self, run):
        """aftertext shows the rest of the subject."""
        output = run("/b/aftertext\n    abc\n\n")
        assert " 0: b\n 0+ c\n" in output

    def test_allcaptures(self, run):
        """allcaptures shows every group."""
        output = run("/(a)|(b)/allcaptures\n    a\n\n")
        assert " 0: a\n 1: a\n 2: <unset>\n" in output

    def test_copy_and_get(self, run):
        """copy and get extract numbered groups."""
        output = run("/(a)(b)?/\n    a\\=copy=1,get=2\n\n")
        assert " 0: a\n 1: a\n 1C a (1)\nget substring 2 failed -55\n" in output

    def test_named_copy(self, run):
        """Named groups are copied by name."""
        output = run("/(?<word>b+)/\n    abbc\\=copy=word\n\n")
        assert "  C bb (2) word\n" in output

    def test_getall(self, run):
        """getall lists every substring."""
        output = run("/(a)(b)/\n    ab\\=getall\n\n")
        assert " 0L ab\n 1L a\n 2L b\n" in output

    def test_offset(self, run):
        """Matching can start part way through the subject."""
        output = run("/a/\n    aXa\\=offset=1\n\n")
        assert " 0: a\n" in output

    def test_ovector_grows_then_shrinks(self, session_factory):
        """A bigger ovector is allocated, and a smaller one reuses it."""
        session, outfile = session_factory(
            "/(a)(b)(c)/\n    abc\\=ovector=1000\n    abc\\=ovector=2\n\n")
        assert session.run() == 0
        output = outfile.getvalue().decode("latin-1")
        assert session.max_oveccount == 1000
        assert session.match_data.oveccount == 2
        assert output.endswith("    abc\\=ovector=2\n"
                               "Matched, but too many substrings\n"
                               " 0: abc\n 1: a\n\n")

    def test_partial(self, run):
        """A partial match shows the text from where it started."""
        output = run("/abc/\n    ab\\=partial_soft\n\n")
        assert "Partial match: ab\n" in output

    def test_dfa(self, run):
        """DFA matching lists every match at the first position."""
        output = run("/a+/\n    aaa\\=dfa\n\n")
        assert " 0: aaa\n 1: aa\n 2: a\n" in output

    def test_dfa_shortest(self, run):
        output = run("/a+/\n    aaa\\=dfa,dfa_shortest\n\n")
        assert " 0: a\n" in output
        assert " 1: " not in output

    def test_unsupported_match_option(self, run):
        """Options the engine lacks are reported as errors."""
        output = run("/a/\n    a\\=notbol\n\n")
        assert "Failed: error -34: bad option value\n" in output


class MarkingEngine(RegexEngine):
    """Reports a mark with every failed match."""

    def match(self, code, subject, length, start_offset, options, match_data,
              context):
        rc = super().match(code, subject, length, start_offset, options,
                           match_data, context)
        if rc < 0:
            match_data.mark = WIDTH8.new_units(b"X")
        return rc


class TestMarks:
    """The mark control."""

    def test_mark_after_match(self, run):
        """The last mark passed is shown after the captures."""
        output = run("/(*MARK:A)x|(*MARK:B)y/mark\n    y\n\n")
        assert " 0: y\nMK: B\n" in output

    def test_mark_needs_control(self, run):
        output = run("/(*MARK:A)x/\n    x\n\n")
        assert "MK: " not in output

    def test_captures_after_mark(self, run):
        """Marks do not shift the numbers of captures."""
        output = run("/(*:M)(a)\\1/mark\n    aa\n\n")
        assert " 0: aa\n 1: a\nMK: M\n" in output

    def test_mark_on_no_match(self, session_factory):
        """A mark reported with a failure follows No match."""
        session, outfile = session_factory("/abc/mark\n    xyz\n\n",
                                           engine=MarkingEngine(WIDTH8))
        assert session.run() == 0
        assert b"No match, mark = X\n" in outfile.getvalue()

    def test_mark_on_partial(self, session_factory):
        session, outfile = session_factory(
            "/abc/mark\n    ab\\=partial_soft\n\n",
            engine=MarkingEngine(WIDTH8))
        assert session.run() == 0
        assert b"Partial match, mark=X: ab\n" in outfile.getvalue()


class TestPatternInfo:
    """The information shown by the info control."""

    def test_literal(self, run):
        """A literal has a first and last code unit."""
        output = run("/abc/I\n\n")
        assert output == (
            "/abc/I\n"
            "Capturing subpattern count = 0\n"
            "No options\n"
            "First code unit = 'a'\n"
            "Last code unit = 'c'\n"
            "Subject length lower bound = 3\n"
            "No starting code unit list\n"
            "\n")

    def test_starting_code_units(self, run):
        """Alternatives give a starting code unit list."""
        output = run("/(a|b)c/I\n\n")
        assert "Capturing subpattern count = 1\n" in output
        assert "No first code unit\n" in output
        assert "No last code unit\n" in output
        assert "Subject length lower bound = 2\n" in output
        assert "Starting code units: a b \n" in output

    def test_named_groups(self, run):
        """The name table is listed in name order."""
        output = run("/(?<one>a)(?<three>b)/I\n\n")
        assert ("Named capturing subpatterns:\n"
                "  one     1\n"
                "  three   2\n") in output

    def test_options(self, run):
        """Compile options are listed by name."""
        output = run("/a/I,caseless\n\n")
        assert "Compile options: caseless\n" in output

    def test_may_match_empty(self, run):
        output = run("/a*/I\n\n")
        assert "May match empty string\n" in output

    def test_memory(self, run):
        """memory reports the code space."""
        output = run("/abc/memory\n\n")
        assert "Memory allocation (code space): 4\n" in output

    def test_bytecode(self, run):
        """The internal listing is framed by rules."""
        output = run("/ab/B\n\n")
        lines = output.split("\n")
        assert lines[1] == RULE
        assert lines[2].strip() == "Bra"
        assert [line.strip() for line in lines[3:7]] == ["a", "b", "Ket", "End"]
        assert lines[7] == RULE


class TestErrors:
    """Errors that are reported and then skipped past."""

    def test_compile_error_skips_data(self, run):
        """After a compile error the data lines are ignored."""
        output = run("/a(/\n    abc\n\n/b/\n    b\n\n")
        assert "\nFailed: error 114 at offset " in output
        assert output.count(" 0: ") == 1
        assert output.endswith("/b/\n    b\n 0: b\n\n")

    def test_invalid_delimiter(self, session_factory):
        """A line that cannot start a pattern goes to the error stream."""
        errors = io.StringIO()
        session, outfile = session_factory("abc\n    x\n\n/x/\n    x\n\n",
                                           errfile=errors)
        assert session.run() == 0
        assert errors.getvalue() == "** Invalid pattern delimiter 'a'.\n"
        assert outfile.getvalue().endswith(b" 0: x\n\n")

    def test_bad_pattern_modifier(self, run):
        """An unknown modifier abandons the test."""
        output = run("/a/zz\n    a\n\n")
        assert "** Unrecognized modifier 'z' in 'zz'\n" in output
        assert " 0: " not in output

    def test_bad_data_modifier(self, run):
        """An unknown data modifier skips only that line."""
        output = run("/a/\n    a\\=foo\n    a\n\n")
        assert "** Unrecognized modifier 'f' in 'foo'\n" in output
        assert output.count(" 0: a\n") == 1

    def test_bad_escape_in_data(self, run):
        output = run("/a/\n    a\\qa\n\n")
        assert '** Unrecognized escape sequence "\\q"\n' in output

    def test_unexpected_eof(self):
        """Input ending inside a pattern abandons the run."""
        status, output = run_script("/abc\n")
        assert status == 1
        assert output.endswith("** Unexpected EOF\n")

    def test_load_command(self):
        """#load is not supported."""
        status, output = run_script("#load somefile\n")
        assert status == 1
        assert "** #load not yet implemented\n" in output

    def test_abandoned_run_skips_later_tests(self, caplog):
        """Nothing after the line that abandons the run is processed."""
        with caplog.at_level(logging.DEBUG, logger="rxtest.driver"):
            status, output = run_script("/a/\n    a\n\n#load x\n/b/\n    b\n\n")
        assert status == 1
        assert output.endswith("#load x\n** #load not yet implemented\n")
        assert "run abandoned at line 4" in caplog.text


class TestUTF:
    """UTF and wide subjects."""

    def test_utf8_pattern_and_subject(self, run):
        """Wide characters are shown as escapes."""
        output = run("/\\x{100}/utf\n    \\x{100}\n\n")
        assert " 0: \\x{100}\n" in output

    def test_16bit(self, run):
        """Wide characters need no UTF mode in 16-bit mode."""
        output = run("/\\x{100}/\n    \\x{100}\n\n", width=16)
        assert " 0: \\x{100}\n" in output

    def test_32bit(self, run):
        output = run("/a.c/utf\n    a\\x{10000}c\n\n", width=32)
        assert " 0: a\\x{10000}c\n" in output

    def test_truncation_warning(self, run):
        """Large values in 8-bit non-UTF subjects are warned about."""
        output = run("/a/\n    \\x{100}\n\n")
        assert ("** Character \\x{100} is greater than 255 and UTF-8 mode "
                "is not enabled.\n") in output

    def test_bad_utf_subject(self, run):
        """Invalid UTF-8 reports its offset and reason."""
        output = run("/a/utf\n    \\xff\n\n")
        assert "Error -3 (bad UTF-8 string) offset=0 reason=7\n" in output

    def test_zero_byte_ends_data_line(self, run):
        """Bytes after a zero byte in a data line are ignored."""
        output = run("/a/utf\n    a\x00\xc3\n\n")
        assert " 0: a\n" in output
        assert "invalid UTF-8" not in output


class TestPosix:
    """The posix control."""

    def test_match(self, run):
        output = run("/a(b)/posix\n    xab\n    xyz\n\n")
        assert " 0: ab\n 1: b\n" in output
        assert "No match: POSIX code 17: match failed\n" in output

    def test_aftertext(self, run):
        output = run("/b/posix,aftertext\n    abc\n\n")
        assert " 0: b\n 0+ c\n" in output

    def test_8bit_only(self, run):
        """POSIX is only available in 8-bit mode."""
        output = run("/a/posix\n    a\n\n", width=16)
        assert "** The POSIX interface is available only in 8-bit mode\n" in output
        assert " 0: " not in output

    def test_compile_error(self, run):
        output = run("/a(/posix\n\n")
        assert "Failed: POSIX code 11: unbalanced () at offset " in output


class TestCommands:
    """#pattern and #data set defaults for later tests."""

    def test_default_pattern_modifiers(self, run):
        output = run("#pattern aftertext\n/b/\n    abc\n\n")
        assert " 0: b\n 0+ c\n" in output

    def test_default_data_modifiers(self, run):
        output = run("#data offset=1\n/a/\n    aXa\n\n/X/\n    X\n\n")
        assert output.endswith("    X\nNo match\n\n")

    def test_presets(self, session_factory):
        """Defaults can be given when the session is configured."""
        session, outfile = session_factory("/b/\n    abc\n\n",
                                           default_pattern="aftertext")
        assert session.apply_presets()
        assert session.run() == 0
        assert b" 0+ c\n" in outfile.getvalue()

    def test_bad_preset(self, session_factory):
        errors = io.StringIO()
        session, _ = session_factory("", errfile=errors,
                                     default_data="bogus")
        assert not session.apply_presets()
        assert "Unrecognized modifier" in errors.getvalue()


class TestInteractive:
    """Prompts instead of echoing."""

    def test_prompts(self, session_factory):
        session, outfile = session_factory("/a/\na\n\n", interactive=True)
        assert session.run() == 0
        assert outfile.getvalue() == b"  re> data>  0: a\ndata>   re> \n"


class TestTiming:
    @pytest.mark.timeout(30)
    def test_timing_lines(self):
        """Timing adds a line for each compile and match."""
        status, output = run_script("/a/\n    a\n\n", timeit=2, timeitm=2,
                                    show_total_times=True)
        assert status == 0
        assert "Compile time " in output
        assert "Match time " in output
        assert "Total compile time " in output
