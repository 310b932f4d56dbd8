"""Tests for the command line."""

import pytest

from rxtest.cli import _parse_args, main
from rxtest.constants import CTL_DEBUG, Control, LOOPREPEAT


class TestParseArgs:
    """Option parsing."""

    def test_defaults(self):
        args = _parse_args([])
        assert args.width == 8
        assert not args.quiet
        assert args.files == []

    def test_width(self):
        assert _parse_args(["-16"]).width == 16
        assert _parse_args(["-32"]).width == 32

    def test_files(self):
        """Everything from the first non-option is a file name."""
        args = _parse_args(["-q", "in.txt", "out.txt"])
        assert args.quiet
        assert args.files == ["in.txt", "out.txt"]

    def test_too_many_files(self):
        with pytest.raises(ValueError, match="Too many file names"):
            _parse_args(["a", "b", "c"])

    def test_default_controls(self):
        """-b, -d and -i set default pattern controls."""
        assert _parse_args(["-b"]).default_control == Control.FULLBYTECODE
        assert _parse_args(["-d"]).default_control == CTL_DEBUG
        assert _parse_args(["-i"]).default_control == Control.INFO

    def test_timing_with_count(self):
        """A number after -t is the repeat count."""
        args = _parse_args(["-t", "10"])
        assert args.timeit == args.timeitm == 10
        assert not args.show_total_times

    def test_timing_default_count(self):
        args = _parse_args(["-tm", "in.txt"])
        assert args.timeit == 0
        assert args.timeitm == LOOPREPEAT
        assert args.files == ["in.txt"]

    def test_total_times(self):
        assert _parse_args(["-T"]).show_total_times
        assert _parse_args(["-TM", "3"]).timeitm == 3

    def test_pattern_and_data(self):
        args = _parse_args(["-pattern", "info", "-data", "offset=1"])
        assert args.pattern == "info"
        assert args.data == "offset=1"

    def test_missing_value(self):
        with pytest.raises(ValueError, match="Missing value for -data"):
            _parse_args(["-data"])

    def test_unknown_option(self):
        with pytest.raises(ValueError) as exc_info:
            _parse_args(["-x"])
        assert str(exc_info.value) == "** Unknown or malformed option '-x'"


class TestMain:
    """Running the whole program."""

    def test_help(self, capsys):
        assert main(["-help"]) == 0
        assert capsys.readouterr().out.startswith("usage: rxtest")

    def test_bad_option(self, capsys):
        """Bad options show the error and the usage on stderr."""
        assert main(["-x"]) == 1
        err = capsys.readouterr().err
        assert "** Unknown or malformed option '-x'" in err
        assert "usage: rxtest" in err

    def test_run_files(self, tmp_path):
        """Input and output files are read and written."""
        infile = tmp_path / "input"
        outfile = tmp_path / "output"
        infile.write_bytes(b"/a(b)/\n    xab\n\n")
        assert main(["-q", str(infile), str(outfile)]) == 0
        assert outfile.read_bytes() == b"/a(b)/\n    xab\n 0: ab\n 1: b\n\n"

    def test_width_option(self, tmp_path):
        infile = tmp_path / "input"
        outfile = tmp_path / "output"
        infile.write_bytes(b"/\\x{100}/\n    \\x{100}\n\n")
        assert main(["-q", "-16", str(infile), str(outfile)]) == 0
        assert b" 0: \\x{100}\n" in outfile.read_bytes()

    def test_info_option(self, tmp_path):
        """-i turns on info for every pattern."""
        infile = tmp_path / "input"
        outfile = tmp_path / "output"
        infile.write_bytes(b"/abc/\n\n")
        assert main(["-q", "-i", str(infile), str(outfile)]) == 0
        assert b"Capturing subpattern count = 0\n" in outfile.read_bytes()

    def test_bad_pattern_preset(self, tmp_path, capsys):
        """A bad -pattern value stops the run."""
        infile = tmp_path / "input"
        infile.write_bytes(b"")
        assert main(["-q", "-pattern", "zz", str(infile),
                     str(tmp_path / "output")]) == 1
        assert "** Unrecognized modifier 'z' in 'zz'" in capsys.readouterr().err

    def test_missing_input(self, tmp_path, capsys):
        missing = tmp_path / "nonexistent"
        assert main([str(missing)]) == 1
        assert f"** Failed to open {missing}" in capsys.readouterr().out

    def test_abandoned_run(self, tmp_path):
        """An abandoned run exits with status 1."""
        infile = tmp_path / "input"
        outfile = tmp_path / "output"
        infile.write_bytes(b"/abc\n")
        assert main(["-q", str(infile), str(outfile)]) == 1
        assert outfile.read_bytes().endswith(b"** Unexpected EOF\n")
