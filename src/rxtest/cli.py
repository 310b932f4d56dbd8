import logging
import os
import sys
from typing import List, Optional

from .constants import CTL_DEBUG, Control, LOOPREPEAT
from .driver import Session, SessionConfig

_USAGE = "rxtest [options] [<input file> [<output file>]]"
_DESCRIPTION = "Regular expression engine test driver"


class _Args:
    def __init__(self) -> None:
        self.width = 8
        self.quiet = False
        self.help = False
        self.timeit = 0
        self.timeitm = 0
        self.show_total_times = False
        self.default_control = 0
        self.pattern: Optional[str] = None
        self.data: Optional[str] = None
        self.files: List[str] = []


def _print_help(file=None) -> None:
    if file is None:
        file = sys.stdout
    print(f"usage: {_USAGE}", file=file)
    print("", file=file)
    print(_DESCRIPTION, file=file)
    print("Input and output default to stdin and stdout.", file=file)
    print("", file=file)
    print("options:", file=file)
    print("  -8            use 8-bit code units (default)", file=file)
    print("  -16           use 16-bit code units", file=file)
    print("  -32           use 32-bit code units", file=file)
    print("  -b            set default pattern control 'fullbytecode'", file=file)
    print("  -d            set default pattern control 'debug'", file=file)
    print("  -data <s>     set default data control fields", file=file)
    print("  -help         show usage information", file=file)
    print("  -i            set default pattern control 'info'", file=file)
    print("  -q            quiet: do not output the version at start", file=file)
    print("  -pattern <s>  set default pattern control fields", file=file)
    print(
        "  -t [<n>]      time compilation and execution, repeating <n> times",
        file=file,
    )
    print(
        "  -tm [<n>]     time execution (matching) only, repeating <n> times",
        file=file,
    )
    print("  -T            same as -t, but show total times at the end", file=file)
    print("  -TM           same as -tm, but show total time at the end", file=file)


def _parse_args(argv: List[str]) -> _Args:
    args = _Args()
    idx = 0
    while idx < len(argv):
        token = argv[idx]
        if token == "-" or not token.startswith("-"):
            args.files = argv[idx:]
            break
        if token in ("-8", "-16", "-32"):
            args.width = int(token[1:])
        elif token == "-q":
            args.quiet = True
        elif token == "-b":
            args.default_control |= Control.FULLBYTECODE
        elif token == "-d":
            args.default_control |= CTL_DEBUG
        elif token == "-i":
            args.default_control |= Control.INFO
        elif token in ("-t", "-tm", "-T", "-TM"):
            args.show_total_times = token[1] == "T"
            repeat = LOOPREPEAT
            if idx + 1 < len(argv) and argv[idx + 1].isdigit():
                repeat = int(argv[idx + 1])
                idx += 1
            args.timeitm = repeat
            if len(token) == 2:
                args.timeit = repeat
        elif token in ("-help", "--help"):
            args.help = True
            return args
        elif token in ("-pattern", "-data"):
            if idx + 1 >= len(argv):
                raise ValueError(f"** Missing value for {token}")
            setattr(args, token[1:], argv[idx + 1])
            idx += 1
        else:
            raise ValueError(f"** Unknown or malformed option '{token}'")
        idx += 1
    if len(args.files) > 2:
        raise ValueError("** Too many file names")
    return args


def _configure_logging() -> None:
    level = logging.DEBUG if os.environ.get("RXTEST_DEBUG") else logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr,
                        format="%(name)s: %(message)s")


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    _configure_logging()

    try:
        namespace = _parse_args(argv)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        _print_help(file=sys.stderr)
        return 1

    if namespace.help:
        _print_help()
        return 0

    config = SessionConfig(
        width=namespace.width,
        quiet=namespace.quiet,
        timeit=namespace.timeit,
        timeitm=namespace.timeitm,
        show_total_times=namespace.show_total_times,
        default_pattern=namespace.pattern,
        default_data=namespace.data,
    )

    infile = sys.stdin.buffer
    outfile = sys.stdout.buffer
    opened = []
    try:
        if namespace.files:
            try:
                infile = open(namespace.files[0], "rb")
            except OSError:
                print(f"** Failed to open {namespace.files[0]}")
                return 1
            opened.append(infile)
        if len(namespace.files) > 1:
            try:
                outfile = open(namespace.files[1], "wb")
            except OSError:
                print(f"** Failed to open {namespace.files[1]}")
                return 1
            opened.append(outfile)

        session = Session(config, infile, outfile,
                          interactive=not namespace.files, errfile=sys.stderr)
        session.default_pctl.control |= namespace.default_control
        if not session.apply_presets():
            return 1
        return session.run()
    finally:
        for stream in opened:
            stream.close()


if __name__ == "__main__":
    sys.exit(main())
