#!/usr/bin/env python3

import argparse
import dataclasses
import io
from pathlib import Path
import sys
from typing import Iterable, List, Optional, TextIO

from lib_ddemangle import common
from lib_ddemangle import scan as lib_scan


class UsageError(Exception):
    """
    The command line couldn't be parsed
    """


class _ArgumentParser(argparse.ArgumentParser):
    # argparse normally exits the process by itself on errors
    def error(self, message: str) -> None:
        raise UsageError(message)


@dataclasses.dataclass
class Config:
    input_file: Optional[Path]
    underscores: common.UnderscoreHandling


def make_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        description='Demangles all occurrences of mangled D symbols in the input and writes to standard output.'
        ' If <inputfile> is omitted, standard input is read.',
        add_help=False)

    parser.add_argument('inputfile', nargs='?', type=Path,
        help='file to read (default: standard input)')
    parser.add_argument('--help', '-h', action='store_true',
        help='show this help')
    parser.add_argument('--underscoreMissing', '-u', action='store_true',
        help='handle symbols whose leading underscore has been stripped (e.g. by lldb on macOS)')

    return parser


def parse_args(parser: argparse.ArgumentParser, args: Optional[List[str]] = None) -> Optional[Config]:
    """
    Parse the command line. Returns None if the usage text should be
    shown instead of running, or raises UsageError if the arguments
    are invalid.
    """
    parsed_args = parser.parse_args(args)
    if parsed_args.help:
        return None

    if parsed_args.underscoreMissing:
        underscores = common.UnderscoreHandling.MISSING
    else:
        underscores = common.UnderscoreHandling.default()

    return Config(parsed_args.inputfile, underscores)


def _pass_through_bytes(stream: TextIO) -> None:
    # Lines end at '\n' only, and bytes that aren't valid UTF-8 are
    # written back out unchanged
    if isinstance(stream, io.TextIOWrapper):
        stream.reconfigure(encoding='utf-8', errors='surrogateescape', newline='\n')


def ddemangle_stream(lines: Iterable[str], out: TextIO, underscores: common.UnderscoreHandling) -> None:
    """
    Demangle each line and write it out immediately, so that output
    keeps up with interactive input
    """
    lines = (line.rstrip('\n') for line in lines)
    for line in lib_scan.ddemangle_lines(lines, underscores):
        print(line, file=out, flush=True)


def run(config: Config, out: TextIO) -> None:
    if config.input_file is None:
        _pass_through_bytes(sys.stdin)
        ddemangle_stream(sys.stdin, out, config.underscores)
    else:
        with config.input_file.open('r', encoding='utf-8', errors='surrogateescape', newline='\n') as f:
            ddemangle_stream(f, out, config.underscores)


def main(args: Optional[List[str]] = None) -> int:
    """
    Main function
    """
    parser = make_parser()

    try:
        config = parse_args(parser, args)
    except UsageError as e:
        print(e, file=sys.stderr)
        print(file=sys.stderr)
        config = None

    if config is None:
        sys.stderr.write(parser.format_help())
        return 1

    try:
        _pass_through_bytes(sys.stdout)
        run(config, sys.stdout)
    except OSError as e:
        print(e, file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
