#!/usr/bin/env python3

import argparse
from typing import List, Optional

from lib_ddemangle import common
from lib_ddemangle import demangle as lib_demangle


def main(args: Optional[List[str]] = None) -> None:
    """
    Main function
    """
    parser = argparse.ArgumentParser(
        description='Demangle a D symbol.')

    parser.add_argument('symbol',
        help="the mangled symbol. It's a good idea to surround it in quotes (preferably single-quotes) so the shell doesn't eat special characters.")
    parser.add_argument('--type', action='store_true',
        help='the argument is a bare mangled type (e.g. "Aya") rather than a symbol')
    parser.add_argument('--errors',
        choices=[m.value for m in common.ErrorVolume],
        default=common.ErrorVolume.default(),
        help='how loudly to complain about symbols that can\'t be demangled.'
        " error: raise an exception and stop. warning: print a warning and output the symbol unchanged. silent: just output the symbol unchanged."
        f' (default: {common.ErrorVolume.default().value})')

    parsed_args = parser.parse_args(args)

    errors = common.ErrorVolume(parsed_args.errors)
    if parsed_args.type:
        print(lib_demangle.demangle_type(parsed_args.symbol, errors=errors))
    else:
        print(lib_demangle.demangle(parsed_args.symbol, errors=errors))


if __name__ == '__main__':
    main()
