import sys
from typing import Optional

from .. import common
from . import dlang as lib_dlang


DemangleError = lib_dlang.DemangleError


def try_demangle(sym: str) -> Optional[str]:
    """
    Demangle a symbol, or return None if it can't be demangled.
    Only the D scheme is supported; anything else (including C++
    "_Z" symbols) is reported as a failure.
    """
    return lib_dlang.demangle(sym)


def _parse_or_fallback(text: str, what: str, errors: common.ErrorVolume, parse) -> str:
    try:
        return parse(text)
    except DemangleError as e:
        if errors == common.ErrorVolume.ERROR:
            raise
        if errors == common.ErrorVolume.WARNING:
            print(f'warning: unable to demangle {what}: {e}', file=sys.stderr)
        return text


def demangle(sym: str, *, errors: common.ErrorVolume = common.ErrorVolume.SILENT) -> str:
    """
    Demangle a D symbol. If that's not possible, return it unchanged,
    after complaining as loudly as `errors` says to.
    """
    return _parse_or_fallback(sym, 'symbol', errors, lib_dlang.parse)


def demangle_type(mangled_type: str, *, errors: common.ErrorVolume = common.ErrorVolume.SILENT) -> str:
    """
    Demangle a bare D type, such as "Aya" (immutable(char)[]).
    Failures are handled the same way as in demangle().
    """
    return _parse_or_fallback(mangled_type, 'type', errors, lib_dlang.parse_type)
