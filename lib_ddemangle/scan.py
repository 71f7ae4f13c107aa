import dataclasses
import re
from typing import Iterable, Iterator

from . import common
from . import demangle as lib_demangle


UnderscoreHandling = common.UnderscoreHandling

# "_D" may have an extra leading underscore (e.g. on macOS); "_Z" never does
SYMBOL_SUFFIX = r'[0-9a-zA-Z_]+\b'
SYMBOL_REGEX = re.compile(r'\b(_?_D|_Z)' + SYMBOL_SUFFIX)
SYMBOL_REGEX_UNDERSCORE_MISSING = re.compile(r'\b(D|_Z)' + SYMBOL_SUFFIX)


@dataclasses.dataclass(frozen=True)
class MangledToken:
    """
    A candidate mangled symbol found in a line of text
    """
    start: int
    end: int
    text: str


def symbol_regex(underscores: UnderscoreHandling) -> re.Pattern:
    if underscores == UnderscoreHandling.MISSING:
        return SYMBOL_REGEX_UNDERSCORE_MISSING
    else:
        return SYMBOL_REGEX


def find_tokens(line: str, underscores: UnderscoreHandling = UnderscoreHandling.NORMAL) -> Iterator[MangledToken]:
    """
    Yield every candidate mangled symbol in the line, left to right
    """
    for match in symbol_regex(underscores).finditer(line):
        yield MangledToken(match.start(), match.end(), match.group(0))


def demangle_token(text: str, underscores: UnderscoreHandling = UnderscoreHandling.NORMAL) -> str:
    """
    Return the replacement text for one matched token: its demangled
    form, or the token itself if it can't be demangled.
    """
    if underscores == UnderscoreHandling.MISSING or text[1] != '_':
        # _D, _Z, or anything at all if underscores are missing
        return lib_demangle.demangle(text)

    # __D: might be a D symbol with an extra leading underscore, or might
    # just be an ordinary identifier that starts with "__D"
    stripped = text[1:]
    result = lib_demangle.try_demangle(stripped)
    if result is None or result == stripped:
        return text
    return result


def ddemangle_line(line: str, underscores: UnderscoreHandling = UnderscoreHandling.NORMAL) -> str:
    """
    Replace every mangled D symbol in the line with its demangled form.
    Everything else is left exactly as it was.
    """
    pieces = []
    prev_end = 0
    for token in find_tokens(line, underscores):
        pieces.append(line[prev_end:token.start])
        pieces.append(demangle_token(token.text, underscores))
        prev_end = token.end
    pieces.append(line[prev_end:])
    return ''.join(pieces)


def ddemangle_lines(lines: Iterable[str], underscores: UnderscoreHandling = UnderscoreHandling.NORMAL) -> Iterator[str]:
    """
    ddemangle_line() for each line, in order
    """
    for line in lines:
        yield ddemangle_line(line, underscores)
