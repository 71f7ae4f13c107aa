# D ABI demangler
# Grammar reference: https://dlang.org/spec/abi.html#name_mangling

import contextlib
from typing import List, Optional, Tuple


# Nesting and total-work limits. Back references can make a short
# symbol expand exponentially, so both are needed to guarantee that
# malformed input fails quickly.
MAX_DEPTH = 80
WORK_BUDGET = 100_000

# Longer numbers can't be valid lengths or literal values
MAX_NUMBER_DIGITS = 20

DIGITS = frozenset('0123456789')
HEX_DIGITS = frozenset('0123456789abcdefABCDEF')
ASCII_LETTERS = frozenset('abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ')

BASIC_TYPES = {
    'v': 'void',
    'g': 'byte',
    'h': 'ubyte',
    's': 'short',
    't': 'ushort',
    'i': 'int',
    'k': 'uint',
    'l': 'long',
    'm': 'ulong',
    'f': 'float',
    'd': 'double',
    'e': 'real',
    'o': 'ifloat',
    'p': 'idouble',
    'j': 'ireal',
    'q': 'cfloat',
    'r': 'cdouble',
    'c': 'creal',
    'b': 'bool',
    'a': 'char',
    'u': 'wchar',
    'w': 'dchar',
    'n': 'typeof(null)',
}

WIDE_INTEGER_TYPES = {
    'i': 'cent',
    'k': 'ucent',
}

TYPE_CONSTRUCTORS = {
    'x': 'const',
    'y': 'immutable',
    'O': 'shared',
}

CALL_CONVENTIONS = {
    'F': '',
    'U': 'extern (C) ',
    'W': 'extern (Windows) ',
    'V': 'extern (Pascal) ',
    'R': 'extern (C++) ',
    'Y': 'extern (Objective-C) ',
}

FUNCTION_ATTRIBUTES = {
    'a': 'pure',
    'b': 'nothrow',
    'c': 'ref',
    'd': '@property',
    'e': '@trusted',
    'f': '@safe',
    'i': '@nogc',
    'j': 'return',
    'l': 'scope',
    'm': '@live',
}

# "N" followed by one of these starts a parameter, not a function attribute
PARAMETER_N_CODES = frozenset('ghkn')

# Checked in order, so longer prefixes must come first
PARAMETER_STORAGE_COMBINATIONS = [
    ('MNkJ', 'scope return out '),
    ('MNkK', 'scope return ref '),
    ('NkMJ', 'return scope out '),
    ('NkMK', 'return scope ref '),
    ('NkJ', 'return out '),
    ('NkK', 'return ref '),
    ('NkM', 'return scope '),
]

PARAMETER_STORAGE_CLASSES = {
    'K': 'ref ',
    'J': 'out ',
    'L': 'lazy ',
}

CHARACTER_ESCAPES = {
    ord("'"): "'\\''",
    ord('\\'): "'\\\\'",
    ord('\a'): "'\\a'",
    ord('\b'): "'\\b'",
    ord('\f'): "'\\f'",
    ord('\n'): "'\\n'",
    ord('\r'): "'\\r'",
    ord('\t'): "'\\t'",
    ord('\v'): "'\\v'",
}

# Internal symbols such as __ModuleInfo end with this instead of a type
INTERNAL_SYMBOL_TERMINATOR = 'Z'


class DemangleError(ValueError):
    """
    The symbol doesn't follow the D mangling grammar
    """


def _is_identifier_char(c: str) -> bool:
    return c == '_' or c in ASCII_LETTERS or c in DIGITS or ord(c) >= 0x80


class _Demangler:
    """
    Recursive-descent parser over a single mangled symbol. Every parse_*
    method consumes input starting at self.pos and returns the rendered
    text, or raises DemangleError.
    """
    def __init__(self, sym: str):
        self.sym = sym
        self.pos = 0
        # Position of the back reference currently being followed
        self.brp = -1
        self.depth = 0
        self.budget = WORK_BUDGET


    @property
    def front(self) -> str:
        if self.pos < len(self.sym):
            return self.sym[self.pos]
        return ''

    def peek(self, offset: int) -> str:
        i = self.pos + offset
        if i < len(self.sym):
            return self.sym[i]
        return ''

    def pop(self, count: int = 1) -> None:
        self.pos += count

    def at_end(self) -> bool:
        return self.pos >= len(self.sym)

    def match(self, expected: str) -> None:
        if not self.sym.startswith(expected, self.pos):
            self.error(f'expected "{expected}"')
        self.pos += len(expected)

    def error(self, message: str) -> None:
        raise DemangleError(f'{message} at position {self.pos} in "{self.sym}"')

    def save(self) -> Tuple[int, int]:
        return (self.pos, self.brp)

    def restore(self, state: Tuple[int, int]) -> None:
        self.pos, self.brp = state

    @contextlib.contextmanager
    def nested(self):
        self.depth += 1
        self.budget -= 1
        try:
            if self.depth > MAX_DEPTH:
                self.error('symbol is nested too deeply')
            if self.budget < 0:
                self.error('symbol is too complex')
            yield
        finally:
            self.depth -= 1


    def scan_number(self, start: int) -> int:
        """
        Return the index just past the run of decimal digits beginning
        at start. The run must be non-empty and not absurdly long.
        """
        end = start
        while end < len(self.sym) and self.sym[end] in DIGITS:
            end += 1
        if end == start:
            self.error('number expected')
        if end - start > MAX_NUMBER_DIGITS:
            self.error('number too long')
        return end

    def slice_number(self) -> str:
        end = self.scan_number(self.pos)
        digits = self.sym[self.pos:end]
        self.pos = end
        return digits

    def decode_number(self) -> int:
        return int(self.slice_number())

    def decode_backref(self) -> int:
        """
        Base-26 number: upper-case letters are leading digits, and a
        lower-case letter is the final one.
        """
        n = 0
        while True:
            c = self.front
            if 'A' <= c <= 'Z':
                n = n * 26 + ord(c) - ord('A')
                self.pop()
            elif 'a' <= c <= 'z':
                self.pop()
                return n * 26 + ord(c) - ord('a')
            else:
                self.error('invalid back reference')

    def peek_backref(self) -> str:
        """
        With self.pos at a "Q", return the character the back reference
        points to, or '' if it's invalid. Doesn't consume anything.
        """
        ref_pos = self.pos
        try:
            self.pos += 1
            n = self.decode_backref()
        except DemangleError:
            return ''
        finally:
            self.pos = ref_pos
        if n == 0 or n > ref_pos:
            return ''
        return self.sym[ref_pos - n]

    def parse_backref(self, parse):
        """
        Follow a "Q" back reference: run parse() at the referenced
        position, then resume after the reference.
        """
        ref_pos = self.pos
        if ref_pos == self.brp:
            self.error('recursive back reference')
        self.pop()
        n = self.decode_backref()
        if n == 0 or n > ref_pos:
            self.error('back reference out of range')

        resume = self.save()
        self.pos = ref_pos - n
        self.brp = ref_pos
        try:
            return parse()
        finally:
            self.restore(resume)


    def is_symbol_name_front(self) -> bool:
        c = self.front
        if c in DIGITS or c == '_':
            return True
        if c != 'Q':
            return False
        return self.peek_backref() in DIGITS

    def may_be_template_instance_name(self) -> bool:
        end = self.scan_number(self.pos)
        n = int(self.sym[self.pos:end])
        return n >= 5 and self.sym.startswith(('__T', '__U'), end)

    def parse_lname(self) -> str:
        if self.front == 'Q':
            with self.nested():
                return self.parse_backref(self.parse_lname)

        n = self.decode_number()
        if n == 0:
            return '__anonymous'
        if n > len(self.sym) - self.pos:
            self.error('identifier runs past the end of the symbol')

        name = self.sym[self.pos:self.pos + n]
        if name[0] in DIGITS or not all(_is_identifier_char(c) for c in name):
            self.error('invalid character in identifier')
        self.pos += n
        return name

    def parse_symbol_name(self) -> str:
        with self.nested():
            c = self.front
            if c == '_':
                # Newer template instances have no length prefix
                return self.parse_template_instance_name(False)

            if c in DIGITS:
                if self.may_be_template_instance_name():
                    state = self.save()
                    try:
                        return self.parse_template_instance_name(True)
                    except DemangleError:
                        self.restore(state)
                return self.parse_lname()

            if c == 'Q':
                return self.parse_lname()

            self.error('symbol name expected')

    def parse_template_instance_name(self, has_number: bool) -> str:
        length = self.decode_number() if has_number else 0
        begin = self.pos

        self.match('__')
        if self.front != 'T' and self.front != 'U':
            self.error('template instance expected')
        self.pop()

        name = self.parse_lname()
        args = self.parse_template_args()
        self.match('Z')

        if has_number and self.pos - begin != length:
            self.error('template instance length mismatch')
        return f'{name}!({args})'

    def parse_qualified_name(self, keep_attrs: bool = False) -> Tuple[str, str]:
        """
        Parse dot-separated symbol names. Symbols that are functions
        (e.g. the enclosing function of a local struct) get their
        parameter list appended.
        Returns the name and the prefix (modifiers, calling convention,
        attributes) of the last component if it's a function and
        keep_attrs is set.
        """
        segments = []
        attrs = ''
        while True:
            segment = self.parse_symbol_name()
            function = self.parse_function_type_no_return(keep_attrs)
            if function is None:
                attrs = ''
            else:
                attrs, params = function
                segment += params
            segments.append(segment)

            if not self.is_symbol_name_front():
                break

        return '.'.join(segments), attrs

    def parse_mangled_name(self, display_type: bool = True, length: int = 0, nested: bool = False) -> str:
        end = self.pos + length
        if self.front == '_':
            self.pop()
        self.match('D')

        pieces = []
        while True:
            name, attrs = self.parse_qualified_name(display_type)

            if (not nested
                    and self.front == INTERNAL_SYMBOL_TERMINATOR
                    and self.pos + 1 == len(self.sym)):
                self.pop()
                type_name = ''
            else:
                type_name = self.parse_type()

            if display_type and type_name:
                pieces.append(f'{attrs}{type_name} {name}')
            elif display_type:
                pieces.append(f'{attrs}{name}')
            else:
                pieces.append(name)

            if not nested or self.at_end() or (length and self.pos >= end):
                break
            if self.front in ('T', 'V', 'S', 'Z'):
                # Template argument terminators
                break

        return '.'.join(pieces)


    def is_call_convention(self, c: str) -> bool:
        return c in CALL_CONVENTIONS

    def parse_modifiers(self) -> List[str]:
        if self.front == 'y':
            self.pop()
            return ['immutable']

        modifiers = []
        if self.front == 'O':
            self.pop()
            modifiers.append('shared')
        if self.front == 'N' and self.peek(1) == 'g':
            self.pop(2)
            modifiers.append('inout')
        if self.front == 'x':
            self.pop()
            modifiers.append('const')
        return modifiers

    def parse_call_convention(self) -> str:
        c = self.front
        if not self.is_call_convention(c):
            self.error('calling convention expected')
        self.pop()
        return CALL_CONVENTIONS[c]

    def parse_func_attrs(self) -> List[str]:
        attrs = []
        while self.front == 'N':
            c = self.peek(1)
            if c in PARAMETER_N_CODES:
                break
            if c not in FUNCTION_ATTRIBUTES:
                self.error('unknown function attribute')
            self.pop(2)
            attrs.append(FUNCTION_ATTRIBUTES[c])
        return attrs

    def parse_parameter(self) -> str:
        prefix = ''
        for code, storage in PARAMETER_STORAGE_COMBINATIONS:
            if self.sym.startswith(code, self.pos):
                self.pop(len(code))
                prefix += storage
                break

        if self.front == 'M':
            self.pop()
            prefix += 'scope '
        if self.front == 'N' and self.peek(1) == 'k':
            self.pop(2)
            prefix += 'return '

        c = self.front
        if c == 'I':
            self.pop()
            prefix += 'in '
            if self.front == 'K':
                self.pop()
                prefix += 'ref '
        elif c in PARAMETER_STORAGE_CLASSES:
            self.pop()
            prefix += PARAMETER_STORAGE_CLASSES[c]

        return prefix + self.parse_type()

    def parse_func_arguments(self) -> str:
        params = []
        while True:
            c = self.front
            if c == 'X':
                # T t...
                self.pop()
                return ', '.join(params) + '...'
            if c == 'Y':
                # T t, ...
                self.pop()
                return ', '.join(params + ['...'])
            if c == 'Z':
                self.pop()
                return ', '.join(params)
            params.append(self.parse_parameter())

    def parse_function_type_no_return(self, keep_attrs: bool = False) -> Optional[Tuple[str, str]]:
        """
        Try to parse the parameter list that can follow a symbol name.
        Returns (prefix, parenthesized parameters), or None (consuming
        nothing) if there isn't one.
        """
        state = self.save()
        try:
            prefix = ''
            if self.front == 'M':
                # "needs this" isn't shown
                self.pop()
                prefix += ''.join(m + ' ' for m in self.parse_modifiers())
            if not self.is_call_convention(self.front):
                self.restore(state)
                return None

            prefix += self.parse_call_convention()
            prefix += ''.join(a + ' ' for a in self.parse_func_attrs())
            params = self.parse_func_arguments()
        except DemangleError:
            self.restore(state)
            return None

        if not keep_attrs:
            prefix = ''
        return prefix, f'({params})'

    def parse_type_function(self, kind: str = 'function') -> str:
        convention = self.parse_call_convention()
        attrs = self.parse_func_attrs()
        params = self.parse_func_arguments()
        return_type = self.parse_type()
        suffix = ''.join(' ' + a for a in attrs)
        return f'{convention}{return_type} {kind}({params}){suffix}'

    def parse_type(self) -> str:
        with self.nested():
            c = self.front

            if c == 'Q':
                return self.parse_backref(self.parse_type)

            if c in BASIC_TYPES:
                self.pop()
                return BASIC_TYPES[c]

            if c == 'z':
                self.pop()
                c = self.front
                if c not in WIDE_INTEGER_TYPES:
                    self.error('unknown wide integer type')
                self.pop()
                return WIDE_INTEGER_TYPES[c]

            if c in TYPE_CONSTRUCTORS:
                self.pop()
                return f'{TYPE_CONSTRUCTORS[c]}({self.parse_type()})'

            if c == 'N':
                self.pop()
                c = self.front
                if c == 'n':
                    self.pop()
                    return 'noreturn'
                if c == 'g':
                    self.pop()
                    return f'inout({self.parse_type()})'
                if c == 'h':
                    self.pop()
                    return f'__vector({self.parse_type()})'
                self.error('unknown type')

            if c == 'A':
                self.pop()
                return f'{self.parse_type()}[]'

            if c == 'G':
                self.pop()
                dimension = self.slice_number()
                return f'{self.parse_type()}[{dimension}]'

            if c == 'H':
                self.pop()
                key_type = self.parse_type()
                value_type = self.parse_type()
                return f'{value_type}[{key_type}]'

            if c == 'P':
                self.pop()
                if self.is_call_convention(self.front):
                    return self.parse_type_function('function')
                return f'{self.parse_type()}*'

            if self.is_call_convention(c):
                return self.parse_type_function('function')

            if c in ('I', 'C', 'S', 'E', 'T'):
                self.pop()
                return self.parse_qualified_name()[0]

            if c == 'D':
                self.pop()
                modifiers = self.parse_modifiers()
                if self.front == 'Q':
                    delegate = self.parse_backref(lambda: self.parse_type_function('delegate'))
                else:
                    delegate = self.parse_type_function('delegate')
                # Modifiers of the context pointer go after the arguments
                return delegate + ''.join(' ' + m for m in modifiers)

            if c == 'B':
                self.pop()
                return f'tuple({self.parse_func_arguments()})'

            self.error('unknown type')


    def parse_template_args(self) -> str:
        args = []
        while True:
            if self.front == 'H':
                self.pop()

            c = self.front
            if c == 'T':
                self.pop()
                args.append(self.parse_type())
            elif c == 'V':
                self.pop()
                args.append(self.parse_value_arg())
            elif c == 'S':
                self.pop()
                args.append(self.parse_symbol_arg())
            elif c == 'X':
                self.pop()
                args.append(self.parse_lname())
            elif c == 'Z':
                return ', '.join(args)
            else:
                self.error('template argument expected')

    def parse_value_arg(self) -> str:
        type_code = self.front
        if type_code == 'Q':
            type_code = self.peek_backref()
        type_name = self.parse_type()
        return self.parse_value(type_name, type_code)

    def may_be_mangled_name_arg(self) -> bool:
        p = self.pos
        if self.front in DIGITS:
            end = self.scan_number(p)
            n = int(self.sym[p:end])
            return (n >= 4
                and self.sym.startswith('_D', end)
                and end + 2 < len(self.sym)
                and self.sym[end + 2] in DIGITS)

        if not self.sym.startswith('_D', p):
            return False
        self.pos = p + 2
        try:
            return self.is_symbol_name_front()
        finally:
            self.pos = p

    def parse_symbol_arg(self) -> str:
        if self.may_be_mangled_name_arg():
            state = self.save()
            try:
                length = self.decode_number() if self.front in DIGITS else 0
                return self.parse_mangled_name(False, length, nested=True)
            except DemangleError:
                self.restore(state)

        if self.front in DIGITS and self.peek(1) in DIGITS:
            # A length prefix followed by a qualified name that itself
            # starts with a number, e.g. "233std6traits...". Try each
            # split of the digits until the lengths agree.
            start = self.pos
            end = self.scan_number(start)
            qualified_length = int(self.sym[start:end]) // 10
            p = end - 1
            while qualified_length > 0:
                self.pos = p
                try:
                    name, _ = self.parse_qualified_name()
                    if self.pos == p + qualified_length:
                        return name
                except DemangleError:
                    pass
                qualified_length //= 10
                p -= 1
            self.pos = start

        return self.parse_qualified_name()[0]

    def parse_value(self, type_name: str = '', type_code: str = '') -> str:
        with self.nested():
            c = self.front

            if c == 'n':
                self.pop()
                return 'null'

            if c == 'i':
                self.pop()
                if self.front not in DIGITS:
                    self.error('number expected')
                return self.parse_integer_value(type_code)

            if c in DIGITS:
                return self.parse_integer_value(type_code)

            if c == 'N':
                self.pop()
                return '-' + self.parse_integer_value(type_code)

            if c == 'e':
                self.pop()
                return self.parse_real()

            if c == 'c':
                self.pop()
                real = self.parse_real()
                self.match('c')
                imaginary = self.parse_real()
                return f'{real}+{imaginary}i'

            if c in ('a', 'w', 'd'):
                return self.parse_string_value()

            if c == 'A':
                # Associative array literals share the array prefix
                if type_code == 'H':
                    return self.parse_assoc_array_value()
                self.pop()
                count = self.decode_number()
                elements = [self.parse_value() for _ in range(count)]
                return f'[{", ".join(elements)}]'

            if c == 'H':
                return self.parse_assoc_array_value()

            if c == 'S':
                self.pop()
                count = self.decode_number()
                fields = [self.parse_value() for _ in range(count)]
                return f'{type_name}({", ".join(fields)})'

            if c == 'f':
                # Function literal
                self.pop()
                return self.parse_mangled_name(False, nested=True)

            self.error('value expected')

    def parse_assoc_array_value(self) -> str:
        self.pop()
        count = self.decode_number()
        pairs = []
        for _ in range(count):
            key = self.parse_value()
            value = self.parse_value()
            pairs.append(f'{key}:{value}')
        return f'[{", ".join(pairs)}]'

    def parse_integer_value(self, type_code: str) -> str:
        digits = self.slice_number()

        if type_code in ('a', 'u', 'w'):
            num = int(digits)
            if num in CHARACTER_ESCAPES:
                return CHARACTER_ESCAPES[num]
            if type_code == 'a':
                if 0x20 <= num < 0x7f:
                    return f"'{chr(num)}'"
                return f'\\x{num:02x}'
            if type_code == 'u':
                return f"'\\u{num:04x}'"
            return f"'\\U{num:08x}'"

        if type_code == 'b':
            return 'true' if int(digits) else 'false'
        if type_code in ('h', 't', 'k'):
            return digits + 'u'
        if type_code == 'l':
            return digits + 'L'
        if type_code == 'm':
            return digits + 'uL'
        return digits

    def parse_real(self) -> str:
        if self.front == 'I':
            self.match('INF')
            return 'real.infinity'

        sign = ''
        if self.front == 'N':
            self.pop()
            if self.front == 'I':
                self.match('INF')
                return '-real.infinity'
            if self.front == 'A':
                self.match('AN')
                return 'real.nan'
            sign = '-'

        if self.front not in HEX_DIGITS:
            self.error('hex digit expected')
        start = self.pos
        while self.front in HEX_DIGITS:
            self.pop()
        mantissa = self.sym[start:self.pos]

        self.match('P')
        exponent_sign = '+'
        if self.front == 'N':
            self.pop()
            exponent_sign = '-'
        exponent = self.slice_number()

        if len(mantissa) > 1:
            mantissa = f'{mantissa[0]}.{mantissa[1:]}'
        hex_literal = f'{sign}0x{mantissa}p{exponent_sign}{exponent}'
        try:
            value = float.fromhex(hex_literal)
        except (OverflowError, ValueError):
            self.error('real value out of range')
        return '%G' % value

    def parse_string_value(self) -> str:
        kind = self.front
        self.pop()
        count = self.decode_number()
        self.match('_')

        chars = []
        for _ in range(count):
            hi, lo = self.front, self.peek(1)
            if hi not in HEX_DIGITS or lo not in HEX_DIGITS:
                self.error('hex digit expected')
            self.pop(2)
            value = int(hi + lo, 16)
            if 0x20 <= value <= 0x7e:
                chars.append(chr(value))
            else:
                chars.append(f'\\x{value:02x}')

        literal = '"' + ''.join(chars) + '"'
        if kind != 'a':
            literal += kind
        return literal


def parse(sym: str) -> str:
    """
    Demangle a D symbol, raising DemangleError if it's malformed.
    The leading underscore is optional.
    """
    if sym in ('_Dmain', 'Dmain'):
        return 'D main'

    demangler = _Demangler(sym)
    result = demangler.parse_mangled_name()
    if not demangler.at_end():
        demangler.error('unexpected trailing characters')
    return result


def parse_type(mangled_type: str) -> str:
    """
    Demangle a bare mangled type (e.g. "Aya"), raising DemangleError if
    it's malformed.
    """
    demangler = _Demangler(mangled_type)
    result = demangler.parse_type()
    if not demangler.at_end():
        demangler.error('unexpected trailing characters')
    return result


def demangle(sym: str) -> Optional[str]:
    """
    Demangle a D symbol, or return None if it can't be demangled
    """
    try:
        return parse(sym)
    except DemangleError:
        return None
