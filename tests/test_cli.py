"""
Tests for the command-line scripts.
"""

import io
import sys

import pytest

import ddemangle
import demangle_symbol
from lib_ddemangle import common


def test_file_input(tmp_path, capsys):
    path = tmp_path / 'input.txt'
    path.write_text(
        'first _D2rt4util7console8__assertFiZv line\n'
        '\n'
        'no symbols here\n'
        'last line without newline __D6object9Throwable8toStringMFZAya',
        encoding='utf-8')

    assert ddemangle.main([str(path)]) == 0

    captured = capsys.readouterr()
    assert captured.out == (
        'first void rt.util.console.__assert(int) line\n'
        '\n'
        'no symbols here\n'
        'last line without newline immutable(char)[] object.Throwable.toString()\n')
    assert captured.err == ''


def test_underscore_missing_flag(tmp_path, capsys):
    path = tmp_path / 'input.txt'
    path.write_text('D2rt4util7console8__assertFiZv\n_D6object9Throwable8toStringMFZAya\n', encoding='utf-8')

    for flag in ['-u', '--underscoreMissing']:
        assert ddemangle.main([flag, str(path)]) == 0
        assert capsys.readouterr().out == (
            'void rt.util.console.__assert(int)\n'
            '_D6object9Throwable8toStringMFZAya\n')


@pytest.mark.parametrize('flag', ['-h', '--help'])
def test_help(flag, capsys):
    assert ddemangle.main([flag]) == 1
    captured = capsys.readouterr()
    assert captured.out == ''
    assert 'usage:' in captured.err
    assert '--underscoreMissing' in captured.err


@pytest.mark.parametrize('args', [
    ['--bogus'],
    ['a.txt', 'b.txt'],
])
def test_usage_errors(args, capsys):
    assert ddemangle.main(args) == 1
    captured = capsys.readouterr()
    assert captured.out == ''
    assert 'unrecognized arguments' in captured.err
    assert 'usage:' in captured.err


def test_missing_file(tmp_path, capsys):
    assert ddemangle.main([str(tmp_path / 'does_not_exist.txt')]) == 1
    captured = capsys.readouterr()
    assert captured.out == ''
    assert 'does_not_exist.txt' in captured.err


def test_parse_args():
    parser = ddemangle.make_parser()

    config = ddemangle.parse_args(parser, [])
    assert config.input_file is None
    assert config.underscores == common.UnderscoreHandling.NORMAL

    config = ddemangle.parse_args(parser, ['-u', 'x.txt'])
    assert str(config.input_file) == 'x.txt'
    assert config.underscores == common.UnderscoreHandling.MISSING

    assert ddemangle.parse_args(parser, ['-h']) is None

    with pytest.raises(ddemangle.UsageError):
        ddemangle.parse_args(parser, ['-x'])


def test_ddemangle_stream():
    out = io.StringIO()
    ddemangle.ddemangle_stream(
        ['_D3foo3bari\n', 'D3foo3bari\n'], out, common.UnderscoreHandling.MISSING)
    assert out.getvalue() == 'int foo.bar\nint foo.bar\n'


def test_ddemangle_stream_keeps_carriage_returns():
    out = io.StringIO()
    ddemangle.ddemangle_stream(
        ['a\r_D3foo3bari\r\n', '\r\n'], out, common.UnderscoreHandling.NORMAL)
    assert out.getvalue() == 'a\rint foo.bar\r\n\r\n'


@pytest.fixture
def byte_stdout(monkeypatch):
    # Starts out as ASCII so that main() has to switch it to UTF-8
    stdout = io.TextIOWrapper(io.BytesIO(), encoding='ascii')
    monkeypatch.setattr(sys, 'stdout', stdout)
    return stdout


RAW_INPUT = (
    b'progress 10%\rprogress 20% _D3foo3bari\r\n'
    b'\xff caf\xc3\xa9 _D3foo3bari\x07\n'
    b'last _D3foo3bari')
RAW_OUTPUT = (
    b'progress 10%\rprogress 20% int foo.bar\r\n'
    b'\xff caf\xc3\xa9 int foo.bar\x07\n'
    b'last int foo.bar\n')


def test_stdin_bytes_pass_through(monkeypatch, byte_stdout):
    stdin = io.TextIOWrapper(io.BytesIO(RAW_INPUT), encoding='ascii')
    monkeypatch.setattr(sys, 'stdin', stdin)

    assert ddemangle.main([]) == 0
    assert byte_stdout.buffer.getvalue() == RAW_OUTPUT


def test_file_bytes_pass_through(tmp_path, byte_stdout):
    path = tmp_path / 'input.txt'
    path.write_bytes(RAW_INPUT)

    assert ddemangle.main([str(path)]) == 0
    assert byte_stdout.buffer.getvalue() == RAW_OUTPUT



def test_demangle_symbol(capsys):
    demangle_symbol.main(['_D2rt4util7console8__assertFiZv'])
    assert capsys.readouterr().out == 'void rt.util.console.__assert(int)\n'

    demangle_symbol.main(['--type', 'Aya'])
    assert capsys.readouterr().out == 'immutable(char)[]\n'


def test_demangle_symbol_failures(capsys):
    demangle_symbol.main(['_D3foo'])
    captured = capsys.readouterr()
    assert captured.out == '_D3foo\n'
    assert 'warning' in captured.err

    demangle_symbol.main(['--errors', 'silent', '_D3foo'])
    captured = capsys.readouterr()
    assert captured.out == '_D3foo\n'
    assert captured.err == ''

    with pytest.raises(ValueError):
        demangle_symbol.main(['--errors', 'error', '_D3foo'])
