#!filepath: tests/test_record_format.py
import io

import pytest

from tbsim.errors import ConfigurationError
from tbsim.utils.record_format import NumberFormat, format_value, iter_tokens, parse_token, write_records
from tbsim.verif import FileDriven


@pytest.mark.parametrize("spec, expected", [
    ("d", NumberFormat.DEC),
    ("%d", NumberFormat.DEC),
    ("UDEC", NumberFormat.UDEC),
    ("h", NumberFormat.HEX_LOWER),
    ("x", NumberFormat.HEX_LOWER),
    ("%H", NumberFormat.HEX_UPPER),
    ("X", NumberFormat.HEX_UPPER),
    ("bin", NumberFormat.BIN),
    ("%o", NumberFormat.OCT),
    (NumberFormat.BIN, NumberFormat.BIN),
])
def test_parse_format_spec(spec, expected):
    assert NumberFormat.parse(spec) is expected


@pytest.mark.parametrize("spec", ["hexadecimal", "%q", "", None])
def test_unknown_format_spec(spec):
    with pytest.raises(ConfigurationError):
        NumberFormat.parse(spec)


def test_parse_token():
    assert parse_token("-12", "d") == -12
    assert parse_token("1_000", "u") == 1000
    assert parse_token("dead_beef", "h") == 0xDEADBEEF
    assert parse_token("BEEF", "H") == 0xBEEF
    assert parse_token("1010", "b") == 10
    assert parse_token("17", "o") == 15


@pytest.mark.parametrize("token, fmt", [
    ("BEEF", "h"),    # 小写格式不接受大写
    ("beef", "H"),
    ("-3", "u"),
    ("102", "b"),
    ("8", "o"),
    ("_1", "d"),
])
def test_malformed_token(token, fmt):
    with pytest.raises(ValueError):
        parse_token(token, fmt)


def test_format_value():
    assert format_value(-1, "d", 8) == "-1"
    assert format_value(0xFF, "u", 8) == "255"
    assert format_value(0xABC, "h", 12) == "abc"
    assert format_value(0xABC, "H", 16) == "0ABC"
    assert format_value(5, "b", 4) == "0101"
    assert format_value(8, "o", 6) == "10"


def test_comments_are_stripped():
    stream = io.StringIO("1 2 // tail\n# whole line\n3#4\n")
    assert list(iter_tokens(stream)) == [(1, "1"), (1, "2"), (3, "3")]


def test_written_records_read_back(tmp_path):
    """write_records 生成的期望文件可以被 FileDriven 读回"""
    values = [0, 1, 0x7F, 0x80, 0xFF]
    path = write_records(tmp_path / "golden.hex", values, "H", 8)
    assert path.read_text(encoding="utf-8").splitlines() == ["00", "01", "7F", "80", "FF"]

    with FileDriven(path, "H") as source:
        assert list(source) == values


def test_signed_decimal_records_with_width(tmp_path):
    path = write_records(tmp_path / "signed.txt", [0xFF, 0x01, 0x80], "d", 8)
    assert path.read_text(encoding="utf-8").split() == ["-1", "1", "-128"]
    assert list(FileDriven(path, "d", width=8)) == [0xFF, 0x01, 0x80]
