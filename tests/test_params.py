import pytest

from imaging.errors import ErrorCode, ServiceError
from imaging.params import echo, parse_float, parse_int, parse_optional_int


@pytest.mark.parametrize(
    "raw,expected",
    [("12", 12), (" 7 ", 7), ("300px", 300), ("-45", -45), ("+3", 3), ("12.9", 12)],
)
def test_parse_int_takes_leading_integer(raw, expected):
    assert parse_int(raw, "width") == expected


def test_parse_int_defaults_and_errors():
    assert parse_int(None, "angle", 90) == 90
    assert parse_int("  ", "angle", 90) == 90
    with pytest.raises(ServiceError) as excinfo:
        parse_int(None, "width")
    assert excinfo.value.code is ErrorCode.VALIDATION_ERROR
    assert excinfo.value.http_status == 400
    assert "width" in excinfo.value.message
    with pytest.raises(ServiceError):
        parse_int("abc", "width", 10)


@pytest.mark.parametrize(
    "raw,expected",
    [("1.5", 1.5), (".5", 0.5), ("2", 2.0), ("1.5e1", 15.0), ("0.8 opacity", 0.8), ("-0.25", -0.25)],
)
def test_parse_float_takes_leading_number(raw, expected):
    assert parse_float(raw, "sigma") == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["inf", "nan", "1e999", "x1"])
def test_parse_float_rejects_non_finite(raw):
    with pytest.raises(ServiceError):
        parse_float(raw, "sigma", 1.0)


def test_parse_optional_int():
    assert parse_optional_int(None, "height") is None
    assert parse_optional_int("", "height") is None
    assert parse_optional_int("40", "height") == 40


def test_echo_prefers_submitted_value():
    assert echo("45", 90) == "45"
    assert echo(None, 90) == 90
    assert echo("", 90) == ""
