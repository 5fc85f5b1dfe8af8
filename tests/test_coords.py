import pytest

from where_is_this.coords import (
    as_float_pair,
    clean_coordinate_text,
    coordinate_components,
    parse_coordinates,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("32.65, 51.67", ("32.65", "51.67")),
        ("(32.65 51.67)", ("32.65", "51.67")),
        ("  (48.8584,2.2945)  ", ("48.8584", "2.2945")),
        ("-33.86\t151.21", ("-33.86", "151.21")),
        ("35.0   139.0", ("35.0", "139.0")),
    ],
)
def test_parse_splits_on_comma_or_whitespace(raw, expected):
    assert parse_coordinates(raw) == expected


def test_parse_uses_first_comma_only():
    assert parse_coordinates("1, 2, 3") == ("1", "2, 3")


def test_whitespace_split_keeps_first_two_tokens():
    assert parse_coordinates("1 2 3") == ("1", "2")


def test_comma_wins_over_whitespace():
    assert parse_coordinates("Mount Fuji, Japan") == ("Mount Fuji", "Japan")


def test_parse_gives_up_without_separator():
    assert parse_coordinates("Paris") is None
    assert parse_coordinates("(Paris)") is None


def test_components_fall_back_to_whole_string():
    assert coordinate_components("Paris") == ("Paris", "")
    assert coordinate_components("(12.5)") == ("12.5", "")


def test_components_never_validate_numbers():
    assert coordinate_components("north, south") == ("north", "south")
    assert coordinate_components("999, -999") == ("999", "-999")


def test_clean_removes_parens_anywhere():
    assert clean_coordinate_text(" (1,(2)) ") == "1,2"


def test_as_float_pair():
    assert as_float_pair("32.65", "51.67") == (32.65, 51.67)
    assert as_float_pair("Paris", "") is None
    assert as_float_pair("nan", "1") is None
