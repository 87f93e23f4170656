import pytest

from vsdfs.args import find_in_string, last_arg, option_argument, parse_flags


def test_find_in_string():
    assert find_in_string("c", "abc") == 2
    assert find_in_string("z", "abc") == -1
    assert find_in_string("", "abc") == -1


def test_parse_flags_groups():
    flags, last = parse_flags(["prog", "-ab", "file", "-c"], "abc")
    assert flags == {"a", "b", "c"}
    assert last == 3


def test_parse_flags_none():
    assert parse_flags(["prog", "file"], "abc") == (set(), 0)


def test_parse_flags_unknown():
    with pytest.raises(ValueError):
        parse_flags(["prog", "-z"], "abc")


def test_parse_flags_double_dash_stops():
    flags, last = parse_flags(["prog", "-a", "--", "-b"], "ab")
    assert flags == {"a"}
    assert last == 2


def test_option_argument_found():
    assert option_argument(["prog", "-f", "name"], "f") == "name"


def test_option_argument_followed_by_option():
    assert option_argument(["prog", "-f", "-d"], "f") is None


def test_option_argument_at_end_or_after_dashdash():
    assert option_argument(["prog", "-f"], "f") is None
    assert option_argument(["prog", "--", "-f", "name"], "f") is None


def test_option_argument_bad_char():
    with pytest.raises(ValueError):
        option_argument(["prog"], "fg")


def test_last_arg_counts_option_argument():
    assert last_arg(["prog", "-d", "stuff", "rest"], "df") == 2


def test_last_arg_plain_option():
    assert last_arg(["prog", "-a", "x"], "df") == 1


def test_last_arg_stops_at_double_dash():
    assert last_arg(["prog", "--", "-d", "x"], "df") == 1