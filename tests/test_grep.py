import pytest

from vsdfs.grep import grep_lines, main, match


@pytest.mark.parametrize(
    "pattern, text, expected",
    [
        ("^ab", "abc", True),
        ("^ab", "cab", False),
        ("ab$", "cab", True),
        ("ab$", "abc", False),
        ("a.c", "xabcx", True),
        ("a*b", "b", True),
        ("^a*$", "", True),
        ("^a*$", "aab", False),
        ("x", "abc", False),
        ("", "anything", True),
    ],
)
def test_match(pattern, text, expected):
    assert match(pattern, text) is expected


def test_match_long_text_no_recursion_error():
    assert match(".*b", "a" * 3000 + "b") is True
    assert match("^a*c", "a" * 3000) is False


def test_grep_lines_only_terminated():
    lines = ["foo\n", "bar\n", "food"]
    assert list(grep_lines("fo", lines)) == ["foo\n"]


def test_grep_lines_anchor_excludes_newline():
    assert list(grep_lines("o$", ["foo\n", "oof\n"])) == ["foo\n"]


def test_main_file(tmp_path, capsys):
    path = tmp_path / "input.txt"
    path.write_text("alpha\nbeta\ngamma\n")
    assert main(["a$", str(path)]) == 0
    assert capsys.readouterr().out == "alpha\nbeta\ngamma\n"


def test_main_filters(tmp_path, capsys):
    path = tmp_path / "input.txt"
    path.write_text("alpha\nbeta\ngamma\n")
    main(["^b", str(path)])
    assert capsys.readouterr().out == "beta\n"


def test_main_usage(capsys):
    status = main([])
    assert "usage: grep pattern [file ...]" in capsys.readouterr().err
    assert status == 1


def test_main_missing_file(tmp_path, capsys):
    missing = tmp_path / "nope"
    status = main(["x", str(missing)])
    assert capsys.readouterr().out == f"grep: cannot open {missing}\n"
    assert status == 1