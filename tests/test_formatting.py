import pytest

from vsdfs.formatting import format_field, format_name, format_perms
from vsdfs.perms import Perm

ALL = (Perm.U_READ | Perm.U_WRITE | Perm.U_EXEC | Perm.U_HIDDEN
       | Perm.W_READ | Perm.W_WRITE | Perm.W_EXEC | Perm.W_HIDDEN)


def test_format_perms_all_kernel_style():
    assert format_perms(ALL) == "U:rwxh,W:rwxh"


def test_format_perms_all_proto_style():
    assert format_perms(ALL, "proto") == "u:rwxh w:rwxh"


def test_format_perms_none():
    assert format_perms(0) == "U:----,W:----"


def test_format_perms_user_only_leaves_world_blank():
    text = format_perms(Perm.U_READ | Perm.U_EXEC)
    assert text.startswith("U:r-x-")
    assert text.endswith("W:----")


def test_format_perms_bad_style():
    with pytest.raises(ValueError):
        format_perms(0, "other")


def test_format_name_pads_last_component():
    out = format_name("/bin/ls", 10)
    assert len(out) == 10
    assert out.rstrip() == "ls"


def test_format_name_long_returned_whole():
    assert format_name("/usr/averylongname", 4) == "averylongname"


def test_format_field_centres():
    out = format_field("ab", 6, "*", 32)
    assert len(out) == 6
    assert out.strip("*") == "ab"
    assert out.index("ab") == 2


def test_format_field_overwide_data():
    assert format_field("abcdef", 3, " ", 64) == "abcdef"
    assert format_field("abcdef", 3, " ", 4) == "abcdef"[:3]


def test_format_field_bad_filler():
    with pytest.raises(ValueError):
        format_field("a", 4, "ab")