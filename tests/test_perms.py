import pytest

from vsdfs.perms import (
    FileOp,
    Perm,
    check_permission,
    combine_perms,
    parse_perm_field,
    parse_perm_fields,
    parse_perm_letters,
    parse_perms,
)


def test_parse_perms_all_user():
    assert parse_perms("rwxh", False) == Perm.U_READ | Perm.U_WRITE | Perm.U_EXEC | Perm.U_HIDDEN


def test_parse_perms_skips_missing_letters():
    assert parse_perms("rx", False) == Perm.U_READ | Perm.U_EXEC


def test_parse_perms_order_matters():
    assert parse_perms("wr", True) == Perm.W_WRITE


def test_parse_perms_dash_stops_plain_parser():
    assert parse_perms("r-x", False) == Perm.U_READ


def test_parse_perm_letters_dash_placeholder():
    assert parse_perm_letters("r-x", True) == Perm.W_READ | Perm.W_EXEC
    assert parse_perm_letters("---h", False) == Perm.U_HIDDEN


def test_parse_perm_field():
    assert parse_perm_field("u:rw") == Perm.U_READ | Perm.U_WRITE
    assert parse_perm_field("W:r") == Perm.W_READ


@pytest.mark.parametrize("field", ["x:rw", "urw", "u", ""])
def test_parse_perm_field_bad(field):
    with pytest.raises(ValueError):
        parse_perm_field(field)


def test_parse_perm_fields_combines():
    assert parse_perm_fields("u:rwx", "w:r-x") == (
        Perm.U_READ | Perm.U_WRITE | Perm.U_EXEC | Perm.W_READ | Perm.W_EXEC)


def test_combine_perms():
    old = Perm.U_HIDDEN
    assert combine_perms(old, Perm.U_READ, Perm.W_READ, True) == Perm.U_HIDDEN | Perm.U_READ | Perm.W_READ
    assert combine_perms(old, Perm.U_READ, Perm.W_READ, False) == Perm.U_READ | Perm.W_READ


def test_singleuser_mode():
    assert check_permission(-1, 3, 0, FileOp.WRITE, True) is True
    assert check_permission(3, 3, 0xFF, FileOp.READ, True) is False


def test_owner_and_world_read():
    assert check_permission(3, 3, Perm.U_READ, FileOp.READ, False) is True
    assert check_permission(4, 3, Perm.U_READ, FileOp.READ, False) is False
    assert check_permission(4, 3, Perm.W_READ, FileOp.READ, False) is True


def test_exec_needs_read_and_exec():
    assert check_permission(3, 3, Perm.U_EXEC, FileOp.EXEC, False) is False
    assert check_permission(3, 3, Perm.U_EXEC | Perm.U_READ, FileOp.EXEC, False) is True


def test_open_uses_nonzero_owner():
    assert check_permission(7, 5, Perm.U_READ, FileOp.OPEN, False) is True
    assert check_permission(7, 0, Perm.U_READ, FileOp.OPEN, False) is False


def test_unchecked_ops_denied():
    assert check_permission(3, 3, 0xFF, FileOp.LINK, False) is False