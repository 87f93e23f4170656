import pytest

from vsdfs.image import FsImage
from vsdfs.layout import BSIZE, DIRENT_SIZE, ROOTINO, DiskInode, InodeType
from vsdfs.perms import Perm
from vsdfs.reader import FsReadError, FsReader, skip_element
from vsdfs.vsd import build_vsd_image

SMALL = b"hello, world\n"
MEDIUM = bytes(range(256)) * 8
LARGE = bytes((i * 7) % 251 for i in range(70000))
PERMS = int(Perm.U_READ | Perm.U_WRITE | Perm.W_READ)


@pytest.fixture
def image_path(tmp_path):
    sources = {}
    for name, data in (("small", SMALL), ("medium", MEDIUM), ("large", LARGE)):
        src = tmp_path / name
        src.write_bytes(data)
        sources[name] = src
    path = tmp_path / "fs.img"
    with FsImage.create(path, "TEST", 1000, 10, 100) as image:
        root = image.find_dir("/")
        etc = image.make_dir("etc", root, 3, PERMS)
        image.add_file("small", etc, sources["small"], 5, PERMS)
        image.add_file("medium", root, sources["medium"], 5, PERMS)
        image.add_file("large", root, sources["large"], 5, PERMS)
        image.sync()
    return path


@pytest.fixture
def reader(image_path):
    with FsReader(image_path) as r:
        yield r


def test_skip_element_examples():
    assert skip_element("a/bb/c") == ("a", "bb/c")
    assert skip_element("///a//bb") == ("a", "bb")
    assert skip_element("a") == ("a", "")
    assert skip_element("") is None
    assert skip_element("////") is None


def test_skip_element_truncates_long_names():
    name, rest = skip_element("abcdefghijklmnopq/x")
    assert name == "abcdefghijklmn"
    assert rest == "x"


def test_superblock_label(reader):
    assert reader.sb.label == "TEST"
    assert reader.sb.system == 1


def test_root_dot_entries(reader):
    assert reader.lookup(ROOTINO, ".") == ROOTINO
    assert reader.lookup(ROOTINO, "..") == ROOTINO
    names = [entry.name for entry in reader.list_dir(ROOTINO)]
    assert names[:2] == [".", ".."]
    assert set(names) >= {"etc", "medium", "large"}


def test_read_whole_files(reader):
    assert reader.read(reader.resolve("/etc/small")) == SMALL
    assert reader.read(reader.resolve("/medium")) == MEDIUM
    assert reader.read(reader.resolve("/large")) == LARGE


def test_read_across_blocks(reader):
    inum = reader.resolve("/medium")
    assert reader.read(inum, BSIZE - 10, 30) == MEDIUM[BSIZE - 10:BSIZE + 20]


def test_read_clamped_at_end(reader):
    inum = reader.resolve("/etc/small")
    assert reader.read(inum, 5, 1000) == SMALL[5:]
    assert reader.read(inum, len(SMALL)) == b""


def test_read_past_end_raises(reader):
    inum = reader.resolve("/etc/small")
    with pytest.raises(FsReadError):
        reader.read(inum, len(SMALL) + 1)


def test_resolve_relative_and_dotdot(reader):
    etc = reader.resolve("/etc")
    absolute = reader.resolve("/etc/small")
    reader.cwd = etc
    assert reader.resolve("small") == absolute
    reader.cwd = ROOTINO
    assert reader.resolve("etc/small") == absolute
    assert reader.resolve("/etc/..") == ROOTINO
    assert reader.resolve("//etc///small") == absolute


def test_resolve_missing(reader):
    assert reader.resolve("/nope") is None
    assert reader.resolve("/medium/x") is None


def test_resolve_parent(reader):
    etc = reader.resolve("/etc")
    assert reader.resolve_parent("/etc/newfile") == (etc, "newfile")
    assert reader.resolve_parent("/") is None
    assert reader.resolve_parent("/medium/x") is None


def test_stat(reader):
    inum = reader.resolve("/etc/small")
    st = reader.stat(inum)
    assert st.ino == inum
    assert st.type == InodeType.FILE
    assert st.size == len(SMALL)
    assert st.owner == 5
    assert st.perms == PERMS
    assert st.nlink == 1
    assert reader.stat(ROOTINO).type == InodeType.DIR


def test_directory_size_matches_entries(reader):
    etc = reader.resolve("/etc")
    assert reader.stat(etc).size == DIRENT_SIZE * len(reader.list_dir(etc))


def test_lookup_on_file_raises(reader):
    with pytest.raises(FsReadError):
        reader.lookup(reader.resolve("/medium"), "x")


def test_bmap_unallocated(reader):
    inode = reader.read_inode(reader.resolve("/etc/small"))
    assert reader.bmap(inode, 0) > 0
    assert reader.bmap(inode, 5) is None


def test_device_read_raises(image_path):
    with FsImage.create(image_path, "DEV", 200, 5, 20) as image:
        inum = image.alloc_inode(InodeType.FILE, -1, PERMS)
        image.write_inode(inum, DiskInode(type=InodeType.DEV, major=2, minor=1, nlink=1))
        image.sync()
    with FsReader(image_path) as r:
        with pytest.raises(FsReadError):
            r.read(inum)


def test_non_system_disk_rejected(tmp_path):
    path = tmp_path / "plain.img"
    with FsImage.create(path, "PLAIN", 200, 5, 20) as image:
        image.sb.system = 0
        image.sync()
    with pytest.raises(FsReadError):
        FsReader(path)
    with FsReader(path, require_system=False) as r:
        assert r.sb.label == "PLAIN"


def test_closed_reader_raises(image_path):
    r = FsReader(image_path)
    r.close()
    with pytest.raises(FsReadError):
        r.read_inode(ROOTINO)


def test_reads_vsd_image(tmp_path):
    ls = tmp_path / "_ls"
    ls.write_bytes(b"\x7fELF" + bytes(600))
    motd = tmp_path / "@motd"
    motd.write_bytes(b"welcome\n")
    path = tmp_path / "vsd.img"
    build_vsd_image(path, "VSDSYS", [ls, motd], 1000, 10)
    with FsReader(path) as r:
        assert r.sb.label == "VSDSYS"
        assert r.read(r.resolve("/bin/ls")) == ls.read_bytes()
        assert r.read(r.resolve("/etc/motd")) == b"welcome\n"
        assert r.stat(r.resolve("/dev")).type == InodeType.DIR
        assert r.resolve("/boot/..") == ROOTINO
        assert r.stat(r.resolve("/bin/ls")).owner == -1