"""Zip streaming in both directions."""

import io
import os
import zipfile

import pytest

from evernode_fm.services.archive_reader import ArchiveReader
from evernode_fm.services.archive_writer import ArchiveWriter
from evernode_fm.services.errors import NotFound, TransferFailed

from tests.helpers import make_zip, tree


@pytest.fixture
def sample(root):
    src = root / "project"
    (src / "docs" / "deep").mkdir(parents=True)
    (src / "README.md").write_text("# readme")
    (src / "docs" / "guide.txt").write_text("guide")
    (src / "docs" / "deep" / "blob.bin").write_bytes(os.urandom(300_000))
    return src


def _names(data: bytes):
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return sorted(zf.namelist())


def test_round_trip_reproduces_tree(root, resolver, sample):
    buf = io.BytesIO()
    ArchiveWriter(chunk_size=4096).write_archive([str(sample)], buf)

    out = root / "restored"
    out.mkdir()
    buf.seek(0)
    report = ArchiveReader(resolver).extract_archive(buf, str(out))

    assert report.ok
    assert tree(out / "project") == tree(sample)


def test_file_and_directory_give_four_entries(root):
    (root / "single.txt").write_text("one")
    d = root / "folder"
    d.mkdir()
    for n in ("x.txt", "y.txt", "z.txt"):
        (d / n).write_text(n)

    data = b"".join(ArchiveWriter().iter_archive([str(root / "single.txt"), str(d)]))

    assert _names(data) == ["folder/x.txt", "folder/y.txt", "folder/z.txt", "single.txt"]


def test_archive_is_deflated(root):
    (root / "big.txt").write_text("a" * 100_000)
    data = b"".join(ArchiveWriter().iter_archive([str(root / "big.txt")]))
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        info = zf.getinfo("big.txt")
        assert info.compress_type == zipfile.ZIP_DEFLATED
        assert zf.read("big.txt") == b"a" * 100_000
    assert len(data) < 10_000


def test_empty_directories_are_kept(root):
    (root / "top" / "empty").mkdir(parents=True)
    (root / "top" / "f.txt").write_text("f")

    data = b"".join(ArchiveWriter().iter_archive([str(root / "top")]))

    assert _names(data) == ["top/empty/", "top/f.txt"]


def test_duplicate_top_level_names_get_suffix(root):
    for d in ("a", "b"):
        (root / d).mkdir()
        (root / d / "same.txt").write_text(d)

    data = b"".join(ArchiveWriter().iter_archive([str(root / "a" / "same.txt"), str(root / "b" / "same.txt")]))

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert sorted(zf.namelist()) == ["same.txt", "same_2.txt"]
        assert zf.read("same_2.txt") == b"b"


def test_symlinks_inside_trees_are_skipped(root, tmp_path):
    outside = tmp_path / "outside.txt"
    outside.write_text("secret")
    (root / "d").mkdir()
    (root / "d" / "ok.txt").write_text("ok")
    os.symlink(str(outside), str(root / "d" / "leak.txt"))

    data = b"".join(ArchiveWriter().iter_archive([str(root / "d")]))

    assert _names(data) == ["d/ok.txt"]


def test_missing_input_fails_before_output(root):
    with pytest.raises(NotFound):
        ArchiveWriter().iter_archive([str(root / "nope")])


def test_file_vanishing_mid_stream_aborts(root):
    (root / "d").mkdir()
    (root / "d" / "a.txt").write_text("a")
    (root / "d" / "b.txt").write_text("b")

    chunks = ArchiveWriter().iter_archive([str(root / "d")])
    os.remove(root / "d" / "b.txt")

    with pytest.raises(TransferFailed):
        b"".join(chunks)


def test_extract_neutralizes_hostile_names(root, resolver):
    dest = root / "dest"
    dest.mkdir()
    data = make_zip({
        "../../evil.txt": b"e",
        "/abs/x.txt": b"x",
        "sub\\win.txt": b"w",
        "./dot/./f.txt": b"f",
    })

    report = ArchiveReader(resolver).extract_archive(io.BytesIO(data), str(dest))

    assert report.ok
    assert tree(dest) == {
        "evil.txt": b"e",
        "abs/x.txt": b"x",
        "sub/win.txt": b"w",
        "dot/f.txt": b"f",
    }
    assert not (root.parent / "evil.txt").exists()


def test_extract_records_bad_entries_and_continues(root, resolver):
    dest = root / "dest"
    dest.mkdir()
    data = make_zip({"..": b"nothing", "good.txt": b"g", "dir/": None, "dir/in.txt": b"i"})

    report = ArchiveReader(resolver).extract_archive(io.BytesIO(data), str(dest))

    assert [e.error for e in report.errors] == ["invalid_name"]
    assert report.errors[0].path == ".."
    assert sorted(e.name for e in report.entries) == ["dir/", "dir/in.txt", "good.txt"]
    assert tree(dest) == {"good.txt": b"g", "dir/in.txt": b"i"}


def test_extract_entry_colliding_with_directory(root, resolver):
    dest = root / "dest"
    (dest / "taken").mkdir(parents=True)
    data = make_zip({"taken": b"x", "fine.txt": b"y"})

    report = ArchiveReader(resolver).extract_archive(io.BytesIO(data), str(dest))

    assert [e.error for e in report.errors] == ["is_a_directory"]
    assert (dest / "fine.txt").read_bytes() == b"y"


def test_extract_unreadable_archive(root, resolver):
    with pytest.raises(TransferFailed):
        ArchiveReader(resolver).extract_archive(io.BytesIO(b"not a zip"), str(root))
