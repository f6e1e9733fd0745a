import io
import logging
import os
import stat
from pathlib import Path

import numpy as np
import pytest

from pgm_histeq.errors import MalformedImageError, UnsupportedFormatError
from pgm_histeq.models.image import GrayImage
from pgm_histeq.repositories.pgm_repository import PgmRepository


@pytest.fixture
def repo():
    return PgmRepository()


def test_read_header_and_pixels(repo, pgm_bytes):
    img = repo.read(io.BytesIO(pgm_bytes(4, 2, range(8))))

    assert (img.width, img.height, img.maxval) == (4, 2, 255)
    assert img.pixels.dtype == np.uint8
    assert img.pixels.tolist() == list(range(8))
    assert img.pixels.flags.writeable


def test_read_skips_comment_lines(repo, pgm_bytes):
    data = pgm_bytes(2, 2, [1, 2, 3, 4], header_extra=b"# created by scanner\n# second line\n")
    img = repo.read(io.BytesIO(data))
    assert (img.width, img.height) == (2, 2)
    assert img.pixels.tolist() == [1, 2, 3, 4]


def test_read_accepts_comment_between_fields(repo):
    data = b"P5 3 # width above\n1\n255\n" + bytes([5, 6, 7])
    img = repo.read(io.BytesIO(data))
    assert (img.width, img.height) == (3, 1)
    assert img.pixels.tolist() == [5, 6, 7]


def test_only_one_whitespace_byte_follows_maxval(repo, pgm_bytes):
    # pixel values that look like whitespace must not be eaten by the header parser
    img = repo.read(io.BytesIO(pgm_bytes(3, 1, [10, 32, 9])))
    assert img.pixels.tolist() == [10, 32, 9]


def test_low_maxval_keeps_raw_samples(repo, pgm_bytes):
    img = repo.read(io.BytesIO(pgm_bytes(2, 1, [3, 15], maxval=15)))
    assert img.maxval == 15
    assert img.pixels.tolist() == [3, 15]


def test_trailing_bytes_are_ignored(repo, pgm_bytes):
    img = repo.read(io.BytesIO(pgm_bytes(2, 1, [1, 2]) + b"extra"))
    assert img.pixels.tolist() == [1, 2]


@pytest.mark.parametrize("magic", [b"P2", b"P6", b"BM", b"p5"])
def test_unsupported_magic(repo, pgm_bytes, magic):
    with pytest.raises(UnsupportedFormatError):
        repo.read(io.BytesIO(pgm_bytes(2, 1, [1, 2], magic=magic)))


def test_empty_stream_is_unsupported(repo):
    with pytest.raises(UnsupportedFormatError):
        repo.read(io.BytesIO(b""))


def test_sixteen_bit_maxval_is_unsupported(repo, pgm_bytes):
    with pytest.raises(UnsupportedFormatError):
        repo.read(io.BytesIO(pgm_bytes(1, 1, [0, 0], maxval=65535)))


@pytest.mark.parametrize(
    "data",
    [
        b"P5\n4",
        b"P5\n4 2",
        b"P5\n4 2\n255",
        b"P5\nfour 2\n255\n" + bytes(8),
        b"P5\n0 2\n255\n",
        b"P5\n2 2\n0\n" + bytes(4),
        b"P5\n-2 2\n255\n" + bytes(4),
    ],
)
def test_malformed_headers(repo, data):
    with pytest.raises(MalformedImageError):
        repo.read(io.BytesIO(data))


def test_truncated_pixel_data(repo, pgm_bytes):
    with pytest.raises(MalformedImageError, match="expected 8 bytes, got 5"):
        repo.read(io.BytesIO(pgm_bytes(4, 2, range(5))))


def test_write_emits_p5_header_with_fixed_maxval(repo):
    img = GrayImage(width=3, height=1, pixels=np.array([0, 128, 255], dtype=np.uint8), maxval=15)
    out = io.BytesIO()
    repo.write(out, img)
    assert out.getvalue() == b"P5\n3 1\n255\n" + bytes([0, 128, 255])


def test_write_then_read_round_trip(repo):
    rng = np.random.default_rng(3)
    pixels = rng.integers(0, 256, size=12 * 7, dtype=np.uint8)
    out = io.BytesIO()
    repo.write(out, GrayImage(width=12, height=7, pixels=pixels))

    img = repo.read(io.BytesIO(out.getvalue()))
    assert (img.width, img.height) == (12, 7)
    assert img.pixels.tobytes() == pixels.tobytes()


def test_load_sets_path(repo, tmp_path, write_pgm):
    path = write_pgm(tmp_path / "a.pgm", 2, 1, [4, 5])
    img = repo.load(path)
    assert img.path == path
    assert img.pixels.tolist() == [4, 5]


def test_load_missing_file(repo, tmp_path):
    with pytest.raises(FileNotFoundError):
        repo.load(tmp_path / "missing.pgm")


def test_save_creates_parents_and_leaves_no_temp_files(repo, tmp_path):
    target = tmp_path / "out" / "nested" / "b.pgm"
    img = repo.create_image(np.array([1, 2], dtype=np.uint8), 2, 1, target)
    repo.save(img)

    assert target.read_bytes() == b"P5\n2 1\n255\n\x01\x02"
    assert [p.name for p in target.parent.iterdir()] == ["b.pgm"]


def test_save_refuses_to_overwrite(repo, tmp_path):
    target = tmp_path / "b.pgm"
    target.write_bytes(b"keep")
    img = repo.create_image(np.array([1], dtype=np.uint8), 1, 1, target)

    with pytest.raises(FileExistsError):
        repo.save(img)
    assert target.read_bytes() == b"keep"

    repo.save(img, overwrite=True)
    assert target.read_bytes() == b"P5\n1 1\n255\n\x01"


def test_failed_save_leaves_no_partial_file(repo, tmp_path, monkeypatch):
    def broken_write(stream, image):
        stream.write(b"P5\n")
        raise OSError("disk full")

    monkeypatch.setattr(PgmRepository, "write", staticmethod(broken_write))
    img = repo.create_image(np.array([1], dtype=np.uint8), 1, 1, tmp_path / "c.pgm")

    with pytest.raises(OSError, match="disk full"):
        repo.save(img)
    assert list(tmp_path.iterdir()) == []


def test_save_without_path(repo):
    with pytest.raises(ValueError):
        repo.save(GrayImage(width=1, height=1, pixels=np.zeros(1, dtype=np.uint8)))


def test_iter_dir_skips_bad_files(repo, tmp_path, write_pgm, caplog):
    write_pgm(tmp_path / "good.pgm", 2, 1, [1, 2])
    write_pgm(tmp_path / "ascii.pgm", 2, 1, [1, 2], magic=b"P2")
    (tmp_path / "notes.txt").write_text("not an image")

    with caplog.at_level(logging.WARNING):
        images = list(repo.iter_dir(tmp_path))

    assert [img.path.name for img in images] == ["good.pgm"]
    assert "Skipping ascii.pgm" in caplog.text


def test_list_dir_recursive(repo, tmp_path, write_pgm):
    write_pgm(tmp_path / "a.pgm", 1, 1, [0])
    write_pgm(tmp_path / "sub" / "b.PGM", 1, 1, [0])

    assert [p.name for p in repo.list_dir(tmp_path)] == ["a.pgm"]
    assert sorted(p.name for p in repo.list_dir(tmp_path, recursive=True)) == ["a.pgm", "b.PGM"]


def test_valid_extensions_from_environment(tmp_path, write_pgm, monkeypatch):
    monkeypatch.setenv("VALID_IMAGE_EXTENSIONS", ".pgm, .pnm")
    write_pgm(tmp_path / "a.pnm", 1, 1, [0])

    repo = PgmRepository()
    assert repo.VALID_EXTS == {".pgm", ".pnm"}
    assert [p.name for p in repo.list_dir(tmp_path)] == ["a.pnm"]


def test_iter_dir_requires_directory(repo, tmp_path):
    with pytest.raises(NotADirectoryError):
        list(repo.iter_dir(tmp_path / "nope"))


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
@pytest.mark.parametrize("umask, expected", [(0o022, 0o644), (0o077, 0o600), (0o002, 0o664)])
def test_saved_file_mode_follows_umask(repo, tmp_path, umask, expected):
    target = tmp_path / "mode.pgm"
    img = repo.create_image(np.array([1], dtype=np.uint8), 1, 1, target)

    previous = os.umask(umask)
    try:
        repo.save(img)
    finally:
        os.umask(previous)

    assert stat.S_IMODE(target.stat().st_mode) == expected


def test_load_unreadable_file(repo, tmp_path, write_pgm, monkeypatch):
    path = write_pgm(tmp_path / "locked.pgm", 1, 1, [0])

    def deny(self, *args, **kwargs):
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "open", deny)
    with pytest.raises(FileNotFoundError, match="unreadable") as exc:
        repo.load(path)
    assert isinstance(exc.value.__cause__, PermissionError)
