import zipfile

import pytest

from filecensus.assembler import ZipAssembler
from filecensus.errors import AssemblyError


def write_sink(path, lines):
    path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
    return path


def entry_text(archive):
    with zipfile.ZipFile(archive) as zf:
        assert zf.namelist() == ["R.csv"]
        assert zf.getinfo("R.csv").compress_type == zipfile.ZIP_DEFLATED
        return zf.read("R.csv").decode("utf-8")


def test_assemble_concatenates_sinks_in_order(tmp_path):
    s1 = write_sink(tmp_path / "w0.csv", ['"/r","/r/a",1', '"/r","/r/b",2'])
    s2 = write_sink(tmp_path / "w1.csv", ['"/r","/r/c",3'])
    archive = tmp_path / "out" / "R.zip"

    rows = ZipAssembler().assemble(archive, "R.csv", [(s1, 2), (s2, 1)])

    assert rows == 3
    assert entry_text(archive) == (
        "Root,Path,SizeBytes\n"
        '"/r","/r/a",1\n'
        '"/r","/r/b",2\n'
        '"/r","/r/c",3\n'
    )
    assert not s1.exists()
    assert not s2.exists()


def test_assemble_without_sinks_writes_header_only(tmp_path):
    archive = tmp_path / "R.zip"

    assert ZipAssembler().assemble(archive, "R.csv", []) == 0
    assert entry_text(archive) == "Root,Path,SizeBytes\n"


def test_existing_archive_is_replaced(tmp_path):
    archive = tmp_path / "R.zip"
    archive.write_bytes(b"not a zip")
    sink = write_sink(tmp_path / "w0.csv", ['"/r","/r/a",1'])

    ZipAssembler().assemble(archive, "R.csv", [(sink, 1)])

    assert entry_text(archive).splitlines()[1] == '"/r","/r/a",1'


def test_missing_sink_raises_and_removes_partial(tmp_path):
    archive = tmp_path / "R.zip"
    good = write_sink(tmp_path / "w0.csv", ['"/r","/r/a",1'])

    with pytest.raises(AssemblyError) as info:
        ZipAssembler().assemble(archive, "R.csv", [(good, 1), (tmp_path / "gone.csv", 4)])

    assert info.value.archive == archive
    assert isinstance(info.value.cause, FileNotFoundError)
    assert not archive.exists()
    assert good.exists()


def test_row_count_comes_from_workers(tmp_path):
    # quoted paths may carry newlines; the count must not be line based
    sink = write_sink(tmp_path / "w0.csv", ['"/r","/r/odd', 'name",7'])

    assert ZipAssembler().assemble(tmp_path / "R.zip", "R.csv", [(sink, 1)]) == 1
