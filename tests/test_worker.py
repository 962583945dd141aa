import csv
import os
import threading

import pytest

from filecensus.filters import build_extension_filter
from filecensus.models import Target
from filecensus.reachability import ReachabilityCache
from filecensus.utils import is_reparse_point
from filecensus.worker import ScanWorker, WorkQueue, run_pool


# =====================================================
# Helpers
# =====================================================

def targets_for(root):
    root = str(root)
    targets = [Target(root, recursive=False)]
    for entry in os.scandir(root):
        if entry.is_dir(follow_symlinks=False):
            targets.append(Target(entry.path))
    return sorted(targets)


def read_rows(results):
    rows = []
    for r in results:
        if r.sink_path is None:
            continue
        with open(r.sink_path, encoding="utf-8", newline="") as f:
            rows.extend((root, path, int(size)) for root, path, size in csv.reader(f))
    return rows


def scan(root, tmp_path, throttle=1, **kwargs):
    kwargs.setdefault("reachability", ReachabilityCache(lambda host: True))
    return run_pool(
        str(root),
        targets_for(root),
        throttle,
        tmp_path / "tmp",
        tag="t",
        **kwargs,
    )


TREE = {
    "top.txt": 1,
    "a/one.exe": 2,
    "a/deep/two.txt": 3,
    "a/deep/deeper/three.EXE": 4,
    "b/four.dll": 5,
    "b/five.txt": 6,
    "c/six.bin": 7,
}


# =====================================================
# WorkQueue
# =====================================================

def test_work_queue_hands_out_each_item_once():
    items = [Target(f"/t/{i:04d}") for i in range(500)]
    work = WorkQueue(items)
    taken = []
    lock = threading.Lock()

    def drain():
        while True:
            item = work.take()
            if item is None:
                return
            with lock:
                taken.append(item)

    threads = [threading.Thread(target=drain) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert work.total == 500
    assert sorted(taken) == items
    assert work.take() is None
    assert work.empty()


# =====================================================
# Pool
# =====================================================

def test_pool_lists_every_file_once(tmp_path, make_tree):
    root = make_tree(tmp_path / "root", TREE)

    rows = read_rows(scan(root, tmp_path, throttle=3))

    paths = sorted(p for _, p, _ in rows)
    assert paths == sorted(str(root / rel) for rel in TREE)
    assert {p: s for _, p, s in rows} == {str(root / rel): size for rel, size in TREE.items()}
    assert {r for r, _, _ in rows} == {str(root)}


@pytest.mark.parametrize("throttle", [1, 2, 8])
def test_row_count_is_independent_of_worker_count(tmp_path, make_tree, throttle):
    root = make_tree(tmp_path / "root", TREE)

    rows = read_rows(scan(root, tmp_path, throttle=throttle))

    assert len(rows) == len(TREE)


def test_unused_workers_report_no_sink(tmp_path, make_tree):
    root = make_tree(tmp_path / "root", {"only.txt": 1})

    results = scan(root, tmp_path, throttle=4)

    assert len(results) == 4
    assert sum(r.rows for r in results) == 1
    assert sum(1 for r in results if r.sink_path is not None) == 1
    assert sorted(p.name for p in (tmp_path / "tmp").iterdir()) == [
        r.sink_path.name for r in results if r.sink_path
    ]


def test_single_extension_filter(tmp_path, make_tree):
    root = make_tree(tmp_path / "root", TREE)

    rows = read_rows(scan(root, tmp_path, extension_filter=build_extension_filter(["exe"])))

    assert sorted(os.path.basename(p) for _, p, _ in rows) == ["one.exe", "three.EXE"]


def test_set_filter(tmp_path, make_tree):
    root = make_tree(tmp_path / "root", TREE)

    rows = read_rows(scan(root, tmp_path, extension_filter=build_extension_filter(["exe", "dll"])))

    assert sorted(os.path.basename(p) for _, p, _ in rows) == ["four.dll", "one.exe", "three.EXE"]


def test_symlinks_are_not_followed(tmp_path, make_tree):
    root = make_tree(tmp_path / "root", {"a/real.txt": 1})
    outside = make_tree(tmp_path / "outside", {"hidden.txt": 1, "sub/more.txt": 1})

    os.symlink(outside, root / "a" / "link_dir", target_is_directory=True)
    os.symlink(outside / "hidden.txt", root / "a" / "link_file.txt")

    rows = read_rows(scan(root, tmp_path, throttle=2))

    assert [p for _, p, _ in rows] == [str(root / "a" / "real.txt")]


def test_unreadable_directory_is_recorded_and_skipped(tmp_path, make_tree, monkeypatch):
    root = make_tree(tmp_path / "root", {"a/ok.txt": 1, "a/locked/secret.txt": 1, "b/ok.txt": 1})
    locked = str(root / "a" / "locked")
    real_scandir = os.scandir

    def guarded(path):
        if str(path) == locked:
            raise PermissionError(13, "Permission denied", locked)
        return real_scandir(path)

    monkeypatch.setattr("filecensus.worker.os.scandir", guarded)

    results = scan(root, tmp_path, throttle=2)
    rows = read_rows(results)

    assert sorted(p for _, p, _ in rows) == [str(root / "a" / "ok.txt"), str(root / "b" / "ok.txt")]

    errors = [r.error_path for r in results if r.error_path]
    assert len(errors) == 1
    text = errors[0].read_text(encoding="utf-8")
    assert locked in text
    assert "Permission denied" in text


def test_unreachable_network_target_is_skipped(tmp_path):
    work = WorkQueue([Target("\\\\gone\\share\\dir")])
    worker = ScanWorker(
        0,
        "\\\\gone\\share",
        work,
        tmp_path / "w0.csv",
        tmp_path / "w0.err",
        reachability=ReachabilityCache(lambda host: False),
    )

    result = worker.run()

    assert result.sink_path is None
    assert result.rows == 0
    assert result.items == 1
    assert "host unreachable" in result.error_path.read_text(encoding="utf-8")
    assert work.take() is None


def test_ignore_spec_prunes_directories(tmp_path, make_tree):
    from pathspec import PathSpec

    root = make_tree(tmp_path / "root", TREE)
    spec = PathSpec.from_lines("gitwildmatch", ["deeper/", "*.dll"])

    rows = read_rows(scan(root, tmp_path, ignore_spec=spec))

    names = sorted(os.path.basename(p) for _, p, _ in rows)
    assert names == ["five.txt", "one.exe", "six.bin", "top.txt", "two.txt"]


def test_echo_prints_matched_paths(tmp_path, make_tree, capsys):
    root = make_tree(tmp_path / "root", {"a/x.txt": 1})

    scan(root, tmp_path, echo=True)

    assert str(root / "a" / "x.txt") in capsys.readouterr().out


def test_failing_entry_does_not_drop_its_siblings(tmp_path, make_tree, monkeypatch):
    root = make_tree(
        tmp_path / "root",
        {"a/bad.txt": 1, "a/one.txt": 1, "a/two.txt": 1, "a/sub/three.txt": 1},
    )
    def flaky(entry):
        if entry.name == "bad.txt":
            raise PermissionError(13, "Permission denied", entry.path)
        return is_reparse_point(entry)

    monkeypatch.setattr("filecensus.worker.is_reparse_point", flaky)

    results = scan(root, tmp_path)
    rows = read_rows(results)

    assert sorted(os.path.basename(p) for _, p, _ in rows) == ["one.txt", "three.txt", "two.txt"]
    [err] = [r.error_path for r in results if r.error_path]
    text = err.read_text(encoding="utf-8")
    assert str(root / "a" / "bad.txt") in text
    assert len(text.splitlines()) == 1
