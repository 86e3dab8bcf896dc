import threading
import time

import pytest

from fakes import (
    CANONICAL_LOCKFILE,
    GIT_REV,
    GIT_URL,
    LODASH_SHA1,
    LODASH_URL,
    FakeHasher,
    FakePrefetcher,
)
from yarn2nix.errors import FetchError
from yarn2nix.lockfile import LockedEntry, Lockfile, parse_lockfile, serialize_lockfile
from yarn2nix.resolve import HashResolver
from yarn2nix.sources import ProtocolKind


def _lock(*entries: tuple[str, str | None]) -> Lockfile:
    built = []
    for range_key, resolved in entries:
        fields = {"version": "1.0.0"}
        if resolved is not None:
            fields["resolved"] = resolved
        built.append(LockedEntry(range_keys=(range_key,), fields=fields))
    return Lockfile(entries=tuple(built))


def test_missing_archive_hash_is_fetched_and_appended() -> None:
    hasher = FakeHasher({LODASH_URL: LODASH_SHA1})
    resolver = HashResolver(hasher=hasher, prefetcher=FakePrefetcher())

    resolution = resolver.resolve(_lock(("lodash@^4.17.21", LODASH_URL)))

    assert hasher.calls == [LODASH_URL]
    assert resolution.lockfile.entries[0].resolved == f"{LODASH_URL}#{LODASH_SHA1}"
    assert resolution.sources[0].hash_or_revision == LODASH_SHA1


def test_resolution_does_not_mutate_input_lockfile() -> None:
    lock = _lock(("lodash@^4.17.21", LODASH_URL))
    resolver = HashResolver(hasher=FakeHasher({LODASH_URL: LODASH_SHA1}), prefetcher=FakePrefetcher())

    resolver.resolve(lock)

    assert lock.entries[0].resolved == LODASH_URL


def test_fully_hashed_lockfile_makes_no_fetches() -> None:
    lock = parse_lockfile(CANONICAL_LOCKFILE)
    hasher = FakeHasher()
    prefetcher = FakePrefetcher()
    resolver = HashResolver(hasher=hasher, prefetcher=prefetcher)

    first = resolver.resolve(lock)
    second = resolver.resolve(first.lockfile)

    assert hasher.calls == []
    assert prefetcher.calls == []
    assert serialize_lockfile(second.lockfile) == CANONICAL_LOCKFILE


def test_missing_hash_reuses_hash_known_for_same_location() -> None:
    hasher = FakeHasher()
    lock = _lock(("a@^1", f"{LODASH_URL}#{LODASH_SHA1}"), ("a@1.0.0", LODASH_URL))

    resolution = HashResolver(hasher=hasher, prefetcher=FakePrefetcher()).resolve(lock)

    assert hasher.calls == []
    assert resolution.lockfile.entries[1].resolved == f"{LODASH_URL}#{LODASH_SHA1}"


def test_local_dependencies_are_left_alone() -> None:
    lock = _lock(("local@file:../local", None))

    resolution = HashResolver(hasher=FakeHasher(), prefetcher=FakePrefetcher()).resolve(lock)

    assert resolution.lockfile == lock
    assert resolution.sources == ()


def test_git_source_with_revision_is_not_prefetched_while_resolving() -> None:
    prefetcher = FakePrefetcher()
    lock = _lock(("widget@git://github.com/example/widget", f"{GIT_URL}#{GIT_REV}"))
    resolver = HashResolver(hasher=FakeHasher(), prefetcher=prefetcher)

    first = resolver.resolve(lock)
    resolver.resolve(first.lockfile)

    assert prefetcher.calls == []
    assert first.lockfile == lock
    assert first.sources[0].hash_or_revision == GIT_REV
    assert first.sources[0].sha256 == ""


def test_git_hashes_are_prefetched_over_https() -> None:
    prefetcher = FakePrefetcher(sha256="a" * 52)
    lock = _lock(
        ("widget@git://github.com/example/widget", f"{GIT_URL}#{GIT_REV}"),
        ("lodash@^4.17.21", f"{LODASH_URL}#{LODASH_SHA1}"),
    )
    resolver = HashResolver(hasher=FakeHasher(), prefetcher=prefetcher)

    sources, failures = resolver.hash_git_sources(resolver.resolve(lock).sources)

    assert prefetcher.calls == [("https://github.com/example/widget", GIT_REV)]
    assert failures == ()
    assert sources[0].kind is ProtocolKind.GIT
    assert sources[0].sha256 == "a" * 52
    assert sources[1].sha256 == ""


def test_git_hashing_skips_sources_prefetched_during_resolution() -> None:
    prefetcher = FakePrefetcher(sha256="c" * 52, rev=GIT_REV)
    resolver = HashResolver(hasher=FakeHasher(), prefetcher=prefetcher)
    resolution = resolver.resolve(_lock(("widget@git://github.com/example/widget", GIT_URL)))

    sources, _ = resolver.hash_git_sources(resolution.sources)

    assert prefetcher.calls == [("https://github.com/example/widget", None)]
    assert sources[0].sha256 == "c" * 52


def test_git_hashing_failure_raises_unless_tolerated() -> None:
    lock = _lock(("widget@git://github.com/example/widget", f"{GIT_URL}#{GIT_REV}"))
    strict = HashResolver(hasher=FakeHasher(), prefetcher=FakePrefetcher(fail=True))

    with pytest.raises(FetchError):
        strict.hash_git_sources(strict.resolve(lock).sources)

    lenient = HashResolver(
        hasher=FakeHasher(), prefetcher=FakePrefetcher(fail=True), tolerate_failures=True
    )
    sources, failures = lenient.hash_git_sources(lenient.resolve(lock).sources)

    assert [failure.location for failure in failures] == [GIT_URL]
    assert sources[0].sha256 == ""


def test_git_source_without_revision_gets_prefetched_revision() -> None:
    prefetcher = FakePrefetcher(rev=GIT_REV)
    lock = _lock(("widget@git://github.com/example/widget", GIT_URL))

    resolution = HashResolver(hasher=FakeHasher(), prefetcher=prefetcher).resolve(lock)

    assert prefetcher.calls == [("https://github.com/example/widget", None)]
    assert resolution.lockfile.entries[0].resolved == f"{GIT_URL}#{GIT_REV}"
    assert resolution.sources[0].hash_or_revision == GIT_REV


def test_fetch_failure_is_raised_after_all_tasks_finish() -> None:
    other = "https://example.com/other-1.0.0.tgz"
    hasher = FakeHasher({other: "f" * 40}, errors={LODASH_URL: 404})
    lock = _lock(("lodash@^4.17.21", LODASH_URL), ("other@^1.0.0", other))

    with pytest.raises(FetchError) as excinfo:
        HashResolver(hasher=hasher, prefetcher=FakePrefetcher()).resolve(lock)

    assert excinfo.value.status == 404
    assert sorted(hasher.calls) == sorted([LODASH_URL, other])


def test_tolerated_failures_leave_entries_unresolved() -> None:
    other = "https://example.com/other-1.0.0.tgz"
    hasher = FakeHasher({other: "f" * 40}, errors={LODASH_URL: 404})
    lock = _lock(("lodash@^4.17.21", LODASH_URL), ("other@^1.0.0", other))

    resolution = HashResolver(
        hasher=hasher, prefetcher=FakePrefetcher(), tolerate_failures=True
    ).resolve(lock)

    assert [failure.location for failure in resolution.failures] == [LODASH_URL]
    assert resolution.lockfile.entries[0].resolved == LODASH_URL
    assert resolution.lockfile.entries[1].resolved == f"{other}#{'f' * 40}"
    assert resolution.sources[0].hash_or_revision == ""


def test_fetches_run_concurrently_within_job_limit() -> None:
    urls = [f"https://example.com/pkg-{index}.tgz" for index in range(6)]
    lock_ = threading.Lock()
    active = 0
    peak = 0

    def hasher(url: str) -> str:
        nonlocal active, peak
        with lock_:
            active += 1
            peak = max(peak, active)
        time.sleep(0.05)
        with lock_:
            active -= 1
        return "0" * 40

    lock = _lock(*[(f"pkg-{index}@1", url) for index, url in enumerate(urls)])
    resolution = HashResolver(hasher=hasher, prefetcher=FakePrefetcher(), jobs=3).resolve(lock)

    assert 1 < peak <= 3
    assert all(entry.resolved.endswith("#" + "0" * 40) for entry in resolution.lockfile.entries)


def test_resolve_entry_fills_in_single_fragment() -> None:
    resolver = HashResolver(hasher=FakeHasher({LODASH_URL: LODASH_SHA1}), prefetcher=FakePrefetcher())
    entry = LockedEntry(range_keys=("lodash@^4",), fields={"resolved": LODASH_URL})

    assert resolver.resolve_entry(entry).resolved == f"{LODASH_URL}#{LODASH_SHA1}"
    hashed = entry.with_resolved(f"{LODASH_URL}#{LODASH_SHA1}")
    assert resolver.resolve_entry(hashed) is hashed
