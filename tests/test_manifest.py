import pytest

from librarian.domain import ManifestStatus
from librarian.manifest import (
    ManifestRow,
    MemManifest,
    SqliteManifest,
    distinct_ingested_sources,
    get_row,
)


@pytest.fixture
def store(tmp_path):
    m = SqliteManifest(tmp_path / "m.sqlite")
    yield m
    m.close()


def test_mem_record_then_list_filters_by_status():
    m = MemManifest()
    m.record("a", "extract", ManifestStatus.SUCCESS, 1, None, None)
    m.record("b", "extract", ManifestStatus.FAILED, 1, "boom", None)
    m.record("c", "extract", ManifestStatus.SUCCESS, 1, None, None)
    assert len(m.list_by_status(ManifestStatus.SUCCESS)) == 2
    assert m.list_by_status(ManifestStatus.FAILED) == [("b", "extract")]


def test_mem_errors_persisted_on_failed_rows():
    m = MemManifest()
    m.record("b", "embed", ManifestStatus.FAILED, 2, "oops", None)
    rows = m.rows()
    assert rows[0].error == "oops"
    assert rows[0].attempts == 2


def test_migration_runs_clean(store):
    assert store.schema_version() == 1


def test_record_upserts_on_source_id_stage_pair(store):
    store.record("a", "extract", ManifestStatus.PENDING, 0, None, None)
    store.record("a", "extract", ManifestStatus.SUCCESS, 1, None, None)
    row = get_row(store, "a", "extract")
    assert row.status is ManifestStatus.SUCCESS
    assert row.attempts == 1
    assert len(store.list_by_status(ManifestStatus.SUCCESS)) == 1
    assert len(store.list_by_status(ManifestStatus.PENDING)) == 0


def test_list_by_status_empty_when_no_matches(store):
    assert store.list_by_status(ManifestStatus.FAILED) == []


def test_round_trip_preserves_each_status_variant(store):
    statuses = list(ManifestStatus)
    for i, s in enumerate(statuses):
        store.record(f"d{i}", "extract", s, 0, None, None)
    for i, s in enumerate(statuses):
        assert store.list_by_status(s) == [(f"d{i}", "extract")]


def test_error_and_output_ref_persist_when_set_or_null(store):
    store.record("a", "extract", ManifestStatus.FAILED, 2, "boom", None)
    r = get_row(store, "a", "extract")
    assert r.error == "boom"
    assert r.output_ref is None

    key = "k" * 64
    store.record("b", "embed", ManifestStatus.CACHED, 0, None, key)
    r = get_row(store, "b", "embed")
    assert r.error is None
    assert r.output_ref == key


def test_get_row_missing_is_none(store):
    assert get_row(store, "nope", "extract") is None


def test_get_row_returns_full_row(store):
    store.record("x", "chunk", ManifestStatus.SKIPPED, 4, "why", "ref")
    assert get_row(store, "x", "chunk") == ManifestRow(
        "x", "chunk", ManifestStatus.SKIPPED, 4, "why", "ref"
    )


def test_distinct_stages_for_same_source_coexist(store):
    store.record("a", "extract", ManifestStatus.SUCCESS, 1, None, None)
    store.record("a", "embed", ManifestStatus.FAILED, 1, "x", None)
    assert len(store.list_by_status(ManifestStatus.SUCCESS)) == 1
    assert len(store.list_by_status(ManifestStatus.FAILED)) == 1


def test_open_creates_parent_directory(tmp_path):
    nested = tmp_path / "a" / "b" / "m.sqlite"
    with SqliteManifest(nested):
        pass
    assert nested.exists()


def test_distinct_ingested_sources(store):
    store.record("a", "extract", ManifestStatus.SUCCESS, 1)
    store.record("a", "embed", ManifestStatus.CACHED, 0)
    store.record("b", "embed", ManifestStatus.RECOVERED_VIA_FALLBACK, 1)
    store.record("c", "extract", ManifestStatus.FAILED, 1, "boom")
    store.record("d", "extract", ManifestStatus.PENDING, 0)
    assert sorted(distinct_ingested_sources(store)) == ["a", "b"]


def test_rows_survive_reopen(tmp_path):
    path = tmp_path / "m.sqlite"
    with SqliteManifest(path) as m:
        m.record("alpha", "extract", ManifestStatus.SUCCESS, 1, None, None)
        m.record("beta", "embed", ManifestStatus.FAILED, 3, "net", None)

    with SqliteManifest(path) as m2:
        assert m2.list_by_status(ManifestStatus.SUCCESS) == [("alpha", "extract")]
        beta = get_row(m2, "beta", "embed")
        assert beta.status is ManifestStatus.FAILED
        assert beta.attempts == 3
        assert beta.error == "net"


def test_idempotent_reopen_does_not_destroy_rows(tmp_path):
    path = tmp_path / "m.sqlite"
    m1 = SqliteManifest(path)
    m1.record("alpha", "extract", ManifestStatus.SUCCESS, 1, None, None)
    m1.close()

    with SqliteManifest(path) as m2:
        assert len(m2.list_by_status(ManifestStatus.SUCCESS)) == 1
        assert m2.schema_version() == 1