"""Change detection and upsert tests."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from assetpipe.ingestion import (
    AssetPipeline,
    AssetStatus,
    ExtensionClassifier,
    HashComputer,
    MetadataExtractor,
)
from assetpipe.state import (
    CatalogRepository,
    ChangeCoordinator,
    EventKind,
    ReconcileAction,
)


@pytest.fixture()
def catalog() -> Iterator[CatalogRepository]:
    repo = CatalogRepository(":memory:").open()
    yield repo
    repo.close()


def _pipeline() -> AssetPipeline:
    return AssetPipeline(ExtensionClassifier(), HashComputer(), MetadataExtractor())


def test_first_run_inserts_and_logs_discovery(tmp_path: Path, catalog: CatalogRepository) -> None:
    path = tmp_path / "theme.wav"
    path.write_bytes(b"\x00" * 2048)

    outcome = ChangeCoordinator(catalog).reconcile_one(_pipeline().process(path, tmp_path))

    assert outcome.action is ReconcileAction.INSERTED
    assert outcome.record is not None and outcome.record.id is not None
    assert outcome.event is not None
    assert outcome.event.kind is EventKind.FILE_DISCOVERED
    assert outcome.event.message == "New asset processed: theme.wav (Audio, 2.0 KB)"
    assert catalog.count() == 1


def test_reprocessing_unchanged_content_is_idempotent(
    tmp_path: Path, catalog: CatalogRepository
) -> None:
    path = tmp_path / "hero.png"
    path.write_bytes(b"\x89PNG-bytes")
    coordinator = ChangeCoordinator(catalog)
    pipeline = _pipeline()

    first = coordinator.reconcile_one(pipeline.process(path, tmp_path))
    second = coordinator.reconcile_one(pipeline.process(path, tmp_path))

    assert first.action is ReconcileAction.INSERTED
    assert second.action is ReconcileAction.UNCHANGED
    assert second.event is None
    assert catalog.count() == 1
    assert len(catalog.recent_events()) == 1
    stored = catalog.get(first.path)
    assert stored is not None
    assert stored.processed_at == first.record.processed_at  # type: ignore[union-attr]


def test_changed_content_updates_in_place(tmp_path: Path, catalog: CatalogRepository) -> None:
    path = tmp_path / "level.json"
    path.write_text('{"level": 1}', encoding="utf-8")
    coordinator = ChangeCoordinator(catalog)
    pipeline = _pipeline()

    first = coordinator.reconcile_one(pipeline.process(path, tmp_path))
    path.write_text('{"level": 2}', encoding="utf-8")
    second = coordinator.reconcile_one(pipeline.process(path, tmp_path))

    assert second.action is ReconcileAction.UPDATED
    assert second.event is not None
    assert second.event.kind is EventKind.FILE_UPDATED
    assert second.event.message == "Re-processed changed file: level.json"

    assert first.record is not None and second.record is not None
    assert second.record.fingerprint != first.record.fingerprint
    stored = catalog.get(first.path)
    assert stored is not None
    assert stored.id == first.record.id
    assert stored.path == first.record.path
    assert stored.discovered_at == first.record.discovered_at
    assert stored.fingerprint == second.record.fingerprint
    assert catalog.count() == 1

    kinds = [event.kind for event in catalog.recent_events()]
    assert kinds == [EventKind.FILE_UPDATED, EventKind.FILE_DISCOVERED]


def test_skipped_runs_are_not_stored(tmp_path: Path, catalog: CatalogRepository) -> None:
    path = tmp_path / "notes.tmp"
    path.write_text("scratch", encoding="utf-8")

    outcome = ChangeCoordinator(catalog).reconcile_one(_pipeline().process(path, tmp_path))

    assert outcome.action is ReconcileAction.SKIPPED
    assert outcome.record is None
    assert catalog.count() == 0
    assert catalog.recent_events() == []


def test_failed_run_is_recorded_then_recovers(tmp_path: Path, catalog: CatalogRepository) -> None:
    path = tmp_path / "late.ogg"
    coordinator = ChangeCoordinator(catalog)
    pipeline = _pipeline()

    failed = coordinator.reconcile_one(pipeline.process(path, tmp_path))
    assert failed.action is ReconcileAction.INSERTED
    assert failed.record is not None
    assert failed.record.status is AssetStatus.FAILED
    assert failed.record.error_message == "File not found"

    path.write_bytes(b"ogg")
    recovered = coordinator.reconcile_one(pipeline.process(path, tmp_path))

    assert recovered.action is ReconcileAction.UPDATED
    stored = catalog.get(failed.path)
    assert stored is not None
    assert stored.status is AssetStatus.COMPLETED
    assert stored.error_message is None


def test_batch_reconcile_preserves_order(tmp_path: Path, catalog: CatalogRepository) -> None:
    names = ["b.lua", "a.md", "skip.tmp"]
    for name in names:
        (tmp_path / name).write_text(name, encoding="utf-8")
    pipeline = _pipeline()

    outcomes = ChangeCoordinator(catalog).reconcile(
        pipeline.process(tmp_path / name, tmp_path) for name in names
    )

    assert [Path(outcome.path).name for outcome in outcomes] == names
    assert [outcome.action for outcome in outcomes] == [
        ReconcileAction.INSERTED,
        ReconcileAction.INSERTED,
        ReconcileAction.SKIPPED,
    ]
