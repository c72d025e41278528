"""Change detection and upsert of pipeline runs into the catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from assetpipe.ingestion.models import AssetStatus, PipelineRun

from .catalog import CatalogRepository
from .models import AssetRecord, EventKind, EventLogEntry

LOGGER = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    """What the coordinator did with a pipeline run."""

    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


@dataclass(slots=True)
class ReconcileOutcome:
    """Result of reconciling one run against the catalog.

    Attributes:
        path: Identity key of the run.
        action: Insert/update/no-op/skip decision.
        record: Catalog record after reconciliation (``None`` for skips).
        event: Event log entry written, if any.
    """

    path: str
    action: ReconcileAction
    record: Optional[AssetRecord] = None
    event: Optional[EventLogEntry] = None


class ChangeCoordinator:
    """Decide whether a run is new, unchanged or changed content and apply it.

    The catalog is looked up by path (identity); the fingerprint alone decides
    whether anything is written. Unchanged content is never rewritten or
    re-logged. Batches and single runs share :meth:`reconcile`.
    """

    def __init__(self, catalog: CatalogRepository) -> None:
        self.catalog = catalog

    def reconcile(self, runs: Iterable[PipelineRun]) -> List[ReconcileOutcome]:
        """Apply each run to the catalog inside a single transaction.

        Args:
            runs: Terminal pipeline runs.

        Returns:
            List[ReconcileOutcome]: One outcome per run, in input order.
        """
        outcomes: List[ReconcileOutcome] = []
        with self.catalog.transaction():
            for run in runs:
                outcomes.append(self._reconcile(run))
        return outcomes

    def reconcile_one(self, run: PipelineRun) -> ReconcileOutcome:
        return self.reconcile([run])[0]

    def _reconcile(self, run: PipelineRun) -> ReconcileOutcome:
        if run.status is AssetStatus.SKIPPED:
            return ReconcileOutcome(path=run.path, action=ReconcileAction.SKIPPED)

        existing = self.catalog.get(run.path)
        if existing is None:
            record = self.catalog.insert(AssetRecord.from_run(run))
            event = self.catalog.append_event(
                EventLogEntry(
                    kind=EventKind.FILE_DISCOVERED,
                    path=record.path,
                    message=(
                        f"New asset processed: {record.relative_path} "
                        f"({record.category.value}, {record.size_display})"
                    ),
                )
            )
            LOGGER.info("Cataloged %s (%s)", record.path, record.status.value)
            return ReconcileOutcome(record.path, ReconcileAction.INSERTED, record, event)

        if existing.fingerprint == run.fingerprint:
            return ReconcileOutcome(existing.path, ReconcileAction.UNCHANGED, existing)

        updated = existing.model_copy(
            update={
                "fingerprint": run.fingerprint,
                "size_bytes": run.size_bytes,
                "file_modified_at": run.file_modified_at,
                "status": run.status,
                "processed_at": run.processed_at,
                "processing_ms": run.processing_ms,
                "image_width": run.image_width,
                "image_height": run.image_height,
                "thumbnail_path": run.thumbnail_path,
                "error_message": run.error_message,
            }
        )
        self.catalog.update(updated)
        event = self.catalog.append_event(
            EventLogEntry(
                kind=EventKind.FILE_UPDATED,
                path=updated.path,
                message=f"Re-processed changed file: {updated.relative_path}",
            )
        )
        LOGGER.info("Updated %s (%s)", updated.path, updated.status.value)
        return ReconcileOutcome(updated.path, ReconcileAction.UPDATED, updated, event)


__all__ = ["ChangeCoordinator", "ReconcileAction", "ReconcileOutcome"]
