"""
Harvest Run.

Drives one harvest: pulls items from the extraction iterator, turns each
into a metadata record and hands it to a sink. Records are built and
written one at a time; nothing is collected in memory.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from ..config import Settings
from ..models import MetadataRecord
from ..providers.base import DataflowSource
from .codelists import CodeListResolver
from .extraction import ExtractionIterator
from .record_builder import RecordBuilder

logger = logging.getLogger(__name__)

RecordSink = Callable[[MetadataRecord], None]


class JsonLinesSink:
    """Write each record as one JSON document per line."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.count = 0
        self._file = None

    def open(self) -> "JsonLinesSink":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, 'w', encoding='utf-8')
        return self

    def __call__(self, record: MetadataRecord) -> None:
        if self._file is None:
            self.open()
        self._file.write(json.dumps(record.to_json_dict(), ensure_ascii=False))
        self._file.write("\n")
        self.count += 1

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "JsonLinesSink":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@dataclass
class HarvestSummary:
    """Outcome of a harvest run."""
    source: str
    version: Optional[str] = None
    records_written: int = 0
    dataflows_expanded: int = 0
    dataflows_skipped: int = 0
    dataflows_excluded: int = 0
    skipped_dataflow_ids: List[str] = field(default_factory=list)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    duration_seconds: float = 0.0
    completed: bool = False
    logo_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class HarvestRun:
    """One harvest of a dataflow source.

    Usage:
        with SdmxRegistrySource(settings) as source, JsonLinesSink("out.jsonl") as sink:
            summary = HarvestRun(source, settings, sink).run()
    """

    def __init__(
        self,
        source: DataflowSource,
        settings: Settings,
        sink: Optional[RecordSink] = None,
        builder: Optional[RecordBuilder] = None,
    ):
        self.source = source
        self.settings = settings
        self.sink = sink
        self.builder = builder or RecordBuilder(settings)
        self.iterator = ExtractionIterator(
            source,
            CodeListResolver(settings.allowed_dimensions),
        )

    def records(self) -> Iterator[MetadataRecord]:
        """Lazily yield one record per harvest item."""
        for item in self.iterator:
            yield self.builder.build(item)

    def run(self, limit: Optional[int] = None) -> HarvestSummary:
        """Harvest into the sink and report what happened.

        Args:
            limit: Stop after this many records (None for all)

        Raises:
            InvariantViolation: An upstream contract was broken; the run stops
            DataProviderError: The dataflow listing itself could not be read
        """
        summary = HarvestSummary(source=self.source.source_name, logo_url=self.settings.logo_url or None)
        summary.started_at = datetime.now(timezone.utc).isoformat()
        start = time.monotonic()

        logger.info(f"Starting harvest of {self.source.source_name}")
        try:
            records = self.records()
            while limit is None or summary.records_written < limit:
                record = next(records, None)
                if record is None:
                    break
                if self.sink is not None:
                    self.sink(record)
                summary.records_written += 1
            else:
                logger.info(f"Record limit {limit} reached, stopping")
            summary.completed = True
        finally:
            summary.version = self.iterator.version if summary.completed else None
            summary.dataflows_expanded = self.iterator.expanded_dataflows
            summary.skipped_dataflow_ids = list(self.iterator.skipped_dataflows)
            summary.dataflows_skipped = len(summary.skipped_dataflow_ids)
            summary.dataflows_excluded = self.source.excluded_count
            summary.finished_at = datetime.now(timezone.utc).isoformat()
            summary.duration_seconds = round(time.monotonic() - start, 3)

        if summary.records_written == 0:
            logger.warning(
                f"Harvest of {self.source.source_name} did not yield any records; "
                f"check DATAFLOW_PATTERN and ALLOWED_DIMENSIONS"
            )
        else:
            logger.info(
                f"Harvest complete: {summary.records_written} records from "
                f"{summary.dataflows_expanded} dataflows, {summary.dataflows_skipped} skipped"
            )
        return summary
