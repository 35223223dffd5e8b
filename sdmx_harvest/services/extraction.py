"""
Extraction Iterator

Two-level lazy pull pipeline:
- outer cursor over the selected dataflows of a DataflowSource
- inner cursor over the dimension combinations of the dataflow being expanded

States:
- NEEDS_DATAFLOW: no combination sequence is active
- HAS_COMBINATIONS: the current dataflow's combinations are being read
- EXHAUSTED: no more items (terminal)

A dataflow whose structure cannot be loaded is skipped: it produces no items
and raises nothing to the consumer. It is only visible through
``skipped_dataflows``. An InvariantViolation from the combination engine is
fatal: the iterator becomes EXHAUSTED and the error propagates.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterator, List, Optional

from ..exceptions import InvariantViolation, is_skippable_error
from ..models import Code, DataflowDescriptor, DataStructure, HarvestItem
from ..providers.base import DataflowSource
from .codelists import CodeListResolver
from .combinations import CombinationEngine

logger = logging.getLogger(__name__)

# Total item count cannot be known before every dataflow has been loaded
UNKNOWN_SIZE = -1


class ExtractionState(Enum):
    NEEDS_DATAFLOW = "needs_dataflow"
    HAS_COMBINATIONS = "has_combinations"
    EXHAUSTED = "exhausted"


class ExtractionIterator:
    """Iterator over HarvestItems, one per dimension combination per dataflow.

    Pull-based and single-threaded: each ``next()`` does only the work needed
    to produce one item. The only blocking call is the source's
    ``load_structure``, made when the previous dataflow is used up.

    Usage:
        iterator = ExtractionIterator(source, CodeListResolver(["GEO", "UNIT"]))
        for item in iterator:
            record = builder.build(item)
    """

    def __init__(
        self,
        source: DataflowSource,
        resolver: CodeListResolver,
        engine: Optional[CombinationEngine] = None,
    ):
        self.source = source
        self.resolver = resolver
        self.engine = engine or CombinationEngine()

        self.state = ExtractionState.NEEDS_DATAFLOW
        self._dataflows: Optional[Iterator[DataflowDescriptor]] = None
        self._combinations: Optional[Iterator[Dict[str, Code]]] = None
        self._current_dataflow: Optional[DataflowDescriptor] = None
        self._current_structure: Optional[DataStructure] = None
        self._pending: Optional[HarvestItem] = None

        # Side-channel diagnostics
        self.skipped_dataflows: List[str] = []
        self.expanded_dataflows = 0
        self.items_emitted = 0

    @property
    def size(self) -> int:
        """Always UNKNOWN_SIZE: failures only show up during iteration."""
        return UNKNOWN_SIZE

    @property
    def version(self) -> Optional[str]:
        """Version fingerprint known before enumeration starts."""
        return self.source.version

    @property
    def current_dataflow(self) -> Optional[DataflowDescriptor]:
        return self._current_dataflow

    def __iter__(self) -> "ExtractionIterator":
        return self

    def __next__(self) -> HarvestItem:
        if not self._advance():
            raise StopIteration
        item = self._pending
        self._pending = None
        self.items_emitted += 1
        return item

    def has_next(self) -> bool:
        """Peek without consuming.

        May load the next dataflow's structure; repeated calls without an
        intervening ``next()`` do nothing further.
        """
        return self._advance()

    def _advance(self) -> bool:
        """Make sure an item is buffered; False once EXHAUSTED."""
        if self._pending is not None:
            return True

        while True:
            if self.state is ExtractionState.EXHAUSTED:
                return False

            if self.state is ExtractionState.HAS_COMBINATIONS:
                combination = next(self._combinations, None)
                if combination is not None:
                    self._pending = HarvestItem(
                        dataflow_names=self._current_dataflow.names,
                        structure=self._current_structure,
                        combination=combination,
                        dataflow_id=self._current_dataflow.id,
                    )
                    return True
                # Current dataflow used up
                self._combinations = None
                self._current_structure = None
                self.state = ExtractionState.NEEDS_DATAFLOW
                continue

            # NEEDS_DATAFLOW
            if self._dataflows is None:
                self._dataflows = iter(self.source.list_dataflows())
            try:
                descriptor = next(self._dataflows, None)
            except Exception:
                # The listing itself failed; nothing more can be enumerated
                self._finish()
                raise
            if descriptor is None:
                logger.info(
                    f"Extraction finished: {self.expanded_dataflows} dataflows expanded, "
                    f"{len(self.skipped_dataflows)} skipped, {self.items_emitted} items"
                )
                self._finish()
                return False

            self._current_dataflow = descriptor
            try:
                structure = self.source.load_structure(descriptor)
            except Exception as e:
                if not is_skippable_error(e):
                    self._finish()
                    raise
                self.skipped_dataflows.append(descriptor.id)
                logger.warning(f"Skipping dataflow {descriptor.id}: {e}")
                continue

            try:
                dimension_codes = self.resolver.resolve(structure)
                combinations = self.engine.expand(dimension_codes)
            except InvariantViolation:
                logger.error(f"Aborting extraction at dataflow {descriptor.id}")
                self._finish()
                raise

            logger.info(
                f"Expanding dataflow {descriptor.id} over "
                f"{', '.join(dimension_codes) or 'no dimensions'}"
            )
            self._current_structure = structure
            self._combinations = combinations
            self.expanded_dataflows += 1
            self.state = ExtractionState.HAS_COMBINATIONS

    def _finish(self) -> None:
        self.state = ExtractionState.EXHAUSTED
        self._dataflows = None
        self._combinations = None
        self._current_structure = None
