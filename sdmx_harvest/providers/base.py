"""Base dataflow source: the harvester's only view of a registry."""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Iterable, Iterator, Optional, Union

from ..models import DataflowDescriptor, DataStructure

logger = logging.getLogger(__name__)

MATCH_ALL = ".*"


class DataflowSource(ABC):
    """Base class for all dataflow sources.

    Provides common functionality:
    - Selection-pattern pre-filter over dataflow and structure ids
    - Standardized source identification for logs and summaries

    Subclasses implement:
    - source_name property (required)
    - _list_all_dataflows method (abstract)
    - load_structure method (abstract)
    """

    def __init__(self, dataflow_pattern: Union[str, re.Pattern, None] = None):
        """Initialize base source.

        Args:
            dataflow_pattern: Regular expression a dataflow id or its structure
                id must fully match; everything else is never loaded
        """
        if dataflow_pattern is None:
            dataflow_pattern = MATCH_ALL
        if isinstance(dataflow_pattern, str):
            dataflow_pattern = re.compile(dataflow_pattern)
        self.dataflow_pattern: re.Pattern = dataflow_pattern
        self.excluded_count = 0

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the registry name (e.g., 'ESTAT'), used for logging and errors."""
        pass

    @property
    def version(self) -> Optional[str]:
        """Fingerprint of the registry content, known before enumeration.

        None when the registry does not expose one.
        """
        return None

    @abstractmethod
    def _list_all_dataflows(self) -> Iterable[DataflowDescriptor]:
        """Enumerate every dataflow of the registry, unfiltered."""
        pass

    @abstractmethod
    def load_structure(self, descriptor: DataflowDescriptor) -> DataStructure:
        """Load the full data structure (dimensions and codes) of a dataflow.

        Raises:
            StructureNotAvailableError: The structure of this dataflow cannot be
                loaded. Expected per-item condition; callers skip the dataflow.
        """
        pass

    def list_dataflows(self) -> Iterator[DataflowDescriptor]:
        """Yield the dataflows selected by the dataflow pattern."""
        for descriptor in self._list_all_dataflows():
            if self.is_selected(descriptor):
                yield descriptor
            else:
                self.excluded_count += 1
                logger.debug(f"Dataflow {descriptor.id} does not match {self.dataflow_pattern.pattern}")

    def is_selected(self, descriptor: DataflowDescriptor) -> bool:
        return bool(
            self.dataflow_pattern.fullmatch(descriptor.id)
            or self.dataflow_pattern.fullmatch(descriptor.structure_id)
        )
