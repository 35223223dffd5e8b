"""In-memory dataflow source for offline runs and tests."""
from __future__ import annotations

import re
from typing import Iterable, List, Mapping, Optional, Union

from ..exceptions import StructureNotAvailableError
from ..models import DataflowDescriptor, DataStructure
from .base import DataflowSource


class StaticDataflowSource(DataflowSource):
    """Serves dataflows and structures that are already in memory.

    A descriptor whose structure id has no entry in ``structures`` fails to
    load, the same way a broken registry reference would.
    """

    def __init__(
        self,
        dataflows: Iterable[DataflowDescriptor],
        structures: Mapping[str, DataStructure],
        dataflow_pattern: Union[str, re.Pattern, None] = None,
        version: Optional[str] = None,
        name: str = "STATIC",
    ):
        super().__init__(dataflow_pattern)
        self._dataflows: List[DataflowDescriptor] = list(dataflows)
        self._structures = dict(structures)
        self._version = version
        self._name = name
        self.load_calls: List[str] = []

    @property
    def source_name(self) -> str:
        return self._name

    @property
    def version(self) -> Optional[str]:
        return self._version

    def _list_all_dataflows(self) -> Iterable[DataflowDescriptor]:
        return iter(self._dataflows)

    def load_structure(self, descriptor: DataflowDescriptor) -> DataStructure:
        self.load_calls.append(descriptor.id)
        try:
            return self._structures[descriptor.structure_id]
        except KeyError:
            raise StructureNotAvailableError(
                f"No structure {descriptor.structure_id} for dataflow {descriptor.id}",
                dataflow_id=descriptor.id,
                provider=self.source_name,
            ) from None
