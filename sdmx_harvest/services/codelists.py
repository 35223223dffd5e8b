"""Code list resolution: which dimensions of a structure get expanded, with which codes."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from ..models import Code, DataStructure

logger = logging.getLogger(__name__)


class CodeListResolver:
    """Build the dimension-codes map for one data structure.

    A dimension is kept iff its id is allow-listed AND it carries at least one
    code. Allow-listed dimensions that are missing or empty in the structure
    are left out silently; that is ordinary catalogue noise, not an error.
    """

    def __init__(self, allowed_dimensions: Iterable[str]):
        self.allowed_dimensions = tuple(dict.fromkeys(allowed_dimensions))
        self._allowed = frozenset(self.allowed_dimensions)

    def resolve(self, structure: DataStructure) -> Dict[str, List[Code]]:
        """
        Args:
            structure: A fully loaded data structure

        Returns:
            Dimension id -> ordered code list, in the structure's dimension order
        """
        dimension_codes: Dict[str, List[Code]] = {}

        for dimension in structure.dimensions:
            if dimension.id not in self._allowed:
                continue

            codes = list(dimension.codes)
            if not codes:
                logger.debug(
                    f"Dropping dimension {dimension.id} of {structure.id}: "
                    f"code list {dimension.codelist_id or '<unresolved>'} is empty"
                )
                continue

            dimension_codes[dimension.id] = codes

        return dimension_codes
