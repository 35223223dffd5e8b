"""
Combination Engine.

Turns a mapping of dimension id -> ordered code list into the lazy sequence of
every total combination (one code per dimension).

Example:
    Input:  {"article": ["a", "the"], "adjective": ["fat"], "noun": ["cop", "god"]}
    Output: {"article": "a",   "adjective": "fat", "noun": "cop"}
            {"article": "a",   "adjective": "fat", "noun": "god"}
            {"article": "the", "adjective": "fat", "noun": "cop"}
            {"article": "the", "adjective": "fat", "noun": "god"}

Combinations are produced in odometer order: dimensions are visited in the
mapping's iteration order and the last one varies fastest. The counter keeps
one index per dimension, so memory does not grow with the number of
combinations.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Iterator, List, Mapping, Sequence, Tuple, TypeVar

from ..exceptions import CombinationOverflowError, InvariantViolation

logger = logging.getLogger(__name__)

V = TypeVar("V")


class CombinationEngine:
    """Lazy Cartesian product over per-dimension code lists."""

    # Largest count we agree to enumerate; len() and range() stop here
    MAX_COMBINATIONS = sys.maxsize

    def count(self, dimension_codes: Mapping[str, Sequence[Any]]) -> int:
        """
        Number of combinations ``expand`` will produce.

        Raises:
            InvariantViolation: If a dimension has no codes
            CombinationOverflowError: If the product exceeds MAX_COMBINATIONS
        """
        total = 1
        for dimension_id, codes in dimension_codes.items():
            if len(codes) == 0:
                raise InvariantViolation(
                    f"Dimension '{dimension_id}' has no codes; refusing to expand to zero combinations",
                    details={"dimension": dimension_id},
                )
            total *= len(codes)
            if total > self.MAX_COMBINATIONS:
                raise CombinationOverflowError(
                    f"Combination count exceeds {self.MAX_COMBINATIONS} "
                    f"after dimension '{dimension_id}'",
                    count=total,
                    details={"dimension": dimension_id},
                )
        return total

    def expand(self, dimension_codes: Mapping[str, Sequence[V]]) -> Iterator[Dict[str, V]]:
        """
        Expand a dimension-codes mapping into all combinations.

        The mapping is validated before anything is produced, so a broken
        input fails at call time rather than on the first pull. Each call
        returns an independent iterator; each combination is a fresh dict.

        Args:
            dimension_codes: Dimension id -> ordered code list

        Returns:
            Iterator over combinations; exactly one (empty) combination when
            the mapping is empty

        Raises:
            InvariantViolation: If a dimension has no codes
            CombinationOverflowError: If the product exceeds MAX_COMBINATIONS
        """
        total = self.count(dimension_codes)
        # Snapshot keys and code lists so later mutation of the input cannot
        # shift the counter underneath a running expansion
        axes: List[Tuple[str, Tuple[V, ...]]] = [
            (dimension_id, tuple(codes)) for dimension_id, codes in dimension_codes.items()
        ]
        logger.debug(f"Expanding {len(axes)} dimensions into {total} combinations")
        return self._odometer(axes)

    @staticmethod
    def _odometer(axes: List[Tuple[str, Tuple[V, ...]]]) -> Iterator[Dict[str, V]]:
        keys = [dimension_id for dimension_id, _ in axes]
        code_lists = [codes for _, codes in axes]
        radices = [len(codes) for codes in code_lists]
        indices = [0] * len(axes)

        while True:
            yield {key: code_lists[i][indices[i]] for i, key in enumerate(keys)}

            # Increment the mixed-radix counter, last digit fastest
            position = len(indices) - 1
            while position >= 0:
                indices[position] += 1
                if indices[position] < radices[position]:
                    break
                indices[position] = 0
                position -= 1
            else:
                # Carried out of the most significant digit (or no digits)
                return


_engine = CombinationEngine()


def expand_combinations(dimension_codes: Mapping[str, Sequence[V]]) -> Iterator[Dict[str, V]]:
    """Expand with the shared stateless engine."""
    return _engine.expand(dimension_codes)


def count_combinations(dimension_codes: Mapping[str, Sequence[Any]]) -> int:
    return _engine.count(dimension_codes)
