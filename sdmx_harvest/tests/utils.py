from __future__ import annotations

from typing import Dict, Iterable, Optional, Sequence, Tuple

from sdmx_harvest.models import (
    Code,
    DataflowDescriptor,
    DataStructure,
    Dimension,
    LocalizedText,
)


def en(text: str) -> Tuple[LocalizedText, ...]:
    return (LocalizedText(locale="en", text=text),)


def make_codes(*ids: str, names: Optional[Dict[str, str]] = None) -> Tuple[Code, ...]:
    names = names or {}
    return tuple(Code(id=code_id, names=en(names[code_id]) if code_id in names else ()) for code_id in ids)


def make_structure(
    structure_id: str,
    dimensions: Iterable[Tuple[str, Sequence[str]]],
    names: Optional[Dict[str, str]] = None,
) -> DataStructure:
    """Build a structure from (dimension id, code ids) pairs."""
    return DataStructure(
        id=structure_id,
        dimensions=tuple(
            Dimension(
                id=dim_id,
                codes=make_codes(*code_ids, names=names),
                position=position,
                codelist_id=f"CL_{dim_id}",
            )
            for position, (dim_id, code_ids) in enumerate(dimensions)
        ),
    )


def make_dataflow(
    dataflow_id: str,
    structure_id: Optional[str] = None,
    name: Optional[str] = None,
) -> DataflowDescriptor:
    return DataflowDescriptor(
        id=dataflow_id,
        structure_id=structure_id or dataflow_id,
        names=en(name) if name else (),
    )
