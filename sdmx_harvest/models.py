"""
Harvest Models

Catalogue types produced by a DataflowSource (immutable, read-only once
resolved) and the metadata record emitted once per dimension combination.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_LOCALE = "en"


@dataclass(frozen=True)
class LocalizedText:
    """One (locale, text) pair of a multilingual name."""
    locale: str
    text: str


def english_or_first(texts: Sequence[LocalizedText], default: str = "") -> str:
    """Return the English text if there is one, else the first text."""
    for text in texts:
        if text.locale == DEFAULT_LOCALE:
            return text.text
    if texts:
        return texts[0].text
    return default


@dataclass(frozen=True)
class Code:
    """A permissible value along a dimension."""
    id: str
    names: Tuple[LocalizedText, ...] = ()

    @property
    def display_name(self) -> str:
        return english_or_first(self.names, default=self.id)


@dataclass(frozen=True)
class Dimension:
    """A named axis of a data structure with its (possibly empty) code list."""
    id: str
    codes: Tuple[Code, ...] = ()
    position: int = 0
    codelist_id: Optional[str] = None


@dataclass(frozen=True)
class DataStructure:
    """Schema of a dataflow: its dimensions in their native order."""
    id: str
    dimensions: Tuple[Dimension, ...] = ()
    names: Tuple[LocalizedText, ...] = ()

    def dimension(self, dimension_id: str) -> Optional[Dimension]:
        for dim in self.dimensions:
            if dim.id == dimension_id:
                return dim
        return None


@dataclass(frozen=True)
class DataflowDescriptor:
    """Catalogue identity of a dataflow plus a reference to its structure."""
    id: str
    structure_id: str
    names: Tuple[LocalizedText, ...] = ()
    agency_id: Optional[str] = None
    version: Optional[str] = None

    def english_or_first_name(self) -> str:
        return english_or_first(self.names, default=self.id)


# Dimension id -> one code per dimension
Combination = Dict[str, Code]


@dataclass(frozen=True)
class HarvestItem:
    """One publishable unit: a dataflow, its structure and one combination."""
    dataflow_names: Tuple[LocalizedText, ...]
    structure: DataStructure
    combination: Combination = field(default_factory=dict)
    dataflow_id: str = ""

    def english_or_first_name(self) -> str:
        return english_or_first(self.dataflow_names, default=self.dataflow_id or self.structure.id)


# ============================================================================
# Metadata record (DataCite JSON field names)
# ============================================================================

class _RecordModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Title(_RecordModel):
    value: str
    lang: Optional[str] = None


class Subject(_RecordModel):
    value: str
    lang: Optional[str] = None


class Description(_RecordModel):
    value: str
    description_type: str = Field(default="Abstract", alias="descriptionType")
    lang: Optional[str] = None


class GeoLocation(_RecordModel):
    geo_location_place: str = Field(alias="geoLocationPlace")


class Rights(_RecordModel):
    value: str
    lang: Optional[str] = None
    rights_uri: Optional[str] = Field(default=None, alias="rightsURI")


class ResourceType(_RecordModel):
    value: str
    resource_type_general: str = Field(alias="resourceTypeGeneral")


class ResearchData(_RecordModel):
    research_data_url: str = Field(alias="researchDataURL")
    research_data_label: str = Field(alias="researchDataLabel")


class MetadataRecord(_RecordModel):
    """A DataCite-style metadata document for one dimension combination.

    The identifier is a data access URL, not a DOI; it is reused as the
    record's research-data link.
    """
    identifier: str
    titles: List[Title] = Field(default_factory=list)
    publisher: str
    publication_year: int = Field(alias="publicationYear")
    language: Optional[str] = None
    resource_type: Optional[ResourceType] = Field(default=None, alias="resourceType")
    formats: List[str] = Field(default_factory=list)
    rights_list: List[Rights] = Field(default_factory=list, alias="rightsList")
    descriptions: List[Description] = Field(default_factory=list)
    subjects: List[Subject] = Field(default_factory=list)
    geo_locations: List[GeoLocation] = Field(default_factory=list, alias="geoLocations")
    research_data_list: List[ResearchData] = Field(default_factory=list, alias="researchDataList")

    def to_json_dict(self) -> Dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)
