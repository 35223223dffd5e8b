"""
Record Builder.

Creates one DataCite-style metadata record per harvest item. The record's
identifier is not a DOI but the data access URL for exactly this selection
of dimension codes; the same URL is the record's research-data link.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlencode

from ..config import Settings
from ..models import (
    Combination,
    Description,
    GeoLocation,
    HarvestItem,
    MetadataRecord,
    ResearchData,
    ResourceType,
    Rights,
    Subject,
    Title,
)

logger = logging.getLogger(__name__)

TITLE_FORMAT = "{name} ({dimensions})"
DIMENSION_FORMAT = "{dimension}: {code}"
TITLE_DIMENSION_SEPARATOR = ", "
DESCRIPTION_DIMENSION_SEPARATOR = "\n"

RESOURCE_TYPE = ResourceType(value="Statistical Data", resource_type_general="Dataset")
RIGHTS_LANGUAGE = "en-US"


class RecordBuilder:
    """Build metadata records from harvest items.

    Fields shared by every record (publisher, language, formats, rights,
    resource type) come from the settings; the rest is derived from the
    dataflow name, the structure id and the dimension combination.
    """

    def __init__(self, settings: Settings, publication_year: Optional[int] = None):
        self.settings = settings
        self.publication_year = publication_year or datetime.now(timezone.utc).year

    def build(self, item: HarvestItem) -> MetadataRecord:
        identifier = self.identifier(item)
        name = item.english_or_first_name()

        return MetadataRecord(
            identifier=identifier,
            titles=[Title(value=self.title(item))],
            publisher=self.settings.publisher,
            publication_year=self.publication_year,
            language=self.settings.language,
            resource_type=RESOURCE_TYPE,
            formats=[self.settings.format],
            rights_list=[Rights(
                value=self.settings.rights_name,
                lang=RIGHTS_LANGUAGE,
                rights_uri=self.settings.rights_uri,
            )],
            descriptions=[Description(value=self.description(item), description_type="Abstract")],
            subjects=self.subjects(item.combination),
            geo_locations=self.geo_locations(item.combination),
            research_data_list=[ResearchData(
                research_data_url=identifier,
                research_data_label=name,
            )],
        )

    def identifier(self, item: HarvestItem) -> str:
        """Data access URL: ``{rest_base_url}/{structure_id}?{dim}={code}&...``.

        Query pairs follow the combination's order. An empty combination
        gives the bare structure URL.
        """
        url = f"{self.settings.rest_base_url}/{item.structure.id}"
        if not item.combination:
            return url
        query = urlencode([(dimension, code.id) for dimension, code in item.combination.items()])
        return f"{url}?{query}"

    def title(self, item: HarvestItem) -> str:
        name = item.english_or_first_name()
        if not item.combination:
            return name
        return TITLE_FORMAT.format(
            name=name,
            dimensions=TITLE_DIMENSION_SEPARATOR.join(_dimension_labels(item.combination)),
        )

    def description(self, item: HarvestItem) -> str:
        lines = [item.english_or_first_name()]
        lines.extend(_dimension_labels(item.combination))
        return DESCRIPTION_DIMENSION_SEPARATOR.join(lines)

    def subjects(self, combination: Combination) -> List[Subject]:
        return [Subject(value=dimension, lang=self.settings.language) for dimension in combination]

    def geo_locations(self, combination: Combination) -> List[GeoLocation]:
        code = combination.get(self.settings.geo_dimension)
        if code is None:
            return []
        return [GeoLocation(geo_location_place=code.display_name)]


def _dimension_labels(combination: Combination) -> List[str]:
    return [
        DIMENSION_FORMAT.format(dimension=dimension, code=code.display_name)
        for dimension, code in combination.items()
    ]
