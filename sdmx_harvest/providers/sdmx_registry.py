"""SDMX registry source: dataflows and data structures over the SDMX 2.1 REST API."""
from __future__ import annotations

import io
import logging
from typing import Any, Iterable, List, Optional, Tuple

import httpx
import sdmx

from ..config import Settings
from ..exceptions import DataProviderError, StructureNotAvailableError
from ..models import (
    Code,
    DataflowDescriptor,
    DataStructure,
    Dimension,
    LocalizedText,
)
from ..utils.retry import get_with_retry
from .base import DataflowSource

logger = logging.getLogger(__name__)


STRUCTURE_ACCEPT = "application/vnd.sdmx.structure+xml;version=2.1"

# Ask for codelists and concept schemes in the same message as the DSD
STRUCTURE_QUERY_PARAMS = {"references": "children"}


def localized_texts(value: Any) -> Tuple[LocalizedText, ...]:
    """Convert an sdmx InternationalString into (locale, text) pairs."""
    localizations = getattr(value, "localizations", None) or {}
    return tuple(
        LocalizedText(locale=str(locale), text=str(text))
        for locale, text in localizations.items()
        if text
    )


class SdmxRegistrySource(DataflowSource):
    """Dataflow source backed by an SDMX registry such as Eurostat's.

    The root listing (Structural Data Exchange Message, SDEM) is fetched once,
    on first use. Its header id is the harvest's version fingerprint. Each
    dataflow's structure is fetched on demand by ``load_structure``.

    Usage:
        with SdmxRegistrySource(get_settings()) as source:
            for descriptor in source.list_dataflows():
                structure = source.load_structure(descriptor)
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.Client] = None,
        name: str = "ESTAT",
    ):
        super().__init__(settings.dataflow_regex)
        self.settings = settings
        self._name = name
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=settings.request_timeout,
            follow_redirects=True,
            headers={"Accept": STRUCTURE_ACCEPT},
        )
        self._root_message = None

    @property
    def source_name(self) -> str:
        return self._name

    @property
    def version(self) -> Optional[str]:
        header = getattr(self.root_message, "header", None)
        header_id = getattr(header, "id", None)
        return str(header_id) if header_id else None

    @property
    def root_message(self):
        """The parsed SDEM; fetched on first access.

        Raises:
            DataProviderError: If the listing cannot be fetched or parsed.
                Nothing can be harvested without it, so this is fatal.
        """
        if self._root_message is None:
            logger.info(f"Fetching dataflow listing from {self.settings.sdem_url}")
            response = self._get(self.settings.sdem_url)
            try:
                message = sdmx.read_sdmx(io.BytesIO(response.content))
                dataflow_count = len(message.dataflow)
            except Exception as e:
                raise DataProviderError(
                    f"Failed to parse dataflow listing: {e}",
                    provider=self.source_name,
                    details={"url": self.settings.sdem_url},
                ) from e
            self._root_message = message
            logger.info(f"{self.source_name}: {dataflow_count} dataflows (version {self.version})")
        return self._root_message

    def _list_all_dataflows(self) -> Iterable[DataflowDescriptor]:
        for flow_id, flow in self.root_message.dataflow.items():
            structure = getattr(flow, "structure", None)
            structure_id = getattr(structure, "id", None)
            if not structure_id:
                logger.debug(f"Dataflow {flow_id} has no structure reference")
                structure_id = ""
            maintainer = getattr(flow, "maintainer", None)
            version = getattr(flow, "version", None)
            yield DataflowDescriptor(
                id=str(flow_id),
                structure_id=str(structure_id),
                names=localized_texts(getattr(flow, "name", None)),
                agency_id=str(maintainer.id) if maintainer is not None else None,
                version=str(version) if version is not None else None,
            )

    def load_structure(self, descriptor: DataflowDescriptor) -> DataStructure:
        if not descriptor.structure_id:
            raise StructureNotAvailableError(
                f"Dataflow {descriptor.id} does not reference a data structure",
                dataflow_id=descriptor.id,
                provider=self.source_name,
            )

        url = self.settings.datastructure_url_format.replace(
            "{structure_id}", descriptor.structure_id
        )
        try:
            response = self._get(url, params=STRUCTURE_QUERY_PARAMS)
        except DataProviderError as e:
            raise StructureNotAvailableError(
                e.message,
                dataflow_id=descriptor.id,
                provider=self.source_name,
                details=dict(e.details),
            ) from e

        try:
            message = sdmx.read_sdmx(io.BytesIO(response.content))
            return self._convert_structure(message, descriptor)
        except StructureNotAvailableError:
            raise
        except Exception as e:
            raise StructureNotAvailableError(
                f"Failed to parse structure {descriptor.structure_id}: {e}",
                dataflow_id=descriptor.id,
                provider=self.source_name,
                details={"url": url},
            ) from e

    def _convert_structure(self, message, descriptor: DataflowDescriptor) -> DataStructure:
        """Turn a parsed StructureMessage into a DataStructure."""
        structures = message.structure
        dsd = structures.get(descriptor.structure_id)
        if dsd is None:
            # A lone structure under another id is the one that was asked for
            if len(structures) != 1:
                raise StructureNotAvailableError(
                    f"No data structure {descriptor.structure_id} in registry response "
                    f"({len(structures)} other structures)",
                    dataflow_id=descriptor.id,
                    provider=self.source_name,
                )
            dsd = list(structures.values())[0]

        dimensions: List[Dimension] = []
        for position, component in enumerate(dsd.dimensions.components):
            codelist = self._find_codelist(component, message)
            codes: Tuple[Code, ...] = ()
            if codelist is not None:
                codes = tuple(
                    Code(id=str(code.id), names=localized_texts(getattr(code, "name", None)))
                    for code in codelist.items.values()
                )
            dimensions.append(Dimension(
                id=str(component.id),
                codes=codes,
                position=position,
                codelist_id=str(codelist.id) if codelist is not None else None,
            ))

        return DataStructure(
            id=str(dsd.id),
            dimensions=tuple(dimensions),
            names=localized_texts(getattr(dsd, "name", None)),
        )

    @staticmethod
    def _find_codelist(component, message):
        """Locate the code list of a dimension.

        Local representation first, then the concept's core representation.
        A reference that was not resolved in place (an external stub with no
        items) is looked up among the codelists carried by the same message.
        An empty stub is returned only when no candidate has codes; None when
        there is no code list at all.
        """
        candidates = [getattr(component, "local_representation", None)]
        concept = getattr(component, "concept_identity", None)
        if concept is not None:
            candidates.append(getattr(concept, "core_representation", None))

        empty_stub = None
        for representation in candidates:
            codelist = getattr(representation, "enumerated", None)
            if codelist is None:
                continue
            if len(codelist.items) > 0:
                return codelist
            carried = message.codelist.get(codelist.id) if codelist.id else None
            if carried is not None and len(carried.items) > 0:
                return carried
            if empty_stub is None:
                empty_stub = codelist
        return empty_stub

    def _get(self, url: str, **kwargs) -> httpx.Response:
        return get_with_retry(
            self._client,
            url,
            provider=self.source_name,
            max_attempts=self.settings.max_retries,
            initial_delay=self.settings.retry_backoff,
            **kwargs,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "SdmxRegistrySource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
