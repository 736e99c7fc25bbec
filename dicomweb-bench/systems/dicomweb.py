"""
DICOMweb request factory and decoding of QIDO responses.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from common.exceptions import ConfigurationError, RequestError
from configuration import API_ROOT_URL, QUERY_ACCEPT_HEADER, RETRIEVE_ACCEPT_HEADER
from systems.base import RequestDescriptor

logger = logging.getLogger(__name__)

# DICOM JSON tags
STUDY_INSTANCE_UID = "0020000D"
SERIES_INSTANCE_UID = "0020000E"
SOP_INSTANCE_UID = "00080018"


def encode_token(token: str) -> str:
    """Percent-encode a single path segment."""
    return quote(token, safe="")


@dataclass(frozen=True)
class DicomStoreConfig:
    """Identifiers of a DICOM store."""

    project: str
    location: str
    dataset: str
    dicom_store: str

    def __post_init__(self):
        for name in ("project", "location", "dataset", "dicom_store"):
            if not getattr(self, name):
                raise ConfigurationError(f"DICOM store {name} must not be empty")


@dataclass(frozen=True)
class DicomStudyConfig(DicomStoreConfig):
    """Identifiers of a study inside a DICOM store."""

    study: str = ""

    def __post_init__(self):
        super().__post_init__()
        if not self.study:
            raise ConfigurationError("DICOM study must not be empty")


@dataclass(frozen=True)
class StudyRef:
    study_uid: str


@dataclass(frozen=True)
class InstanceRef:
    study_uid: Optional[str]
    series_uid: str
    instance_uid: str


class DicomWebRequestFactory:
    """Builds request descriptors for the DICOMweb endpoints of one store."""

    def __init__(self, store: DicomStoreConfig, api_root: str = None):
        self.store = store
        self.api_root = (api_root or API_ROOT_URL).rstrip("/")

    @property
    def studies_url(self) -> str:
        return (
            f"{self.api_root}"
            f"/projects/{encode_token(self.store.project)}"
            f"/locations/{encode_token(self.store.location)}"
            f"/datasets/{encode_token(self.store.dataset)}"
            f"/dicomStores/{encode_token(self.store.dicom_store)}"
            f"/dicomWeb/studies"
        )

    def list_studies(self) -> RequestDescriptor:
        return RequestDescriptor(self.studies_url, {"Accept": QUERY_ACCEPT_HEADER},
                                 retain_body=True)

    def retrieve_study(self, study_uid: str) -> RequestDescriptor:
        return RequestDescriptor(f"{self.studies_url}/{encode_token(study_uid)}",
                                 {"Accept": RETRIEVE_ACCEPT_HEADER})

    def list_study_instances(self, study_uid: str) -> RequestDescriptor:
        return RequestDescriptor(f"{self.studies_url}/{encode_token(study_uid)}/instances",
                                 {"Accept": QUERY_ACCEPT_HEADER}, retain_body=True)

    def retrieve_instance(self, study_uid: str, series_uid: str,
                          instance_uid: str) -> RequestDescriptor:
        return RequestDescriptor(
            f"{self.studies_url}/{encode_token(study_uid)}"
            f"/series/{encode_token(series_uid)}"
            f"/instances/{encode_token(instance_uid)}",
            {"Accept": RETRIEVE_ACCEPT_HEADER},
        )

    def qido(self, request_path: str) -> RequestDescriptor:
        """Raw QIDO query relative to the dicomWeb root, e.g. 'studies?limit=10'.

        Only timed: the response is drained, never decoded.
        """
        dicomweb_root = self.studies_url[:-len("/studies")]
        return RequestDescriptor(f"{dicomweb_root}/{request_path.lstrip('/')}",
                                 {"Accept": QUERY_ACCEPT_HEADER})


def _first_value(attributes: Dict[str, Any], tag: str) -> Optional[str]:
    attribute = attributes.get(tag)
    if not isinstance(attribute, dict):
        return None
    values = attribute.get("Value")
    if not values:
        return None
    return str(values[0])


def _load_json_array(body: bytes) -> List[Dict[str, Any]]:
    if not body:
        # 204 or empty result set
        return []
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise RequestError(f"Malformed DICOM JSON response: {e}") from e
    if not isinstance(payload, list):
        raise RequestError(f"Expected a DICOM JSON array, got {type(payload).__name__}")
    return [item for item in payload if isinstance(item, dict)]


def parse_studies(body: bytes) -> List[StudyRef]:
    """Study UIDs from a searchForStudies response."""
    studies = []
    for attributes in _load_json_array(body):
        study_uid = _first_value(attributes, STUDY_INSTANCE_UID)
        if study_uid:
            studies.append(StudyRef(study_uid))
        else:
            logger.debug("Skipping study without StudyInstanceUID")
    return studies


def parse_instances(body: bytes) -> List[InstanceRef]:
    """Series and instance UIDs from a searchForInstances response."""
    instances = []
    for attributes in _load_json_array(body):
        series_uid = _first_value(attributes, SERIES_INSTANCE_UID)
        instance_uid = _first_value(attributes, SOP_INSTANCE_UID)
        if series_uid and instance_uid:
            instances.append(InstanceRef(_first_value(attributes, STUDY_INSTANCE_UID),
                                         series_uid, instance_uid))
        else:
            logger.debug("Skipping instance without SeriesInstanceUID or SOPInstanceUID")
    return instances
