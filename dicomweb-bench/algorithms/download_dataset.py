"""
Download-dataset benchmark: list every study of a store, then retrieve each study in parallel.
"""

from typing import List

from algorithms.base import FanOutBenchmark
from systems.base import RequestDescriptor
from systems.dicomweb import DicomStoreConfig, DicomWebRequestFactory, parse_studies


class DownloadDatasetBenchmark(FanOutBenchmark):
    name = "download-dataset"

    def __init__(self, store: DicomStoreConfig, api_root: str = None, **kwargs):
        super().__init__(**kwargs)
        self.store = store
        self.factory = DicomWebRequestFactory(store, api_root)

    def index_request(self) -> RequestDescriptor:
        return self.factory.list_studies()

    def item_requests(self, body: bytes) -> List[RequestDescriptor]:
        return [self.factory.retrieve_study(study.study_uid) for study in parse_studies(body)]
