"""
Retrieve-study benchmark: list the instances of one study, then retrieve every instance in parallel.
"""

import logging
from typing import List

from algorithms.base import FanOutBenchmark
from systems.base import RequestDescriptor
from systems.dicomweb import DicomStudyConfig, DicomWebRequestFactory, parse_instances

logger = logging.getLogger(__name__)


class RetrieveStudyBenchmark(FanOutBenchmark):
    """Measures how fast a whole study can be pulled instance by instance."""

    name = "retrieve-study"

    def __init__(self, study: DicomStudyConfig, api_root: str = None, **kwargs):
        super().__init__(**kwargs)
        self.study = study
        self.factory = DicomWebRequestFactory(study, api_root)

    def index_request(self) -> RequestDescriptor:
        return self.factory.list_study_instances(self.study.study)

    def item_requests(self, body: bytes) -> List[RequestDescriptor]:
        instances = parse_instances(body)
        logger.debug(f"Study {self.study.study} has {len(instances)} instances")
        return [
            self.factory.retrieve_instance(instance.study_uid or self.study.study,
                                           instance.series_uid, instance.instance_uid)
            for instance in instances
        ]
