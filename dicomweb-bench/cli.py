#!/usr/bin/env python3
"""
DICOMweb benchmark CLI.
"""

import os
import sys
import logging
import argparse

# Add the current directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from configuration import API_ROOT_URL, DEFAULT_ITERATIONS, DEFAULT_MAX_THREADS, DEFAULT_METRICS_PORT
from common.exceptions import BenchmarkError

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False):
    """Set up logging (only if not already configured)."""
    if not logging.root.handlers:
        logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO,
                            format='%(asctime)s - %(levelname)s - %(message)s')
    for noisy in ('urllib3', 'google.auth'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class DicomWebBenchmarkCLI:
    """CLI interface for the DICOMweb latency benchmarks."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self):
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            description='DICOMweb Benchmark CLI',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Retrieve every instance of a study 5 times with 20 threads
  python cli.py retrieve-study -p my-project -l us-central1 -d my-dataset -s my-store \\
      -y 1.2.840.113619.2.1 -i 5 -t 20 -o results/study.csv

  # Download every study of a store
  python cli.py download-dataset -p my-project -l us-central1 -d my-dataset -s my-store

  # Time a QIDO query
  python cli.py qido -p my-project -l us-central1 -d my-dataset -s my-store \\
      -r "studies?PatientName=Doe&limit=10" -i 20
            """
        )

        common = argparse.ArgumentParser(add_help=False)
        common.add_argument('-i', '--iterations', type=int, default=DEFAULT_ITERATIONS,
                            help=f'Number of iterations (default: {DEFAULT_ITERATIONS})')
        common.add_argument('-t', '--max-threads', type=int, default=DEFAULT_MAX_THREADS,
                            help=f'Maximum number of requests in flight (default: {DEFAULT_MAX_THREADS})')
        common.add_argument('-o', '--output', type=str, default=None,
                            help='Write per-request results to this file (.csv or .parquet)')
        common.add_argument('-e', '--endpoint', type=str, default=API_ROOT_URL,
                            help=f'API root URL (default: {API_ROOT_URL})')
        common.add_argument('--token', type=str, default=None,
                            help='Bearer token (default: DICOMWEB_ACCESS_TOKEN or Application Default Credentials)')
        common.add_argument('--metrics-port', type=int, default=DEFAULT_METRICS_PORT,
                            help='Expose Prometheus metrics on this port (0 = disabled)')
        common.add_argument('-v', '--verbose', action='store_true',
                            help='Enable debug logging')
        common.add_argument('-p', '--project', type=str, required=True, help='GCP project')
        common.add_argument('-l', '--location', type=str, required=True, help='Dataset location')
        common.add_argument('-d', '--dataset', type=str, required=True, help='Dataset name')
        common.add_argument('-s', '--dicom-store', type=str, required=True, help='DICOM store name')

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        # Retrieve study command
        study_parser = subparsers.add_parser('retrieve-study', parents=[common],
                                             help='Retrieve every instance of a study')
        study_parser.add_argument('-y', '--study', type=str, required=True,
                                  help='StudyInstanceUID of the study to retrieve')

        # Download dataset command
        subparsers.add_parser('download-dataset', parents=[common],
                              help='Retrieve every study of a DICOM store')

        # QIDO command
        qido_parser = subparsers.add_parser('qido', parents=[common], help='Time a QIDO query')
        qido_parser.add_argument('-r', '--request-path', type=str, required=True,
                                 help='Query relative to the dicomWeb root, e.g. "studies?limit=10"')

        return parser

    def build_benchmark(self, args):
        """Create the benchmark selected by the parsed arguments."""
        from algorithms.download_dataset import DownloadDatasetBenchmark
        from algorithms.qido import QidoBenchmark
        from algorithms.retrieve_study import RetrieveStudyBenchmark
        from persistence.parquet import ResultsPersistence
        from persistence.prom import PrometheusExporter
        from systems.auth import create_authorization_context
        from systems.dicomweb import DicomStoreConfig, DicomStudyConfig

        exporter = None
        if args.metrics_port:
            exporter = PrometheusExporter(args.metrics_port)
            exporter.start_server()

        options = dict(
            iterations=args.iterations,
            max_threads=args.max_threads,
            auth_context=create_authorization_context(args.token),
            persistence=ResultsPersistence(args.output),
            exporter=exporter,
            show_progress=sys.stderr.isatty(),
        )
        store_ids = (args.project, args.location, args.dataset, args.dicom_store)

        if args.command == 'retrieve-study':
            return RetrieveStudyBenchmark(DicomStudyConfig(*store_ids, study=args.study),
                                          api_root=args.endpoint, **options)
        if args.command == 'download-dataset':
            return DownloadDatasetBenchmark(DicomStoreConfig(*store_ids),
                                            api_root=args.endpoint, **options)
        if args.command == 'qido':
            return QidoBenchmark(DicomStoreConfig(*store_ids), args.request_path,
                                 api_root=args.endpoint, **options)
        raise ValueError(f"Unknown command: {args.command}")

    def run(self, args=None):
        """Run the CLI with the given arguments."""
        if args is None:
            args = sys.argv[1:]

        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed_args.verbose)

        try:
            logger.info(f"=== {parsed_args.command} ===")
            benchmark = self.build_benchmark(parsed_args)
            benchmark.run()
            return 0
        except BenchmarkError as e:
            logger.error(f"Benchmark failed: {e}")
            return 1
        except KeyboardInterrupt:
            logger.info("Operation interrupted by user")
            return 1


def main():
    """Main entry point."""
    cli = DicomWebBenchmarkCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
