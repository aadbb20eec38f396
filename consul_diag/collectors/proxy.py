#!/usr/bin/env python3
"""
consul-k8s proxy diagnostics collection.

Lists the proxies in a namespace and, for every proxy whose name matches the
optional filter, runs the consul-k8s read/stats/log/troubleshoot battery into
a per-proxy folder. The whole tree is then archived.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from ..common.utils import create_archive, log_to_file

logger = logging.getLogger(__name__)

HEADER_PATTERN = re.compile(r"Name[ \t]+Type")

STATUS_FILE = "status.txt"
PROXY_LIST_FILE = "proxy_list.txt"


@dataclass(frozen=True)
class ProxyRecord:
    name: str
    type: str


@dataclass
class ProxyDiagnosticsBundle:
    record: ProxyRecord
    directory: Path
    artifacts: List[Path] = field(default_factory=list)
    failed_commands: int = 0


@dataclass
class GatherResult:
    job: object
    bundles: List[ProxyDiagnosticsBundle]
    archive: Optional[Path] = None

    @property
    def proxy_count(self):
        return len(self.bundles)


def iter_proxy_records(listing):
    """
    Lazily parse `consul-k8s proxy list` output.

    Everything up to and including the "Name  Type ..." header row is
    skipped; every later non-blank line yields its first two columns.

    Args:
        listing: Raw command output

    Yields:
        ProxyRecord
    """
    header_seen = False
    for line in listing.splitlines():
        if not header_seen:
            header_seen = bool(HEADER_PATTERN.search(line))
            continue

        fields = line.split()
        if not fields:
            continue
        yield ProxyRecord(fields[0], fields[1] if len(fields) > 1 else "")


class ProxyDiagnosticsCollector:
    """Gathers consul-k8s diagnostics for the proxies of one namespace."""

    def __init__(self, job, cli):
        """
        Args:
            job: GatherJob
            cli: ConsulK8sCLI bound to the job's namespace and context
        """
        self.job = job
        self.cli = cli

    def gather(self):
        """
        Run the full collection.

        Returns:
            GatherResult: Processed bundles and the archive path (None when
            nothing matched or archiving is disabled)

        Raises:
            OutputDirectoryExistsError: Another run already owns the output directory
        """
        output_dir = self.job.create_output_dir()
        with log_to_file(output_dir):
            return self._gather(output_dir)

    def _gather(self, output_dir):
        logger.info(f"Gathering consul-k8s troubleshooting data for namespace '{self.job.namespace}'.")
        if self.job.service_filter:
            logger.info(f"Filtering proxies whose names contain the substring: '{self.job.service_filter}'")
        logger.info(f"Output directory: {output_dir}")

        logger.info("1) Collecting 'consul-k8s status'...")
        self.cli.run(self.cli.status(), output_dir / STATUS_FILE)

        logger.info(f"2) Collecting 'consul-k8s proxy list' for namespace '{self.job.namespace}'...")
        listing_path = output_dir / PROXY_LIST_FILE
        self.cli.run(self.cli.proxy_list(), listing_path)

        logger.info("3) Collecting detailed data for each proxy...")
        matches = self.discover(listing_path)
        bundles = []
        with logging_redirect_tqdm():
            for record in tqdm(matches, desc="Collecting proxies", unit="proxy", disable=None):
                bundles.append(self.collect_proxy(record))

        result = GatherResult(self.job, bundles)
        if not bundles:
            logger.info(
                f"No proxies found in namespace '{self.job.namespace}' "
                f"matching service substring '{self.job.service_filter or ''}'."
            )
            return result

        if self.job.archive:
            logger.info(f"4) Compressing results into '{output_dir.name}.tar.gz'...")
            result.archive = create_archive(output_dir)

        logger.info("Collection complete.")
        if result.archive:
            logger.info(f"Troubleshooting data is in directory '{output_dir}' and archived as '{result.archive}'.")
        else:
            logger.info(f"Troubleshooting data is in directory '{output_dir}'.")
        return result

    def discover(self, listing_path):
        """
        Read the captured proxy listing and keep the records passing the filter.

        Returns:
            list: Matching ProxyRecords in listing order
        """
        try:
            listing = Path(listing_path).read_text(errors="replace")
        except OSError as e:
            logger.error(f"Could not read proxy listing {listing_path}: {e}")
            return []

        records = list(iter_proxy_records(listing))
        matches = [r for r in records if self.job.matches(r.name)]
        logger.debug(f"Parsed {len(records)} proxies, {len(matches)} matching")
        return matches

    def collect_proxy(self, record):
        """
        Run the diagnostic battery for one proxy into its own folder.

        A failing command only affects its own artifact file.

        Returns:
            ProxyDiagnosticsBundle
        """
        proxy_dir = self.job.output_dir / record.name
        proxy_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"   -> Gathering data for proxy: {record.name} ({record.type})")

        bundle = ProxyDiagnosticsBundle(record, proxy_dir)
        for filename, command in self.cli.proxy_diagnostics(record.name):
            artifact = proxy_dir / filename
            returncode = self.cli.run(command, artifact)
            bundle.artifacts.append(artifact)
            if returncode != 0:
                bundle.failed_commands += 1
        return bundle
