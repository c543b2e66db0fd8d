#!/usr/bin/env python3
"""
GTM entry extraction from a Lighthouse boot-up time report
Keeps only gtm.js loader scripts and tags each with its container ID
"""

import re
from typing import List, Optional

from audit_errors import NoContainerFoundError
from audit_models import ContainerMetric, RawScriptReport

GTM_SCRIPT_PATTERN = re.compile(r'gtm\.js\?id=(GTM-[A-Z0-9]+)')


def match_container_id(script_url: str) -> Optional[str]:
    """Return the GTM container ID a script URL loads, or None"""
    if not isinstance(script_url, str):
        return None
    match = GTM_SCRIPT_PATTERN.search(script_url)
    return match.group(1) if match else None


def extract_gtm_metrics(report: RawScriptReport) -> List[ContainerMetric]:
    """
    Filter a report down to GTM containers

    One metric per matching entry. A container ID listed twice stays listed
    twice here; the stabilizer merges duplicates by ID.

    Raises:
        NoContainerFoundError: when no script on the page is a gtm.js loader
    """
    metrics = []
    for entry in report.entries:
        container_id = match_container_id(entry.script_url)
        if container_id is None:
            continue
        metrics.append(ContainerMetric(
            container_id=container_id,
            total_cpu_time_ms=entry.total_cpu_time_ms or 0,
            script_evaluation_ms=entry.script_evaluation_ms or 0,
            script_parse_time_ms=entry.parse_compile_ms or 0,
        ))

    if not metrics:
        raise NoContainerFoundError(report.url)

    return metrics
