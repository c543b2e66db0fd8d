#!/usr/bin/env python3
"""
Batch summary and good/warning/critical classification

Averages are taken over every container of every successful URL, so a page
with three containers contributes three data points.
"""

from typing import Dict, Iterable

from audit_models import AuditResult, BatchSummary
from averaging import mean_by_key

GOOD = 'good'
WARNING = 'warning'
CRITICAL = 'critical'

# Milliseconds. A value equal to a threshold stays in the lower band.
THRESHOLDS: Dict[str, Dict[str, int]] = {
    'cpu': {'warning': 500, 'critical': 1000},
    'script': {'warning': 200, 'critical': 500},
}

_SUMMARY_FIELDS = ('total_cpu_time_ms', 'script_evaluation_ms', 'script_parse_time_ms')


def classify_metric(value: float, kind: str) -> str:
    """Classify a metric value; kind is 'cpu' or 'script'"""
    try:
        threshold = THRESHOLDS[kind]
    except KeyError:
        raise ValueError(f"unknown metric kind {kind!r}, expected one of {sorted(THRESHOLDS)}") from None

    if value <= threshold['warning']:
        return GOOD
    if value <= threshold['critical']:
        return WARNING
    return CRITICAL


def summarize(results: Iterable[AuditResult]) -> BatchSummary:
    results = list(results)
    successful = [result for result in results if result.is_success]
    containers = [metric for result in successful for metric in result.gtm_metrics]

    if not containers:
        return BatchSummary(total_urls=len(results), successful_audits=len(successful))

    averages = mean_by_key(containers, key=lambda metric: 'batch', fields=_SUMMARY_FIELDS)['batch']

    return BatchSummary(
        total_urls=len(results),
        successful_audits=len(successful),
        total_containers=len(containers),
        average_cpu_time_ms=averages['total_cpu_time_ms'],
        average_script_evaluation_ms=averages['script_evaluation_ms'],
        average_script_parse_time_ms=averages['script_parse_time_ms'],
    )
