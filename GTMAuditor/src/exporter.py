#!/usr/bin/env python3
"""
CSV export of audit results
One row per (url, container) for successes, one row per failed URL
"""

from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from audit_models import AuditResult
from logging_config import setup_logger
from summary import classify_metric

CSV_COLUMNS = [
    'url', 'status', 'container_id',
    'total_cpu_time_ms', 'script_evaluation_ms', 'script_parse_time_ms',
    'cpu_status', 'evaluation_status', 'parse_status',
    'error',
]

logger = setup_logger('Exporter')


def results_to_rows(results: Iterable[AuditResult]) -> List[Dict[str, Any]]:
    rows = []
    for result in results:
        if not result.is_success:
            row = dict.fromkeys(CSV_COLUMNS)
            row.update(url=result.url, status=result.status, error=result.error)
            rows.append(row)
            continue

        for metric in result.gtm_metrics:
            rows.append({
                'url': result.url,
                'status': result.status,
                'container_id': metric.container_id,
                'total_cpu_time_ms': metric.total_cpu_time_ms,
                'script_evaluation_ms': metric.script_evaluation_ms,
                'script_parse_time_ms': metric.script_parse_time_ms,
                'cpu_status': classify_metric(metric.total_cpu_time_ms, 'cpu'),
                'evaluation_status': classify_metric(metric.script_evaluation_ms, 'script'),
                'parse_status': classify_metric(metric.script_parse_time_ms, 'script'),
                'error': None,
            })
    return rows


def results_to_dataframe(results: Iterable[AuditResult]) -> pd.DataFrame:
    df = pd.DataFrame(results_to_rows(results), columns=CSV_COLUMNS)
    # Keep whole milliseconds; failed rows leave these blank
    for column in ('total_cpu_time_ms', 'script_evaluation_ms', 'script_parse_time_ms'):
        df[column] = df[column].astype('Int64')
    return df


def default_export_name(today: Optional[date] = None) -> str:
    return f"gtm-audit-results-{(today or date.today()).isoformat()}.csv"


def save_to_csv(results: Iterable[AuditResult], path) -> Path:
    """Write results to path (parent directories are created) and return it"""
    filepath = Path(path)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    df = results_to_dataframe(results)
    df.to_csv(filepath, index=False)

    logger.info(f"💾 Saved {len(df)} rows to {filepath}")
    return filepath
