#!/usr/bin/env python3
"""
Data model for GTM performance audits

RawScriptReport is the normalized Lighthouse boot-up breakdown for one page
load. ContainerMetric, AuditResult and BatchSummary are what the pipeline
produces. All metric values are whole milliseconds once finalized.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Tuple

STATUS_SUCCESS = 'success'
STATUS_ERROR = 'error'


@dataclass(frozen=True)
class RawScriptEntry:
    """One script from the boot-up time audit"""
    script_url: str
    total_cpu_time_ms: float = 0.0
    script_evaluation_ms: float = 0.0
    parse_compile_ms: float = 0.0


@dataclass(frozen=True)
class RawScriptReport:
    """All scripts measured during one page load"""
    url: str
    entries: Tuple[RawScriptEntry, ...] = ()


@dataclass(frozen=True)
class ContainerMetric:
    container_id: str
    total_cpu_time_ms: float
    script_evaluation_ms: float
    script_parse_time_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'containerId': self.container_id,
            'totalCpuTime': self.total_cpu_time_ms,
            'scriptEvaluation': self.script_evaluation_ms,
            'scriptParseTime': self.script_parse_time_ms,
        }


@dataclass(frozen=True)
class AuditResult:
    """
    Outcome of auditing one URL

    An error result never carries metrics and always carries a message.
    A success result always carries at least one container.
    """
    url: str
    status: str
    gtm_metrics: Tuple[ContainerMetric, ...] = ()
    error: Optional[str] = None

    def __post_init__(self):
        if self.status == STATUS_ERROR:
            if self.gtm_metrics or not self.error:
                raise ValueError("error results need a message and no metrics")
        elif self.status == STATUS_SUCCESS:
            if not self.gtm_metrics:
                raise ValueError("success results need at least one container metric")
        else:
            raise ValueError(f"unknown audit status: {self.status!r}")

    @classmethod
    def success(cls, url: str, metrics: List[ContainerMetric]) -> 'AuditResult':
        return cls(url=url, status=STATUS_SUCCESS, gtm_metrics=tuple(metrics))

    @classmethod
    def failure(cls, url: str, error: str) -> 'AuditResult':
        return cls(url=url, status=STATUS_ERROR, error=error)

    @property
    def is_success(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'url': self.url,
            'status': self.status,
            'gtmMetrics': [metric.to_dict() for metric in self.gtm_metrics],
        }
        if self.error is not None:
            data['error'] = self.error
        return data


@dataclass(frozen=True)
class BatchSummary:
    total_urls: int = 0
    successful_audits: int = 0
    total_containers: int = 0
    average_cpu_time_ms: int = 0
    average_script_evaluation_ms: int = 0
    average_script_parse_time_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalUrls': self.total_urls,
            'successfulAudits': self.successful_audits,
            'totalContainers': self.total_containers,
            'averageCpuTime': self.average_cpu_time_ms,
            'averageScriptEvaluation': self.average_script_evaluation_ms,
            'averageScriptParseTime': self.average_script_parse_time_ms,
        }


@dataclass(frozen=True)
class ProgressSnapshot:
    """Point-in-time view of a running batch, emitted after every URL"""
    completed: int
    total: int
    current_url: Optional[str] = None
    eta_ms: int = 0
    elapsed_ms: int = 0

    @property
    def percent(self) -> float:
        return (self.completed / self.total * 100) if self.total else 100.0


@dataclass(frozen=True)
class BatchReport:
    """What a batch audit hands back: ordered results, summary, rejected input"""
    results: Tuple[AuditResult, ...]
    summary: BatchSummary
    rejected_urls: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'results': [result.to_dict() for result in self.results],
            'summary': self.summary.to_dict(),
            'rejected': list(self.rejected_urls),
        }

