#!/usr/bin/env python3
"""
Environment-driven settings for the GTM auditor

Read once per process. Command-line flags in main.py override individual
values with dataclasses.replace().
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}


def _get_int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class AuditSettings:
    run_count: int = 3
    require_all_runs: bool = True
    round_timeout_s: int = 60
    session_timeout_s: int = 30
    lighthouse_bin: str = 'lighthouse'
    output_dir: str = 'output/csv'
    debug_mode: bool = False
    log_file: Optional[str] = None


def load_settings() -> AuditSettings:
    """Build settings from the current environment (uncached)"""
    return AuditSettings(
        run_count=_get_int_env('GTM_AUDIT_RUNS', 3),
        require_all_runs=_get_bool_env('GTM_AUDIT_REQUIRE_ALL_RUNS', True),
        round_timeout_s=_get_int_env('GTM_AUDIT_ROUND_TIMEOUT', 60),
        session_timeout_s=_get_int_env('GTM_AUDIT_SESSION_TIMEOUT', 30),
        lighthouse_bin=os.getenv('LIGHTHOUSE_BIN', 'lighthouse'),
        output_dir=os.getenv('GTM_AUDIT_OUTPUT_DIR', 'output/csv'),
        debug_mode=_get_bool_env('GTM_AUDIT_DEBUG', False),
        log_file=os.getenv('GTM_AUDIT_LOG_FILE') or None,
    )


@lru_cache(maxsize=1)
def get_settings() -> AuditSettings:
    """Cached process-wide settings"""
    return load_settings()
