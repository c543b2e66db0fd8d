#!/usr/bin/env python3
"""
Main Execution - GTM Performance Audit
Measures the CPU cost of Google Tag Manager containers with Lighthouse,
3 runs per URL, SEQUENTIAL processing, CSV export of the results
"""

import asyncio
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple

from audit_models import BatchReport, ProgressSnapshot
from batch_auditor import BatchAuditor, parse_url_input, validate_urls
from config import AuditSettings, get_settings
from exporter import default_export_name, save_to_csv
from lighthouse_oracle import LighthouseOracle
from logging_config import ROOT_LOGGER, setup_logger
from stabilizer import MultiRunStabilizer
from summary import classify_metric

STATUS_ICONS = {'good': '🟢', 'warning': '🟡', 'critical': '🔴'}

USAGE = """Usage:
  python main.py https://example.com [https://other.com ...]   # Audit URLs
  python main.py --file=urls.txt                                # One URL per line
  python main.py --file=urls.txt --runs=5 --allow-partial       # More runs, tolerate failed runs
  python main.py https://example.com --output=results.csv       # Custom CSV path
  python main.py https://example.com --no-export                # Print only

Environment:
  GTM_AUDIT_RUNS, GTM_AUDIT_REQUIRE_ALL_RUNS, GTM_AUDIT_ROUND_TIMEOUT,
  GTM_AUDIT_SESSION_TIMEOUT, LIGHTHOUSE_BIN, GTM_AUDIT_OUTPUT_DIR,
  GTM_AUDIT_DEBUG, GTM_AUDIT_LOG_FILE"""


def build_auditor(settings: AuditSettings) -> BatchAuditor:
    """Wire oracle -> stabilizer -> batch auditor from settings"""
    setup_logger(ROOT_LOGGER, settings.debug_mode, settings.log_file)
    oracle = LighthouseOracle(lighthouse_bin=settings.lighthouse_bin, debug_mode=settings.debug_mode)
    stabilizer = MultiRunStabilizer(
        oracle,
        run_count=settings.run_count,
        require_all_runs=settings.require_all_runs,
        round_timeout_s=settings.round_timeout_s,
        session_timeout_s=settings.session_timeout_s,
        debug_mode=settings.debug_mode,
    )
    return BatchAuditor(stabilizer, debug_mode=settings.debug_mode)


def load_urls_from_file(path: str) -> List[str]:
    """Read candidate URLs from a text file, one per line"""
    return parse_url_input(Path(path).read_text(encoding='utf-8'))


def parse_args(argv: List[str], settings: AuditSettings) -> Tuple[List[str], AuditSettings, Optional[str], bool]:
    """
    Parse --key=value style arguments

    Returns:
        (candidate urls, settings with overrides, output path, export enabled)
    """
    urls = []
    output_file = None
    export = True

    for arg in argv:
        if arg.startswith("--file="):
            urls.extend(load_urls_from_file(arg.split("=", 1)[1]))
        elif arg.startswith("--runs="):
            settings = replace(settings, run_count=int(arg.split("=", 1)[1]))
        elif arg.startswith("--output="):
            output_file = arg.split("=", 1)[1]
        elif arg == "--allow-partial":
            settings = replace(settings, require_all_runs=False)
        elif arg == "--no-export":
            export = False
        elif arg == "--debug":
            settings = replace(settings, debug_mode=True)
        elif arg.startswith("--"):
            raise ValueError(f"Unknown option: {arg}")
        else:
            urls.extend(parse_url_input(arg))

    return urls, settings, output_file, export


def print_progress(snapshot: ProgressSnapshot) -> None:
    if snapshot.completed == 0:
        return
    eta = f"{snapshot.eta_ms / 1000:.0f}s" if snapshot.eta_ms else "-"
    print(f"   ⏳ {snapshot.completed}/{snapshot.total} done | ETA {eta}")


def print_report(report: BatchReport) -> None:
    """Print per-URL results and the batch summary"""
    print(f"\n{'='*80}")
    print("GTM PERFORMANCE AUDIT RESULTS")
    print(f"{'='*80}")

    for result in report.results:
        if not result.is_success:
            print(f"❌ {result.url}\n   Error: {result.error}")
            continue
        print(f"✅ {result.url}")
        for metric in result.gtm_metrics:
            cpu = classify_metric(metric.total_cpu_time_ms, 'cpu')
            evaluation = classify_metric(metric.script_evaluation_ms, 'script')
            parse = classify_metric(metric.script_parse_time_ms, 'script')
            print(f"   {metric.container_id}: "
                  f"CPU {metric.total_cpu_time_ms}ms {STATUS_ICONS[cpu]} | "
                  f"Eval {metric.script_evaluation_ms}ms {STATUS_ICONS[evaluation]} | "
                  f"Parse {metric.script_parse_time_ms}ms {STATUS_ICONS[parse]}")

    summary = report.summary
    print(f"\n{'='*80}")
    print(f" Total URLs audited: {summary.total_urls}")
    print(f" Successful audits: {summary.successful_audits}")
    print(f" GTM containers measured: {summary.total_containers}")
    print(f" Average CPU time: {summary.average_cpu_time_ms}ms "
          f"{STATUS_ICONS[classify_metric(summary.average_cpu_time_ms, 'cpu')]}")
    print(f" Average script evaluation: {summary.average_script_evaluation_ms}ms "
          f"{STATUS_ICONS[classify_metric(summary.average_script_evaluation_ms, 'script')]}")
    print(f" Average script parse: {summary.average_script_parse_time_ms}ms "
          f"{STATUS_ICONS[classify_metric(summary.average_script_parse_time_ms, 'script')]}")
    if report.rejected_urls:
        print(f" Invalid URLs skipped: {len(report.rejected_urls)}")
    print(f"{'='*80}")


async def main(argv: List[str]) -> int:
    """Run the audit; returns the process exit code"""
    if not argv or argv[0] in ("-h", "--help"):
        print(USAGE)
        return 2

    urls, settings, output_file, export = parse_args(argv, get_settings())

    valid, rejected = validate_urls(urls)
    if rejected:
        print(f"⚠️ {len(rejected)} invalid URLs were removed. "
              f"Only valid URLs starting with http:// or https:// will be audited.")
    if not valid:
        print("❌ Please enter at least one valid URL (must start with http:// or https://)")
        return 2

    print(f" Starting GTM performance audit for {len(valid)} URLs "
          f"({settings.run_count} Lighthouse runs each)...")

    auditor = build_auditor(settings)
    report = await auditor.audit_batch(urls, on_progress=print_progress)
    print_report(report)

    if export:
        path = output_file or str(Path(settings.output_dir) / default_export_name())
        saved = save_to_csv(report.results, path)
        print(f"📄 Results saved to: {saved}")

    return 0 if report.summary.successful_audits > 0 else 1


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main(sys.argv[1:])))
    except KeyboardInterrupt:
        print("\n⚠️ Audit interrupted by user")
        sys.exit(130)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(2)
