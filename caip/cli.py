"""
CAIP CLI

caip triage FILE [--list-size N]
caip followup FILE [FILE ...] [--window all|3months|4weeks]
caip workforce FILE --practice ODS [--month "November 2025"] [activity counts]
caip benchmark FILE --practice ODS
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from caip.__version__ import __version__
from caip.config.loader import load_config
from caip.domains import get_domain, registry
from caip.domains.followup import WINDOWS
from caip.domains.workforce import ActivityCounts
from caip.utils.logger import run_log

logger = logging.getLogger(__name__)


# -------------------------------------------------
# PROGRAMMATIC ENTRY
# -------------------------------------------------
def run_analysis(
    domain_name: str,
    data: Any,
    config_path: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
    output_dir: Optional[str] = None,
    **options,
) -> Dict[str, Any]:
    """
    Run one domain and write its result as JSON.

    Returns:
        {
            "result": <domain output>,
            "result_path": <path>,
            "run_dir": <path>
        }
    """

    # -------------------------------------------------
    # Config & run directory
    # -------------------------------------------------
    final_config = config if config is not None else load_config(config_path)
    base_dir = Path(output_dir or final_config.get("output_dir", "runs"))
    run_dir = base_dir / datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    run_dir.mkdir(parents=True, exist_ok=True)

    with run_log(domain_name, run_dir) as log:
        log.info("Run directory: %s", run_dir)

        # -------------------------------------------------
        # Domain
        # -------------------------------------------------
        domain = get_domain(domain_name, config=final_config, **options)
        if domain is None:
            raise ValueError(f"Unknown analysis: {domain_name}")

        log.info("Running %s analysis (v%s)", domain_name, __version__)
        result = domain.run(data)
        result["generated_at"] = datetime.now().isoformat(timespec="seconds")
        result["version"] = __version__

        result_path = run_dir / f"{domain_name}_results.json"
        with open(result_path, "w", encoding="utf-8") as f:
            json.dump(result, f, indent=2, default=str)

        log.info("Results written: %s", result_path)

    return {
        "result": result,
        "result_path": str(result_path),
        "run_dir": str(run_dir),
    }


# -------------------------------------------------
# ARGUMENTS
# -------------------------------------------------
def _common(sub: argparse.ArgumentParser) -> None:
    sub.add_argument("--config", help="Path to config YAML")
    sub.add_argument("--output", help="Output directory (overrides output_dir)")
    sub.add_argument("-v", "--verbose", action="store_true")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="caip",
        description=f"CAIP analytics v{__version__}",
    )
    parser.add_argument("--version", action="store_true")
    subparsers = parser.add_subparsers(dest="command")
    analyses = registry.describe()

    # ---- TRIAGE ----
    triage = subparsers.add_parser("triage", help=analyses["triage"])
    triage.add_argument("input", help="CSV or Excel extract")
    triage.add_argument("--list-size", type=int, help="Practice list size for per-1000 rates")
    _common(triage)

    # ---- FOLLOW-UP ----
    followup = subparsers.add_parser("followup", help=analyses["followup"])
    followup.add_argument("inputs", nargs="+", help="One or more appointment CSV exports")
    followup.add_argument("--window", choices=WINDOWS, help="Source window")
    _common(followup)

    # ---- WORKFORCE ----
    workforce = subparsers.add_parser("workforce", help=analyses["workforce"])
    workforce.add_argument("input", help="National practice-level workforce CSV")
    workforce.add_argument("--practice", required=True, help="Practice ODS code")
    workforce.add_argument("--month", help='Data month, e.g. "November 2025"')
    workforce.add_argument("--gp-appointments", type=float, default=0)
    workforce.add_argument("--other-appointments", type=float, default=0)
    workforce.add_argument("--answered-calls", type=float, default=0)
    workforce.add_argument("--missed-calls", type=float, default=0)
    workforce.add_argument("--oc-submissions", type=float, default=0)
    workforce.add_argument("--oc-clinical-submissions", type=float, default=0)
    _common(workforce)

    # ---- BENCHMARK ----
    benchmark = subparsers.add_parser("benchmark", help=analyses["benchmark"])
    benchmark.add_argument("input", help="Practice-month activity table (CSV or Excel)")
    benchmark.add_argument("--practice", required=True, help="Practice ODS code")
    _common(benchmark)

    return parser


def _domain_call(args) -> Dict[str, Any]:
    if args.command == "triage":
        return {"data": args.input, "list_size": args.list_size}

    if args.command == "followup":
        return {"data": args.inputs, "window": args.window}

    if args.command == "workforce":
        activity = ActivityCounts(
            gp_appointments=args.gp_appointments,
            other_appointments=args.other_appointments,
            answered_calls=args.answered_calls,
            missed_calls=args.missed_calls,
            oc_submissions=args.oc_submissions,
            oc_clinical_submissions=args.oc_clinical_submissions,
        )
        return {"data": args.input, "practice": args.practice, "month": args.month, "activity": activity}

    return {"data": args.input, "practice": args.practice}


# -------------------------------------------------
# CLI ENTRY
# -------------------------------------------------
def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # ---- VERSION ----
    if args.version:
        print(f"CAIP analytics v{__version__}")
        return 0

    if not args.command:
        parser.error("an analysis command is required")

    # ---- LOGGING ----
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    call = _domain_call(args)
    data = call.pop("data")

    try:
        result = run_analysis(
            args.command,
            data,
            config_path=args.config,
            output_dir=args.output,
            **call,
        )
    except (FileNotFoundError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    print(f"\nAnalysis complete: {args.command}")
    print(f"Results: {result['result_path']}")
    print(f"Run folder: {result['run_dir']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
