"""CLI entrypoint for Australian electoral boundary harmonisation."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import pandas as pd

from au_boundaries.boundaries.allocation import get_allocation_table
from au_boundaries.boundaries.correspondence import get_correspondence
from au_boundaries.boundaries.prepare import prepare_boundaries
from au_boundaries.boundaries.session import BoundarySession, build_session
from au_boundaries.common.constants import COMMANDS, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from au_boundaries.common.errors import ConfigError, PipelineError
from au_boundaries.common.fs import write_json, write_table_csv
from au_boundaries.common.logging import build_logger, log_event
from au_boundaries.common.time_utils import generate_run_id, utc_timestamp_iso

REQUIRED_OPTIONS = {
    "prepare": ("event", "compare_to"),
    "correspondence": ("base_type", "base_year", "target_year"),
    "allocation": ("year", "type"),
}


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--out", required=True)
    parser.add_argument("--event", default=None)
    parser.add_argument("--compare-to", default=None)
    parser.add_argument("--no-strict", dest="strict", action="store_false")
    parser.add_argument("--base-type", default=None, choices=["CD", "SA1"])
    parser.add_argument("--base-year", type=int, default=None)
    parser.add_argument("--target-year", type=int, default=None)
    parser.add_argument("--year", type=int, default=None)
    parser.add_argument("--type", default=None, choices=["CED", "POA", "SED"])
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default=None)
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


def execute_command(args: argparse.Namespace, session: BoundarySession) -> pd.DataFrame:
    missing = [f"--{name.replace('_', '-')}" for name in REQUIRED_OPTIONS[args.command] if getattr(args, name) is None]
    if missing:
        raise ConfigError(f"{args.command} requires {', '.join(missing)}")

    if args.command == "prepare":
        return prepare_boundaries(args.event, args.compare_to, args.strict, session=session)
    if args.command == "correspondence":
        return get_correspondence(args.base_type, args.base_year, args.target_year, args.strict, session=session)
    if args.command == "allocation":
        return get_allocation_table(args.year, args.type, session=session)
    raise ValueError(f"Unknown command: {args.command}")


def _write_audit(data_dir: Path, run_id: str, args: argparse.Namespace, session: BoundarySession, status: str) -> None:
    write_json(
        data_dir / "run_meta" / f"{run_id}.audit.json",
        {
            "run_id": run_id,
            "command": args.command,
            "finished_at": utc_timestamp_iso(),
            "status": status,
            "warnings": len(session.audit.warnings()),
            "events": session.audit.to_list(),
        },
    )


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    config_dir = Path(args.config_dir) if args.config_dir else None
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    session = build_session(config_dir, overlay_config_dir=overlay_config_dir, logger=logger, run_id=run_id)

    with session:
        log_event(logger, "command start", run_id=run_id, stage=args.command, event="COMMAND_START", status="ok")
        try:
            table = execute_command(args, session)
        except PipelineError as exc:
            log_event(
                logger,
                f"{args.command} failed: {exc}",
                run_id=run_id,
                stage=args.command,
                event="COMMAND_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            _write_audit(data_dir, run_id, args, session, "error")
            return EXIT_HARD_FAIL

        out_path = write_table_csv(Path(args.out), table)
        status = "warning" if session.audit.warnings() else "ok"
        _write_audit(data_dir, run_id, args, session, status)
        log_event(
            logger,
            f"wrote {out_path}",
            run_id=run_id,
            stage=args.command,
            event="COMMAND_END",
            status=status,
            rows_out=len(table),
        )

    if status == "warning":
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
