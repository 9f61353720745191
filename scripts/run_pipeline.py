"""Mailpipe CLI - run and inspect the email pipeline.

Usage:
    python scripts/run_pipeline.py init-db
    python scripts/run_pipeline.py ingest messages.json
    python scripts/run_pipeline.py run <email_id> [--steps a,b] [--skip-dependencies] [--progress]
    python scripts/run_pipeline.py status <email_id>
    python scripts/run_pipeline.py stats [email_id]
    python scripts/run_pipeline.py stuck
    python scripts/run_pipeline.py cleanup
    python scripts/run_pipeline.py reset <email_id>
    python scripts/run_pipeline.py steps
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Load environment variables ONCE before any settings objects are created
load_dotenv(dotenv_path=project_root / ".env")

from core.dependencies import PipelineComponents, build_ingest_use_case, build_pipeline
from core.application.dtos import PipelineRunDTO
from core.infrastructure.database.config import (
    close_database,
    create_session_factory,
    get_engine,
    init_database,
)
from core.settings import get_app_settings
from mailpipe_sdk.logging import setup_logging
from mailpipe_sdk.utils.datetime import to_iso
from orchestration import Event, PipelineError

logger = logging.getLogger("mailpipe.cli")


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


async def _print_progress(event: Event) -> None:
    payload = json.dumps(event.payload, default=str)
    print(f"{event.metadata.timestamp:%H:%M:%S} {event.name} {payload}", file=sys.stderr)


async def _run(args: argparse.Namespace, components: PipelineComponents) -> int:
    service = components.service

    if args.command == "steps":
        for step in components.orchestrator.get_steps():
            deps = ", ".join(step.dependencies) or "-"
            print(
                f"{step.priority:>3}  {step.name:<16} deps: {deps:<24} "
                f"retryable={step.retryable} timeout={step.timeout}s  {step.description}"
            )
        return 0

    if args.command == "run":
        if args.progress:
            components.event_bus.subscribe("*", _print_progress)
        steps = [s.strip() for s in args.steps.split(",") if s.strip()] if args.steps else None
        if steps and args.skip_dependencies:
            result = await service.run_specific_steps(args.email_id, steps)
        else:
            context = await components.orchestrator.execute_steps(args.email_id, steps)
            result = PipelineRunDTO.from_context(context)
        await components.event_bus.drain()
        _print_json(result.model_dump(mode="json"))
        return 0 if not result.failed_steps else 2

    if args.command == "status":
        record = await service.get_processing_status(args.email_id)
        if record is None:
            print(f"No processing status for {args.email_id}")
            return 1
        _print_json(
            {
                "email_id": record.email_id,
                "status": record.status.value,
                "current_step": record.current_step,
                "completed_steps": record.completed_steps,
                "failed_steps": record.failed_steps,
                "started_at": to_iso(record.started_at),
                "completed_at": to_iso(record.completed_at),
                "updated_at": to_iso(record.updated_at),
            }
        )
        return 0

    if args.command == "stats":
        stats = await service.get_pipeline_stats(args.email_id)
        _print_json(
            [
                {
                    "step": s.step,
                    "status": s.status,
                    "count": s.count,
                    "avg_duration_ms": s.avg_duration_ms,
                    "first_execution": to_iso(s.first_execution),
                    "last_execution": to_iso(s.last_execution),
                }
                for s in stats
            ]
        )
        return 0

    if args.command == "stuck":
        records = await service.list_stuck()
        _print_json(
            [
                {
                    "email_id": r.email_id,
                    "current_step": r.current_step,
                    "updated_at": to_iso(r.updated_at),
                }
                for r in records
            ]
        )
        return 0

    if args.command == "cleanup":
        email_ids = await service.cleanup_stuck()
        print(f"Reset {len(email_ids)} stuck emails")
        return 0

    if args.command == "reset":
        found = await service.reset_status(args.email_id)
        print(f"Processing status reset for email {args.email_id}" if found else "Not found")
        return 0 if found else 1

    if args.command == "ingest":
        messages = json.loads(Path(args.file).read_text(encoding="utf-8"))
        if not isinstance(messages, list):
            print("Expected a JSON array of messages")
            return 1

        async def process_inline(email_id: str) -> None:
            try:
                await service.process_email(email_id)
            except PipelineError as e:
                logger.error(f"Pipeline failed for {email_id}: {e}")

        use_case = build_ingest_use_case(components, process_inline)
        result = await use_case.execute(messages)
        _print_json(
            {
                "batch_id": result.batch_id,
                "inserted": result.inserted,
                "duplicates": result.duplicates,
            }
        )
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run and inspect the email pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables")
    sub.add_parser("steps", help="List registered steps")
    sub.add_parser("stuck", help="List emails stuck in processing")
    sub.add_parser("cleanup", help="Reset stuck emails to pending")

    run = sub.add_parser("run", help="Run the pipeline for an email")
    run.add_argument("email_id")
    run.add_argument("--steps", help="Comma-separated step names (default: all)")
    run.add_argument(
        "--skip-dependencies",
        action="store_true",
        help="Run only the given steps, without their dependencies",
    )
    run.add_argument(
        "--progress", action="store_true", help="Print run and step events to stderr"
    )

    status = sub.add_parser("status", help="Show processing status of an email")
    status.add_argument("email_id")

    stats = sub.add_parser("stats", help="Execution statistics (last 24h, or one email)")
    stats.add_argument("email_id", nargs="?")

    reset = sub.add_parser("reset", help="Reset processing status of an email")
    reset.add_argument("email_id")

    ingest = sub.add_parser("ingest", help="Ingest a JSON array of messages and process them")
    ingest.add_argument("file")

    return parser


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_app_settings()
    setup_logging(settings.logging.level, settings.logging.file)

    engine = get_engine(settings.database)
    try:
        if args.command == "init-db":
            await init_database(engine)
            return 0

        components = build_pipeline(settings, session_factory=create_session_factory(engine))
        try:
            return await _run(args, components)
        except PipelineError as e:
            logger.error(str(e))
            return 1
        finally:
            await components.event_bus.drain()
    finally:
        await close_database()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
