"""Command line interface for codeplanner."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from codeplanner.audit import EVENTS
from codeplanner.config import Config, get_config
from codeplanner.errors import CodePlannerError
from codeplanner.models.catalog import PROVIDER_IDS
from codeplanner.service import ReviewService


def _print(obj: Any) -> None:
    print(json.dumps(obj, indent=2))


def _progress(frame: Dict[str, Any]) -> None:
    if frame.get("type") == "progress":
        data = frame.get("data") or {}
        print(f"[codeplanner] {data.get('stage')}: {data.get('message')}", file=sys.stderr)


def _setup_logging(config: Config, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _parse_models(values: List[str] | None) -> Dict[str, str | None]:
    selection: Dict[str, str | None] = {p: None for p in PROVIDER_IDS}
    for value in values or []:
        provider, sep, model_id = value.partition("=")
        if not sep or not model_id:
            raise SystemExit(f"Invalid --model value (expected provider=model): {value}")
        selection[provider.strip()] = model_id.strip()
    return selection


def _parse_stage(value: str | None) -> Dict[str, Any] | None:
    if not value:
        return None
    provider, _, model_id = value.partition(":")
    return {"provider": provider, "model_id": model_id or None}


def _system_prompt(args: argparse.Namespace) -> str:
    if args.system_prompt_file:
        return Path(args.system_prompt_file).read_text(encoding="utf-8")
    return args.system_prompt


def _base_body(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "repo": args.repo,
        "branch": args.branch,
        "system_prompt": _system_prompt(args),
        "user_message": args.message,
        "providers": args.provider or ["openai"],
        "selected_models": _parse_models(args.model),
    }


def cmd_run(args: argparse.Namespace, service: ReviewService) -> None:
    body = _base_body(args)
    settings: Dict[str, Any] = {}
    improver = _parse_stage(args.improver)
    if improver:
        settings["prompt_improver"] = improver
    consolidator = _parse_stage(args.consolidator)
    if consolidator:
        settings["consolidator"] = consolidator
    if settings:
        body["pipeline"] = settings
    sink = _progress if args.progress else None
    try:
        result = asyncio.run(service.run_standard_pipeline(body, sink=sink))
    except CodePlannerError as exc:
        print(f"[codeplanner] error: {exc}", file=sys.stderr)
        raise SystemExit(1)
    if args.json:
        _print(result.to_dict())
        return
    if result.meta.warning:
        print(f"[codeplanner] warning: {result.meta.warning}", file=sys.stderr)
    print(result.consolidated)


def cmd_agents(args: argparse.Namespace, service: ReviewService) -> None:
    body = _base_body(args)
    body["scope"] = args.scope
    body["agents"] = args.agent or []
    body["include_confidence"] = bool(args.confidence)
    try:
        result = asyncio.run(service.run_agent_review(body))
    except CodePlannerError as exc:
        print(f"[codeplanner] error: {exc}", file=sys.stderr)
        raise SystemExit(1)
    if args.json:
        _print(result.to_dict())
        return
    print(f"[codeplanner] {result.meta.scope_description}", file=sys.stderr)
    print(result.synthesized)
    if result.confidence is not None:
        print(f"\nConfidence: {result.confidence.score} ({result.confidence.recommendation})")


def cmd_models(args: argparse.Namespace, service: ReviewService) -> None:
    providers = [args.provider] if args.provider else list(PROVIDER_IDS)
    listing: Dict[str, Any] = {}
    try:
        for provider in providers:
            listing[provider] = asyncio.run(service.list_models(provider))
    except CodePlannerError as exc:
        print(f"[codeplanner] error: {exc}", file=sys.stderr)
        raise SystemExit(2)
    _print(listing)


def cmd_audit(args: argparse.Namespace, service: ReviewService) -> None:
    if service.audit is None:
        raise SystemExit("Audit log disabled; set audit.path or CODEPLANNER_AUDIT_PATH")
    _print(service.audit.read(limit=args.limit, event=args.event))


def cmd_serve(args: argparse.Namespace, service: ReviewService) -> None:
    import uvicorn

    from codeplanner.server import create_app

    config = service.config
    uvicorn.run(
        create_app(service),
        host=args.host or config.host,
        port=args.port or config.port,
        log_level=config.log_level.lower(),
    )


def _add_request_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--repo", required=True, help="owner/name")
    parser.add_argument("--branch", default="main")
    prompt = parser.add_mutually_exclusive_group(required=True)
    prompt.add_argument("--system-prompt")
    prompt.add_argument("--system-prompt-file")
    parser.add_argument("--message", required=True, help="review goal")
    parser.add_argument("--provider", action="append", choices=PROVIDER_IDS)
    parser.add_argument("--model", action="append", help="provider=model_id")
    parser.add_argument("--json", action="store_true")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="codeplanner")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run the standard review pipeline")
    _add_request_args(run)
    run.add_argument("--improver", help="provider[:model_id] for the prompt improver")
    run.add_argument("--consolidator", help="provider[:model_id] for the consolidator")
    run.add_argument("--progress", action="store_true")

    agents = sub.add_parser("agents", help="Run the specialist agent review")
    _add_request_args(agents)
    agents.add_argument("--scope", default="", help="file path, glob, commit count, or empty")
    agents.add_argument("--agent", action="append", help="enable one role (repeatable)")
    agents.add_argument("--confidence", action="store_true")

    models = sub.add_parser("models", help="List allowed models")
    models.add_argument("--provider", choices=PROVIDER_IDS)

    audit = sub.add_parser("audit", help="Show recent audit events")
    audit.add_argument("--limit", type=int, default=20)
    audit.add_argument("--event", choices=EVENTS, help="only show one event type")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return
    config = get_config()
    _setup_logging(config, args.verbose)
    service = ReviewService.from_config(config)
    if args.command == "run":
        cmd_run(args, service)
    elif args.command == "agents":
        cmd_agents(args, service)
    elif args.command == "models":
        cmd_models(args, service)
    elif args.command == "audit":
        cmd_audit(args, service)
    elif args.command == "serve":
        cmd_serve(args, service)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
