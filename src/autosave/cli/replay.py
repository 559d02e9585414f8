#!/usr/bin/env python3
"""
Replay an edit script through an autosave engine.

Each line of the script is a JSON object:
    {"snapshot": {...}}          replace the editor state and mark it dirty
    {"wait_ms": 1500}            let real time pass (timers fire)
    {"action": "save_now"}       flush immediately
    {"action": "retry"}          force a save, bypassing the no-op check
    {"action": "baseline"}       treat the current state as persisted

Usage:
    autosave-replay edits.jsonl
    autosave-replay edits.jsonl --debounce-ms 200 --transport memory -v
    autosave-replay edits.jsonl --config autosave.yaml --structured

Exit Codes:
    0: Final status is "saved"
    1: Final status is anything else, or the script is invalid
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config.config_loader import AutosaveConfig, build_transport
from ..core.exceptions import AutosaveError
from ..core.logging import CorrelationContext, configure_logging
from ..core.types import DocumentIdentity, DocumentKind, SaveStatus
from ..engine.engine import AutosaveEngine


logger = logging.getLogger(__name__)

ACTIONS = ("save_now", "retry", "baseline")


def load_script(path: Path) -> List[Dict[str, Any]]:
    """
    Parse a JSON-lines edit script.
    
    Blank lines and lines starting with '#' are ignored.
    
    Raises:
        ValueError: If a line is not a JSON object or has no known key
    """
    events = []
    for lineno, raw_line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path}:{lineno}: invalid JSON: {e}")
        if not isinstance(event, dict):
            raise ValueError(f"{path}:{lineno}: expected a JSON object")
        if "snapshot" not in event and "wait_ms" not in event and event.get("action") not in ACTIONS:
            raise ValueError(f"{path}:{lineno}: unknown event {event!r}")
        events.append(event)
    return events


async def replay(
    events: List[Dict[str, Any]],
    config: AutosaveConfig,
    identity: DocumentIdentity,
    out=None,
) -> AutosaveEngine:
    """
    Drive an engine with the given events on the running loop.
    
    Returns:
        The engine, closed and idle
    """
    out = out or sys.stdout
    state: Dict[str, Any] = {"snapshot": None}
    transport = build_transport(config)

    engine = AutosaveEngine(
        identity=identity,
        get_snapshot=lambda: state["snapshot"],
        transport=transport,
        debounce_ms=config.debounce_ms,
        keys_sample_size=config.keys_sample_size,
    )

    def print_status(status: SaveStatus, error_message: Optional[str]) -> None:
        suffix = f" ({error_message})" if error_message else ""
        print(f"status: {status.value}{suffix}", file=out)

    engine.subscribe(print_status)

    try:
        for event in events:
            if "snapshot" in event:
                state["snapshot"] = event["snapshot"]
                engine.mark_dirty()
            elif "wait_ms" in event:
                await asyncio.sleep(float(event["wait_ms"]) / 1000.0)
            elif event["action"] == "save_now":
                await engine.save_now()
            elif event["action"] == "retry":
                await engine.retry()
            elif event["action"] == "baseline":
                engine.set_last_saved_from_snapshot()

        await engine.aclose()
    finally:
        transport.close()

    return engine


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Replay an edit script through an autosave engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("script", type=Path, help="JSON-lines edit script")
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    parser.add_argument("--debounce-ms", type=float, default=None, help="Override engine.debounce_ms")
    parser.add_argument(
        "--transport",
        choices=["memory", "sqlserver"],
        default=None,
        help="Override transport.type",
    )
    parser.add_argument(
        "--kind",
        choices=[k.value for k in DocumentKind],
        default=DocumentKind.PROPOSAL.value,
        help="Document kind (default: proposal)",
    )
    parser.add_argument("--company-id", default="local-company")
    parser.add_argument("--document-id", default="local-document")
    parser.add_argument("--project-id", default="local-project")
    parser.add_argument("--structured", action="store_true", help="JSON log lines")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = AutosaveConfig(args.config)
        if args.debounce_ms is not None:
            config.config["engine"]["debounce_ms"] = args.debounce_ms
        if args.transport:
            config.config["transport"]["type"] = args.transport
        events = load_script(args.script)
    except (AutosaveError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    level = logging.DEBUG if args.verbose else logging.getLevelName(config.log_level)
    configure_logging(level=level, structured=args.structured or config.structured_logging)

    identity = DocumentIdentity(
        kind=DocumentKind(args.kind),
        company_id=args.company_id,
        document_id=args.document_id,
        project_id=args.project_id,
    )

    with CorrelationContext(document_id=identity.document_id, company_id=identity.company_id):
        try:
            engine = asyncio.run(replay(events, config, identity))
        except AutosaveError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    print(json.dumps(engine.diagnostics().to_dict(), indent=2))
    return 0 if engine.status == SaveStatus.SAVED else 1


if __name__ == "__main__":
    sys.exit(main())
