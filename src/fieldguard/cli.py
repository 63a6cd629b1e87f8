"""CLI interface for fieldguard.

Usage:
    # Scan text (stdin: text, stdout: JSON spans)
    echo 'card 4242 4242 4242 4242' | python -m fieldguard.cli scan

    # Scan as if typed into a field named "email" (expected emails are not flagged)
    echo 'a@b.com' | python -m fieldguard.cli scan --field-name email --field-type email

    # Mask everything detected (stdin: text, stdout: masked text)
    echo 'mail john@example.com' | python -m fieldguard.cli mask

    # Validate a custom pattern file (JSON list)
    python -m fieldguard.cli patterns patterns.json

Custom patterns from --patterns, and everything else from --config (YAML),
apply to every command.
"""

from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from .config import create_engine, load_from_yaml
from .engine import Engine
from .types import FieldDescriptor, FieldKind


DEFAULT_CONFIG = os.environ.get("FIELDGUARD_CONFIG", "")


def _read_patterns(path: str) -> list[dict[str, Any]]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("patterns", [])
    if not isinstance(data, list):
        raise SystemExit(f"{path}: expected a JSON list of patterns")
    return data


def _build_engine(args: argparse.Namespace) -> Engine:
    config = load_from_yaml(args.config) if args.config else {}
    extra = _read_patterns(args.patterns) if args.patterns else []
    engine = create_engine(config, extra)
    for name, reason in engine.registration.errors:
        sys.stderr.write(f"skipped pattern {name}: {reason}\n")
    return engine


def _field(args: argparse.Namespace) -> FieldDescriptor | None:
    if not (args.field_name or args.field_type or args.placeholder or args.label):
        return None
    return FieldDescriptor(
        kind=FieldKind.parse(args.field_type),
        name=args.field_name,
        placeholder=args.placeholder,
        label=args.label,
    )


def cmd_scan(args: argparse.Namespace) -> None:
    """Scan text on stdin and print the spans found."""
    engine = _build_engine(args)
    text = sys.stdin.read()
    spans = engine.scan(text, _field(args))

    output = {
        "spans": [s.to_dict(include_value=not args.hide_values) for s in spans],
        "count": len(spans),
    }
    json.dump(output, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_mask(args: argparse.Namespace) -> None:
    """Mask every span found in the text on stdin."""
    engine = _build_engine(args)
    text = sys.stdin.read()
    spans = engine.scan(text, _field(args))
    sys.stdout.write(engine.mask_text(text, spans))


def cmd_patterns(args: argparse.Namespace) -> None:
    """Register a pattern file and print the registration report."""
    engine = create_engine({})
    report = engine.register_custom_patterns(_read_patterns(args.file))
    json.dump({"ok": report.ok, **report.to_dict()}, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    if not report.ok:
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="fieldguard",
        description="Sensitive-data detection and masking for text fields",
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG, help="YAML config file")
    parser.add_argument("--patterns", default="", help="JSON file of custom patterns")
    parser.add_argument("--field-name", default="", help="Name/id of the field the text came from")
    parser.add_argument("--field-type", default="", help="Input type of the field (text, email, tel, ...)")
    parser.add_argument("--placeholder", default="", help="Placeholder text of the field")
    parser.add_argument("--label", default="", help="Label text of the field")
    parser.add_argument("--hide-values", action="store_true", help="Do not print matched values")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("scan", help="Scan text (stdin) and print spans as JSON")
    sub.add_parser("mask", help="Mask detected values in text (stdin)")
    p_patterns = sub.add_parser("patterns", help="Validate a custom pattern file")
    p_patterns.add_argument("file", help="JSON list of pattern definitions")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cmds = {
        "scan": cmd_scan,
        "mask": cmd_mask,
        "patterns": cmd_patterns,
    }
    cmds[args.command](args)


if __name__ == "__main__":
    main()
