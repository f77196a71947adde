#!/usr/bin/env python3
"""
Lead Inbox CLI
Command-line tool for checking GitHub access and exporting leads
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import structlog

from services.export.formatter import to_csv, to_json
from services.export.mapper import filter_rows, rows_from_issues
from services.ingest.client import GitHubAPIError, GitHubIssuesClient
from services.ingest.config import ConfigError, Settings
from shared.schemas.lead import ExportRow

logger = structlog.get_logger()


def render(rows: list[ExportRow], fmt: str) -> str:
    if fmt == "csv":
        return to_csv(rows)
    return json.dumps(to_json(rows), ensure_ascii=False, indent=2)


def write_output(text: str, output_file: Optional[str]):
    if output_file:
        # utf-8-sig would add a second BOM to CSV output
        Path(output_file).write_text(text, encoding="utf-8", newline="")
        print(f"   Saved to {output_file}")
    else:
        sys.stdout.write(text)


async def netcheck(settings: Settings) -> bool:
    """Check GitHub reachability and the remaining rate limit"""
    print(f"Checking GitHub access for {settings.repo_full_name}...")
    client = GitHubIssuesClient(settings)
    try:
        core = await client.rate_limit()
        print(f"✅ GitHub reachable: {core.get('remaining')}/{core.get('limit')} requests left")
        return True
    except GitHubAPIError as e:
        print(f"❌ GitHub check failed ({e.status_code}): {e.detail[:200]}")
        return False
    finally:
        await client.close()


async def export_leads(
    settings: Settings,
    fmt: str,
    site: Optional[str],
    consultation_type: Optional[str],
    output_file: Optional[str],
) -> int:
    """Fetch all lead issues and write them as CSV or JSON"""
    print(f"Exporting leads from {settings.repo_full_name}...", file=sys.stderr)
    client = GitHubIssuesClient(settings)
    try:
        raw_issues = await client.list_issues()
    finally:
        await client.close()

    rows = filter_rows(
        rows_from_issues(raw_issues, settings.default_site),
        site=site,
        consultation_type=consultation_type,
    )
    print(f"✅ Decoded {len(rows)} leads from {len(raw_issues)} issues", file=sys.stderr)
    write_output(render(rows, fmt), output_file)
    return len(rows)


def decode_file(input_file: str, fmt: str, output_file: Optional[str], default_site: str) -> int:
    """Decode a JSON dump of issues without calling GitHub"""
    with open(input_file, "r", encoding="utf-8") as f:
        data = json.load(f)

    # Handle both list and {"items": [...]} format
    if isinstance(data, dict) and "items" in data:
        raw_issues = data["items"]
    elif isinstance(data, list):
        raw_issues = data
    else:
        print("❌ Invalid input format", file=sys.stderr)
        return 0

    rows = rows_from_issues(raw_issues, default_site)
    write_output(render(rows, fmt), output_file)
    return len(rows)


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(description="Lead Inbox CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Netcheck command
    subparsers.add_parser("netcheck", help="Check GitHub access and rate limit")

    # Export command
    export_parser = subparsers.add_parser("export", help="Export leads from GitHub")
    export_parser.add_argument("--format", choices=["csv", "json"], default="csv")
    export_parser.add_argument("--site", help="Exact site filter")
    export_parser.add_argument("--type", choices=["phone", "online"], help="Consultation type filter")
    export_parser.add_argument("--output", "-o", help="Output file (stdout when omitted)")

    # Decode command
    decode_parser = subparsers.add_parser("decode", help="Decode a JSON dump of issues offline")
    decode_parser.add_argument("input", help="JSON file with a list of issues")
    decode_parser.add_argument("--format", choices=["csv", "json"], default="json")
    decode_parser.add_argument("--output", "-o", help="Output file (stdout when omitted)")
    decode_parser.add_argument("--default-site", default="unknown")

    args = parser.parse_args(argv)

    if args.command == "decode":
        decode_file(args.input, args.format, args.output, args.default_site)
        return

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(2)

    if args.command == "netcheck":
        success = asyncio.run(netcheck(settings))
        sys.exit(0 if success else 1)

    elif args.command == "export":
        try:
            asyncio.run(export_leads(settings, args.format, args.site, args.type, args.output))
        except GitHubAPIError as e:
            logger.error("Export failed", status=e.status_code, error=e.message)
            sys.exit(1)


if __name__ == "__main__":
    main()
