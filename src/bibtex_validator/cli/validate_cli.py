#!/usr/bin/env python3
"""CLI for the bibliography validator.

Checks every entry of one or more .bib files against external metadata
providers and reports year, title, author and DOI discrepancies.

Usage:
    bibtex-validate refs.bib
    bibtex-validate refs.bib --strict --report report.json
    bibtex-validate *.bib --no-zenodo --keys 'smith*' --verbose

Exit codes:
    0   no errors (warnings and misses allowed unless --strict)
    1   at least one ERROR or MALFORMED entry (with --strict also WARN / NOT_FOUND)
    2   invalid configuration or unreadable input
    130 interrupted
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from typing import Any

from bibtex_validator.config import ValidatorConfig
from bibtex_validator.engine import BibValidator
from bibtex_validator.exceptions import ConfigurationError
from bibtex_validator.loader import BibLoader
from bibtex_validator.providers import DEFAULT_PROVIDER_ORDER
from bibtex_validator.report import format_report

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def _csv(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    p = argparse.ArgumentParser(
        prog="bibtex-validate",
        description="Validate BibTeX entries against academic metadata providers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bibtex-validate refs.bib
  bibtex-validate refs.bib --strict --report report.json
  bibtex-validate *.bib --providers crossref,dblp --keys 'smith2019*'

Environment Variables:
  S2_API_KEY   Semantic Scholar API key (higher rate limits)
""",
    )
    p.add_argument("bibfiles", nargs="+", help="BibTeX files to validate")
    p.add_argument("--config", dest="config_file", metavar="FILE", help="YAML configuration file")
    p.add_argument("--strict", "-s", action="store_true", default=None, help="Fail on warnings and NOT_FOUND too")
    p.add_argument("--verbose", "-v", action="store_true", help="List every entry and provider outcome")
    p.add_argument(
        "--keys",
        type=_csv,
        action="extend",
        metavar="KEYS",
        help="Only validate these citation keys (comma-separated, glob patterns allowed)",
    )

    providers = p.add_argument_group("providers")
    providers.add_argument(
        "--providers",
        type=_csv,
        metavar="IDS",
        help=f"Comma-separated providers to enable (default: {','.join(DEFAULT_PROVIDER_ORDER)})",
    )
    for name in DEFAULT_PROVIDER_ORDER:
        providers.add_argument(
            f"--no-{name}", dest="disable", action="append_const", const=name, help=f"Disable {name}"
        )
    providers.add_argument("--s2-api-key", metavar="KEY", help="Semantic Scholar API key (or set S2_API_KEY)")
    providers.add_argument("--mailto", metavar="EMAIL", help="Contact address for OpenAlex's polite pool")

    run = p.add_argument_group("concurrency")
    run.add_argument("--workers", type=int, dest="concurrency_limit", metavar="N", help="Max in-flight calls (default: 20)")
    run.add_argument(
        "--per-provider", type=int, dest="per_provider_limit", metavar="N", help="Max in-flight calls per provider (default: 4)"
    )
    run.add_argument("--timeout", type=float, dest="call_timeout", metavar="SEC", help="Per-call timeout (default: 20)")
    run.add_argument("--retry-backoff", type=float, metavar="SEC", help="Delay before the single retry (default: 1)")

    cache = p.add_argument_group("cache")
    cache.add_argument("--no-cache", action="store_true", help="Disable the response cache")
    cache.add_argument("--cache-dir", metavar="DIR", help="Cache directory (default: ~/.cache/bibtex-validator)")
    cache.add_argument("--cache-ttl-days", type=float, metavar="DAYS", help="Cache lifetime in days (default: 7)")
    cache.add_argument("--clear-cache", action="store_true", help="Remove all cached outcomes before running")

    out = p.add_argument_group("output")
    out.add_argument("--report", "-r", metavar="FILE", help="Write JSON report to FILE")
    out.add_argument("--jsonl", metavar="FILE", help="Write JSONL report to FILE")
    return p


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Config values given on the command line."""
    values: dict[str, Any] = {}
    for name in (
        "strict",
        "concurrency_limit",
        "per_provider_limit",
        "call_timeout",
        "retry_backoff",
        "cache_dir",
        "cache_ttl_days",
        "s2_api_key",
        "mailto",
    ):
        value = getattr(args, name)
        if value is not None:
            values[name] = value
    if args.keys:
        values["key_filter"] = args.keys
    if args.providers is not None:
        values["enabled_providers"] = args.providers
    if args.no_cache:
        values["cache_enabled"] = False
    return values


def load_config(args: argparse.Namespace) -> ValidatorConfig:
    """File config first, then command-line overrides."""
    config = ValidatorConfig.from_yaml(args.config_file) if args.config_file else ValidatorConfig()
    config = replace(config, **_overrides(args))
    if args.disable:
        config.enabled_providers = [n for n in config.enabled_providers if n not in set(args.disable)]
    return config


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    logger = logging.getLogger("bibtex_validator")

    try:
        config = load_config(args)
        config.validate()
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_USAGE

    loader = BibLoader()
    entries = []
    for path in args.bibfiles:
        try:
            loaded = loader.load_file(path)
        except FileNotFoundError:
            logger.error("File not found: %s", path)
            return EXIT_USAGE
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Cannot read %s: %s", path, e)
            return EXIT_USAGE
        logger.info("Loaded %d entries from %s", len(loaded), path)
        entries.extend(loaded)

    if not entries:
        logger.warning("No entries found in input files")
        return EXIT_OK

    validator = BibValidator(config, logger=logger)
    with validator:
        if args.clear_cache:
            removed = validator.cache.clear()
            logger.info("Removed %d cached outcomes", removed)
        try:
            report = validator.validate(entries)
        except KeyboardInterrupt:
            logger.warning("Interrupted")
            return EXIT_INTERRUPTED

    print(format_report(report, verbose=args.verbose))

    if args.report:
        with open(args.report, "w", encoding="utf-8") as f:
            json.dump(report.to_dict(verbose=args.verbose), f, indent=2, ensure_ascii=False)
        logger.info("JSON report written to %s", args.report)
    if args.jsonl:
        with open(args.jsonl, "w", encoding="utf-8") as f:
            for line in report.to_jsonl():
                f.write(line + "\n")
        logger.info("JSONL report written to %s", args.jsonl)

    code = report.exit_code(strict=config.strict)
    if code == EXIT_FAILURES and config.strict:
        logger.warning("Strict mode: failing on warnings and unmatched entries")
    return code


if __name__ == "__main__":
    sys.exit(main())
