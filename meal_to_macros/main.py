from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

from loguru import logger

from .cache import TTLCache
from .candidates import build_candidates
from .catalog import CatalogError, FatSecretClient
from .config import REQUIRED_KEYS, Config, Settings, Vocabulary, DEFAULT_VOCABULARY
from .generative import OpenAIGenerativeService
from .report import ItemReport, build_report
from .resolve import Resolver

VERSION = "0.1.0"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="meal-to-macros")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")

    sub = p.add_subparsers(dest="cmd", required=False)

    p_config = sub.add_parser("config", help="Config commands")
    sub_config = p_config.add_subparsers(dest="config_cmd", required=True)

    sub_config.add_parser("keys", help="List required secret keys")

    p_check = sub_config.add_parser("check", help="Validate that secrets are filled")
    p_check.add_argument("--source", choices=("env", "infisical"), default="env")
    p_check.add_argument("--env", default="dev", help="Infisical environment")

    sub_config.add_parser("show", help="Print effective thresholds (M2M_* overrides applied)")

    p_resolve = sub.add_parser("resolve", help="Resolve one food description to nutrition")
    p_resolve.add_argument("text", help="e.g. '400g chicken breast'")
    p_resolve.add_argument("--debug", action="store_true", help="Bypass cache and include the decision trace")
    _add_source_args(p_resolve)

    p_batch = sub.add_parser("batch", help="Resolve one description per line of a file")
    p_batch.add_argument("file", help="Text file, one food per line ('-' for stdin)")
    p_batch.add_argument("--out", default="artifacts/run_report.json")
    _add_source_args(p_batch)

    p_catalog = sub.add_parser("catalog", help="Catalog commands")
    sub_catalog = p_catalog.add_subparsers(dest="catalog_cmd", required=True)

    p_search = sub_catalog.add_parser("search", help="Search the catalog and show parsed candidates")
    p_search.add_argument("query")
    p_search.add_argument("--limit", type=int, default=10, help="Max results")
    p_search.add_argument("--source", choices=("env", "infisical"), default="env")
    p_search.add_argument("--env", default="dev")

    return p


def _add_source_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--source", choices=("env", "infisical"), default="env", help="Where secrets come from")
    p.add_argument("--env", default="dev", help="Infisical environment")
    p.add_argument("--vocab", default=None, help="JSON file extending brand/dish/variant word lists")


def _load_config(args) -> Config:
    if args.source == "infisical":
        return Config.load_from_infisical(env=args.env)
    return Config.load_from_env()


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def build_resolver(cfg: Config, settings: Settings, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> Resolver:
    return Resolver(
        catalog=FatSecretClient(
            client_id=cfg.fatsecret_client_id,
            client_secret=cfg.fatsecret_client_secret,
            timeout_s=settings.http_timeout_s,
        ),
        generative=OpenAIGenerativeService(
            api_key=cfg.openai_api_key,
            model=cfg.openai_model,
            timeout_s=settings.llm_timeout_s,
        ),
        cache=TTLCache(settings.cache_ttl_s),
        vocabulary=vocabulary,
        settings=settings,
    )


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    _configure_logging(args.verbose)

    if args.version:
        print(VERSION)
        return 0

    if args.cmd is None:
        p.print_help()
        return 0

    if args.cmd == "config":
        if args.config_cmd == "keys":
            for k in REQUIRED_KEYS:
                print(k)
            return 0

        if args.config_cmd == "check":
            # Intentionally do not print secret values
            _load_config(args)
            print(f"OK: secrets present in {args.source}")
            return 0

        if args.config_cmd == "show":
            print(json.dumps(asdict(Settings.from_env()), indent=2))
            return 0

    if args.cmd == "catalog":
        cfg = _load_config(args)
        client = FatSecretClient(client_id=cfg.fatsecret_client_id, client_secret=cfg.fatsecret_client_secret)
        try:
            candidates = build_candidates(client.search(args.query, max_results=args.limit))
        except CatalogError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1
        if not candidates:
            print("No parseable results found.")
            return 1
        for i, c in enumerate(candidates, 1):
            print(f"{i}. {c.display_name}")
            print(f"   {c.description}")
            print(f"   per_grams={c.per_grams}  per_ml={c.per_ml}  pack_grams={c.pack_grams}")
        return 0

    if args.cmd in ("resolve", "batch"):
        cfg = _load_config(args)
        vocabulary = Vocabulary.from_json(args.vocab) if args.vocab else DEFAULT_VOCABULARY
        resolver = build_resolver(cfg, Settings.from_env(), vocabulary)

        if args.cmd == "resolve":
            result = resolver.resolve(args.text, debug=args.debug)
            print(json.dumps(result.to_dict(), indent=2))
            return 0

        return _run_batch(args, resolver)

    raise RuntimeError("unreachable")


def _read_lines(path: str) -> list[str]:
    if path == "-":
        raw = sys.stdin.read().splitlines()
    else:
        raw = Path(path).read_text().splitlines()
    return [ln.strip() for ln in raw if ln.strip() and not ln.lstrip().startswith("#")]


def _run_batch(args, resolver: Resolver) -> int:
    lines = _read_lines(args.file)

    print(f"Resolving {len(lines)} items.")
    reports: list[ItemReport] = []
    for idx, raw in enumerate(lines, 1):
        result = resolver.resolve(raw)
        item = ItemReport.from_result(raw, result)
        print(f"-> [{idx}/{len(lines)}] {raw}: {item.calories:g} kcal ({item.status})")
        reports.append(item)

    report = build_report(reports)
    print("\n" + report.summary_text())
    path = report.write_json(args.out)
    print(f"\nReport written to {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
