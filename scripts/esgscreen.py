"""Command line interface for the ESG screening workflow."""
from __future__ import annotations

import argparse
import json
import logging
import logging.config
import os
from datetime import date
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

from esgscreen import StageContext, StageRunner, bootstrap, create_default_context, registry
from esgscreen.catalog.criteria import CriteriaConfigError, CriteriaStore
from esgscreen.catalog.imports import CSVImporter, CSVImportError
from esgscreen.catalog.portfolios import PortfolioStore
from esgscreen.core.utils import pipeline_version
from esgscreen.export.generators import ExportGenerator
from esgscreen.rules.expression import format_expression, parse_expression
from esgscreen.screening import pipeline
from esgscreen.screening.repository import ScreeningRepository
from esgscreen.settings import Settings


def load_environment() -> None:
    candidates = []
    if env_file := os.getenv("ENV_FILE"):
        candidates.append(Path(env_file))
    candidates.append(Path(".env"))

    for path in candidates:
        if not path.exists():
            continue
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip().strip('"')
                os.environ.setdefault(key, value)


load_environment()

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure logging from an INI file or fall back to basic configuration."""

    config_candidates = []
    if config_env := os.getenv("LOGGING_CONFIG"):
        config_candidates.append(Path(config_env))
    config_candidates.append(Path("logging.ini"))

    for config_path in config_candidates:
        if not config_path.exists():
            continue
        if config_path.suffix.lower() not in {".ini", ".cfg"}:
            print(
                f"Skipping unsupported logging config {config_path}. Using default logging configuration."
            )
            continue
        try:
            logging.config.fileConfig(config_path, disable_existing_loggers=False)
            return
        except (OSError, KeyError, ValueError) as exc:
            print(
                f"Failed to load logging config {config_path}: {exc}. Falling back to basic logging."
            )
            break

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


configure_logging()
bootstrap()
runner = StageRunner(registry)

EXPECTED_ERRORS = (
    pipeline.NotFoundError,
    pipeline.AccessDeniedError,
    pipeline.ScreeningError,
    CriteriaConfigError,
    CSVImportError,
    ValueError,
)


def _context(as_of: Optional[date] = None) -> tuple[Settings, StageContext]:
    settings = Settings.load()
    settings.ensure_directories()
    context = create_default_context(settings, as_of=as_of)
    return settings, context


def _settings() -> Settings:
    settings = Settings.load()
    settings.ensure_directories()
    return settings


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _run_pipeline(stages: Optional[Iterable[str]], as_of: Optional[date] = None) -> None:
    settings, context = _context(as_of)
    resolved = runner.resolve(None if stages is None else list(stages))
    logger.info(
        "Running esgscreen %s stages %s as of %s with database %s and output %s.",
        pipeline_version(),
        resolved,
        context.run_date.isoformat(),
        settings.sqlite_path,
        settings.output_dir,
    )
    runner.run(resolved, context)


def _single_stage(stage: str, as_of: Optional[date] = None) -> None:
    _, context = _context(as_of)
    runner.run([stage], context)


def command_run(args: argparse.Namespace) -> None:
    stages: Optional[List[str]] = args.stages if args.stages else None
    _run_pipeline(stages, args.as_of)


def command_stages(_: argparse.Namespace) -> None:
    print("Registered stages:")
    for definition in registry.items():
        print(f"- {definition.name}: {definition.description} ({definition.module})")


def command_load(args: argparse.Namespace) -> None:
    _single_stage("load", args.as_of)


def command_screen(args: argparse.Namespace) -> None:
    _single_stage("screen", args.as_of)


def command_export(args: argparse.Namespace) -> None:
    if not args.result_id:
        _single_stage("export")
        return
    settings = _settings()
    result = pipeline.get_screening_result(args.result_id, sqlite_path=settings.sqlite_path)
    summary = ExportGenerator(settings.sqlite_path, settings.output_dir).export_result(result)
    for artifact in summary.files:
        print(artifact)


def command_screen_portfolio(args: argparse.Namespace) -> None:
    settings = _settings()
    result = pipeline.screen_portfolio(
        args.portfolio_id,
        args.criteria_set_id,
        sqlite_path=settings.sqlite_path,
        as_of=args.as_of,
        weight_tolerance=settings.weight_tolerance,
    )
    _print_json(result.to_dict())


def command_screen_company(args: argparse.Namespace) -> None:
    settings = _settings()
    result = pipeline.screen_company(
        args.company_id,
        args.criteria_set_id,
        sqlite_path=settings.sqlite_path,
        as_of=args.as_of,
        persist=args.save,
    )
    _print_json(result.to_dict())


def command_screen_companies(args: argparse.Namespace) -> None:
    settings = _settings()
    if args.all:
        result = pipeline.screen_universe(
            args.criteria_set_id,
            sqlite_path=settings.sqlite_path,
            as_of=args.as_of,
            persist=args.save,
        )
    else:
        if not args.company_ids:
            raise ValueError("Provide at least one company id or --all")
        result = pipeline.screen_companies(
            args.company_ids,
            args.criteria_set_id,
            sqlite_path=settings.sqlite_path,
            as_of=args.as_of,
            persist=args.save,
        )
    _print_json(result.to_dict())


def command_screen_sector(args: argparse.Namespace) -> None:
    settings = _settings()
    result = pipeline.screen_sector(
        args.sector,
        args.criteria_set_id,
        sqlite_path=settings.sqlite_path,
        as_of=args.as_of,
        persist=args.save,
    )
    _print_json(result.to_dict())


def command_screen_region(args: argparse.Namespace) -> None:
    settings = _settings()
    result = pipeline.screen_region(
        args.region,
        args.criteria_set_id,
        sqlite_path=settings.sqlite_path,
        as_of=args.as_of,
        persist=args.save,
    )
    _print_json(result.to_dict())


def command_validate(args: argparse.Namespace) -> None:
    settings = _settings()
    report = pipeline.validate_coverage(
        args.criteria_set_id,
        sqlite_path=settings.sqlite_path,
        portfolio_id=args.portfolio_id,
        company_ids=args.company_ids or None,
        as_of=args.as_of,
    )
    _print_json(report.to_dict())


def command_normalize_weights(args: argparse.Namespace) -> None:
    settings = _settings()
    normalization = PortfolioStore(settings.sqlite_path).normalize_weights(args.portfolio_id)
    print(normalization.message)
    for holding in normalization.portfolio.holdings:
        print(f"  {holding.company.name}: {holding.weight:.2f}%")


def command_parse(args: argparse.Namespace) -> None:
    condition = parse_expression(args.expression)
    if condition is None:
        raise ValueError(f"Cannot parse expression: {args.expression}")
    _print_json({**condition.to_dict(), "canonical": format_expression(condition)})


def command_results(args: argparse.Namespace) -> None:
    settings = _settings()
    headers = pipeline.list_screening_results(
        sqlite_path=settings.sqlite_path,
        portfolio_id=args.portfolio_id,
        criteria_set_id=args.criteria_set_id,
    )
    if not headers:
        print("No screening results stored.")
        return
    for header in headers:
        print(
            f"{header.id}  {header.screened_at:%Y-%m-%d %H:%M}  "
            f"{header.target.get('name') or header.target.get('type')}  "
            f"{header.criteria_set_name}  "
            f"{header.summary.passed}/{header.summary.total_holdings} passed "
            f"({header.summary.pass_rate}%)"
        )


def command_show_result(args: argparse.Namespace) -> None:
    settings = _settings()
    result = pipeline.get_screening_result(args.result_id, sqlite_path=settings.sqlite_path)
    _print_json(result.to_dict())


def command_delete_result(args: argparse.Namespace) -> None:
    settings = _settings()
    pipeline.delete_screening_result(args.result_id, sqlite_path=settings.sqlite_path)
    print(f"Deleted screening result {args.result_id}")


def command_criteria_sets(args: argparse.Namespace) -> None:
    settings = _settings()
    for criteria_set in ScreeningRepository(settings.sqlite_path).visible_criteria_sets(
        args.client_id
    ):
        scope = "global" if criteria_set.is_global else f"client {criteria_set.client_id}"
        print(
            f"{criteria_set.criteria_set_id}  {criteria_set.name} v{criteria_set.version}  "
            f"effective {criteria_set.effective_date.isoformat()}  ({scope}, "
            f"{len(criteria_set.rules)} rule(s))"
        )


def command_copy_criteria_set(args: argparse.Namespace) -> None:
    settings = _settings()
    copy = CriteriaStore(settings.sqlite_path).copy_criteria_set(
        args.criteria_set_id,
        args.client_id,
        name=args.name,
        version=args.version,
    )
    _print_json({**copy.to_dict(), "rules": len(copy.rules)})


def command_import(args: argparse.Namespace) -> None:
    settings = _settings()
    summary = CSVImporter(settings.sqlite_path).import_file(
        args.path,
        as_of=args.as_of or date.today(),
        portfolio_name=args.portfolio,
        client_id=args.client_id,
    )
    print(
        f"Imported {summary.successful_rows}/{summary.total_rows} row(s); "
        f"{summary.companies_created} company(ies) created, "
        f"{summary.parameters_created} parameter(s) created, "
        f"{summary.parameter_values_written} value(s) written"
    )
    if summary.portfolio_id:
        print(f"Portfolio {summary.portfolio_id} with {summary.holdings_created} holding(s)")
    for message in summary.errors:
        print(f"  error: {message}")
    for message in summary.warnings:
        print(f"  warning: {message}")


_RUN_DATE_HELP = "Run date used as the value cutoff, YYYY-MM-DD (default: today)."


def _add_as_of(
    parser: argparse.ArgumentParser,
    help: str = "Use parameter values dated on or before YYYY-MM-DD (default: latest).",
) -> None:
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help=help,
    )


def _add_save(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--save", action="store_true", help="Persist the screening result.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the ESG screening workflow.")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    parser_run = subparsers.add_parser("run", help="Run the full pipeline")
    parser_run.add_argument(
        "stages",
        nargs="*",
        help="Optional ordered list of stages to run instead of all registered stages.",
    )
    _add_as_of(parser_run, _RUN_DATE_HELP)
    parser_run.set_defaults(func=command_run)

    parser_stages = subparsers.add_parser("stages", help="List registered stages")
    parser_stages.set_defaults(func=command_stages)

    for name, func in (("load", command_load), ("screen", command_screen)):
        sub = subparsers.add_parser(name, help=f"Run only the {name} stage")
        _add_as_of(sub, _RUN_DATE_HELP)
        sub.set_defaults(func=func)

    parser_export = subparsers.add_parser(
        "export", help="Run the export stage, or export one stored result"
    )
    parser_export.add_argument("--result-id", default=None)
    parser_export.set_defaults(func=command_export)

    sub = subparsers.add_parser("screen-portfolio", help="Screen one portfolio")
    sub.add_argument("portfolio_id")
    sub.add_argument("criteria_set_id")
    _add_as_of(sub)
    sub.set_defaults(func=command_screen_portfolio)

    sub = subparsers.add_parser("screen-company", help="Screen one company")
    sub.add_argument("company_id")
    sub.add_argument("criteria_set_id")
    _add_as_of(sub)
    _add_save(sub)
    sub.set_defaults(func=command_screen_company)

    sub = subparsers.add_parser("screen-companies", help="Screen a list of companies")
    sub.add_argument("criteria_set_id")
    sub.add_argument("company_ids", nargs="*")
    sub.add_argument("--all", action="store_true", help="Screen every known company.")
    _add_as_of(sub)
    _add_save(sub)
    sub.set_defaults(func=command_screen_companies)

    sub = subparsers.add_parser("screen-sector", help="Screen every company in a sector")
    sub.add_argument("sector")
    sub.add_argument("criteria_set_id")
    _add_as_of(sub)
    _add_save(sub)
    sub.set_defaults(func=command_screen_sector)

    sub = subparsers.add_parser("screen-region", help="Screen every company in a region")
    sub.add_argument("region")
    sub.add_argument("criteria_set_id")
    _add_as_of(sub)
    _add_save(sub)
    sub.set_defaults(func=command_screen_region)

    sub = subparsers.add_parser(
        "validate", help="Check parameter coverage before screening"
    )
    sub.add_argument("criteria_set_id")
    sub.add_argument("--portfolio-id", default=None)
    sub.add_argument("--company-ids", nargs="*", default=None)
    _add_as_of(sub)
    sub.set_defaults(func=command_validate)

    sub = subparsers.add_parser(
        "normalize-weights", help="Rescale a portfolio's weights to sum to 100%%"
    )
    sub.add_argument("portfolio_id")
    sub.set_defaults(func=command_normalize_weights)

    sub = subparsers.add_parser("parse", help="Parse a rule expression and print it")
    sub.add_argument("expression")
    sub.set_defaults(func=command_parse)

    sub = subparsers.add_parser("results", help="List stored screening results")
    sub.add_argument("--portfolio-id", default=None)
    sub.add_argument("--criteria-set-id", default=None)
    sub.set_defaults(func=command_results)

    sub = subparsers.add_parser("show-result", help="Print a stored screening result")
    sub.add_argument("result_id")
    sub.set_defaults(func=command_show_result)

    sub = subparsers.add_parser("delete-result", help="Delete a stored screening result")
    sub.add_argument("result_id")
    sub.set_defaults(func=command_delete_result)

    sub = subparsers.add_parser("criteria-sets", help="List criteria sets visible to a client")
    sub.add_argument("--client-id", default=None)
    sub.set_defaults(func=command_criteria_sets)

    sub = subparsers.add_parser(
        "copy-criteria-set", help="Copy a criteria set to a client's ownership"
    )
    sub.add_argument("criteria_set_id")
    sub.add_argument("client_id")
    sub.add_argument("--name", default=None)
    sub.add_argument("--version", default=None)
    sub.set_defaults(func=command_copy_criteria_set)

    sub = subparsers.add_parser("import", help="Import a CSV of companies and parameter values")
    sub.add_argument("path", type=Path)
    sub.add_argument("--portfolio", default=None, help="Portfolio name for the holdings.")
    sub.add_argument("--client-id", default=None)
    _add_as_of(sub, "Date recorded for the imported values (default: today).")
    sub.set_defaults(func=command_import)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler: Callable[[argparse.Namespace], None] = args.func
    try:
        handler(args)
    except EXPECTED_ERRORS as exc:
        print(f"Error: {exc}")
        return 2
    return 0


if __name__ == "__main__":  # pragma: no cover - entry point for CLI usage
    raise SystemExit(main())
