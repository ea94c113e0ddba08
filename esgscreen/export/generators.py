"""Utilities to produce CSV/Excel extracts of screening results."""
from __future__ import annotations

import csv
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence

from openpyxl import Workbook

from esgscreen.screening.engine import pass_rate
from esgscreen.screening.models import ScreeningResult
from esgscreen.screening.storage import ScreeningStore


@dataclass(slots=True)
class ExportSummary:
    """Details about the generated export files."""

    result_rows: int
    holding_rows: int
    rule_rows: int
    files: List[Path]


def history_row(result: ScreeningResult) -> Dict[str, object]:
    row: Dict[str, object] = {
        "Result ID": result.id,
        "Date": result.screened_at.strftime("%Y-%m-%d %H:%M:%S"),
        "As of Date": result.as_of_date.isoformat() if result.as_of_date else "",
        "Target": result.target.get("name") or result.target.get("type", ""),
        "Criteria Set": f"{result.criteria_set.name} {result.criteria_set.version}",
        "Total Holdings": result.summary.total_holdings,
        "Passed": result.summary.passed,
        "Failed": result.summary.failed,
        "Pass Rate": f"{result.summary.pass_rate}%",
    }
    if result.weights is not None:
        row["Excluded Weight"] = round(result.weights.excluded_weight, 4)
        row["Weight Warning"] = result.weights.warning or ""
    return row


def holding_rows(result: ScreeningResult) -> List[Dict[str, object]]:
    rows: List[Dict[str, object]] = []
    for entry in result.results:
        passed = [rule for rule in entry.rule_results if rule.passed]
        failed = [rule for rule in entry.rule_results if not rule.passed]
        total = len(entry.rule_results)
        rows.append(
            {
                "Result ID": result.id,
                "Company Name": entry.company.name,
                "Company ID": entry.company.company_id,
                "Status": "Passed" if entry.passed else "Failed",
                "Rules Passed": f"{len(passed)}/{total}",
                "Rules Failed": len(failed),
                "Failed Criteria": "; ".join(rule.rule_name for rule in failed) or "None",
                "Pass Rate": f"{pass_rate(len(passed), total)}%",
            }
        )
    return rows


def failed_holding_rows(result: ScreeningResult) -> List[Dict[str, object]]:
    """Companies rejected by at least one ``exclude`` rule."""

    rows: List[Dict[str, object]] = []
    for entry in result.results:
        if entry.passed:
            continue
        blocking = [
            rule for rule in entry.rule_results if not rule.passed and rule.severity.blocking
        ]
        rows.append(
            {
                "Result ID": result.id,
                "Company Name": entry.company.name,
                "Company ID": entry.company.company_id,
                "Status": "Failed",
                "Number of Failed Criteria": len(blocking),
                "Failed Criteria": "; ".join(rule.rule_name for rule in blocking),
                "Failure Reasons": "; ".join(rule.failure_reason or "N/A" for rule in blocking),
                "Total Rules Checked": len(entry.rule_results),
                "Passed Rules": sum(1 for rule in entry.rule_results if rule.passed),
            }
        )
    return rows


def detail_rows(result: ScreeningResult) -> List[Dict[str, object]]:
    """One row per company and rule."""

    rows: List[Dict[str, object]] = []
    for entry in result.results:
        for rule in entry.rule_results:
            rows.append(
                {
                    "Result ID": result.id,
                    "Company Name": entry.company.name,
                    "Company ID": entry.company.company_id,
                    "Company Status": "Passed" if entry.passed else "Failed",
                    "Rule Name": rule.rule_name,
                    "Rule Passed": "Yes" if rule.passed else "No",
                    "Severity": rule.severity.value,
                    "Actual Value": rule.actual_value,
                    "Threshold": rule.threshold or "",
                    "Failure Reason": rule.failure_reason or "N/A",
                }
            )
    return rows


def _file_stem(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "screening"


class ExportGenerator:
    """Create CSV/Excel artifacts from stored screening results."""

    def __init__(self, sqlite_path: Path, output_dir: Path) -> None:
        self.sqlite_path = sqlite_path
        self.output_dir = output_dir

    def generate(self, run_id: str) -> ExportSummary:
        """Generate CSV/Excel exports for every result of *run_id*."""

        results = ScreeningStore(self.sqlite_path).results_for_run(run_id)
        return self.write(results, f"esgscreen_{run_id}")

    def export_result(self, result: ScreeningResult) -> ExportSummary:
        name = result.target.get("name") or result.target.get("type", "screening")
        stem = f"{_file_stem(str(name))}-{result.screened_at.strftime('%Y-%m-%d')}-{result.id[:8]}"
        return self.write([result], stem)

    def write(self, results: Sequence[ScreeningResult], stem: str) -> ExportSummary:
        if not results:
            return ExportSummary(0, 0, 0, [])

        history = [history_row(result) for result in results]
        holdings = [row for result in results for row in holding_rows(result)]
        failed = [row for result in results for row in failed_holding_rows(result)]
        details = [row for result in results for row in detail_rows(result)]

        self.output_dir.mkdir(parents=True, exist_ok=True)
        history_csv = self.output_dir / f"{stem}_history.csv"
        holdings_csv = self.output_dir / f"{stem}_holdings.csv"
        details_csv = self.output_dir / f"{stem}_rules.csv"
        workbook_path = self.output_dir / f"{stem}.xlsx"

        self._write_csv(history_csv, history)
        self._write_csv(holdings_csv, holdings)
        self._write_csv(details_csv, details)
        self._write_workbook(
            workbook_path,
            {
                "Screening History": history,
                "All Holdings": holdings,
                "Failed Holdings": failed,
                "Detailed Results": details,
            },
        )
        return ExportSummary(
            result_rows=len(history),
            holding_rows=len(holdings),
            rule_rows=len(details),
            files=[history_csv, holdings_csv, details_csv, workbook_path],
        )

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------

    def _write_csv(self, path: Path, rows: Sequence[Mapping[str, object]]) -> None:
        fieldnames = self._determine_fieldnames(rows)
        with path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.DictWriter(handle, fieldnames=fieldnames)
            writer.writeheader()
            for row in rows:
                writer.writerow({key: self._cell(value) for key, value in row.items()})

    def _write_workbook(
        self, path: Path, sheets: Mapping[str, Sequence[Mapping[str, object]]]
    ) -> None:
        workbook = Workbook()
        first = True
        for title, rows in sheets.items():
            if first:
                worksheet = workbook.active
                worksheet.title = title
                first = False
            else:
                worksheet = workbook.create_sheet(title)
            self._write_sheet(worksheet, rows)
        workbook.save(path)

    def _write_sheet(self, worksheet, rows: Sequence[Mapping[str, object]]) -> None:
        from openpyxl.utils import get_column_letter

        fieldnames = self._determine_fieldnames(rows)
        if not fieldnames:
            fieldnames = ["message"]
            rows = [{"message": "No data available"}]
        worksheet.append(fieldnames)
        widths = [len(name) for name in fieldnames]
        for row in rows:
            values = [self._cell(row.get(name)) for name in fieldnames]
            worksheet.append(values)
            for index, value in enumerate(values):
                widths[index] = max(widths[index], len(str(value)) if value is not None else 0)
        for index, width in enumerate(widths, start=1):
            worksheet.column_dimensions[get_column_letter(index)].width = min(max(width + 2, 12), 60)

    # ------------------------------------------------------------------
    # Utility helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _cell(value: object) -> object:
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        if isinstance(value, bool):
            return "true" if value else "false"
        return value

    def _determine_fieldnames(self, rows: Iterable[Mapping[str, object]]) -> List[str]:
        fieldnames: List[str] = []
        for row in rows:
            for key in row.keys():
                if key not in fieldnames:
                    fieldnames.append(key)
        return fieldnames


__all__ = [
    "ExportGenerator",
    "ExportSummary",
    "detail_rows",
    "failed_holding_rows",
    "history_row",
    "holding_rows",
]
