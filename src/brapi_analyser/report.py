"""Turn analysis reports into table rows, summaries and report files.

One :class:`~brapi_analyser.models.AnalysisReport` becomes one row per
validation message (a single row with empty message columns when the
response conformed). A short-circuited request shows its error key,
level and message in the message columns instead.
"""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from pathlib import Path

from brapi_analyser.analyser.executor import PRE_EXECUTION, TRANSPORT
from brapi_analyser.exceptions import ConfigurationError
from brapi_analyser.models import AnalysisReport, ValidationLevel

REPORT_HEADERS = [
    "Path",
    "Method",
    "Status Code",
    "Duration",
    "Message Key",
    "Message Level",
    "Message",
]

SUMMARY_HEADERS = [
    "Entity",
    "Requests",
    "2xx",
    "Pre-Execution",
    "Transport",
    "Errors",
    "Warnings",
    "Info",
]

SPECIAL_ENTITY = "(special)"


@dataclass
class EntitySummary:
    entity_name: str
    requests: int = 0
    successful: int = 0
    pre_execution: int = 0
    transport: int = 0
    errors: int = 0
    warnings: int = 0
    infos: int = 0

    def row(self) -> list[str]:
        return [
            self.entity_name,
            str(self.requests),
            str(self.successful),
            str(self.pre_execution),
            str(self.transport),
            str(self.errors),
            str(self.warnings),
            str(self.infos),
        ]


def report_rows(reports: Iterable[AnalysisReport]) -> list[list[str]]:
    """Flatten *reports* into rows matching :data:`REPORT_HEADERS`."""
    rows: list[list[str]] = []
    for report in reports:
        prefix = [
            report.uri or report.request.path_template,
            report.request.method.value.upper(),
            str(report.status_code) if report.status_code is not None else "",
            f"{report.elapsed.total_seconds():.3f}s",
        ]
        if report.has_error:
            level = report.error_level.value if report.error_level else ""
            rows.append(prefix + [report.error_key or "", level, report.error_message or ""])
        for message in report.validation_messages:
            rows.append(prefix + [message.key, message.level.value, message.message])
        if not report.has_error and not report.validation_messages:
            rows.append(prefix + ["", "", ""])
    return rows


def summarise(reports: Iterable[AnalysisReport]) -> list[EntitySummary]:
    """Count requests, outcomes and messages per entity, in first-seen order."""
    summaries: dict[str, EntitySummary] = {}
    for report in reports:
        name = report.request.entity_name or SPECIAL_ENTITY
        summary = summaries.setdefault(name, EntitySummary(entity_name=name))
        summary.requests += 1
        if report.is_successful:
            summary.successful += 1
        if report.error_key == PRE_EXECUTION:
            summary.pre_execution += 1
        elif report.error_key == TRANSPORT:
            summary.transport += 1
        summary.errors += len(report.messages_at(ValidationLevel.ERROR))
        summary.warnings += len(report.messages_at(ValidationLevel.WARN))
        summary.infos += len(report.messages_at(ValidationLevel.INFO))
    return list(summaries.values())


def has_errors(reports: Iterable[AnalysisReport]) -> bool:
    """Whether any report carries an ERROR-level message or error."""
    return any(
        report.error_level == ValidationLevel.ERROR or report.messages_at(ValidationLevel.ERROR)
        for report in reports
    )


def write_report(path: str | Path, reports: list[AnalysisReport]) -> Path:
    """Write the report table to *path*.

    The format follows the suffix: ``.json`` writes an array of objects,
    ``.tsv`` tab-separated values, anything else CSV.

    Raises:
        ConfigurationError: If the file can not be written.
    """
    target = Path(path).expanduser()
    rows = report_rows(reports)
    try:
        if target.suffix.lower() == ".json":
            records = [dict(zip(REPORT_HEADERS, row)) for row in rows]
            target.write_text(json.dumps(records, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        else:
            delimiter = "\t" if target.suffix.lower() == ".tsv" else ","
            with target.open("w", encoding="utf-8", newline="") as handle:
                writer = csv.writer(handle, delimiter=delimiter)
                writer.writerow(REPORT_HEADERS)
                writer.writerows(rows)
    except OSError as exc:
        raise ConfigurationError(f"Cannot write report to {target}: {exc}") from exc
    return target


def summary_records(reports: Iterable[AnalysisReport]) -> list[dict[str, object]]:
    return [asdict(summary) for summary in summarise(reports)]
