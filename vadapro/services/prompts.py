"""Prompt construction for survey data analysis.

Two prompt shapes exist:

- lightweight: the CSV was previously uploaded to the provider and is attached
  by file reference, so the prompt carries only the query and compact context
- full: no file reference, so the prompt embeds the CSV shape, chart context and
  the (sanitized) statistics blob as text

Both size the expected answer from the query itself.
"""

import json
import re
from typing import Any

from vadapro.models.api import AnalysisContext

SIMPLE_QUERY_PATTERN = re.compile(r"what|name|how many|which|when|where", re.IGNORECASE)
SIMPLE_QUERY_MAX_LENGTH = 50

# Key fragments stripped from statistics and CSV summaries before prompting
SENSITIVE_FIELDS = ("email", "phone", "address", "ssn", "id", "_id", "password")


def is_simple_query(query: str) -> bool:
    """Short factual questions get a one or two sentence answer."""
    return len(query) < SIMPLE_QUERY_MAX_LENGTH and bool(SIMPLE_QUERY_PATTERN.search(query))


def max_words_for(query: str) -> int:
    if len(query) < 30:
        return 50
    if len(query) < 100:
        return 150
    return 300


def sanitize_data(data: Any) -> Any:
    """Drop top-level keys that look like PII. Shallow and best-effort only."""
    if isinstance(data, dict):
        return {
            key: value
            for key, value in data.items()
            if not any(field in str(key).lower() for field in SENSITIVE_FIELDS)
        }
    if isinstance(data, list):
        return list(data)
    return data


def _format_statistics(statistics: dict[str, Any] | None) -> str:
    if not statistics:
        return ""
    return f"STATISTICS:\n{json.dumps(statistics, indent=2, default=str)}\n\n"


def _format_context(
    context: AnalysisContext | None, header: str, labels: dict[str, str]
) -> str:
    if context is None:
        return ""
    lines = []
    for attr, label in labels.items():
        value = getattr(context, attr, None)
        if value:
            lines.append(f"- {label}: {value}")
    if not lines:
        return ""
    return f"{header}\n" + "\n".join(lines) + "\n\n"


_LIGHTWEIGHT_CONTEXT_LABELS = {
    "source_file_name": "File",
    "entry_name": "Process",
    "response_count": "Responses",
    "program_name": "Program",
    "organization_name": "Organization",
    "year": "Year",
}

_FULL_CONTEXT_LABELS = {
    "source_file_name": "CSV File",
    "entry_name": "Process Name",
    "process_id": "Process ID",
    "response_count": "Responses",
    "program_name": "Program",
    "organization_name": "Organization",
    "year": "Year",
}


def build_lightweight_prompt(
    query: str,
    statistics: dict[str, Any] | None,
    context: AnalysisContext | None,
) -> str:
    """Prompt used when the CSV is attached by provider file reference."""
    prompt = (
        "You are analyzing the CSV file that was uploaded. "
        f"Answer this question concisely:\n\nQUERY: {query}\n\n"
    )
    prompt += _format_context(context, "CONTEXT:", _LIGHTWEIGHT_CONTEXT_LABELS)
    prompt += _format_statistics(statistics)

    if is_simple_query(query):
        prompt += "Answer in 1-2 sentences. State only what was asked.\n\nYour response:"
    else:
        prompt += (
            f"Provide focused analysis (max {max_words_for(query)} words). "
            "Use bullets only for multiple points.\n\nYour response:"
        )
    return prompt


def build_context_prompt(
    query: str,
    statistics: dict[str, Any] | None,
    chart_config: dict[str, Any] | None,
    csv_summary: dict[str, Any] | None,
    context: AnalysisContext | None,
) -> str:
    """Prompt used when no uploaded file is available.

    Raw CSV text is deliberately not embedded; the summary shape and the
    precomputed statistics carry the data.
    """
    prompt = (
        "You are a concise data analyst. Answer directly matching question complexity. "
        "For factual questions, give brief answers. For analysis, stay focused.\n\n"
        f"USER QUERY: {query}\n\n"
    )
    prompt += _format_context(context, "PROCESS INFO:", _FULL_CONTEXT_LABELS)

    if csv_summary:
        rows = csv_summary.get("totalRows", "unknown")
        columns = csv_summary.get("totalColumns", "unknown")
        prompt += f"DATA: {rows} rows, {columns} columns\n"
        column_names = csv_summary.get("columns")
        if column_names:
            prompt += f"Columns: {', '.join(str(c) for c in column_names)}\n"
        prompt += "\n"

    if chart_config:
        prompt += f"CHART:\n{json.dumps(chart_config, indent=2, default=str)}\n\n"

    prompt += _format_statistics(statistics)

    if is_simple_query(query):
        prompt += (
            "Answer in 1-2 sentences. State only what was asked. No elaboration."
            "\n\nYour response:"
        )
    else:
        max_words = max_words_for(query)
        depth = "brief" if max_words < 100 else "focused"
        prompt += (
            f"Provide {depth} analysis (max {max_words} words). "
            "Use bullets only for multiple points. No generic advice.\n\nYour response:"
        )
    return prompt
