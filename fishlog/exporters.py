"""
Export helpers for the fishing log.

- JSON: pretty printed, catches nested
- CSV: 1 row per outing, catches flattened to "species x count" text
- Markdown: a table for pasting into notes
"""

from __future__ import annotations
import csv
import io
import json
from typing import List, Dict, Any

# Column order shared by CSV and Markdown
LOG_COLUMNS = [
    "outing_id", "outing_date", "location_name", "region",
    "worth_returning", "mvp_lure", "total_caught",
]


def _catch_summary(catches: List[Dict[str, Any]]) -> str:
    # [{"species": "Carp", "count": 2}] -> "Carp x2"
    return "; ".join(f"{c['species']} x{c['count']}" for c in catches)


def export_json(entries: List[Dict[str, Any]]) -> str:
    return json.dumps(entries, indent=2, default=str)


def export_csv(entries: List[Dict[str, Any]]) -> str:
    """One row per outing, with a readable catches column and the field notes last."""
    if not entries:
        return ""

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(LOG_COLUMNS + ["catches", "field_notes"])
    for e in entries:
        writer.writerow(
            [e.get(c) for c in LOG_COLUMNS]
            + [_catch_summary(e.get("catches") or []), e.get("field_notes") or ""]
        )
    return output.getvalue()


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    # pipes and newlines would break the table
    return str(value).replace("|", "\\|").replace("\n", " ")


def export_markdown(entries: List[Dict[str, Any]]) -> str:
    """
    Markdown report. Field notes are left out to keep the table readable;
    the catches column carries the per-species summary.
    """
    if not entries:
        return "# Fishing Log\n\n_No outings._\n"

    cols = LOG_COLUMNS + ["catches"]
    lines = [
        "# Fishing Log",
        "",
        "| " + " | ".join(cols) + " |",
        "| " + " | ".join(["---"] * len(cols)) + " |",
    ]
    for e in entries:
        cells = [_cell(e.get(c)) for c in LOG_COLUMNS]
        cells.append(_cell(_catch_summary(e.get("catches") or [])))
        lines.append("| " + " | ".join(cells) + " |")

    total = sum(e.get("total_caught") or 0 for e in entries)
    lines += ["", f"_{len(entries)} outings, {total} fish._", ""]
    return "\n".join(lines)
