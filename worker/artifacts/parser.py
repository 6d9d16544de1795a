"""Parsers for delimited-text and HTML report artifacts.

Both parsers are lenient: malformed input degrades to empty rows or
zero-valued fields and never raises, so one corrupted artifact cannot
break a report listing.
"""

import html
import re
from dataclasses import dataclass, field

import structlog

from worker.reports.aggregator import round_half_up
from worker.reports.models import CompetitorCount

logger = structlog.get_logger(__name__)

_TOTAL_QUERIES_RE = re.compile(r"<strong>Total Queries:</strong>\s*(\d+)")
_BUSINESS_FOUND_RE = re.compile(
    r"<strong>Business Found:</strong>.*?(\d+)\s*times.*?\(([\d.]+)%\)",
    re.DOTALL,
)
_PROVIDER_HEADING_RE = re.compile(r"<h3>(\w+)\s+AI\s+Engine</h3>", re.IGNORECASE)
_COMPETITOR_ROW_RE = re.compile(
    r'<tr>\s*<td class="rank">(\d+)</td>\s*<td>([^<]+)</td>\s*<td>(\d+)</td>\s*</tr>'
)

_NEEDS_QUOTING = (",", '"', "\n", "\r")


# =============================================================================
# Delimited tables
# =============================================================================


def _split_rows(text: str) -> list[str]:
    """Split on newlines that are not inside a quoted field."""
    rows: list[str] = []
    current: list[str] = []
    in_quotes = False

    for char in text:
        if char == '"':
            in_quotes = not in_quotes
            current.append(char)
        elif char == "\n" and not in_quotes:
            row = "".join(current)
            if row.strip():
                rows.append(row)
            current = []
        else:
            current.append(char)

    row = "".join(current)
    if row.strip():
        rows.append(row)

    return rows


def _split_fields(row: str) -> list[str]:
    """Split a row on commas outside quotes, keeping fields raw."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0

    while i < len(row):
        char = row[i]
        if char == '"':
            if in_quotes and i + 1 < len(row) and row[i + 1] == '"':
                current.append('""')
                i += 2
                continue
            in_quotes = not in_quotes
            current.append(char)
        elif char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1

    fields.append("".join(current))
    return fields


def _unquote(value: str) -> str:
    """Strip one layer of surrounding quotes and unescape doubled quotes."""
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1].replace('""', '"')
    return value


def parse_delimited_table(text: str) -> list[dict[str, str]]:
    """
    Parse comma-separated text into a list of row mappings.

    Rows whose field count differs from the header are dropped.

    Args:
        text: Raw file content

    Returns:
        One dict per well-formed data row, keyed by header name
    """
    if not text:
        return []

    rows = [row[:-1] if row.endswith("\r") else row for row in _split_rows(text)]
    if len(rows) < 2:
        return []

    headers = [_unquote(h.rstrip("\r")).rstrip("\r") for h in _split_fields(rows[0])]
    parsed: list[dict[str, str]] = []
    dropped = 0

    for row in rows[1:]:
        values = _split_fields(row)
        if len(values) != len(headers):
            dropped += 1
            continue
        parsed.append({header: _unquote(value) for header, value in zip(headers, values)})

    if dropped:
        logger.debug("delimited_rows_dropped", dropped=dropped, kept=len(parsed))

    return parsed


def _quote(value: str) -> str:
    if any(token in value for token in _NEEDS_QUOTING) or value != value.strip():
        return '"' + value.replace('"', '""') + '"'
    return value


def render_delimited_table(headers: list[str], rows: list[dict[str, str]]) -> str:
    """Render rows as comma-separated text readable by ``parse_delimited_table``."""
    lines = [",".join(_quote(h) for h in headers)]
    for row in rows:
        line = ",".join(_quote(str(row.get(h, ""))) for h in headers)
        # A bare empty line would be read back as a blank line and skipped
        lines.append(line or '""')
    return "\n".join(lines) + "\n"


# =============================================================================
# HTML summary extraction
# =============================================================================


@dataclass
class SummaryMetrics:
    """Best-effort metrics pulled from an HTML report.

    ``missing`` names every field whose pattern did not match; those fields
    keep their zero/empty default.
    """

    total_queries: int = 0
    business_mentions: int = 0
    visibility_score: int = 0
    providers: list[str] = field(default_factory=list)
    top_competitors: list[CompetitorCount] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def competitors_found(self) -> int:
        return len(self.top_competitors)

    @property
    def is_partial(self) -> bool:
        return bool(self.missing)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_queries": self.total_queries,
            "business_mentions": self.business_mentions,
            "visibility_score": self.visibility_score,
            "providers": list(self.providers),
            "top_competitors": [c.to_dict() for c in self.top_competitors],
            "competitors_found": self.competitors_found,
            "missing": list(self.missing),
        }


def extract_summary_metrics(html_text: str | None) -> SummaryMetrics:
    """
    Pull summary metrics out of a generated HTML report.

    Args:
        html_text: Report HTML (may be empty or malformed)

    Returns:
        SummaryMetrics; unmatched fields stay at their defaults
    """
    metrics = SummaryMetrics()
    content = html_text or ""

    match = _TOTAL_QUERIES_RE.search(content)
    if match:
        metrics.total_queries = int(match.group(1))
    else:
        metrics.missing.append("total_queries")

    match = _BUSINESS_FOUND_RE.search(content)
    try:
        if not match:
            raise ValueError("no business-found summary")
        percentage = float(match.group(2))
        metrics.business_mentions = int(match.group(1))
        metrics.visibility_score = max(0, min(100, round_half_up(percentage)))
    except ValueError:
        metrics.missing.extend(["business_mentions", "visibility_score"])

    metrics.providers = [m.group(1).lower() for m in _PROVIDER_HEADING_RE.finditer(content)]
    if not metrics.providers:
        metrics.missing.append("providers")

    metrics.top_competitors = [
        CompetitorCount(name=html.unescape(m.group(2)).strip(), count=int(m.group(3)))
        for m in _COMPETITOR_ROW_RE.finditer(content)
        if m.group(2).strip()
    ]
    if not metrics.top_competitors:
        metrics.missing.append("top_competitors")

    return metrics
