"""Artifact filename grammar and report identifiers.

Artifacts live in one directory per business under the results root:

    {provider}_{kind}_{tag}_{YYYYMMDD}_{HHMMSS}.{csv|txt}
    {provider}_{report|responses}_..._{YYYYMMDD}_{HHMMSS}.html
    custom_queries_testrun_{runId}_{YYYYMMDD}_{HHMMSS}.csv

where ``tag`` is the sanitized business name or ``testrun_{runId}``.
Run metadata is a hidden ``.test_run_{runId}.json`` file in the results root.

Report identifiers are ``{businessDir}_{YYYY-MM-DDTHH:MM:SS}``.
"""

import re
import time
from datetime import datetime

from worker.artifacts.models import Artifact, ArtifactKind, ProviderId

FILE_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
ISO_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

RUN_METADATA_PREFIX = ".test_run_"
CUSTOM_QUERIES_PREFIX = "custom_queries_"

_TIMESTAMP_RE = re.compile(r"(?<!\d)(\d{8}_\d{6})(?!\d)")
_RUN_ID_RE = re.compile(r"testrun_(\d+)")
_PROVIDER_RE = re.compile(r"^(openai|claude|gemini|copilot|perplexity)_")
_HTML_PROVIDER_RE = re.compile(r"^(openai|claude|gemini|copilot)_")
_FILE_TS_RE = re.compile(r"^\d{8}_\d{6}$")
_UNSAFE_CHARS_RE = re.compile(r"[^\w\-]")

_KIND_SEGMENTS = {
    "queries": ArtifactKind.QUERIES,
    "responses": ArtifactKind.RESPONSES,
    "analysis": ArtifactKind.ANALYSIS,
}


def new_run_id() -> str:
    """Generate a run id (millisecond epoch, matches ``testrun_(\\d+)``)."""
    return str(int(time.time() * 1000))


def format_file_timestamp(moment: datetime) -> str:
    """Format a datetime as ``YYYYMMDD_HHMMSS``."""
    return moment.strftime(FILE_TIMESTAMP_FORMAT)


def parse_file_timestamp(file_ts: str) -> datetime:
    """Parse ``YYYYMMDD_HHMMSS`` into a naive datetime."""
    return datetime.strptime(file_ts, FILE_TIMESTAMP_FORMAT)


def to_file_timestamp(iso_timestamp: str) -> str:
    """Convert ``YYYY-MM-DDTHH:MM:SS`` to ``YYYYMMDD_HHMMSS``.

    Raises:
        ValueError: If the result is not a valid file timestamp.
    """
    file_ts = iso_timestamp.replace("-", "").replace(":", "").replace("T", "_")[:15]
    if not _FILE_TS_RE.match(file_ts):
        raise ValueError(f"Invalid timestamp: {iso_timestamp!r}")
    return file_ts


def to_iso_timestamp(file_ts: str) -> str:
    """Convert ``YYYYMMDD_HHMMSS`` to ``YYYY-MM-DDTHH:MM:SS``."""
    date, clock = file_ts[:8], file_ts[9:15]
    return f"{date[:4]}-{date[4:6]}-{date[6:8]}T{clock[:2]}:{clock[2:4]}:{clock[4:6]}"


def minute_key(file_ts: str) -> str:
    """Truncate a file timestamp to minute precision."""
    return file_ts[:13]


def sanitize_business_name(name: str) -> str:
    """Turn a business name into a directory/filename-safe grouping key."""
    cleaned = re.sub(r"\s+", "_", name.strip())
    cleaned = _UNSAFE_CHARS_RE.sub("", cleaned).strip("_")
    return cleaned or "Unknown"


def display_business_name(business_dir: str) -> str:
    """Business directory name with separators replaced by spaces."""
    return business_dir.replace("_", " ")


def build_report_id(business_dir: str, file_ts: str) -> str:
    """Build ``{businessDir}_{ISO8601}`` from a directory and file timestamp."""
    return f"{business_dir}_{to_iso_timestamp(file_ts)}"


def parse_report_id(report_id: str) -> tuple[str, str]:
    """Split a report id into ``(business_dir, file_timestamp)``.

    Raises:
        ValueError: If the id has no business part or no valid timestamp.
    """
    business_dir, sep, iso_timestamp = report_id.rpartition("_")
    if not sep or not business_dir:
        raise ValueError(f"Malformed report id: {report_id!r}")
    return business_dir, to_file_timestamp(iso_timestamp)


def run_tag(run_id: str) -> str:
    return f"testrun_{run_id}"


def run_metadata_filename(run_id: str) -> str:
    return f"{RUN_METADATA_PREFIX}{run_id}.json"


def artifact_filename(
    provider: ProviderId | str,
    kind: str,
    tag: str,
    file_ts: str,
    extension: str,
) -> str:
    """Build ``{provider}_{kind}_{tag}_{timestamp}.{ext}``."""
    return f"{provider}_{kind}_{tag}_{file_ts}.{extension}"


def custom_queries_filename(run_id: str, file_ts: str) -> str:
    return f"{CUSTOM_QUERIES_PREFIX}{run_tag(run_id)}_{file_ts}.csv"


def extract_timestamp(filename: str) -> str | None:
    match = _TIMESTAMP_RE.search(filename)
    return match.group(1) if match else None


def extract_run_id(filename: str) -> str | None:
    match = _RUN_ID_RE.search(filename)
    return match.group(1) if match else None


def extract_provider(filename: str) -> ProviderId | None:
    match = _PROVIDER_RE.match(filename)
    return ProviderId(match.group(1)) if match else None


def parse_artifact(business_dir: str, filename: str, path: str | None = None) -> Artifact | None:
    """Recognise an artifact from its filename.

    Returns None for files that do not follow the grammar.
    """
    timestamp = extract_timestamp(filename)
    if not timestamp:
        return None

    lower = filename.lower()
    run_id = extract_run_id(filename)
    locator = path or f"{business_dir}/{filename}"

    if lower.endswith(".html"):
        match = _HTML_PROVIDER_RE.match(filename)
        if not match or not ("report" in lower or "responses" in lower):
            return None
        return Artifact(
            business_dir=business_dir,
            filename=filename,
            kind=ArtifactKind.HTML_REPORT,
            timestamp=timestamp,
            path=locator,
            provider=ProviderId(match.group(1)),
            run_id=run_id,
        )

    if not (lower.endswith(".csv") or lower.endswith(".txt")):
        return None

    if filename.startswith(CUSTOM_QUERIES_PREFIX):
        return Artifact(
            business_dir=business_dir,
            filename=filename,
            kind=ArtifactKind.QUERIES,
            timestamp=timestamp,
            path=locator,
            run_id=run_id,
        )

    provider = extract_provider(filename)
    if provider is None:
        return None

    segment = filename[len(provider.value) + 1 :].split("_", 1)[0]
    kind = _KIND_SEGMENTS.get(segment)
    if kind is None:
        return None

    return Artifact(
        business_dir=business_dir,
        filename=filename,
        kind=kind,
        timestamp=timestamp,
        path=locator,
        provider=provider,
        run_id=run_id,
    )
