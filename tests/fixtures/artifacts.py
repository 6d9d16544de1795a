"""Sample artifact content for report and pipeline tests."""

from datetime import datetime, timedelta

from worker.artifacts.parser import render_delimited_table

RUN_STARTED = datetime(2025, 10, 4, 10, 52, 22)

SAMPLE_REPORT_HTML = """<!DOCTYPE html>
<html>
<body>
<h3>{provider} AI Engine</h3>
<p><strong>Total Queries:</strong> {queries}</p>
<p><strong>Business Found:</strong> {mentions} times ({percentage}%)</p>
<table>
{rows}
</table>
</body>
</html>
"""


def make_report_html(
    provider: str = "Claude",
    queries: int = 10,
    mentions: int = 4,
    percentage: str = "40.0",
    competitors: list[tuple[str, int]] | None = None,
) -> str:
    """HTML in the layout the tester's report script writes."""
    rows = "\n".join(
        f'<tr><td class="rank">{rank}</td><td>{name}</td><td>{count}</td></tr>'
        for rank, (name, count) in enumerate(competitors or [], start=1)
    )
    return SAMPLE_REPORT_HTML.format(
        provider=provider,
        queries=queries,
        mentions=mentions,
        percentage=percentage,
        rows=rows,
    )


def make_responses_csv(responses: list[str], analyzed: bool = False) -> str:
    """Responses CSV; ``analyzed`` adds the competitor analysis columns."""
    headers = ["Query ID", "Query Text", "Response Text"]
    if analyzed:
        headers += ["Business_Mentioned", "Competitors_Mentioned"]

    rows = []
    for i, text in enumerate(responses, start=1):
        row = {"Query ID": str(i), "Query Text": f"query {i}", "Response Text": text}
        if analyzed:
            row["Business_Mentioned"] = "No"
            row["Competitors_Mentioned"] = "Contoso"
        rows.append(row)
    return render_delimited_table(headers, rows)


class FixedClock:
    """Clock returning a fixed moment, advanced explicitly."""

    def __init__(self, start: datetime = RUN_STARTED):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
