"""
Pytest Configuration and HTML Report Hooks

This module configures the pytest test runner for the tim_parser project.
It handles automatic HTML report generation with custom columns for test
metadata (description, goal, passing criteria) and embedded plot images.
"""

import sys
from html import escape
from pathlib import Path

import pytest

# Resolve the project root directory (two levels above this folder)
ROOT = Path(__file__).resolve().parents[2]

# Make tim_parser importable without installation
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _report_name_from_args(args):
    """
    Determine the HTML report filename from the pytest command-line arguments.

    Running a single test file names the report after it (e.g.
    "report_header.html" for test_header.py); anything else falls back to
    "report_parser.html".

    :param args: List of command-line arguments passed to pytest.
    :return: Report filename string.
    """
    test_files = []
    for arg in args:
        text = str(arg)
        if text.startswith("-"):
            continue
        path = Path(text.split("::", 1)[0])
        if path.suffix == ".py" and path.name.startswith("test_"):
            test_files.append(path)

    unique_files = {str(p).lower(): p for p in test_files}
    if len(unique_files) == 1:
        name = next(iter(unique_files.values())).stem.removeprefix("test_")
        if name:
            return f"report_{name}.html"

    return "report_parser.html"


@pytest.hookimpl(tryfirst=True)
def pytest_configure(config):
    """
    Point pytest-html at tests/test_parser/test_reports/ unless the user passed
    --html explicitly.
    """
    if any(str(arg).startswith("--html") for arg in config.invocation_params.args):
        return

    report_dir = Path(__file__).resolve().parent / "test_reports"
    report_dir.mkdir(parents=True, exist_ok=True)
    config.option.htmlpath = str(report_dir / _report_name_from_args(config.invocation_params.args))


def pytest_html_results_table_header(cells):
    cells.insert(3, '<th class="col-testmeta">Test Description</th>')
    cells.insert(4, '<th class="col-plot">Plot</th>')


def _format_test_meta(report):
    """
    Format test metadata (description, goal, passing criteria) as an HTML block.

    :param report: The pytest test report object.
    :return: HTML string, or a grey "n/a" placeholder without metadata.
    """
    meta = getattr(report, "test_meta", None)
    if not meta:
        return '<div style="color:#666;">n/a</div>'

    description = escape(str(meta.get("description", "")))
    goal = escape(str(meta.get("goal", "")))
    passing = escape(str(meta.get("passing_criteria", "")))
    return (
        '<div style="min-width:340px;max-width:520px;line-height:1.35;">'
        f"<div><strong>Test Description:</strong> {description}</div>"
        f"<div><strong>Test Goal:</strong> {goal}</div>"
        f"<div><strong>Passing Criteria:</strong> {passing}</div>"
        "</div>"
    )


def pytest_html_results_table_row(report, cells):
    cells.insert(3, f'<td class="col-testmeta">{_format_test_meta(report)}</td>')

    images = []
    for extra in getattr(report, "extras", []):
        if extra.get("format_type") != "image":
            continue
        content = extra.get("content")
        if not content:
            continue
        images.append(
            f'<a href="{content}" target="_blank" rel="noopener noreferrer">'
            f'<img src="{content}" alt="plot" '
            f'style="max-width:320px;height:auto;display:block;margin:4px 0;cursor:zoom-in;" />'
            f"</a>"
        )
    cells.insert(4, f'<td class="col-plot">{"".join(images)}</td>')


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """
    Attach the @pytest.mark.test_meta kwargs and any plot extras to the
    report of the "call" phase.
    """
    outcome = yield
    report = outcome.get_result()

    if report.when != "call":
        return

    marker = item.get_closest_marker("test_meta")
    if marker:
        report.test_meta = {
            "description": marker.kwargs.get("description", ""),
            "goal": marker.kwargs.get("goal", ""),
            "passing_criteria": marker.kwargs.get("passing_criteria", ""),
        }

    item_extra = getattr(item, "extra", None)
    if not item_extra:
        return

    extras = getattr(report, "extras", [])
    extras.extend([dict(extra) for extra in item_extra])
    report.extras = extras
    if hasattr(report, "extra"):
        report.extra = extras
