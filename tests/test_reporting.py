import math

import pytest

from activity_tracker.models import Dimension, TimeWindow
from activity_tracker.reporting import (
    ReportPrinter,
    build_duration_report,
    build_duration_reports,
    format_duration,
)

from conftest import make_record

WINDOW = TimeWindow(start=0, end=3_600_000)


@pytest.fixture
def records():
    return [
        make_record(1, 0, 120, owner_name="Code", title="main.py"),
        make_record(2, 200_000, 60, owner_name="Chrome", title="PRs", url="https://github.com/pulls"),
        make_record(3, 300_000, 30, owner_name="Chrome", title="Feed", url="https://www.reddit.com/r/python"),
        make_record(1, 400_000, 90, owner_name="Code", title="main.py"),
        make_record(4, 500_000, 10, owner_name="Finder", title="   "),
        make_record(5, 600_000, 15, owner_name="Chrome", title="Broken", url="http://"),
    ]


def test_application_report_totals_and_order(records):
    reports = build_duration_report(records, WINDOW, Dimension.APPLICATION)

    assert [(item.name, item.total_duration) for item in reports] == [
        ("Code", 210),
        ("Chrome", 105),
        ("Finder", 10),
    ]
    assert math.isclose(sum(item.percentage for item in reports), 100.0)
    assert math.isclose(reports[0].percentage, 210 / 325 * 100)


def test_application_report_instances(records):
    code = build_duration_report(records, WINDOW, "application")[0]

    assert [instance.to_dict() for instance in code.instances] == [
        {"startTime": 0, "endTime": 120_000, "duration": 120},
        {"startTime": 400_000, "endTime": 490_000, "duration": 90},
    ]


def test_domain_report_skips_records_without_hostname(records):
    reports = build_duration_report(records, WINDOW, Dimension.DOMAIN)

    assert [(item.name, item.total_duration) for item in reports] == [
        ("github.com", 60),
        ("www.reddit.com", 30),
    ]
    assert reports[0].to_dict()["domain"] == "github.com"


def test_title_report_skips_blank_titles(records):
    reports = build_duration_report(records, WINDOW, Dimension.TITLE)

    names = [item.name for item in reports]
    assert names[0] == "main.py"
    assert "   " not in names


def test_window_is_half_open(records):
    window = TimeWindow(start=200_000, end=400_000)

    reports = build_duration_report(records, window, Dimension.APPLICATION)

    assert [(item.name, item.total_duration) for item in reports] == [("Chrome", 90)]


def test_empty_window_yields_no_reports(records):
    assert build_duration_report(records, TimeWindow(10**12, 10**12 + 1), "title") == []
    assert build_duration_report([], WINDOW, "domain") == []


def test_zero_durations_give_zero_percentages():
    records = [make_record(1, 0, 0, owner_name="A"), make_record(2, 1, 0, owner_name="B")]

    reports = build_duration_report(records, WINDOW, Dimension.APPLICATION)

    assert [item.percentage for item in reports] == [0.0, 0.0]


def test_overlapping_slices_are_summed():
    records = [
        make_record(1, 0, 3_600, owner_name="Code"),
        make_record(2, 0, 3_600, owner_name="Code"),
    ]

    (report,) = build_duration_report(records, WINDOW, Dimension.APPLICATION)

    assert report.total_duration == 7_200


def test_limit_truncates_without_renormalizing(records):
    reports = build_duration_report(records, WINDOW, Dimension.APPLICATION, limit=1)

    assert len(reports) == 1
    assert reports[0].percentage < 100


def test_build_all_dimensions(records):
    reports = build_duration_reports(iter(records), WINDOW)

    assert set(reports) == set(Dimension)
    assert reports[Dimension.APPLICATION][0].to_dict()["applicationName"] == "Code"


def test_invalid_dimension(records):
    with pytest.raises(ValueError):
        build_duration_report(records, WINDOW, "window")


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "00:00:00"), (59.6, "00:01:00"), (3_725, "01:02:05")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_printer_output(records, capsys):
    reports = build_duration_report(records, WINDOW, Dimension.APPLICATION)

    ReportPrinter(limit=2).print_report(reports, Dimension.APPLICATION, WINDOW)

    out = capsys.readouterr().out
    assert "Code" in out
    assert "Finder" not in out
    assert "Total tracked: 00:05:25" in out


def test_printer_empty(capsys):
    ReportPrinter().print_report([], Dimension.TITLE, WINDOW)
    assert "No activity recorded" in capsys.readouterr().out
