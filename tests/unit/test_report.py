"""Tests for xUnit report rendering."""

import xml.etree.ElementTree as ET
from pathlib import Path

from gotest_ci.models.report import Case, Failure, Suite
from gotest_ci.report import (
    create_suite_with_failure,
    write_failure_report,
    write_xunit_report,
)


def test_create_suite_with_failure() -> None:
    """Builds a failing suite with a single case."""
    suite = create_suite_with_failure(
        suite_name="pkgA",
        case_name="Test",
        classname="pkgA",
        message="build failure",
        data="# pkgA\nundefined: x",
    )

    assert suite.tests == 1
    assert suite.failures == 1
    assert suite.failed
    assert suite.cases[0].failures == [
        Failure(message="build failure", data="# pkgA\nundefined: x")
    ]


def test_write_xunit_report(tmp_path: Path) -> None:
    """Writes suites with derived counters, failures and skips."""
    suites = [
        Suite(
            name="pkgA",
            cases=[
                Case(name="TestA", classname="pkgA", time=0.5),
                Case(
                    name="TestB",
                    classname="pkgA",
                    time=0.25,
                    failures=[Failure(message="Failed", data="boom")],
                ),
                Case(name="TestC", classname="pkgA", skipped="no network"),
            ],
        ),
        Suite(name="pkgB"),
    ]

    path = write_xunit_report(suites, tmp_path / "out" / "tests_run.xml")

    root = ET.parse(path).getroot()
    assert root.tag == "testsuites"
    first, second = root.findall("testsuite")
    assert first.attrib == {
        "name": "pkgA",
        "tests": "3",
        "failures": "1",
        "errors": "0",
        "skip": "1",
        "time": "0.750",
    }
    failure = first.find("testcase[@name='TestB']/failure")
    assert failure is not None
    assert failure.get("message") == "Failed"
    assert failure.text == "boom"
    skipped = first.find("testcase[@name='TestC']/skipped")
    assert skipped is not None
    assert skipped.get("message") == "no network"
    assert second.get("tests") == "0"


def test_write_failure_report(tmp_path: Path) -> None:
    """Writes a one-case report named after the run."""
    path = write_failure_report(
        tmp_path,
        "nightly",
        suite_name="BuildTestDependencies",
        case_name="nightly [GoTest - linux,amd64]",
        message="dependencies build failure",
        data="cannot find package",
    )

    assert path == tmp_path / "tests_nightly.xml"
    root = ET.parse(path).getroot()
    (case,) = root.iter("testcase")
    assert case.get("classname") == "BuildTestDependencies"
    assert case.get("name") == "nightly [GoTest - linux,amd64]"
    failure = case.find("failure")
    assert failure is not None
    assert failure.text == "cannot find package"
