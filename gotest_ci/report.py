"""xUnit rendering of suites."""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from pathlib import Path

from gotest_ci.models.report import Case, Failure, Suite

log = logging.getLogger(__name__)


def xunit_report_path(report_dir: Path, name: str) -> Path:
    return report_dir / f"tests_{name}.xml"


def cobertura_report_path(report_dir: Path, name: str) -> Path:
    return report_dir / f"cobertura_{name}.xml"


def create_suite_with_failure(
    *, suite_name: str, case_name: str, classname: str, message: str, data: str
) -> Suite:
    """Build a suite holding a single failing case."""
    case = Case(
        name=case_name,
        classname=classname,
        failures=[Failure(message=message, data=data)],
    )
    return Suite(name=suite_name, cases=[case])


def xunit_document(suites: Sequence[Suite]) -> ET.ElementTree:
    root = ET.Element("testsuites")
    for suite in suites:
        suite_element = ET.SubElement(
            root,
            "testsuite",
            {
                "name": suite.name,
                "tests": str(suite.tests),
                "failures": str(suite.failures),
                "errors": "0",
                "skip": str(suite.skip),
                "time": f"{suite.time:.3f}",
            },
        )
        for case in suite.cases:
            case_element = ET.SubElement(
                suite_element,
                "testcase",
                {"name": case.name, "classname": case.classname, "time": f"{case.time:.3f}"},
            )
            for failure in case.failures:
                ET.SubElement(
                    case_element, "failure", {"message": failure.message, "type": ""}
                ).text = failure.data
            if case.skipped is not None:
                ET.SubElement(case_element, "skipped", {"message": case.skipped})
    return ET.ElementTree(root)


def write_xunit_report(suites: Sequence[Suite], path: Path) -> Path:
    """Write ``suites`` to ``path``, creating parent directories as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tree = xunit_document(suites)
    ET.indent(tree)
    tree.write(path, encoding="utf-8", xml_declaration=True)
    log.info("Wrote xUnit report to %s", path)
    return path


def write_failure_report(
    report_dir: Path, name: str, *, suite_name: str, case_name: str, message: str, data: str
) -> Path:
    """Write a report consisting of a single failure, for steps that abort a run."""
    suite = create_suite_with_failure(
        suite_name=suite_name,
        case_name=case_name,
        classname=suite_name,
        message=message,
        data=data,
    )
    return write_xunit_report([suite], xunit_report_path(report_dir, name))
