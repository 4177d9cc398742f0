"""Merging of line-coverage profiles and their Cobertura rendering."""

import posixpath
import re
import time
import xml.etree.ElementTree as ET
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

MODE_PREFIX = "mode: "

_BLOCK = re.compile(
    r"^(?P<file>.+):(?P<start>\d+)\.\d+,(?P<end>\d+)\.\d+ \d+ (?P<count>\d+)$"
)


@dataclass(kw_only=True)
class CoverageProfile:
    """One mode header plus block records in first-seen order, without duplicates."""

    mode: str | None = None
    records: list[str] = field(default_factory=list)
    _seen: set[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._seen = set(self.records)

    def add_profile(self, text: str) -> None:
        """Fold one unit's profile into this one.

        Raises:
            ValueError: If the profile's mode differs from the mode already set

        """
        for line in text.splitlines():
            line = line.strip()
            if not line:
                continue
            if line.startswith(MODE_PREFIX):
                mode = line.removeprefix(MODE_PREFIX)
                if self.mode is None:
                    self.mode = mode
                elif mode != self.mode:
                    raise ValueError(
                        f"cannot merge coverage mode {mode!r} into {self.mode!r}"
                    )
                continue
            if line not in self._seen:
                self._seen.add(line)
                self.records.append(line)

    def render(self) -> str:
        if self.mode is None and not self.records:
            return ""
        lines = [f"{MODE_PREFIX}{self.mode or 'set'}", *self.records]
        return "\n".join(lines) + "\n"


def merge_profiles(profiles: Iterable[str]) -> CoverageProfile:
    merged = CoverageProfile()
    for text in profiles:
        merged.add_profile(text)
    return merged


def line_hits(profile: CoverageProfile) -> dict[str, dict[int, int]]:
    """Map each file to its line numbers and hit counts."""
    files: dict[str, dict[int, int]] = {}
    for record in profile.records:
        match = _BLOCK.match(record)
        if match is None:
            raise ValueError(f"malformed coverage record: {record!r}")
        lines = files.setdefault(match.group("file"), {})
        count = int(match.group("count"))
        for number in range(int(match.group("start")), int(match.group("end")) + 1):
            lines[number] = max(lines.get(number, 0), count)
    return files


def _rate(covered: int, valid: int) -> str:
    return f"{covered / valid:.4f}" if valid else "0"


def cobertura_report(profile: CoverageProfile) -> ET.ElementTree:
    """Render a Cobertura document with one package per directory."""
    packages: dict[str, dict[str, dict[int, int]]] = {}
    for filename, lines in sorted(line_hits(profile).items()):
        packages.setdefault(posixpath.dirname(filename), {})[filename] = lines

    total_valid = total_covered = 0
    root = ET.Element("coverage")
    ET.SubElement(ET.SubElement(root, "sources"), "source").text = "."
    packages_element = ET.SubElement(root, "packages")

    for package_name, files in packages.items():
        package = ET.SubElement(
            packages_element,
            "package",
            {"name": package_name, "branch-rate": "0", "complexity": "0"},
        )
        classes = ET.SubElement(package, "classes")
        package_valid = package_covered = 0
        for filename, lines in files.items():
            covered = sum(1 for hits in lines.values() if hits > 0)
            cls = ET.SubElement(
                classes,
                "class",
                {
                    "name": posixpath.basename(filename),
                    "filename": filename,
                    "line-rate": _rate(covered, len(lines)),
                    "branch-rate": "0",
                    "complexity": "0",
                },
            )
            ET.SubElement(cls, "methods")
            lines_element = ET.SubElement(cls, "lines")
            for number, hits in sorted(lines.items()):
                ET.SubElement(
                    lines_element, "line", {"number": str(number), "hits": str(hits)}
                )
            package_valid += len(lines)
            package_covered += covered
        package.set("line-rate", _rate(package_covered, package_valid))
        total_valid += package_valid
        total_covered += package_covered

    root.attrib.update(
        {
            "line-rate": _rate(total_covered, total_valid),
            "branch-rate": "0",
            "lines-covered": str(total_covered),
            "lines-valid": str(total_valid),
            "version": "gotest-ci",
            "timestamp": str(int(time.time() * 1000)),
        }
    )
    return ET.ElementTree(root)


def write_cobertura_report(profile: CoverageProfile, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    tree = cobertura_report(profile)
    ET.indent(tree)
    tree.write(path, encoding="utf-8", xml_declaration=True)
    return path
