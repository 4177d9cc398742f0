"""Tests for host detection."""

import pytest

from gotest_ci.host import HostPlatform, case_name_suffix


@pytest.mark.parametrize("value", ["true", "1", "TRUE", " yes "])
def test_detect_ci(value: str) -> None:
    assert HostPlatform.detect({"CI": value}).ci


@pytest.mark.parametrize("value", ["false", "0", "", "no"])
def test_detect_ci_disabled(value: str) -> None:
    """Explicitly disabled CI does not count as CI."""
    assert not HostPlatform.detect({"CI": value}).ci


def test_detect_without_ci() -> None:
    assert not HostPlatform.detect({}).ci


def test_detect_arch_override() -> None:
    assert HostPlatform.detect({"GOARCH": "arm64"}).arch == "arm64"


def test_case_name_suffix() -> None:
    host = HostPlatform(os="linux", arch="amd64")

    assert case_name_suffix(host) == "[linux,amd64]"
    assert case_name_suffix(host, "GoTest") == "[GoTest - linux,amd64]"
