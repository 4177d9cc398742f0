"""Facts about the host the pipelines run on."""

import os
import platform
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Self

_GOOS = {
    "linux": "linux",
    "darwin": "darwin",
    "win32": "windows",
    "cygwin": "windows",
    "freebsd": "freebsd",
}

_GOARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "arm64": "arm64",
    "aarch64": "arm64",
    "armv7l": "arm",
}


def _truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, kw_only=True)
class HostPlatform:
    """Operating system and architecture, named the way Go names them."""

    os: str
    arch: str
    ci: bool = False

    @classmethod
    def detect(cls, environ: Mapping[str, str] | None = None) -> Self:
        environ = os.environ if environ is None else environ
        goos = next(
            (name for prefix, name in _GOOS.items() if sys.platform.startswith(prefix)),
            sys.platform,
        )
        machine = platform.machine().lower()
        arch = environ.get("GOARCH") or _GOARCH.get(machine, machine or "amd64")
        return cls(os=goos, arch=arch, ci=_truthy(environ.get("CI", "")))

    @property
    def is_darwin(self) -> bool:
        return self.os == "darwin"


def case_name_suffix(host: HostPlatform, base: str = "") -> str:
    """Build the ``[<base> - <os>,<arch>]`` suffix appended to case names."""
    platform_part = f"{host.os},{host.arch}"
    if not base:
        return f"[{platform_part}]"
    return f"[{base} - {platform_part}]"
