import platform
import sys
import typing as t
from dataclasses import dataclass

# Python's names for machines, mapped onto the names used in release asset names.
_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "x64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv6l": "arm",
    "armv7l": "arm",
    "arm": "arm",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
    "riscv64": "riscv64",
}


def current_os():
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform.startswith("freebsd"):
        return "freebsd"
    return sys.platform


def current_arch():
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


@dataclass(frozen=True)
class Platform:
    os: str
    arch: str

    @classmethod
    def current(cls):
        return cls(current_os(), current_arch())

    @property
    def ext(self):
        """Extension used for executables on this platform."""
        return ".exe" if self.os == "windows" else ""

    def __str__(self):
        return f"{self.os}-{self.arch}"

    def template_fields(self) -> t.Dict[str, str]:
        return {"os": self.os, "arch": self.arch, "ext": self.ext}
