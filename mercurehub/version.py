"""Build and version information of the hub."""

from __future__ import annotations

import platform
from dataclasses import dataclass
from importlib import metadata

DEFAULT_REPOSITORY_URL = "https://example.com/mercurehub"
METRIC_NAME = "mercure_version_info"
METRIC_HELP = "A metric with a constant '1' value labeled by different build stats fields."


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


@dataclass(frozen=True)
class AppVersionInfo:
    """Version, build date, commit and runtime of the running hub."""

    version: str
    build_date: str = ""
    commit: str = ""
    python_version: str = ""
    os: str = ""
    architecture: str = ""
    repository_url: str = DEFAULT_REPOSITORY_URL

    def shortline(self) -> str:
        line = self.version
        if self.commit:
            line += f", commit {self.commit}"
        if self.build_date:
            line += f", built at {self.build_date}"
        return line

    def changelog_url(self) -> str:
        if self.version == "dev":
            return f"{self.repository_url}/releases/latest"
        return f"{self.repository_url}/releases/tag/v{self.version.removeprefix('v')}"

    def metrics_labels(self) -> dict[str, str]:
        return {
            "version": self.version,
            "built_at": self.build_date,
            "commit": self.commit,
            "python_version": self.python_version,
            "os": self.os,
            "architecture": self.architecture,
        }

    def metrics_sample(self) -> str:
        """Return the version gauge in the Prometheus text exposition format."""
        labels = ",".join(
            f'{name}="{_escape_label(value)}"'
            for name, value in sorted(self.metrics_labels().items())
        )
        return (
            f"# HELP {METRIC_NAME} {METRIC_HELP}\n"
            f"# TYPE {METRIC_NAME} gauge\n"
            f"{METRIC_NAME}{{{labels}}} 1\n"
        )


def current_version(version: str = "dev", build_date: str = "", commit: str = "") -> AppVersionInfo:
    """Describe the running hub, falling back to the installed distribution's version."""
    if version == "dev":
        try:
            installed = metadata.version("mercurehub")
        except metadata.PackageNotFoundError:
            installed = ""
        if installed:
            version = installed
    return AppVersionInfo(
        version=version.removeprefix("v"),
        build_date=build_date,
        commit=commit,
        python_version=platform.python_version(),
        os=platform.system().lower(),
        architecture=platform.machine(),
    )