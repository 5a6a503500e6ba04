"""Commands for the supported version control systems."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class VCSInfo:
    """The arguments used to drive a version control system."""

    name: str
    init_args: tuple[str, ...]
    pull_args: tuple[str, ...]
    version_args: tuple[str, ...]
    version_regexp: re.Pattern

    def clone_args(self, repo: str, directory: str) -> list[str]:
        """Return the arguments that clone repo into directory."""
        return ["clone", repo, directory]

    def parse_version(self, output: str) -> str | None:
        """Return the version found in the output of the version command."""
        m = self.version_regexp.match(output)
        return m.group(1) if m else None


_VCS_INFOS = {
    "git": VCSInfo(
        name="git",
        init_args=("init",),
        pull_args=("pull", "--rebase"),
        version_args=("version",),
        version_regexp=re.compile(r"git version (\d+\.\d+\.\d+)"),
    ),
    "hg": VCSInfo(
        name="hg",
        init_args=("init",),
        pull_args=("pull", "--rebase", "--update"),
        version_args=("version",),
        version_regexp=re.compile(
            r"Mercurial Distributed SCM \(version (\d+\.\d+(?:\.\d+)?)\)"
        ),
    ),
}


def get_vcs_info(name: str) -> VCSInfo:
    """Return the information for the named version control system."""
    try:
        return _VCS_INFOS[name]
    except KeyError:
        raise ValueError(f"{name}: unsupported version control system") from None