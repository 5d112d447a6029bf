"""Version and build metadata for --version."""

from __future__ import annotations

import subprocess
import tomllib
from dataclasses import dataclass
from datetime import UTC, datetime
from importlib import metadata
from pathlib import Path

from . import __version__

DIST_NAME = "ai-cli"
UNKNOWN = "unknown"
GIT_TIMEOUT_SECS = 2.0
METADATA_FILES = ("METADATA", "PKG-INFO")


@dataclass(frozen=True)
class BuildInfo:
    version: str
    commit: str = UNKNOWN
    commit_short: str = UNKNOWN
    dirty: bool = False
    built: str = UNKNOWN

    def render(self) -> str:
        suffix = "-dirty" if self.dirty else ""
        return (
            f"ai-cli version {self.version}\n"
            f"Commit: {self.commit_short}{suffix}\n"
            f"Full commit: {self.commit}\n"
            f"Built: {self.built}\n"
        )


def _git(*args: str, cwd: Path) -> subprocess.CompletedProcess[str] | None:
    try:
        return subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECS,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        return None


def _package_version() -> str:
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return __version__


def _build_time() -> str:
    try:
        dist = metadata.distribution(DIST_NAME)
    except metadata.PackageNotFoundError:
        return UNKNOWN
    record = next(
        (f for f in dist.files or () if f.name in METADATA_FILES), None
    )
    if record is None:
        return UNKNOWN
    try:
        mtime = Path(record.locate()).stat().st_mtime
    except OSError:
        return UNKNOWN
    return datetime.fromtimestamp(mtime, UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def _is_own_checkout(toplevel: Path, package_dir: Path) -> bool:
    """True when the git work tree is this project, not an enclosing repo."""
    if package_dir.resolve().parent != toplevel.resolve():
        return False
    try:
        with open(toplevel / "pyproject.toml", "rb") as f:
            project = tomllib.load(f).get("project", {})
    except (OSError, tomllib.TOMLDecodeError):
        return False
    return project.get("name") == DIST_NAME


def get_build_info(source_dir: Path | None = None) -> BuildInfo:
    """Collect version, git commit and build time; missing pieces are 'unknown'."""
    cwd = source_dir or Path(__file__).resolve().parent

    commit = commit_short = UNKNOWN
    dirty = False
    # A site-packages copy inside some other checkout must not report its commit
    toplevel = _git("rev-parse", "--show-toplevel", cwd=cwd)
    own = (
        toplevel is not None
        and toplevel.returncode == 0
        and _is_own_checkout(Path(toplevel.stdout.strip()), cwd)
    )
    full = _git("rev-parse", "HEAD", cwd=cwd) if own else None
    if full is not None and full.returncode == 0:
        commit = full.stdout.strip() or UNKNOWN
        short = _git("rev-parse", "--short", "HEAD", cwd=cwd)
        if short is not None and short.returncode == 0:
            commit_short = short.stdout.strip() or UNKNOWN
        diff = _git("diff-index", "--quiet", "HEAD", "--", cwd=cwd)
        dirty = diff is not None and diff.returncode != 0

    return BuildInfo(
        version=_package_version(),
        commit=commit,
        commit_short=commit_short,
        dirty=dirty,
        built=_build_time(),
    )
