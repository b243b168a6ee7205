"""Git utilities for cloning and reading remote repositories."""

from __future__ import annotations

import subprocess
from pathlib import Path

# Header lines of `git log` output; fields are NUL separated.
_COMMIT_PREFIX = "commit:"


class GitError(Exception):
    """Raised when a git operation fails."""


def _run_git(args: list[str], cwd: Path | None = None) -> str:
    """Run a git command and return stdout. Raises GitError on failure."""
    try:
        result = subprocess.run(
            ["git"] + args,
            capture_output=True,
            text=True,
            cwd=cwd,
            check=True,
        )
        return result.stdout.strip()
    except subprocess.CalledProcessError as e:
        raise GitError(f"git {' '.join(args)} failed: {e.stderr.strip()}") from e
    except FileNotFoundError:
        raise GitError("git is not installed or not in PATH")


def get_head_sha(repo_path: Path) -> str:
    """Return the full SHA of HEAD."""
    return _run_git(["rev-parse", "HEAD"], cwd=repo_path)


def clone_repo(url: str, dest: Path, depth: int | None = 1) -> None:
    """Clone a repository to the given destination.

    ``depth`` of None makes a full clone.
    """
    args = ["clone"]
    if depth:
        args.extend(["--depth", str(depth)])
    args.extend([url, str(dest)])
    _run_git(args)


def list_tracked_files(repo_path: Path) -> list[str]:
    """Return every path tracked at HEAD, relative to the repo root."""
    output = _run_git(["ls-files"], cwd=repo_path)
    if not output:
        return []
    return output.split("\n")


def get_commit_log(repo_path: Path, limit: int) -> list[dict]:
    """Return up to ``limit`` recent commits with the files each one touched.

    Each entry is ``{"sha", "author", "date", "files"}``.
    """
    output = _run_git(
        ["log", f"-n{limit}", "--name-only", f"--pretty=format:{_COMMIT_PREFIX}%H%x00%an%x00%aI"],
        cwd=repo_path,
    )
    commits: list[dict] = []
    for line in output.split("\n"):
        line = line.strip()
        if not line:
            continue
        if line.startswith(_COMMIT_PREFIX) and "\x00" in line:
            parts = line[len(_COMMIT_PREFIX):].split("\x00")
            if len(parts) == 3:
                sha, author, date = parts
                commits.append({"sha": sha, "author": author, "date": date, "files": []})
                continue
        if commits:
            commits[-1]["files"].append(line)
    return commits
