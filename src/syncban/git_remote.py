"""Store board documents on a dedicated git branch without touching a working tree.

Each document is a ``<id>.json`` blob in the branch's root tree. Every write
is a new commit whose ref update is a compare-and-swap against the tip it was
built on, so two writers can never silently overwrite each other.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path

from git import InvalidGitRepositoryError, NoSuchPathError, Repo

from syncban.errors import RemoteError, RemoteRejected, RemoteUnavailable
from syncban.remote import Subscriptions

logger = logging.getLogger(__name__)

BRANCH_NAME = "syncban"
SUFFIX = ".json"
ZERO_SHA = "0" * 40
CAS_ATTEMPTS = 3

_IDENTITY = {
    "GIT_AUTHOR_NAME": "syncban",
    "GIT_AUTHOR_EMAIL": "syncban@localhost",
    "GIT_COMMITTER_NAME": "syncban",
    "GIT_COMMITTER_EMAIL": "syncban@localhost",
}


# --- Git plumbing ---


def _git(repo_path: Path, args: list[str], input: str | None = None) -> str:
    """Run a git command and return stdout."""
    env = {**_IDENTITY, **os.environ}
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        input=input.encode("utf-8") if input is not None else None,
        env=env,
        capture_output=True,
        check=True,
    )
    return result.stdout.decode("utf-8").strip()


def _to_remote_error(exc: Exception, action: str) -> RemoteError:
    """Permission problems are permanent; everything else is worth retrying."""
    if isinstance(exc, subprocess.CalledProcessError):
        detail = (exc.stderr or b"").decode("utf-8", "replace").strip() or str(exc)
    else:
        detail = str(exc)
    if isinstance(exc, PermissionError) or "permission denied" in detail.lower():
        return RemoteRejected(f"{action}: {detail}")
    return RemoteUnavailable(f"{action}: {detail}")


def _mktree(repo_path: Path, entries: list[tuple[str, str, str, str]]) -> str:
    """Create a tree object from (mode, type, sha, name) entries."""
    lines = [f"{mode} {typ} {sha}\t{name}" for mode, typ, sha, name in entries]
    content = "\n".join(lines) + "\n" if lines else ""
    return _git(repo_path, ["mktree"], input=content)


def _get_ref(repo_path: Path, ref: str) -> str | None:
    """Get the commit hash for a ref, or None if it doesn't exist."""
    result = subprocess.run(
        ["git", "rev-parse", "--verify", "--quiet", ref],
        cwd=repo_path,
        capture_output=True,
    )
    if result.returncode != 0:
        return None
    return result.stdout.decode("utf-8").strip()


def _tree_entries(repo_path: Path, commit: str | None) -> list[tuple[str, str, str, str]]:
    if commit is None:
        return []
    entries = []
    for line in _git(repo_path, ["ls-tree", commit]).splitlines():
        meta, name = line.split("\t", 1)
        mode, typ, sha = meta.split()
        entries.append((mode, typ, sha, name))
    return entries


def init_remote(path: str | Path, branch: str = BRANCH_NAME) -> Path:
    """Create (or reuse) a bare repository with an empty document branch."""
    path = Path(path)
    Repo.init(path, bare=True, mkdir=True)
    if _get_ref(path, f"refs/heads/{branch}") is None:
        tree = _mktree(path, [])
        commit = _git(path, ["commit-tree", tree, "-m", "Initialize syncban store"])
        _git(path, ["update-ref", f"refs/heads/{branch}", commit, ZERO_SHA])
    return path


class GitRemote:
    """RemoteStore backed by a branch of a (usually bare, shared) repository."""

    def __init__(self, repo_path: str | Path, branch: str = BRANCH_NAME) -> None:
        self.repo_path = Path(repo_path)
        self.branch = branch
        self.subscriptions = Subscriptions()
        try:
            Repo(self.repo_path)
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise RemoteUnavailable(f"not a git repository: {self.repo_path}") from exc

    @property
    def ref(self) -> str:
        return f"refs/heads/{self.branch}"

    def _tip(self) -> str | None:
        return _get_ref(self.repo_path, self.ref)

    def fetch(self, document_id: str) -> dict | None:
        try:
            tip = self._tip()
            if tip is None:
                return None
            name = document_id + SUFFIX
            if not _git(self.repo_path, ["ls-tree", "--name-only", tip, "--", name]):
                return None
            text = _git(self.repo_path, ["cat-file", "blob", f"{tip}:{name}"])
        except (subprocess.CalledProcessError, OSError) as exc:
            raise _to_remote_error(exc, f"fetch {document_id}") from exc
        return json.loads(text)

    def list_ids(self) -> list[str]:
        try:
            tip = self._tip()
            if tip is None:
                return []
            names = _git(self.repo_path, ["ls-tree", "--name-only", tip]).splitlines()
        except (subprocess.CalledProcessError, OSError) as exc:
            raise _to_remote_error(exc, "list documents") from exc
        return [n[: -len(SUFFIX)] for n in names if n.endswith(SUFFIX)]

    def write(self, document_id: str, document: dict) -> None:
        name = document_id + SUFFIX
        content = json.dumps(document, indent=2, sort_keys=True) + "\n"
        try:
            for _ in range(CAS_ATTEMPTS):
                tip = self._tip()
                blob = _git(self.repo_path, ["hash-object", "-w", "--stdin"], input=content)
                entries = [e for e in _tree_entries(self.repo_path, tip) if e[3] != name]
                entries.append(("100644", "blob", blob, name))
                entries.sort(key=lambda e: e[3])
                tree = _mktree(self.repo_path, entries)

                if tip is not None and _git(self.repo_path, ["rev-parse", f"{tip}^{{tree}}"]) == tree:
                    return

                parent_args = ["-p", tip] if tip else []
                commit = _git(self.repo_path, ["commit-tree", tree, *parent_args, "-m", f"Update {document_id}"])
                try:
                    _git(self.repo_path, ["update-ref", self.ref, commit, tip or ZERO_SHA])
                except subprocess.CalledProcessError:
                    logger.info("%s moved while writing %s, retrying", self.branch, document_id)
                    continue
                break
            else:
                raise RemoteUnavailable(f"write {document_id}: {self.branch} kept moving")
        except (subprocess.CalledProcessError, OSError) as exc:
            raise _to_remote_error(exc, f"write {document_id}") from exc
        self.subscriptions.notify(document_id, document)

    def subscribe(self, document_id: str, callback):
        """Listen for writes made through this store instance."""
        return self.subscriptions.add(document_id, callback)
