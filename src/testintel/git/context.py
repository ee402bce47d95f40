"""Git context captured alongside recorded executions."""

import logging
from pathlib import Path
from typing import Optional

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

logger = logging.getLogger(__name__)


class GitContext:
    """Reads the current commit and changed files of a workspace."""

    def __init__(self, repo_path: Path | str):
        """Initialize for a directory inside (or at the root of) a work tree."""
        self.repo_path = Path(repo_path)
        self._repo: Optional[Repo] = None

    @property
    def repo(self) -> Repo:
        """Repository containing ``repo_path``, opened on first use.

        Raises:
            ValueError: If ``repo_path`` is not inside a git work tree
        """
        if self._repo is None:
            try:
                self._repo = Repo(self.repo_path, search_parent_directories=True)
            except (InvalidGitRepositoryError, NoSuchPathError):
                raise ValueError(f"Not a git repository: {self.repo_path}")
        return self._repo

    def close(self) -> None:
        """Release the repository and its git helper processes.

        The repository is reopened on the next lookup.
        """
        if self._repo is not None:
            self._repo.close()
            self._repo = None

    def __enter__(self) -> "GitContext":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def current_commit(self) -> Optional[str]:
        """Get the current commit hash, or None outside a repository."""
        try:
            return self.repo.head.commit.hexsha
        except (ValueError, GitCommandError) as e:
            logger.debug("No current commit for %s: %s", self.repo_path, e)
            return None

    def current_branch(self) -> Optional[str]:
        """Get the current branch name, or None when detached or unavailable."""
        try:
            return self.repo.active_branch.name
        except (ValueError, TypeError, GitCommandError):
            return None

    def changed_files(
        self,
        compare_ref: Optional[str] = None,
        include_uncommitted: bool = True,
    ) -> list[str]:
        """List paths changed in the working tree and/or since ``compare_ref``.

        Args:
            compare_ref: Git ref to compare HEAD against (e.g. 'main', 'HEAD~1')
            include_uncommitted: Include staged, unstaged and untracked files

        Returns:
            Repository-relative paths, without duplicates, in discovery order
        """
        try:
            repo = self.repo
        except ValueError as e:
            logger.debug("Skipping changed-file lookup: %s", e)
            return []

        paths: dict[str, None] = {}

        if compare_ref:
            try:
                for d in repo.head.commit.diff(compare_ref):
                    paths[d.b_path or d.a_path] = None
            except (ValueError, GitCommandError) as e:
                logger.warning("Could not diff against %s: %s", compare_ref, e)

        if include_uncommitted:
            try:
                # Fresh repositories have no HEAD to diff the index against.
                if repo.head.is_valid():
                    for d in repo.index.diff("HEAD"):
                        paths[d.b_path or d.a_path] = None
                for d in repo.index.diff(None):
                    paths[d.b_path or d.a_path] = None
                for path in repo.untracked_files:
                    paths[path] = None
            except GitCommandError as e:
                logger.warning("Could not list working tree changes: %s", e)

        return list(paths)
