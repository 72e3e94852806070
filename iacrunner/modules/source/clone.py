"""Source tree preparation."""

import logging
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from typing import List

from iacrunner.errors import SourceError
from iacrunner.modules.api.models import SourceConfig

logger = logging.getLogger("iacrunner.source")

GIT_TIMEOUT = 600


@dataclass(frozen=True)
class PreparedSource:
    """A prepared source tree."""

    root: str  # temporary tree, removed after the run
    working_dir: str  # where the tool runs


def prepare(source: SourceConfig) -> PreparedSource:
    """
    Fetch source code into a temporary tree.

    Raises:
        SourceError: For unsupported source types or fetch failures
    """
    if source.type == "git":
        return clone_git(source)
    raise SourceError(f"unsupported source type: {source.type}")


def clone_git(source: SourceConfig) -> PreparedSource:
    """
    Clone a git repository at a ref.

    Tries a shallow clone of the ref first; refs that are commits need a
    full clone followed by a checkout.
    """
    try:
        root = tempfile.mkdtemp(prefix="iacrunner-")
    except OSError as e:
        raise SourceError(f"creating source directory: {e}") from e
    clone_dir = os.path.join(root, "source")

    logger.info(f"Cloning repository: repo={source.git_repo} ref={source.git_ref or 'default'}")

    try:
        shallow = ["git", "clone", "--depth=1"]
        if source.git_ref:
            shallow += ["--branch", source.git_ref]
        shallow += [source.git_repo, clone_dir]

        ok, shallow_output = _git(shallow)
        if not ok:
            shutil.rmtree(clone_dir, ignore_errors=True)
            ok, full_output = _git(["git", "clone", source.git_repo, clone_dir])
            if not ok:
                raise SourceError(f"git clone failed: {shallow_output} / {full_output}")
            if source.git_ref:
                ok, checkout_output = _git(["git", "checkout", source.git_ref], cwd=clone_dir)
                if not ok:
                    raise SourceError(f"git checkout failed: {checkout_output}")

        working_dir = clone_dir
        if source.working_directory:
            working_dir = os.path.join(clone_dir, source.working_directory)
            if not os.path.isdir(working_dir):
                raise SourceError(
                    f"working directory {source.working_directory} not found in repo"
                )
    except SourceError:
        shutil.rmtree(root, ignore_errors=True)
        raise

    logger.info(f"Source prepared: work_dir={working_dir}")
    return PreparedSource(root=root, working_dir=working_dir)


def remove_tree(root: str) -> None:
    """Remove a prepared tree; errors are logged."""
    try:
        shutil.rmtree(root)
    except FileNotFoundError:
        return
    except OSError as e:
        logger.warning(f"Failed to remove source tree {root}: {e}")


def _git(cmd: List[str], cwd: str = None):
    """Run a git command; returns (succeeded, combined output)."""
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
    try:
        process = subprocess.run(
            cmd,
            cwd=cwd,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=GIT_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        return False, f"{' '.join(cmd[:2])} timed out"
    except OSError as e:
        return False, str(e)

    return process.returncode == 0, process.stdout.strip()
