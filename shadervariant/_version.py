"""
Versioning for shadervariant. The version number is hard-coded. For a git
checkout, the number of commits since the release tag and the commit hash are
appended, so that dev installs can be told apart.
"""

import logging
import subprocess
from pathlib import Path


# The release version, to be bumped before each release.
__version__ = "0.1.0"
release = __version__


logger = logging.getLogger("shadervariant")

# The root of the git checkout, or None when installed.
repo_dir = Path(__file__).parents[1]
repo_dir = repo_dir if repo_dir.joinpath(".git").is_dir() else None


def describe_git_checkout():
    """Get (post, labels) from ``git describe``, or None if git fails.

    With ``post`` the number of commits since the latest tag (a str) and
    ``labels`` a list with the abbreviated hash, plus "dirty" for local changes.
    """
    command = ["git", "describe", "--long", "--always", "--tags", "--dirty"]
    try:
        p = subprocess.run(command, cwd=repo_dir, capture_output=True)
    except OSError as err:
        logger.warning(f"Could not run git to get the shadervariant version: {err}")
        return None
    if p.returncode:
        logger.warning(
            "Could not get shadervariant version from git: "
            + p.stderr.decode(errors="ignore").strip()
        )
        return None

    parts = p.stdout.decode(errors="ignore").strip().lstrip("v").split("-")
    if len(parts) <= 2:
        # No tags yet: only the hash and maybe 'dirty'
        return "", parts
    tag, post, *labels = parts
    if tag != release:
        logger.warning(f"Git tag v{tag} does not match shadervariant {release}")
    return post, labels


def get_version():
    """Get the version string, e.g. '0.1.0' or '0.1.0.post3+g1a2b3c4.dirty'."""
    info = describe_git_checkout() if repo_dir else None
    if info is None:
        return release
    post, labels = info
    version = release
    if post and post != "0":
        version += f".post{post}"
    labels = [label for label in labels if label]
    if labels:
        version += "+" + ".".join(labels)
    return version


__version__ = get_version()
version_info = tuple(
    int(i) if i.isnumeric() else i for i in __version__.split("+")[0].split(".")
)
