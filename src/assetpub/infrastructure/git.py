"""Read the checked-out commit from git metadata without invoking git"""

import logging
import re
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

_SHA_RE = re.compile(r"^[0-9a-f]{40}$")


def _resolve_git_dir(root: Path) -> Optional[Path]:
    git_path = root / ".git"
    if git_path.is_dir():
        return git_path
    if git_path.is_file():
        # Worktrees and submodules use a "gitdir: <path>" pointer file
        content = git_path.read_text(encoding="utf-8").strip()
        if content.startswith("gitdir:"):
            target = Path(content[len("gitdir:"):].strip())
            return target if target.is_absolute() else (root / target).resolve()
    return None


def _read_ref(git_dir: Path, ref: str) -> Optional[str]:
    ref_file = git_dir / ref
    if ref_file.is_file():
        return ref_file.read_text(encoding="utf-8").strip()

    packed = git_dir / "packed-refs"
    if packed.is_file():
        for line in packed.read_text(encoding="utf-8").splitlines():
            if not line or line.startswith(("#", "^")):
                continue
            sha, _, name = line.partition(" ")
            if name.strip() == ref:
                return sha.strip()

    # Linked worktrees keep shared refs in the common dir
    common = git_dir / "commondir"
    if common.is_file():
        common_dir = (git_dir / common.read_text(encoding="utf-8").strip()).resolve()
        if common_dir != git_dir:
            return _read_ref(common_dir, ref)
    return None


def get_commit(root: Union[str, Path]) -> Optional[str]:
    """Return the commit HEAD points at, or None if it cannot be determined

    Args:
        root: Repository root (the directory containing .git)
    """
    git_dir = _resolve_git_dir(Path(root))
    if git_dir is None:
        logger.debug(f"No git metadata under {root}")
        return None

    head_file = git_dir / "HEAD"
    if not head_file.is_file():
        return None
    head = head_file.read_text(encoding="utf-8").strip()

    if _SHA_RE.match(head):
        return head
    match = re.match(r"^ref: (.+)$", head)
    if not match:
        return None
    sha = _read_ref(git_dir, match.group(1))
    if sha and _SHA_RE.match(sha):
        return sha
    return None
