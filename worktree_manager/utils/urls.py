"""Remote URL parsing helpers."""

import re
from typing import Optional
from urllib.parse import urlparse

# git@github.com:owner/repo.git
_SCP_LIKE = re.compile(r"^(?:[\w.\-]+@)?(?P<host>[\w.\-]+):(?P<path>(?!/).+)$")


def _strip_suffix(path: str) -> str:
    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    return path


def normalize_repository_url(url: str) -> Optional[str]:
    """Normalize a remote URL to ``host/owner/repo``.

    Handles SSH scp-like syntax, ``ssh://``, ``https://``, ``http://`` and
    ``git://`` URLs. Returns None for anything else (local paths, ``file://``).
    """
    url = (url or "").strip()
    if not url:
        return None

    if "://" in url:
        parsed = urlparse(url)
        if parsed.scheme not in ("ssh", "https", "http", "git", "git+ssh") or not parsed.hostname:
            return None
        path = _strip_suffix(parsed.path)
        if not path:
            return None
        return f"{parsed.hostname}/{path}"

    match = _SCP_LIKE.match(url)
    if match:
        path = _strip_suffix(match.group("path"))
        if not path:
            return None
        return f"{match.group('host')}/{path}"

    return None


def extract_host(url: str) -> Optional[str]:
    """Host name of a remote URL, or None if it has none."""
    normalized = normalize_repository_url(url)
    return normalized.split("/", 1)[0] if normalized else None


def is_ssh_url(url: str) -> bool:
    """True for scp-like and ``ssh://`` URLs."""
    url = (url or "").strip()
    if url.startswith(("ssh://", "git+ssh://")):
        return True
    return "://" not in url and bool(_SCP_LIKE.match(url))


def build_remote_url(origin_url: str, owner: str, repo_name: str) -> str:
    """Build a fork URL on the same host as ``origin_url``.

    Assumes the fork lives at ``<host>/<owner>/<repo_name>`` and uses the same
    protocol as origin. Hosts with other URL shapes are not supported.
    """
    host = extract_host(origin_url)
    if not host:
        raise ValueError(f"cannot determine host from '{origin_url}'")
    if is_ssh_url(origin_url):
        return f"git@{host}:{owner}/{repo_name}.git"
    return f"https://{host}/{owner}/{repo_name}.git"
