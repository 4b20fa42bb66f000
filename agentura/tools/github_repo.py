"""GitHub repository references attached to user messages."""

from __future__ import annotations

import logging
import re
from typing import Optional, Tuple

import httpx

from agentura.session.models import RepoRef

LOGGER = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
GITHUB_API_TIMEOUT = 15.0
MAX_TREE_ENTRIES = 200

_REPO_URL = re.compile(r"github\.com[/:]([^/\s]+)/([^/\s#?]+?)(?:\.git)?(?:[/#?].*)?$")


def parse_repo_url(url: str) -> Optional[Tuple[str, str]]:
    match = _REPO_URL.search(url.strip())
    if not match:
        return None
    return match.group(1), match.group(2)


async def fetch_repo_ref(url: str, *, client: Optional[httpx.AsyncClient] = None) -> RepoRef:
    """Resolve a repository URL into a ``RepoRef`` with its file tree.

    Failures are recorded on the returned reference instead of raised.
    """
    parsed = parse_repo_url(url)
    if parsed is None:
        return RepoRef(url=url, error="Not a GitHub repository URL.")
    owner, repo = parsed

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=GITHUB_API_TIMEOUT)
    try:
        info = await client.get(f"{GITHUB_API}/repos/{owner}/{repo}")
        info.raise_for_status()
        branch = info.json().get("default_branch", "main")

        tree = await client.get(f"{GITHUB_API}/repos/{owner}/{repo}/git/trees/{branch}", params={"recursive": "1"})
        tree.raise_for_status()
        paths = [item["path"] for item in tree.json().get("tree", []) if item.get("type") == "blob"]
        LOGGER.info(f"Fetched {len(paths)} files for {owner}/{repo}")
        return RepoRef(url=url, owner=owner, repo=repo, file_tree=paths[:MAX_TREE_ENTRIES])
    except httpx.HTTPStatusError as e:
        LOGGER.warning(f"GitHub API error for {owner}/{repo}: {e.response.status_code}")
        return RepoRef(url=url, owner=owner, repo=repo, error=f"GitHub API returned {e.response.status_code}.")
    except httpx.HTTPError as e:
        LOGGER.warning(f"GitHub request failed for {owner}/{repo}: {e}")
        return RepoRef(url=url, owner=owner, repo=repo, error=f"Could not reach GitHub: {e}")
    finally:
        if owns_client:
            await client.aclose()


def render_repo_context(ref: RepoRef) -> str:
    """Prompt context block for a repository reference."""

    if ref.error:
        return f"Referenced repository {ref.url} could not be loaded: {ref.error}"
    files = "\n".join(f"- {path}" for path in ref.file_tree)
    return f"Referenced repository {ref.owner}/{ref.repo} ({ref.url}). Files:\n{files}"
