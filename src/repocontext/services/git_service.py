"""
Git Service - URL parsing, authenticated cloning and checkout housekeeping.

All git operations shell out to the ``git`` binary via subprocess.
Credentials are injected into the clone URL and redacted from anything
that is logged or raised.

Usage:
    from repocontext.services.git_service import GitService, GitAuth

    git = GitService()
    info = git.parse_repo_url("https://github.com/acme/payments.git")
    git.clone(info.clone_url, Path("/tmp/payments"), auth=GitAuth(type="token", token="ghp_..."))
"""

import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

from ..constants import GIT_COMMAND_TIMEOUT_SECONDS, AuthType, ErrorMessage, GitProvider
from ..logging import get_logger, log_operation_end, log_operation_start


logger = get_logger(__name__)


class GitError(Exception):
    """Raised when a git command fails or a URL cannot be understood."""


@dataclass
class GitAuth:
    """Credentials used to clone a private repository."""

    type: AuthType = AuthType.TOKEN
    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


@dataclass
class RepoUrlInfo:
    """Components of a repository URL."""

    url: str
    provider: GitProvider
    owner: str
    name: str
    branch: Optional[str] = None
    # url without a browser branch path such as /tree/<branch>
    clone_url: str = ""

    def __post_init__(self):
        if not self.clone_url:
            self.clone_url = self.url


_SEGMENT = r"[^/\s]+"
# GitLab groups nest: group/subgroup/name
_NESTED_OWNER = rf"{_SEGMENT}(?:/{_SEGMENT})*?"

# (provider, host, owner pattern, tree segment used in browser URLs)
_PROVIDER_HOSTS = [
    (GitProvider.GITHUB, "github.com", _SEGMENT, r"/tree/"),
    (GitProvider.GITLAB, "gitlab.com", _NESTED_OWNER, r"/-/tree/"),
    (GitProvider.BITBUCKET, "bitbucket.org", _SEGMENT, r"/src/"),
]

_NAME = r"([^/\s]+?)"


def _strip_git_suffix(name: str) -> str:
    return name[:-4] if name.endswith(".git") else name


class GitService:
    """Thin wrapper around the git CLI."""

    def __init__(self, timeout: int = GIT_COMMAND_TIMEOUT_SECONDS):
        self.timeout = timeout

    # ========================================================================
    # URLs
    # ========================================================================

    @staticmethod
    def parse_repo_url(url: str) -> RepoUrlInfo:
        """
        Split a repository URL into provider, owner, name and branch.

        Understands https and ssh forms for GitHub, GitLab and Bitbucket,
        browser URLs that include a branch, and any other ``.../owner/name``
        URL as a generic provider.

        Raises:
            GitError: If the URL has no owner/name structure
        """
        url = url.strip()

        for provider, host, owner_pattern, tree_segment in _PROVIDER_HOSTS:
            escaped_host = re.escape(host)
            https_match = re.match(
                rf"^https?://(?:[^@/]+@)?{escaped_host}/({owner_pattern})/{_NAME}(?:\.git)?"
                rf"(?:{tree_segment}(\S+?))?/?$",
                url,
            )
            if https_match:
                branch = https_match.group(3)
                clone_url = url
                if branch:
                    clone_url = re.sub(rf"{tree_segment}$", "", url[: https_match.start(3)])
                return RepoUrlInfo(
                    url=url,
                    provider=provider,
                    owner=https_match.group(1),
                    name=_strip_git_suffix(https_match.group(2)),
                    branch=branch,
                    clone_url=clone_url,
                )

            ssh_match = re.match(rf"^(?:ssh://)?git@{escaped_host}[:/]({owner_pattern})/{_NAME}(?:\.git)?/?$", url)
            if ssh_match:
                return RepoUrlInfo(
                    url=url,
                    provider=provider,
                    owner=ssh_match.group(1),
                    name=_strip_git_suffix(ssh_match.group(2)),
                )

        generic_match = re.search(r"([^/:\s]+)[/:]([^/\s]+?)(?:\.git)?/?$", url)
        if generic_match and ("/" in url or ":" in url):
            return RepoUrlInfo(
                url=url,
                provider=GitProvider.GENERIC,
                owner=generic_match.group(1),
                name=_strip_git_suffix(generic_match.group(2)),
            )

        raise GitError(ErrorMessage.INVALID_REPO_URL.format(url=url))

    def build_authenticated_url(self, url: str, auth: Optional[GitAuth]) -> str:
        """
        Embed credentials into an https clone URL.

        SSH URLs and missing credentials leave the URL unchanged.
        """
        if auth is None or auth.type == AuthType.SSH or not url.startswith(("https://", "http://")):
            return url

        info = self.parse_repo_url(url)
        parts = urlsplit(url)
        host = parts.hostname or ""
        if parts.port:
            host = f"{host}:{parts.port}"

        userinfo = None
        if auth.type == AuthType.TOKEN and auth.token:
            if info.provider == GitProvider.GITLAB:
                userinfo = f"oauth2:{quote(auth.token, safe='')}"
            elif info.provider == GitProvider.BITBUCKET:
                userinfo = f"x-token-auth:{quote(auth.token, safe='')}"
            else:
                userinfo = quote(auth.token, safe="")
        elif auth.type == AuthType.TOKEN and auth.username and auth.password:
            userinfo = f"{quote(auth.username, safe='')}:{quote(auth.password, safe='')}"
        elif auth.type == AuthType.BASIC and auth.username and auth.password:
            userinfo = f"{quote(auth.username, safe='')}:{quote(auth.password, safe='')}"
        elif auth.type == AuthType.OAUTH and auth.token:
            userinfo = f"{quote(auth.token, safe='')}:x-oauth-basic"

        if userinfo is None:
            return url

        return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))

    @staticmethod
    def redact(text: str) -> str:
        """Remove credentials embedded in URLs."""
        return re.sub(r"(https?://)[^@/\s]+@", r"\1***@", text)

    # ========================================================================
    # Commands
    # ========================================================================

    def _run(self, args: list[str], cwd: Optional[Path] = None) -> str:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as error:
            raise GitError("git executable not found") from error
        except subprocess.TimeoutExpired as error:
            raise GitError(f"git {args[0]} timed out after {self.timeout}s") from error

        if result.returncode != 0:
            raise GitError(self.redact(f"git {args[0]} failed: {result.stderr.strip()}"))
        return result.stdout

    def clone(
        self,
        url: str,
        target_dir: Path,
        branch: Optional[str] = None,
        depth: Optional[int] = 1,
        auth: Optional[GitAuth] = None,
    ) -> Path:
        """
        Clone a repository into ``target_dir``, replacing anything already there.

        Args:
            url: Repository URL
            target_dir: Destination directory
            branch: Branch to check out, default branch when None
            depth: Shallow clone depth, full history when None
            auth: Optional credentials

        Returns:
            The checkout path

        Raises:
            GitError: If the clone fails
        """
        target_dir = Path(target_dir)
        if target_dir.exists():
            logger.warning("Target directory exists, removing", extra={"path": str(target_dir)})
            shutil.rmtree(target_dir, ignore_errors=True)
        target_dir.parent.mkdir(parents=True, exist_ok=True)

        args = ["clone"]
        if depth:
            args += ["--depth", str(depth), "--single-branch"]
        if branch:
            args += ["--branch", branch]
        args += [self.build_authenticated_url(url, auth), str(target_dir)]

        start_time = log_operation_start(logger, "git clone", url=self.redact(url), branch=branch)
        try:
            self._run(args)
        except GitError as error:
            log_operation_end(logger, "git clone", start_time, success=False, error=str(error))
            raise
        log_operation_end(logger, "git clone", start_time, path=str(target_dir))

        return target_dir

    def remote_url(self, repo_dir: Path) -> Optional[str]:
        """URL of the origin remote, None if the directory has none."""
        try:
            url = self._run(["config", "--get", "remote.origin.url"], cwd=repo_dir).strip()
        except GitError:
            return None
        return url or None

    @staticmethod
    def cleanup(target_dir: Path) -> None:
        """Remove a checkout. Missing directories are ignored."""
        if Path(target_dir).exists():
            shutil.rmtree(target_dir, ignore_errors=True)
            logger.debug("Checkout removed", extra={"path": str(target_dir)})
