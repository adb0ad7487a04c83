"""
github_client.py — HostingClient sobre la API REST de GitHub.

Usa requests con un token personal (GITHUB_TOKEN). El token necesita
permiso para hacer fork, escribir contenido en el fork y abrir PRs
en el upstream.

Mapeo de errores:
    - 404 en búsquedas (find_ref, find_file_sha, read_file) → None
    - 404 en cualquier otra operación → NotFoundError
    - Otros 4xx/5xx y errores de red → RemoteOperationError

Uso:
    from builder_contrib.publishing.github_client import GitHubClient
    client = GitHubClient(token="ghp_...")
    upstream = client.get_repository("airbytehq/airbyte")
"""

from __future__ import annotations

import base64
from typing import Any
from urllib.parse import quote

import requests

from builder_contrib.publishing.hosting import (
    BranchRef,
    FileWrite,
    HostingClient,
    NotFoundError,
    PullRequest,
    RemoteOperationError,
    Repository,
)
from builder_contrib.utils.logger import get_logger

logger = get_logger("builder_contrib.github")

API_VERSION = "2022-11-28"


def _repo_from_json(data: dict[str, Any]) -> Repository:
    return Repository(
        owner=data["owner"]["login"],
        name=data["name"],
        default_branch=data.get("default_branch") or "main",
    )


def _pr_from_json(data: dict[str, Any]) -> PullRequest:
    return PullRequest(
        number=data["number"],
        url=data.get("html_url", ""),
        title=data.get("title", ""),
        head=data.get("head", {}).get("label", ""),
        base=data.get("base", {}).get("ref", ""),
        state=data.get("state", "open"),
    )


class GitHubClient(HostingClient):
    """
    Cliente mínimo de la API de GitHub para publicar contribuciones.

    Args:
        token: Token personal de GitHub.
        api_url: URL base de la API (GitHub Enterprise usa otra).
        timeout: Timeout por request en segundos.
        session: requests.Session a reutilizar (útil en tests).
    """

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        timeout: int = 30,
        session: requests.Session | None = None,
    ):
        if not token:
            raise ValueError(
                "Falta el token de GitHub. Define GITHUB_TOKEN en .env "
                "o en el entorno."
            )
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": "builder-contrib",
        })

    # ============================================================
    # HTTP
    # ============================================================

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Hace el request y convierte errores de red en RemoteOperationError."""
        url = f"{self._api_url}{path}"
        try:
            return self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.Timeout as e:
            raise RemoteOperationError(f"Timeout en {method} {path}") from e
        except requests.RequestException as e:
            raise RemoteOperationError(f"Error de red en {method} {path}: {e}") from e

    @staticmethod
    def _raise_for_status(resp: requests.Response, what: str) -> None:
        if resp.status_code < 400:
            return
        if resp.status_code == 404:
            raise NotFoundError(f"No existe: {what}")
        if resp.status_code in (403, 429) and resp.headers.get("X-RateLimit-Remaining") == "0":
            raise RemoteOperationError(
                f"Rate limit de GitHub agotado ({what}). "
                f"Se reinicia en {resp.headers.get('X-RateLimit-Reset', '?')}",
                status_code=resp.status_code,
            )
        raise RemoteOperationError(
            f"GitHub respondió {resp.status_code} en {what}: {resp.text[:200]}",
            status_code=resp.status_code,
        )

    def _call(self, method: str, path: str, what: str, **kwargs: Any) -> Any:
        """Request que debe salir bien; regresa el JSON (o None si no hay body)."""
        resp = self._request(method, path, **kwargs)
        self._raise_for_status(resp, what)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    def _lookup(self, path: str, what: str, **kwargs: Any) -> Any:
        """GET donde 404 significa "no existe" y regresa None."""
        resp = self._request("GET", path, **kwargs)
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp, what)
        return resp.json()

    @staticmethod
    def _ref_path(repo: Repository, branch: str) -> str:
        return f"/repos/{repo.full_name}/git/refs/heads/{quote(branch, safe='/')}"

    # ============================================================
    # Identidad y repos
    # ============================================================

    def get_authenticated_user(self) -> str:
        data = self._call("GET", "/user", "usuario autenticado")
        return data["login"]

    def get_repository(self, full_name: str) -> Repository:
        data = self._call("GET", f"/repos/{full_name}", f"repo {full_name}")
        return _repo_from_json(data)

    def create_fork(self, repo: Repository) -> Repository:
        # GitHub regresa el fork existente si ya había uno
        data = self._call("POST", f"/repos/{repo.full_name}/forks", f"fork de {repo.full_name}")
        fork = _repo_from_json(data)
        logger.info(f"Fork listo: {fork.full_name}")
        return fork

    # ============================================================
    # Refs
    # ============================================================

    def find_ref(self, repo: Repository, branch: str) -> BranchRef | None:
        path = f"/repos/{repo.full_name}/git/ref/heads/{quote(branch, safe='/')}"
        data = self._lookup(path, f"ref {branch} en {repo.full_name}")
        if data is None or isinstance(data, list):
            # Una lista significa coincidencias por prefijo, no el ref exacto
            return None
        return BranchRef(name=branch, sha=data["object"]["sha"])

    def create_ref(self, repo: Repository, branch: str, sha: str) -> BranchRef:
        data = self._call(
            "POST",
            f"/repos/{repo.full_name}/git/refs",
            f"crear ref {branch}",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )
        return BranchRef(name=branch, sha=data["object"]["sha"])

    def delete_ref(self, repo: Repository, branch: str) -> None:
        self._call("DELETE", self._ref_path(repo, branch), f"borrar ref {branch}")

    def update_ref(
        self, repo: Repository, branch: str, sha: str, force: bool = False
    ) -> BranchRef:
        data = self._call(
            "PATCH",
            self._ref_path(repo, branch),
            f"actualizar ref {branch}",
            json={"sha": sha, "force": force},
        )
        return BranchRef(name=branch, sha=data["object"]["sha"])

    def merge_into_branch(
        self, repo: Repository, branch: str, sha: str, message: str
    ) -> str | None:
        data = self._call(
            "POST",
            f"/repos/{repo.full_name}/merges",
            f"merge de {sha[:7]} en {branch}",
            json={"base": branch, "head": sha, "commit_message": message},
        )
        # 204: el branch ya contenía ese commit
        return data["sha"] if data else None

    # ============================================================
    # Contenido
    # ============================================================

    def _get_content(self, repo: Repository, path: str, ref: str) -> dict | None:
        data = self._lookup(
            f"/repos/{repo.full_name}/contents/{quote(path)}",
            f"{path}@{ref}",
            params={"ref": ref},
        )
        # Una lista es un directorio, no un archivo
        if data is None or isinstance(data, list):
            return None
        return data

    def find_file_sha(self, repo: Repository, path: str, ref: str) -> str | None:
        data = self._get_content(repo, path, ref)
        return data["sha"] if data else None

    def read_file(self, repo: Repository, path: str, ref: str) -> str | None:
        data = self._get_content(repo, path, ref)
        if data is None:
            return None
        return base64.b64decode(data.get("content", "")).decode("utf-8")

    def write_file(self, repo: Repository, request: FileWrite) -> str:
        payload: dict[str, Any] = {
            "message": request.message,
            "content": base64.b64encode(request.content.encode("utf-8")).decode("ascii"),
            "branch": request.branch,
        }
        if request.sha is not None:
            payload["sha"] = request.sha

        data = self._call(
            "PUT",
            f"/repos/{repo.full_name}/contents/{quote(request.path)}",
            f"escribir {request.path}",
            json=payload,
        )
        return data["commit"]["sha"]

    # ============================================================
    # Pull Requests
    # ============================================================

    def list_open_pull_requests(
        self, repo: Repository, head: str
    ) -> list[PullRequest]:
        data = self._call(
            "GET",
            f"/repos/{repo.full_name}/pulls",
            f"PRs abiertos de {head}",
            params={"state": "open", "head": head},
        )
        return [_pr_from_json(item) for item in data or []]

    def create_pull_request(
        self, repo: Repository, title: str, head: str, base: str, body: str
    ) -> PullRequest:
        data = self._call(
            "POST",
            f"/repos/{repo.full_name}/pulls",
            f"crear PR {head} → {base}",
            json={"title": title, "head": head, "base": base, "body": body},
        )
        return _pr_from_json(data)
