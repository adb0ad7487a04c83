"""
hosting.py — Interfaz con el servicio que hospeda el repo (GitHub o similar).

El publicador no conoce HTTP ni ninguna librería de cliente: solo habla con
un HostingClient. Esto permite cambiar de backend o usar un doble en tests.

Reglas de errores:
- Las búsquedas (find_*, read_file) regresan None cuando el recurso no existe.
- Operaciones sobre un recurso que no existe lanzan NotFoundError.
- Cualquier otra falla (auth, rate limit, conflicto, red) lanza
  RemoteOperationError.

Uso:
    from builder_contrib.publishing.hosting import HostingClient, FileWrite
    request = FileWrite(path="a/b.yaml", content="...", branch="x", message="y")
    client.write_file(fork, request)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


# ============================================================
# Errores
# ============================================================

class HostingError(Exception):
    """Error base del servicio de hosting."""


class RemoteOperationError(HostingError):
    """
    Falla del servicio remoto que no se recupera localmente.

    Args:
        message: Descripción del error.
        status_code: Código HTTP si lo hay (None para errores de red).
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(RemoteOperationError):
    """El recurso sobre el que se quería operar no existe."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


# ============================================================
# Value objects
# ============================================================

@dataclass(frozen=True)
class Repository:
    """Un repositorio remoto (upstream o fork)."""
    owner: str
    name: str
    default_branch: str = "main"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class BranchRef:
    """Un ref de branch apuntando a un commit."""
    name: str
    sha: str


@dataclass(frozen=True)
class PullRequest:
    """
    Datos de un Pull Request en el upstream.

    Campos:
        number: Número del PR
        url: URL para humanos
        title: Título del PR
        head: Branch fuente ("owner:branch")
        base: Branch destino
        state: "open" o "closed"
    """
    number: int
    url: str = ""
    title: str = ""
    head: str = ""
    base: str = ""
    state: str = "open"


@dataclass(frozen=True)
class FileWrite:
    """
    Escritura de un archivo en un branch, en un solo objeto.

    sha=None significa archivo nuevo; si el archivo ya existe hay
    que mandar el sha de su blob actual para actualizarlo.
    """
    path: str
    content: str
    branch: str
    message: str
    sha: str | None = None

    @property
    def is_update(self) -> bool:
        return self.sha is not None


# ============================================================
# Interfaz
# ============================================================

class HostingClient(ABC):
    """Capacidades del servicio remoto que necesita el publicador."""

    @abstractmethod
    def get_authenticated_user(self) -> str:
        """Handle del usuario autenticado."""
        ...

    @abstractmethod
    def get_repository(self, full_name: str) -> Repository:
        """Busca un repo por "owner/name". Lanza NotFoundError si no existe."""
        ...

    @abstractmethod
    def create_fork(self, repo: Repository) -> Repository:
        """Crea (o regresa el existente) fork de repo para el usuario."""
        ...

    @abstractmethod
    def find_ref(self, repo: Repository, branch: str) -> BranchRef | None:
        ...

    @abstractmethod
    def create_ref(self, repo: Repository, branch: str, sha: str) -> BranchRef:
        ...

    @abstractmethod
    def delete_ref(self, repo: Repository, branch: str) -> None:
        ...

    @abstractmethod
    def update_ref(
        self, repo: Repository, branch: str, sha: str, force: bool = False
    ) -> BranchRef:
        ...

    @abstractmethod
    def merge_into_branch(
        self, repo: Repository, branch: str, sha: str, message: str
    ) -> str | None:
        """
        Mergea sha dentro de branch.

        Returns:
            sha del merge commit, o None si el branch ya lo contenía.
        """
        ...

    @abstractmethod
    def find_file_sha(self, repo: Repository, path: str, ref: str) -> str | None:
        ...

    @abstractmethod
    def read_file(self, repo: Repository, path: str, ref: str) -> str | None:
        ...

    @abstractmethod
    def write_file(self, repo: Repository, request: FileWrite) -> str:
        """Crea o actualiza un archivo. Regresa el sha del commit."""
        ...

    @abstractmethod
    def list_open_pull_requests(
        self, repo: Repository, head: str
    ) -> list[PullRequest]:
        ...

    @abstractmethod
    def create_pull_request(
        self, repo: Repository, title: str, head: str, base: str, body: str
    ) -> PullRequest:
        ...
