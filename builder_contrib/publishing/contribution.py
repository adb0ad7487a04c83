"""
contribution.py — Publica un conector generado como PR al repo upstream.

Flujo completo de publish():
    1. Asegurar que existe el fork del usuario
    2. Preparar el branch de contribución (crear, recrear o actualizar)
    3. Escribir cada archivo generado en el branch
    4. Abrir un PR, o reutilizar el que ya esté abierto

Convención de nombres:
    - Directorio: airbyte-integrations/connectors/{image}
    - Branch: {usuario}/builder-contribute/{image}

Reconciliación del branch (prepare_branch_for_contribution):

    | Branch existe | PR abierto | Acción                                    |
    |---------------|------------|-------------------------------------------|
    | no            | -          | crear branch desde el head de main        |
    | sí            | no         | borrar y crear de nuevo desde main        |
    | sí            | sí         | mergear main en el branch (sin borrar)    |

Todo se consulta al servicio remoto en cada llamada; si algo falla a la
mitad, volver a correr publish() converge al mismo estado final.

Uso:
    from builder_contrib.publishing.contribution import ContributionPublisher
    publisher = ContributionPublisher(client, "source-test", user_handle="octocat")
    result = publisher.publish({"manifest.yaml": manifest, "metadata.yaml": metadata})
    print(result.pull_request.url)
"""

from __future__ import annotations

from dataclasses import dataclass, field

import yaml

from builder_contrib.config import AppConfig
from builder_contrib.publishing.hosting import (
    BranchRef,
    FileWrite,
    HostingClient,
    NotFoundError,
    PullRequest,
    Repository,
)
from builder_contrib.publishing.paths import (
    connector_directory_path,
    construct_connector_file_path,
    contribution_branch_name,
)
from builder_contrib.utils.logger import get_logger

logger = get_logger("builder_contrib.contribution")


@dataclass
class ContributionResult:
    """
    Resultado de una publicación exitosa.

    Campos:
        branch_name: Branch de contribución en el fork
        pull_request: PR abierto (existente o recién creado)
        created_pull_request: True si el PR se creó en esta llamada
        files_written: Rutas completas de los archivos escritos
    """
    branch_name: str
    pull_request: PullRequest
    created_pull_request: bool = False
    files_written: list[str] = field(default_factory=list)


class ContributionPublisher:
    """
    Orquesta fork, branch, archivos y PR de una contribución.

    Args:
        client: Cliente del servicio de hosting.
        connector_image_name: Nombre del conector (ej: "source-test").
        user_handle: Usuario que contribuye. Si es None se pregunta
            una sola vez al cliente.
        config: Configuración de la app (nombres de repo, mensajes).
    """

    def __init__(
        self,
        client: HostingClient,
        connector_image_name: str,
        user_handle: str | None = None,
        config: AppConfig | None = None,
    ):
        if not connector_image_name:
            raise ValueError("El nombre de imagen del conector no puede estar vacío")
        self._client = client
        self._image = connector_image_name
        self._user_handle = user_handle
        self._config = config or AppConfig()
        self._upstream: Repository | None = None
        self._fork: Repository | None = None

    # ============================================================
    # Nombres y rutas
    # ============================================================

    @property
    def connector_image_name(self) -> str:
        return self._image

    @property
    def user_handle(self) -> str:
        if self._user_handle is None:
            self._user_handle = self._client.get_authenticated_user()
        return self._user_handle

    @property
    def connector_directory_path(self) -> str:
        return connector_directory_path(
            self._image, self._config.contribution.connectors_dir
        )

    @property
    def connector_metadata_path(self) -> str:
        return self.construct_connector_file_path(
            self._config.contribution.metadata_filename
        )

    @property
    def contribution_branch_name(self) -> str:
        return contribution_branch_name(
            self.user_handle, self._image, self._config.contribution.branch_infix
        )

    def construct_connector_file_path(self, relative_file: str) -> str:
        return construct_connector_file_path(
            self._image, relative_file, self._config.contribution.connectors_dir
        )

    # ============================================================
    # Repos
    # ============================================================

    @property
    def upstream_repository(self) -> Repository:
        if self._upstream is None:
            self._upstream = self._client.get_repository(
                self._config.github.upstream_full_name
            )
        return self._upstream

    @property
    def forked_repository(self) -> Repository:
        if self._fork is None:
            self._fork = self.ensure_fork()
        return self._fork

    def ensure_fork(self) -> Repository:
        """Crea el fork si hace falta; si ya existe, GitHub regresa el mismo."""
        self._fork = self._client.create_fork(self.upstream_repository)
        return self._fork

    @property
    def pull_request_head(self) -> str:
        """Head del PR en formato "owner:branch" (el branch vive en el fork)."""
        return f"{self.forked_repository.owner}:{self.contribution_branch_name}"

    def _default_branch_head_sha(self) -> str:
        upstream = self.upstream_repository
        ref = self._client.find_ref(upstream, upstream.default_branch)
        if ref is None:
            raise NotFoundError(
                f"El branch {upstream.default_branch} no existe en {upstream.full_name}"
            )
        return ref.sha

    # ============================================================
    # Operaciones de branch
    # ============================================================

    def get_branch_ref(self, name: str, repo: Repository) -> BranchRef | None:
        """Ref del branch, o None si no existe."""
        return self._client.find_ref(repo, name)

    def create_branch(self, name: str, repo: Repository) -> BranchRef:
        """
        Crea el branch desde el head actual de main del upstream.

        No verifica si ya existe: el que llama ya lo confirmó con
        get_branch_ref().
        """
        sha = self._default_branch_head_sha()
        ref = self._client.create_ref(repo, name, sha)
        logger.success(f"Branch creado: {name} ({sha[:7]})")
        return ref

    def delete_branch(self, name: str, repo: Repository) -> None:
        self._client.delete_ref(repo, name)
        logger.info(f"Branch borrado: {name}")

    def _update_branch_from_default(self, name: str, repo: Repository) -> None:
        """Trae lo último de main al branch sin perder sus commits."""
        sha = self._default_branch_head_sha()
        self._client.update_ref(repo, repo.default_branch, sha)
        merge_sha = self._client.merge_into_branch(
            repo, name, sha, self._config.contribution.merge_message
        )
        if merge_sha:
            logger.success(f"Branch {name} actualizado con main ({merge_sha[:7]})")
        else:
            logger.info(f"Branch {name} ya estaba al día con main")

    # ============================================================
    # Operaciones de PR
    # ============================================================

    def get_existing_open_pull_request(self) -> PullRequest | None:
        """Primer PR abierto del branch de contribución; nunca se cachea."""
        prs = self._client.list_open_pull_requests(
            self.upstream_repository, self.pull_request_head
        )
        return prs[0] if prs else None

    def prepare_branch_for_contribution(self) -> PullRequest | None:
        """
        Deja el branch de contribución listo para recibir archivos.

        Returns:
            El PR abierto que se encontró, o None si no hay ninguno.
        """
        fork = self.forked_repository
        branch = self.contribution_branch_name

        if self.get_branch_ref(branch, fork) is None:
            logger.info(f"No existe {branch}, creándolo desde main")
            self.create_branch(branch, fork)
            return None

        open_pr = self.get_existing_open_pull_request()
        if open_pr is None:
            # Sin PR nadie depende del branch: se recrea desde main
            logger.info(f"{branch} existe sin PR abierto, recreándolo")
            self.delete_branch(branch, fork)
            self.create_branch(branch, fork)
            return None

        logger.info(f"{branch} tiene el PR #{open_pr.number} abierto, actualizándolo")
        try:
            self._update_branch_from_default(branch, fork)
        except NotFoundError:
            # El branch desapareció entre la consulta y el merge
            logger.warning(f"{branch} ya no existe, creándolo de nuevo")
            self.create_branch(branch, fork)
            return None
        return open_pr

    def create_pull_request(
        self,
        title: str | None = None,
        body: str | None = None,
    ) -> PullRequest:
        """
        Abre el PR del branch de contribución contra main del upstream.

        Solo se llama cuando prepare_branch_for_contribution() no
        encontró un PR abierto.
        """
        upstream = self.upstream_repository
        pr = self._client.create_pull_request(
            upstream,
            title=title or self.generate_pr_title(),
            head=self.pull_request_head,
            base=upstream.default_branch,
            body=body if body is not None else self.generate_pr_body(),
        )
        logger.success(f"PR creado: #{pr.number} — {pr.title}")
        return pr

    def generate_pr_title(self) -> str:
        prefix = self._config.contribution.pr_title_prefix
        if self.connector_exists_on_main():
            return f"{prefix} Update connector: {self._image}"
        return f"{prefix} New connector: {self._image}"

    def generate_pr_body(self, description: str = "", files: list[str] | None = None) -> str:
        """Descripción del PR en markdown."""
        files_md = "".join(f"- `{path}`\n" for path in files or [])
        body = f"## What\nContribution of `{self._image}` from the Connector Builder.\n"
        if description:
            body += f"\n## Description\n{description}\n"
        if files_md:
            body += f"\n## Files\n{files_md}"
        body += f"\n---\n*Submitted by @{self.user_handle}*\n"
        return body

    # ============================================================
    # Archivos
    # ============================================================

    def get_existing_file_sha(self, path: str) -> str | None:
        """sha del blob actual en el branch, o None si el archivo es nuevo."""
        return self._client.find_file_sha(
            self.forked_repository, path, self.contribution_branch_name
        )

    def write_file(self, relative_path: str, content: str, message: str | None = None) -> str:
        """
        Crea o actualiza un archivo del conector en el branch.

        Returns:
            sha del commit creado.
        """
        path = self.construct_connector_file_path(relative_path)
        request = FileWrite(
            path=path,
            content=content,
            branch=self.contribution_branch_name,
            message=message or self._config.contribution.commit_message_template.format(
                image=self._image
            ),
            sha=self.get_existing_file_sha(path),
        )
        commit_sha = self._client.write_file(self.forked_repository, request)
        action = "actualizado" if request.is_update else "creado"
        logger.info(f"Archivo {action}: {path}")
        return commit_sha

    # ============================================================
    # Metadata del conector en upstream
    # ============================================================

    def connector_exists_on_main(self) -> bool:
        upstream = self.upstream_repository
        sha = self._client.find_file_sha(
            upstream, self.connector_metadata_path, upstream.default_branch
        )
        return sha is not None

    def read_connector_metadata_value(self, key: str):
        """
        Lee un campo de metadata.yaml del conector en main.

        Los metadata.yaml de conectores guardan todo bajo "data";
        si no hay sección "data" se busca en la raíz.
        """
        upstream = self.upstream_repository
        text = self._client.read_file(
            upstream, self.connector_metadata_path, upstream.default_branch
        )
        if text is None:
            return None
        metadata = yaml.safe_load(text) or {}
        section = metadata.get("data", metadata)
        if not isinstance(section, dict):
            return None
        return section.get(key)

    # ============================================================
    # Flujo completo
    # ============================================================

    def publish(self, files: dict[str, str], description: str = "") -> ContributionResult:
        """
        Publica los archivos del conector y deja un solo PR abierto.

        Args:
            files: {ruta relativa al directorio del conector: contenido}
            description: Texto libre para el cuerpo del PR.

        Returns:
            ContributionResult con el branch y el PR.

        Raises:
            ValueError: Si no hay archivos.
            RemoteOperationError: Si falla cualquier llamada remota.
        """
        if not files:
            raise ValueError("No hay archivos para publicar")

        total = 4
        logger.step(1, total, f"Asegurando fork de {self._config.github.upstream_full_name}")
        self.ensure_fork()

        logger.step(2, total, f"Preparando branch {self.contribution_branch_name}")
        open_pr = self.prepare_branch_for_contribution()

        logger.step(3, total, f"Escribiendo {len(files)} archivo(s)")
        written = []
        for relative_path, content in files.items():
            self.write_file(relative_path, content)
            written.append(self.construct_connector_file_path(relative_path))

        logger.step(4, total, "Revisando Pull Request")
        if open_pr is not None:
            logger.info(f"Reutilizando PR #{open_pr.number}")
            return ContributionResult(
                branch_name=self.contribution_branch_name,
                pull_request=open_pr,
                files_written=written,
            )

        pr = self.create_pull_request(
            body=self.generate_pr_body(description, written),
        )
        return ContributionResult(
            branch_name=self.contribution_branch_name,
            pull_request=pr,
            created_pull_request=True,
            files_written=written,
        )
