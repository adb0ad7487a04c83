"""
paths.py — Nombres de directorios y branches de una contribución.

Funciones puras, sin I/O.
"""

from __future__ import annotations

CONNECTORS_DIR = "airbyte-integrations/connectors"
BRANCH_INFIX = "builder-contribute"


def connector_directory_path(image: str, connectors_dir: str = CONNECTORS_DIR) -> str:
    """Directorio del conector en el repo upstream."""
    return f"{connectors_dir}/{image}"


def contribution_branch_name(
    user_handle: str, image: str, infix: str = BRANCH_INFIX
) -> str:
    """Branch de trabajo: uno por (usuario, conector)."""
    return f"{user_handle}/{infix}/{image}"


def construct_connector_file_path(
    image: str, relative_file: str, connectors_dir: str = CONNECTORS_DIR
) -> str:
    """Ruta completa en el repo de un archivo del conector."""
    return f"{connector_directory_path(image, connectors_dir)}/{relative_file}"
