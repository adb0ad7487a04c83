"""
config.py — Carga la configuración de builder-contrib.

Se encarga de:
1. Cargar config.yaml (repo upstream, convenciones de branch y PR)
2. Cargar .env (secretos: GITHUB_TOKEN)
3. Resolver variables de entorno en los valores de config

config.yaml se puede versionar; el token vive solo en .env o en el entorno.

Uso:
    from builder_contrib.config import load_config
    config = load_config()
    print(config.github.upstream_full_name)  # "airbytehq/airbyte"
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


# ============================================================
# Dataclasses de configuración
# ============================================================

@dataclass
class GitHubConfig:
    """Dónde vive el repo upstream y cómo hablar con la API."""
    api_url: str = "https://api.github.com"
    upstream_owner: str = "airbytehq"
    upstream_repo: str = "airbyte"
    timeout: int = 30

    @property
    def upstream_full_name(self) -> str:
        return f"{self.upstream_owner}/{self.upstream_repo}"


@dataclass
class ContributionConfig:
    """Convenciones de nombres para branches, commits y PRs."""
    connectors_dir: str = "airbyte-integrations/connectors"
    branch_infix: str = "builder-contribute"
    metadata_filename: str = "metadata.yaml"
    merge_message: str = "Merge latest changes from main branch"
    commit_message_template: str = "Submission for {image} from Connector Builder"
    pr_title_prefix: str = "[Connector Builder]"


@dataclass
class AppConfig:
    """Configuración completa de la app."""
    github: GitHubConfig = field(default_factory=GitHubConfig)
    contribution: ContributionConfig = field(default_factory=ContributionConfig)

    # Valores del .env (no están en config.yaml)
    github_token: str = ""


# ============================================================
# Funciones de carga
# ============================================================

def _resolve_env_vars(value: str) -> str:
    """
    Resuelve variables de entorno en un string.

    Ejemplo:
        "${UPSTREAM_OWNER}" → "airbytehq"

    Si la variable no existe se deja el placeholder tal cual.
    """
    patron = re.compile(r"\$\{(\w+)\}")

    def reemplazar(match: re.Match) -> str:
        return os.environ.get(match.group(1), match.group(0))

    return patron.sub(reemplazar, value)


def _resolve_env_recursive(data: Any) -> Any:
    """Resuelve ${VARIABLE} en toda la estructura del YAML."""
    if isinstance(data, str):
        return _resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_recursive(item) for item in data]
    return data


def _dict_to_dataclass(data: dict, cls: type) -> Any:
    """Convierte un dict a dataclass, ignorando keys desconocidas."""
    campos_validos = {f.name for f in cls.__dataclass_fields__.values()}
    datos_filtrados = {k: v for k, v in data.items() if k in campos_validos}
    return cls(**datos_filtrados)


def _find_config_dir() -> Path:
    """
    Encuentra el directorio donde está config.yaml.

    Busca hacia arriba desde el directorio actual; si no lo
    encuentra, usa el directorio actual.
    """
    current = Path.cwd()
    for parent in [current] + list(current.parents):
        if (parent / "config.yaml").exists():
            return parent
    return current


def load_config(config_path: Path | None = None) -> AppConfig:
    """
    Carga la configuración completa.

    Pasos:
    1. Carga .env para tener las variables de entorno disponibles
    2. Lee config.yaml (si no existe, valores por defecto)
    3. Resuelve ${VARIABLES} en los valores del YAML
    4. Convierte cada sección a su dataclass
    5. Agrega el token desde el entorno

    Args:
        config_path: Ruta al config.yaml. Si es None, busca automáticamente.

    Returns:
        AppConfig lista para usar.
    """
    proyecto_dir = _find_config_dir()
    env_path = proyecto_dir / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    if config_path is None:
        config_path = proyecto_dir / "config.yaml"

    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}
        config_resuelto = _resolve_env_recursive(raw_config)
        app_config = AppConfig(
            github=_dict_to_dataclass(
                config_resuelto.get("github", {}), GitHubConfig
            ),
            contribution=_dict_to_dataclass(
                config_resuelto.get("contribution", {}), ContributionConfig
            ),
        )
    else:
        app_config = AppConfig()

    app_config.github_token = os.environ.get(
        "GITHUB_TOKEN", os.environ.get("GH_TOKEN", "")
    )
    return app_config
