"""
cli.py — Punto de entrada de builder-contrib.

Comandos disponibles:
    python -m builder_contrib publish --image source-x --dir ./generated
        → Publica los archivos de ./generated como contribución del conector
    python -m builder_contrib config --show
        → Muestra la configuración efectiva

Uso desde código (testing):
    from builder_contrib.cli import main
    main(["publish", "--image", "source-x", "--dir", "out"])
"""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.table import Table

from builder_contrib import __version__
from builder_contrib.config import load_config
from builder_contrib.publishing.contribution import ContributionPublisher
from builder_contrib.publishing.github_client import GitHubClient
from builder_contrib.publishing.hosting import HostingError
from builder_contrib.utils.logger import get_logger, console as rich_console

logger = get_logger("builder_contrib.cli")


def collect_files(directory: Path) -> dict[str, str]:
    """
    Lee todos los archivos de un directorio generado.

    Returns:
        {ruta relativa en formato posix: contenido}
    """
    if not directory.is_dir():
        raise FileNotFoundError(f"No existe el directorio: {directory}")
    return {
        path.relative_to(directory).as_posix(): path.read_text(encoding="utf-8")
        for path in sorted(directory.rglob("*"))
        if path.is_file()
    }


@click.group()
@click.version_option(version=__version__, prog_name="builder-contrib")
def main():
    """Publica conectores del Connector Builder como Pull Requests."""
    pass


@main.command()
@click.option("--image", "-i", required=True, help="Nombre del conector (ej: 'source-test')")
@click.option(
    "--dir", "-d", "directory",
    required=True,
    type=click.Path(path_type=Path),
    help="Directorio con los archivos generados del conector",
)
@click.option("--user", "-u", default=None, help="Usuario de GitHub (default: dueño del token)")
@click.option("--description", default="", help="Texto para la descripción del PR")
def publish(image: str, directory: Path, user: str | None, description: str):
    """Publica el conector: fork, branch, archivos y PR."""
    try:
        config = load_config()
        files = collect_files(directory)

        client = GitHubClient(
            token=config.github_token,
            api_url=config.github.api_url,
            timeout=config.github.timeout,
        )
        publisher = ContributionPublisher(client, image, user_handle=user, config=config)
        result = publisher.publish(files, description=description)

        tabla = Table(title=f"Contribución de {image}")
        tabla.add_column("Campo", style="cyan")
        tabla.add_column("Valor", style="green")
        tabla.add_row("Branch", result.branch_name)
        tabla.add_row("PR", f"#{result.pull_request.number}")
        tabla.add_row("URL", result.pull_request.url)
        tabla.add_row("Estado", "nuevo" if result.created_pull_request else "reutilizado")
        tabla.add_row("Archivos", str(len(result.files_written)))
        rich_console.print(tabla)

    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)
    except HostingError as e:
        logger.error(f"Error de GitHub: {e}")
        sys.exit(1)


@main.command()
@click.option("--show", is_flag=True, help="Muestra la configuración actual")
def config(show: bool):
    """Gestiona la configuración."""
    cfg = load_config()

    if show:
        tabla = Table(title="Configuración de builder-contrib")
        tabla.add_column("Parámetro", style="cyan")
        tabla.add_column("Valor", style="green")

        tabla.add_row("API", cfg.github.api_url)
        tabla.add_row("Upstream", cfg.github.upstream_full_name)
        tabla.add_row("Timeout", f"{cfg.github.timeout}s")
        tabla.add_row("Directorio de conectores", cfg.contribution.connectors_dir)
        tabla.add_row("Infijo de branch", cfg.contribution.branch_infix)
        tabla.add_row("Token", "configurado" if cfg.github_token else "FALTA")
        rich_console.print(tabla)
    else:
        click.echo("Usa --show para ver la configuración.")


if __name__ == "__main__":
    main()
