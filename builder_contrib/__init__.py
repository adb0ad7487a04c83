"""
builder-contrib — Publica conectores del Connector Builder como Pull Requests.

Este paquete contiene:
- publishing/  → Fork, branch, archivos y PR contra el repo upstream
- utils/       → Utilidades compartidas (logging)

Uso:
    python -m builder_contrib publish --image source-test --dir ./generated
    python -m builder_contrib config --show
"""

__version__ = "1.0.0"
