"""
__main__.py — Permite ejecutar builder-contrib como módulo.

    python -m builder_contrib publish --image source-test --dir ./generated
"""

from builder_contrib.cli import main

if __name__ == "__main__":
    main()
