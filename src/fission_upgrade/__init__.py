"""Package initialization for fission-upgrade.

Having this file allows relative imports (e.g. `from .models import ...`) to
resolve under tooling (mypy/ruff) and matches the CLI usage pattern
`python -m fission_upgrade dump` documented in the README.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
