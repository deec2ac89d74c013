"""pglens - A terminal UI for browsing PostgreSQL databases."""

from typing import TYPE_CHECKING, Any

__all__ = [
    "__version__",
    "main",
    "PglensApp",
]

__version__ = "0.1.0"

if TYPE_CHECKING:
    from pglens.domains.shell.ui.app import PglensApp
    from .cli import main


def __getattr__(name: str) -> Any:
    """Lazy import for heavy modules to keep package import side-effect free."""
    if name == "main":
        from .cli import main

        return main
    if name == "PglensApp":
        from pglens.domains.shell.ui.app import PglensApp

        return PglensApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
