"""
Logging setup.

Modules log through ``logging.getLogger(__name__)``; entry points call
``configure_logging`` once to route records to a rich console handler.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

_configured = False


def configure_logging(level: int = logging.INFO, console: Console = None) -> None:
    """Install a RichHandler on the ``gridbill`` logger.

    Safe to call more than once; later calls only change the level.
    """
    global _configured
    logger = logging.getLogger("gridbill")
    logger.setLevel(level)
    if _configured:
        return

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    _configured = True
