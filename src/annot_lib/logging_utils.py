import logging
import os
from typing import Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Union[str, int, None] = None) -> None:
    """Configure logging for the annotation scripts.

    ``level`` wins over the ``LOG_LEVEL`` environment variable; an unknown
    name means ``INFO``. The ``annot_lib`` logger is set to the same level so
    load, save and export messages follow it even when the root logger was
    already configured by the caller.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("annot_lib").setLevel(level)
