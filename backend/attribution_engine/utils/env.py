import logging
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_env_file(path: Optional[str] = None) -> bool:
    """Load variables from a local .env file without overwriting exported ones.

    Returns True when a file was found and loaded.
    """
    loaded = load_dotenv(dotenv_path=path, override=False)
    if loaded:
        logger.info("Loaded local .env file (existing variables were NOT overwritten)")
    else:
        logger.debug("No local .env file found or loaded")
    return loaded
