"""
Managers for handling environment variables and .env file resolution.
"""
import logging
import os
from typing import Dict, Mapping, Optional, Sequence

from dotenv import dotenv_values

from ..MODELS.errors import StackplanError

logger = logging.getLogger(__name__)


class EnvironmentManager:
    """
    Assembles the context ``${VAR}`` bindings are resolved against.
    """
    def __init__(self, base_dir: str = ".", base_env: Optional[Mapping[str, str]] = None):
        """
        Initializes the environment manager.

        :param base_dir: The base directory for resolving relative paths to .env files.
        :param base_env: Starting variables; the process environment when omitted.
        """
        self.base_dir = base_dir
        self.base_env = base_env

    def get_context(self, env_files: Sequence[str] = ()) -> Dict[str, str]:
        """
        Merges the base environment with the given .env files.

        Later files override earlier ones, and files override the base
        environment. Keys listed in a file without a value are skipped.

        :param env_files: Paths to .env files.
        :return: The merged variables.
        :raises StackplanError: If an env file does not exist.
        """
        context = dict(os.environ if self.base_env is None else self.base_env)

        for env_file in env_files:
            file_path = os.path.join(self.base_dir, env_file)
            if not os.path.isfile(file_path):
                raise StackplanError(f"env file not found: {env_file}")
            values = dotenv_values(file_path, interpolate=True)
            logger.debug("Loaded %d variables from %s", len(values), file_path)
            context.update({k: v for k, v in values.items() if v is not None})

        return context
