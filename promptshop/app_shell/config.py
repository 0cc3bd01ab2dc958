import logging
import os
import sys
from pathlib import Path

from promptshop.rules.models import Rules

logger = logging.getLogger(__name__)


def validate_ops_rules(rules: Rules, data_dir: Path) -> None:
    """
    Validate operational requirements before startup.

    Exits the process when a required environment variable is missing.
    """
    missing = [env_var for env_var in rules.ops.required_env if env_var not in os.environ]
    if missing:
        logger.critical("Missing required environment variables: %s", ", ".join(missing))
        sys.exit(1)

    data_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Configuration validated (rules %s)", rules.project.rules_version)
