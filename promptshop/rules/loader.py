import logging
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from promptshop.rules.models import Rules

logger = logging.getLogger(__name__)

# First ```yaml fence of a markdown document
_FENCE = re.compile(r"^```ya?ml[ \t]*\n(.*?)^```", re.MULTILINE | re.DOTALL)


def extract_yaml(text: str) -> str:
    """The fenced YAML block when `text` is markdown, else `text` unchanged."""
    match = _FENCE.search(text)
    return match.group(1) if match else text


def load_rules(path: Path) -> Rules:
    """
    Read, parse and validate a rules file.

    Raises:
        FileNotFoundError: `path` does not exist
        ValueError: the YAML or the rules schema is invalid
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    try:
        data = yaml.safe_load(extract_yaml(path.read_text(encoding="utf-8")))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in rules file: {e}") from e

    try:
        rules = Rules.model_validate(data or {})
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e

    logger.debug("Loaded rules %s from %s", rules.project.rules_version, path)
    return rules
