from pathlib import Path

import yaml
from pydantic import ValidationError

from src.components.redirects import RedirectConfig
from src.rules.models import Rules


def load_rules(path: Path) -> Rules:
    """
    Load and validate the rules file.
    Raises FileNotFoundError if file missing.
    Raises ValueError if the YAML or the schema is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    with open(path) as f:
        content = f.read()

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in rules file: {e}") from e

    try:
        return Rules.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e


def redirect_config(rules: Rules, admin_host: str) -> RedirectConfig:
    """Build the engine's redirect config from the rules file and the admin host."""
    redirector = rules.redirector
    return RedirectConfig(
        admin_host=admin_host,
        admin_scheme=redirector.admin_scheme,
        admin_port=redirector.admin_port,
        add_path=redirector.add_path,
        separators=tuple(redirector.separators),
    )
