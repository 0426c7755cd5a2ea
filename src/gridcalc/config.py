"""Project-level configuration (``gridcalc.yaml``)."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from gridcalc.formulas import PARSERS

CONFIG_FILENAME = "gridcalc.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "parser": "descent",
    "variables": {},
    "strict_variables": False,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}

DEMO_CONFIG = """\
# gridcalc project configuration
parser: descent            # descent | shunting_yard | grammar
strict_variables: false    # true: unknown variables are an error instead of 0
variables:
  var: 42
  a: 5
  b: 8
"""


def load_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``gridcalc.yaml``, with defaults.

    Args:
        project_dir: Directory holding ``gridcalc.yaml``.  A missing file
            yields the defaults.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: If ``variables`` is not a mapping of names to integers.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(project_dir) / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        config.update(user_config)

    if config.get("parser") not in PARSERS:
        config["parser"] = "descent"

    variables = config.get("variables") or {}
    if not isinstance(variables, dict):
        raise ValueError(f"{CONFIG_FILENAME}: 'variables' must be a mapping")
    checked: dict[str, int] = {}
    for name, value in variables.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(
                f"{CONFIG_FILENAME}: variable {name!r} must be an integer, got {value!r}"
            )
        checked[str(name)] = value
    config["variables"] = checked
    config["strict_variables"] = bool(config.get("strict_variables"))
    return config


def write_demo_config(project_dir: Path) -> Path:
    """Write a starter ``gridcalc.yaml`` into *project_dir*.

    Raises:
        FileExistsError: If the file already exists.
    """
    path = Path(project_dir) / CONFIG_FILENAME
    if path.exists():
        raise FileExistsError(f"{path} already exists")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEMO_CONFIG)
    return path
