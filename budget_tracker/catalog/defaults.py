"""Configuration loader for the static catalog tables."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

# Configuration directory
CONFIG_DIR = Path(__file__).parent


def load_config(config_name: str) -> Dict[str, Any]:
    """Load a configuration file by name.

    Args:
        config_name: Name of the config file (without .json extension)

    Returns:
        Dictionary containing the configuration

    Raises:
        FileNotFoundError: If the configuration file doesn't exist
        json.JSONDecodeError: If the configuration file is invalid JSON

    Example:
        >>> config = load_config('catalog')
        >>> config['constants']['savings_category']
        'Savings'
    """
    config_path = CONFIG_DIR / f"{config_name}.json"

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        return json.load(f)


@lru_cache(maxsize=1)
def get_catalog() -> Dict[str, Any]:
    """Get the catalog of categories, sources, palettes and default goals."""
    return load_config('catalog')


def expense_categories() -> List[str]:
    return list(get_catalog()['expense_categories'])


def income_sources() -> List[str]:
    return list(get_catalog()['income_sources'])


def goal_categories() -> List[str]:
    return list(get_catalog()['goal_categories'])


def goal_colors() -> List[str]:
    return list(get_catalog()['goal_colors'])


def goal_icons() -> List[str]:
    return list(get_catalog()['goal_icons'])


def category_color(category: str) -> Dict[str, Any]:
    """Return the colour entry for a category.

    Unknown categories get the ``fallback_color`` entry, which matches the
    palette used for "Other".
    """
    catalog = get_catalog()
    entry = catalog['category_colors'].get(category)
    if entry is None:
        entry = catalog['fallback_color']
    return dict(entry)
