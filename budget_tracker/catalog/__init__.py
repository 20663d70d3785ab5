"""Static catalog tables and loaders.

Categories, income sources, colour palettes, goal icons and the starter
goals are stored in JSON so they can be changed without code edits.
"""

from .defaults import (
    load_config,
    get_catalog,
    expense_categories,
    income_sources,
    goal_categories,
    goal_colors,
    goal_icons,
    category_color,
)

SAVINGS_CATEGORY = get_catalog()['constants']['savings_category']

__all__ = [
    'SAVINGS_CATEGORY',
    'load_config',
    'get_catalog',
    'expense_categories',
    'income_sources',
    'goal_categories',
    'goal_colors',
    'goal_icons',
    'category_color',
]
