"""
Constants Package

Whitelists, limits and seed data shared across the application.
"""

from .validation import (
    VALID_STATUS_FILTERS,
    DEFAULT_STATUS_FILTER,
    ADMIN_DEFAULT_PAGE_SIZE,
    ADMIN_MAX_PAGE_SIZE,
    IMAGE_MIME_EXTENSIONS,
    IMAGE_MIME_FORMATS,
    MAX_IMAGE_BYTES,
    RECIPE_IMAGE_BUCKET,
    INGREDIENT_IMAGE_BUCKET,
    TRUE_VALUES,
    FALSE_VALUES,
    MAX_LENGTHS,
)
from .content import (
    DEFAULT_CATEGORIES,
    HIDDEN_CATEGORY_SLUGS,
    LATEST_RECIPES_LIMIT,
    CATEGORY_SECTION_LIMIT,
)
