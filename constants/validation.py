"""
Validation Constants

Contains whitelist values and limits for validating admin input
and request parameters.
"""

# Recipe list status filter
VALID_STATUS_FILTERS = {'all', 'published', 'draft'}
DEFAULT_STATUS_FILTER = 'all'

# Admin list pagination
ADMIN_DEFAULT_PAGE_SIZE = 20
ADMIN_MAX_PAGE_SIZE = 100

# Image uploads arrive as data URLs; map MIME type -> stored file extension
IMAGE_MIME_EXTENSIONS = {
    'image/jpeg': 'jpg',
    'image/png': 'png',
    'image/webp': 'webp',
    'image/gif': 'gif',
}

# PIL format name expected for each accepted MIME type
IMAGE_MIME_FORMATS = {
    'image/jpeg': 'JPEG',
    'image/png': 'PNG',
    'image/webp': 'WEBP',
    'image/gif': 'GIF',
}

# Maximum decoded image size (15MB)
MAX_IMAGE_BYTES = 15 * 1024 * 1024

# Storage buckets
RECIPE_IMAGE_BUCKET = 'recipe-images'
INGREDIENT_IMAGE_BUCKET = 'ingredient-images'

# Boolean form/JSON inputs
TRUE_VALUES = {'true', '1', 'on'}
FALSE_VALUES = {'false', '0', 'off'}

# Maximum field lengths
MAX_LENGTHS = {
    'title': 200,
    'subtitle': 300,
    'slug': 220,
    'ingredient_name': 200,
    'amount_unit': 50,
    'amount_text': 100,
    'step_title': 200,
}
