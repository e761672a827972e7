# Utility modules for the recipe site
from .url_validator import check_same_origin, safe_admin_redirect
from .image_handler import parse_image_data_url, ImageValidationError
from .sanitizer import (
    clean_text, clean_optional_text, to_slug, parse_number,
    parse_bool, parse_id, escape_like
)
from .storage import (
    LocalStorage, SupabaseStorage, StorageError, create_storage,
    parse_image_reference, normalize_image_path
)
