"""
Utilities
"""
from fileshare.utils.timeutils import utcnow, to_naive_utc
from fileshare.utils.file_utils import (
    build_shareable_link,
    format_file_size,
    generate_stored_key,
    is_previewable,
    sanitize_filename,
    validate_upload,
)

__all__ = [
    "utcnow",
    "to_naive_utc",
    "build_shareable_link",
    "format_file_size",
    "generate_stored_key",
    "is_previewable",
    "sanitize_filename",
    "validate_upload",
]
