"""
Filename, key and MIME helpers for uploads
"""
import mimetypes
import re
import time
import uuid
from pathlib import PurePosixPath
from typing import Iterable, List, Optional
from urllib.parse import quote

DEFAULT_MIME_TYPE = "application/octet-stream"
FALLBACK_FILENAME = "unnamed_file"

# Символы, опасные для путей и заголовков, плюс управляющие
_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')

PREVIEWABLE_PREFIXES = ("image/", "text/", "video/", "audio/")
PREVIEWABLE_TYPES = frozenset({"application/pdf"})


def sanitize_filename(filename: Optional[str], max_length: int = 255) -> str:
    """
    Безопасное отображаемое имя файла.

    Unsafe characters become "_", leading/trailing dots and whitespace are
    stripped, the name is truncated keeping its extension, and an empty
    result falls back to "unnamed_file".
    """
    if not filename:
        return FALLBACK_FILENAME

    sanitized = _UNSAFE_CHARS.sub("_", filename)
    sanitized = sanitized.strip().strip(".").strip()

    if len(sanitized) > max_length:
        suffix = PurePosixPath(sanitized).suffix
        if len(suffix) >= max_length:
            suffix = ""
        sanitized = sanitized[: max_length - len(suffix)] + suffix

    return sanitized or FALLBACK_FILENAME


def file_extension(filename: str) -> str:
    """Расширение в нижнем регистре без точки ('' если нет)."""
    return PurePosixPath(filename).suffix.lower().lstrip(".")


def generate_stored_key(original_name: str) -> str:
    """
    Уникальный ключ хранения: <uuid4 hex>_<epoch ms><ext>.

    Не зависит от пользовательского имени, кроме расширения.
    """
    suffix = PurePosixPath(original_name).suffix.lower()
    if not re.fullmatch(r"\.[a-z0-9]{1,16}", suffix):
        suffix = ""
    return f"{uuid.uuid4().hex}_{int(time.time() * 1000)}{suffix}"


def normalize_mime_type(mime_type: Optional[str], filename: Optional[str] = None) -> str:
    """
    Declared content type without parameters, lower-cased.

    Falls back to a guess from the filename, then to application/octet-stream.
    """
    if mime_type:
        mime_type = mime_type.split(";", 1)[0].strip().lower()
    if not mime_type and filename:
        mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or DEFAULT_MIME_TYPE


def is_previewable(mime_type: str) -> bool:
    """image/*, text/*, video/*, audio/* и application/pdf."""
    mime_type = (mime_type or "").lower()
    return mime_type.startswith(PREVIEWABLE_PREFIXES) or mime_type in PREVIEWABLE_TYPES


def validate_upload(
    filename: Optional[str],
    mime_type: str,
    size: Optional[int],
    max_size: int,
    blocked_mime_types: Iterable[str] = (),
    blocked_extensions: Iterable[str] = (),
) -> List[str]:
    """
    Проверка загрузки: все нарушенные правила, а не только первое.

    Returns:
        List of error messages (empty when the upload is valid)
    """
    errors: List[str] = []

    if not filename or not filename.strip():
        errors.append("Filename cannot be empty")

    # size unknown (streamed upload): enforced on the stored byte count instead
    if size is not None and size < 0:
        errors.append("File size is invalid")
    elif size is not None and size > max_size:
        errors.append(f"File too large. Maximum size is {format_file_size(max_size)}")

    blocked_types = {t.lower() for t in blocked_mime_types}
    if mime_type.lower() in blocked_types:
        errors.append(f"File type not allowed: {mime_type}")

    if filename:
        ext = file_extension(filename)
        if ext and ext in {e.lower().lstrip(".") for e in blocked_extensions}:
            errors.append(f"File extension not allowed for security reasons: .{ext}")

    return errors


def format_file_size(size: int) -> str:
    """Размер в человекочитаемом виде: 1536 -> '1.5 KB'."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    value = round(value, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {units[i]}"


def build_shareable_link(base_url: str, file_id: str) -> str:
    """Ссылка для получателя. Пароль в неё никогда не попадает."""
    return f"{base_url.rstrip('/')}/download/{file_id}"


def content_disposition(mode: str, filename: Optional[str] = None) -> str:
    """
    Content-Disposition header value.

    attachment carries the original name (RFC 5987 encoded for non-ASCII);
    inline never forces a filename.
    """
    if mode != "attachment" or not filename:
        return mode
    ascii_name = filename.encode("ascii", "ignore").decode("ascii").replace('"', "_") or FALLBACK_FILENAME
    if ascii_name == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
