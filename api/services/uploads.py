import base64
import binascii
from pathlib import PurePosixPath
from urllib.parse import quote
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool
from loguru import logger

from api.config import MIB, Settings
from api.models.upload import StoredObject, UploadProfile, ValidationResult
from api.services.storage import ObjectStore

DEFAULT_CONTENT_TYPE = "application/octet-stream"

VIDEO_CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".mkv": "video/x-matroska",
    ".webm": "video/webm",
    ".flv": "video/x-flv",
    ".wmv": "video/x-ms-wmv",
    ".mpeg": "video/mpeg",
    ".mpg": "video/mpeg",
}
VIDEO_EXTENSIONS = frozenset(VIDEO_CONTENT_TYPES)
VIDEO_MIME_TYPES = frozenset({"video/mp4", "video/mpeg", "video/avi", "video/mov", "video/webm"})


class UploadRejected(ValueError):
    pass


def build_profiles(app_settings: Settings) -> dict[str, UploadProfile]:
    return {
        "video": UploadProfile(
            name="video",
            bucket=app_settings.video_bucket,
            key_prefix="video-",
            allowed_extensions=VIDEO_EXTENSIONS,
            max_size_bytes=app_settings.max_video_size_bytes,
        ),
        "media": UploadProfile(
            name="media",
            bucket=app_settings.media_bucket,
            key_prefix="video-",
            allowed_content_types=VIDEO_MIME_TYPES,
            max_size_bytes=app_settings.max_media_size_bytes,
        ),
        "generic": UploadProfile(
            name="generic",
            bucket=app_settings.uploads_bucket,
            unique_keys=app_settings.uploads_unique_keys,
        ),
    }


def base_filename(filename: str) -> str:
    """Last path component of a client filename, or "" when it names a directory."""
    normalized = filename.replace("\\", "/")
    if normalized.endswith("/"):
        return ""
    name = PurePosixPath(normalized).name
    if name in ("", ".", ".."):
        return ""
    return name


def file_extension(filename: str) -> str:
    return PurePosixPath(base_filename(filename)).suffix.lower()


def classify_content_type(extension: str) -> str:
    return VIDEO_CONTENT_TYPES.get(extension.lower(), DEFAULT_CONTENT_TYPE)


def _format_size(size_bytes: int) -> str:
    if size_bytes % MIB == 0:
        return f"{size_bytes // MIB}MB"
    return f"{size_bytes} bytes"


def validate(
    profile: UploadProfile,
    filename: str | None,
    size_bytes: int | None,
    content_type: str | None = None,
) -> ValidationResult:
    """Run the profile's checks in order: presence, size, then type.

    The first failing check decides the result.
    """
    if not filename or not base_filename(filename) or size_bytes is None:
        return ValidationResult(accepted=False, reason="File is missing from the request")

    extension = file_extension(filename)
    if profile.max_size_bytes is not None and size_bytes > profile.max_size_bytes:
        return ValidationResult(
            accepted=False,
            extension=extension,
            reason=f"File size must not exceed {_format_size(profile.max_size_bytes)}",
        )

    if profile.allowed_extensions is not None and extension not in profile.allowed_extensions:
        allowed = ", ".join(sorted(profile.allowed_extensions))
        return ValidationResult(
            accepted=False,
            extension=extension,
            reason=f"Unsupported video format: {extension or '(none)'}. Supported formats: {allowed}",
        )

    declared = (content_type or "").split(";")[0].strip().lower()
    if profile.allowed_content_types is not None and declared not in profile.allowed_content_types:
        allowed = ", ".join(sorted(profile.allowed_content_types))
        return ValidationResult(
            accepted=False,
            extension=extension,
            reason=f"Unsupported content type: {declared or '(none)'}. Supported types: {allowed}",
        )

    return ValidationResult(accepted=True, extension=extension)


def derive_object_key(
    original_filename: str,
    prefix: str = "",
    token: str | None = None,
    unique: bool = True,
) -> str:
    name = base_filename(original_filename)
    if not unique:
        return f"{prefix}{name}"
    path = PurePosixPath(name)
    token = token or uuid4().hex
    return f"{prefix}{path.stem}-{token}{path.suffix}"


def decode_base64(content: str) -> bytes:
    try:
        # Line-wrapped encodings (base64 CLI, MIME) are accepted.
        unwrapped = content.replace("\r", "").replace("\n", "")
        return base64.b64decode(unwrapped, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise UploadRejected("File content is not valid base64") from exc


class UploadService:
    """Validates one upload against a profile and writes it to the object store."""

    def __init__(self, store: ObjectStore, profiles: dict[str, UploadProfile]) -> None:
        self.store = store
        self.profiles = profiles

    def profile(self, name: str) -> UploadProfile:
        return self.profiles[name]

    def check(
        self,
        profile: UploadProfile,
        filename: str | None,
        size_bytes: int | None,
        content_type: str | None = None,
    ) -> ValidationResult:
        """Validate without touching the payload; raises UploadRejected on failure."""
        result = validate(profile, filename, size_bytes, content_type)
        if not result.accepted:
            logger.warning(
                "Upload rejected profile={} filename={} content_type={} size_bytes={} reason={}",
                profile.name,
                filename,
                content_type,
                size_bytes,
                result.reason,
            )
            raise UploadRejected(result.reason)
        return result

    async def upload(
        self,
        profile: UploadProfile,
        filename: str | None,
        data: bytes | None,
        content_type: str | None = None,
    ) -> StoredObject:
        result = self.check(profile, filename, None if data is None else len(data), content_type)

        declared = (content_type or "").split(";")[0].strip().lower()
        if profile.allowed_content_types is not None:
            stored_type = declared
        else:
            stored_type = classify_content_type(result.extension)
        key = derive_object_key(filename, prefix=profile.key_prefix, unique=profile.unique_keys)
        metadata = {
            "original-filename": quote(filename),
            "file-size": str(len(data)),
        }

        await run_in_threadpool(self.store.ensure_bucket, profile.bucket)
        await run_in_threadpool(self.store.put, profile.bucket, key, data, stored_type, metadata)

        stored = StoredObject(
            bucket=profile.bucket,
            key=key,
            size_bytes=len(data),
            content_type=stored_type,
            original_filename=filename,
            url=self.store.object_url(profile.bucket, key),
        )
        logger.info(
            "Upload stored profile={} bucket={} key={} content_type={} size_bytes={}",
            profile.name,
            stored.bucket,
            stored.key,
            stored.content_type,
            stored.size_bytes,
        )
        return stored
