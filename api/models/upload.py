from pydantic import BaseModel, ConfigDict


class UploadResponse(BaseModel):
    message: str
    url: str | None = None
    success: bool


class Base64UploadRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    filename: str = ""
    content: str = ""


class UploadProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    bucket: str
    key_prefix: str = ""
    allowed_extensions: frozenset[str] | None = None
    allowed_content_types: frozenset[str] | None = None
    max_size_bytes: int | None = None
    unique_keys: bool = True


class ValidationResult(BaseModel):
    accepted: bool
    extension: str = ""
    reason: str | None = None


class StoredObject(BaseModel):
    bucket: str
    key: str
    size_bytes: int
    content_type: str
    original_filename: str
    url: str
