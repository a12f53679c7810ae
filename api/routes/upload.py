import os

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger
from starlette.datastructures import UploadFile as FormFile

from api.dependencies import get_upload_service
from api.models.upload import Base64UploadRequest, UploadResponse
from api.services.storage import StorageError
from api.services.uploads import UploadRejected, UploadService, decode_base64

router = APIRouter(tags=["upload"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _raw_response(body: UploadResponse, status_code: int) -> JSONResponse:
    return JSONResponse(
        content=body.model_dump(exclude_none=True),
        status_code=status_code,
        headers=CORS_HEADERS,
    )


def _failed(message: str) -> UploadResponse:
    return UploadResponse(message=message, success=False)


def _spooled_size(upload: FormFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


@router.options("/video-upload", include_in_schema=False)
async def video_upload_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@router.api_route("/video-upload", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def video_upload_wrong_method(request: Request) -> JSONResponse:
    logger.warning("Video upload wrong method method={}", request.method)
    return _raw_response(_failed("Only POST requests are supported"), 405)


@router.post("/video-upload", response_model=UploadResponse, response_model_exclude_none=True)
async def video_upload(
    request: Request,
    service: UploadService = Depends(get_upload_service),
) -> JSONResponse:
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" not in content_type:
        logger.warning("Video upload rejected content_type={}", content_type)
        return _raw_response(_failed("Request must be multipart/form-data"), 400)

    try:
        form = await request.form()
    except Exception as exc:
        logger.warning("Video upload form parse failed error={}", str(exc))
        return _raw_response(_failed(f"Failed to parse form: {exc}"), 400)

    try:
        upload = form.get("video")
        if not isinstance(upload, FormFile):
            logger.warning("Video upload missing field=video")
            return _raw_response(_failed("Video file is missing: expected form field 'video'"), 400)

        profile = service.profile("video")
        service.check(profile, upload.filename, _spooled_size(upload))
        data = await upload.read()
        stored = await service.upload(profile, upload.filename, data)
    except UploadRejected as exc:
        return _raw_response(_failed(str(exc)), 400)
    except StorageError as exc:
        return _raw_response(_failed(f"Video upload failed: {exc}"), 500)
    finally:
        await form.close()

    return _raw_response(
        UploadResponse(message="Video uploaded successfully", url=stored.url, success=True),
        200,
    )


@router.post("/upload-video", response_model=UploadResponse, response_model_exclude_none=True)
async def upload_video(
    request: Request,
    service: UploadService = Depends(get_upload_service),
) -> UploadResponse:
    try:
        form = await request.form()
    except Exception as exc:
        logger.warning("Media upload form parse failed error={}", str(exc))
        return _failed(f"Failed to parse form: {exc}")

    try:
        file = form.get("file")
        if not isinstance(file, FormFile):
            logger.warning("Media upload missing field=file")
            return _failed("File is missing from the request")

        profile = service.profile("media")
        service.check(profile, file.filename, _spooled_size(file), file.content_type)
        data = await file.read()
        stored = await service.upload(profile, file.filename, data, file.content_type)
    except UploadRejected as exc:
        return _failed(str(exc))
    except StorageError as exc:
        return _failed(f"Video upload failed: {exc}")
    finally:
        await form.close()

    return UploadResponse(message="Video uploaded successfully", url=stored.url, success=True)


@router.post("/upload", response_model=UploadResponse, response_model_exclude_none=True)
async def upload_base64(
    payload: Base64UploadRequest,
    service: UploadService = Depends(get_upload_service),
) -> UploadResponse:
    logger.info("Base64 upload request filename={} encoded_length={}", payload.filename, len(payload.content))
    try:
        data = decode_base64(payload.content)
        stored = await service.upload(service.profile("generic"), payload.filename, data)
    except UploadRejected as exc:
        logger.warning("Base64 upload rejected filename={} error={}", payload.filename, str(exc))
        return _failed(str(exc))
    except StorageError as exc:
        return _failed(f"Upload failed: {exc}")

    return UploadResponse(message="Upload succeeded", url=stored.url, success=True)
