from fastapi import HTTPException, Request

from api.services.storage import ObjectStore
from api.services.uploads import UploadService


def get_object_store(request: Request) -> ObjectStore:
    store = getattr(request.app.state, "object_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Object store not initialized")
    return store


def get_upload_service(request: Request) -> UploadService:
    service = getattr(request.app.state, "upload_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Upload service not initialized")
    return service
