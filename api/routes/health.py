from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from api.dependencies import get_object_store
from api.services.storage import ObjectStore

router = APIRouter(tags=["health"])


class HealthStatus(BaseModel):
    status: str
    storage: bool


@router.get("/health", response_model=HealthStatus)
async def health(store: ObjectStore = Depends(get_object_store)) -> HealthStatus:
    storage_ok = await run_in_threadpool(store.ping)
    return HealthStatus(status="ok" if storage_ok else "degraded", storage=storage_ok)
