"""
PetServices Backend — Uploaded Image Route
===========================================

GET /uploads/{path}: serves images held by the local object store. With
the Supabase backend images are served by Supabase itself and this route
answers 404.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from petservices.dependencies import get_object_store
from petservices.exceptions import NotFoundError, StorageError, ValidationError
from petservices.services.local_storage import LocalObjectStore
from petservices.services.storage_base import ObjectStore

router = APIRouter(tags=["Files"])


@router.get(
    "/uploads/{file_path:path}",
    summary="Serve an uploaded image",
    responses={200: {"description": "Image file"}, 404: {"description": "File not found"}},
)
async def serve_upload(
    file_path: str,
    object_store: ObjectStore = Depends(get_object_store),
) -> FileResponse:
    if not isinstance(object_store, LocalObjectStore):
        raise NotFoundError(resource="file", resource_id=file_path)

    try:
        full_path = object_store.resolve(file_path)
    except StorageError:
        raise ValidationError(message="Invalid file path", field="file_path")

    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=3600"},
    )
