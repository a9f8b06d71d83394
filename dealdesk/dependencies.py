from typing import List

from fastapi import Request, UploadFile

from .integrations import IntegrationClient
from .storage import IncomingFile, StorageClient


def get_storage(request: Request) -> StorageClient:
    client = getattr(request.app.state, "storage", None)
    if client is None:
        client = StorageClient()
        request.app.state.storage = client
    return client


def get_integrations(request: Request) -> IntegrationClient:
    client = getattr(request.app.state, "integrations", None)
    if client is None:
        client = IntegrationClient()
        request.app.state.integrations = client
    return client


async def read_upload(upload: UploadFile) -> IncomingFile:
    content = await upload.read()
    return IncomingFile(name=upload.filename or "upload", content=content,
                        content_type=upload.content_type)


async def read_uploads(uploads: List[UploadFile]) -> List[IncomingFile]:
    return [await read_upload(u) for u in uploads]
