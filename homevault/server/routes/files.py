"""Handlers for uploading, listing and serving files."""

import logging
from collections.abc import AsyncIterator
from typing import TypeGuard

from aiohttp import BodyPartReader, MultipartReader, hdrs, web

from homevault.models.base import BaseResponse, PageInfo
from homevault.models.file import (
    FileListVO,
    FileMoveData,
    FileMoveDTO,
    FileMoveVO,
    FileRenameDTO,
    FileResponse,
    StorageUsageVO,
    UploadConfigResponse,
    UploadConfigVO,
    UploadResponse,
    UploadResultVO,
)
from homevault.server.constants import CHUNK_SIZE, DEFAULT_PAGE_SIZE
from homevault.server.exceptions import NotFound, UploadBatchError, ValidationError
from homevault.server.services.file import FileService, UploadResult, UploadSource

from .common import (
    current_user,
    is_streaming_request,
    parse_body,
    query_int,
    send_file_stream,
    to_file_vo,
)

logger = logging.getLogger(__name__)
routes = web.RouteTableDef()

VIRTUAL_FOLDER_FIELD = "virtual_folder_path"


def _is_file_part(
    part: BodyPartReader | MultipartReader | None,
) -> TypeGuard[BodyPartReader]:
    return isinstance(part, BodyPartReader) and part.filename is not None


async def _read_part(part: BodyPartReader) -> AsyncIterator[bytes]:
    while chunk := await part.read_chunk(CHUNK_SIZE):
        yield chunk


def _to_upload_vo(result: UploadResult) -> UploadResultVO:
    return UploadResultVO(file=to_file_vo(result.file), url=result.url)


@routes.post("/files/upload")
async def handle_upload(request: web.Request) -> web.Response:
    """Store the files of a multipart upload.

    The target folder comes from the `virtual_folder_path` query parameter or
    from a form field of that name sent before the file parts.
    """
    if not request.content_type.startswith("multipart/"):
        raise ValidationError("Upload must be a multipart/form-data request")
    file_service: FileService = request.app["file_service"]
    user = current_user(request)
    virtual_folder_path = request.query.get(VIRTUAL_FOLDER_FIELD)

    reader = await request.multipart()
    first = await reader.next()
    while first is not None and not _is_file_part(first):
        if isinstance(first, BodyPartReader) and first.name == VIRTUAL_FOLDER_FIELD:
            virtual_folder_path = (await first.text()).strip() or None
        first = await reader.next()

    async def sources() -> AsyncIterator[UploadSource]:
        part = first
        while part is not None:
            if _is_file_part(part):
                yield UploadSource(
                    filename=part.filename or "",
                    mime_type=part.headers.get(hdrs.CONTENT_TYPE),
                    chunks=_read_part(part),
                )
            part = await reader.next()

    try:
        results = await file_service.upload_many(user, sources(), virtual_folder_path)
    except UploadBatchError as err:
        response = UploadResponse(
            success=False,
            error_code=err.error_code,
            error_msg=err.message,
            data=[_to_upload_vo(r) for r in err.results],
            failures=err.failures,
        )
        return web.json_response(response.to_dict(), status=err.status)

    return web.json_response(
        UploadResponse(data=[_to_upload_vo(r) for r in results]).to_dict()
    )


@routes.get("/files/upload/config")
async def handle_upload_config(request: web.Request) -> web.Response:
    file_service: FileService = request.app["file_service"]
    config = file_service.get_upload_config()
    return web.json_response(
        UploadConfigResponse(
            data=UploadConfigVO(
                max_file_size=config.max_file_size,
                max_files_per_upload=config.max_files_per_upload,
                allowed_file_types=list(config.allowed_file_types),
                blocked_file_extensions=list(config.blocked_file_extensions),
            )
        ).to_dict()
    )


@routes.get("/files")
async def handle_list_files(request: web.Request) -> web.Response:
    # Endpoint: GET /files?page=1&limit=20
    # Purpose: List the caller's files, newest first.
    file_service: FileService = request.app["file_service"]
    page = query_int(request, "page", 1)
    limit = query_int(request, "limit", DEFAULT_PAGE_SIZE)
    files, total = await file_service.list_files(current_user(request), page, limit)
    return web.json_response(
        FileListVO(
            data=[to_file_vo(f) for f in files],
            page_info=PageInfo(total=total, page=page, limit=limit),
        ).to_dict()
    )


@routes.get("/files/all")
async def handle_list_all_files(request: web.Request) -> web.Response:
    # Endpoint: GET /files/all?page=1&limit=20
    # Purpose: List every owner's files. Administrators only.
    file_service: FileService = request.app["file_service"]
    page = query_int(request, "page", 1)
    limit = query_int(request, "limit", DEFAULT_PAGE_SIZE)
    files, total = await file_service.list_all_files(
        current_user(request), page, limit
    )
    return web.json_response(
        FileListVO(
            data=[to_file_vo(f) for f in files],
            page_info=PageInfo(total=total, page=page, limit=limit),
        ).to_dict()
    )


@routes.get("/files/usage")
async def handle_storage_usage(request: web.Request) -> web.Response:
    file_service: FileService = request.app["file_service"]
    usage = await file_service.get_storage_usage(current_user(request))
    return web.json_response(
        StorageUsageVO(used=usage.used, file_count=usage.file_count).to_dict()
    )


@routes.put("/files/move")
async def handle_move_files(request: web.Request) -> web.Response:
    req = await parse_body(request, FileMoveDTO)
    file_service: FileService = request.app["file_service"]
    moved = await file_service.move_files(
        current_user(request), req.file_ids, req.destination_path
    )
    destination = moved[0].virtual_folder_path if moved else req.destination_path
    return web.json_response(
        FileMoveVO(
            data=FileMoveData(
                moved_files=[to_file_vo(f) for f in moved],
                destination_path=destination,
            )
        ).to_dict()
    )


@routes.get(r"/files/{file_id:\d+}")
async def handle_get_file(request: web.Request) -> web.Response:
    file_service: FileService = request.app["file_service"]
    file = await file_service.get_file(
        current_user(request), int(request.match_info["file_id"])
    )
    return web.json_response(FileResponse(data=to_file_vo(file)).to_dict())


@routes.put(r"/files/{file_id:\d+}")
async def handle_rename_file(request: web.Request) -> web.Response:
    """Change the display name of a file."""
    req = await parse_body(request, FileRenameDTO)
    file_service: FileService = request.app["file_service"]
    file = await file_service.rename_file(
        current_user(request), int(request.match_info["file_id"]), req.original_filename
    )
    return web.json_response(FileResponse(data=to_file_vo(file)).to_dict())


@routes.delete(r"/files/{file_id:\d+}")
async def handle_delete_file(request: web.Request) -> web.Response:
    file_service: FileService = request.app["file_service"]
    file_id = int(request.match_info["file_id"])
    if not await file_service.delete(current_user(request), file_id):
        raise NotFound(f"File {file_id} not found")
    return web.json_response(BaseResponse().to_dict())


@routes.get(r"/files/{file_id:\d+}/download")
async def handle_download(request: web.Request) -> web.StreamResponse:
    """Serve file content.

    With a `Range` header or `action=preview|stream` the content is served
    inline and ranges are honoured. Otherwise the whole file is sent as an
    attachment named after the original filename.
    """
    file_service: FileService = request.app["file_service"]
    streaming = is_streaming_request(request)
    stream = await file_service.stream(
        current_user(request),
        int(request.match_info["file_id"]),
        request.headers.get(hdrs.RANGE),
    )
    return await send_file_stream(request, stream, streaming)
