"""Helpers shared by the route handlers."""

import json
import logging
import urllib.parse
from typing import TypeVar

from aiohttp import hdrs, web
from mashumaro.exceptions import MissingField
from mashumaro.mixins.json import DataClassJSONMixin

from homevault.models.base import DownloadAction
from homevault.models.file import FileVO
from homevault.models.folder import FolderVO
from homevault.server.exceptions import StorageIOError, ValidationError
from homevault.server.services.file import FileStream
from homevault.server.services.file_catalog import FileEntity
from homevault.server.services.user import UserEntity
from homevault.server.services.vfs import FolderEntity

logger = logging.getLogger(__name__)

_T = TypeVar("_T", bound=DataClassJSONMixin)


def current_user(request: web.Request) -> UserEntity:
    """The caller, as set by the auth middleware."""
    return request["user"]


async def parse_body(request: web.Request, model: type[_T]) -> _T:
    """Decode a JSON request body into `model`."""
    try:
        data = await request.json()
    except json.JSONDecodeError as err:
        raise ValidationError("Request body must be valid JSON") from err
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.from_dict(data)
    except MissingField as err:
        raise ValidationError(f"Missing field: {err.field_name}") from err
    except (ValueError, TypeError) as err:
        raise ValidationError(f"Invalid request body: {err}") from err


def query_int(request: web.Request, name: str, default: int) -> int:
    value = request.query.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None


def to_folder_vo(entity: FolderEntity) -> FolderVO:
    return FolderVO(
        id=entity.id,
        name=entity.name,
        path=entity.path,
        parent_path=entity.parent_path,
        user_id=entity.user_id,
        create_time=entity.create_time,
        update_time=entity.update_time,
    )


def to_file_vo(entity: FileEntity) -> FileVO:
    return FileVO(
        id=entity.id,
        filename=entity.filename,
        original_filename=entity.original_filename,
        size=entity.size,
        mime_type=entity.mime_type,
        user_id=entity.user_id,
        folder_path=entity.folder_path,
        virtual_folder_path=entity.virtual_folder_path,
        create_time=entity.create_time,
        update_time=entity.update_time,
    )


def content_disposition(disposition: str, filename: str) -> str:
    """Build a Content-Disposition value with an RFC 5987 encoded name."""
    fallback = "".join(
        c
        for c in filename.encode("ascii", errors="replace").decode("ascii")
        if 0x20 <= ord(c) < 0x7F and c not in '"\\'
    )
    quoted = urllib.parse.quote(filename, safe="")
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quoted}"


def is_streaming_request(request: web.Request) -> bool:
    """Whether content should be served inline with ranges honoured.

    Raises:
      ValidationError: `action` is not a known download action.
    """
    try:
        action = DownloadAction.from_value(
            request.query.get("action", DownloadAction.DOWNLOAD.value)
        )
    except ValueError as err:
        raise ValidationError(str(err)) from err
    return request.headers.get(hdrs.RANGE) is not None or action in (
        DownloadAction.PREVIEW,
        DownloadAction.STREAM,
    )


async def send_file_stream(
    request: web.Request, stream: FileStream, streaming: bool
) -> web.StreamResponse:
    """Write a file, or the requested byte range of it, to the client."""
    file = stream.file
    headers = {
        hdrs.ACCEPT_RANGES: "bytes",
        hdrs.CACHE_CONTROL: "no-cache",
        hdrs.CONTENT_DISPOSITION: content_disposition(
            "inline" if streaming else "attachment", file.original_filename
        ),
    }
    status = 200
    if stream.byte_range is not None:
        status = 206
        headers[hdrs.CONTENT_RANGE] = stream.byte_range.content_range

    headers[hdrs.CONTENT_TYPE] = file.mime_type
    headers[hdrs.CONTENT_LENGTH] = str(stream.length)
    response = web.StreamResponse(status=status, headers=headers)
    await response.prepare(request)

    try:
        async for chunk in stream.iter_chunks():
            await response.write(chunk)
    except StorageIOError as err:
        logger.error("Streaming file %s failed: %s", file.id, err)
        return response

    await response.write_eof()
    return response
