"""Handlers for managing the virtual folder tree."""

import logging

from aiohttp import web

from homevault.models.base import BaseResponse
from homevault.models.file import FileVO
from homevault.models.folder import (
    FolderContentsData,
    FolderContentsVO,
    FolderCreateDTO,
    FolderDeleteData,
    FolderDeleteVO,
    FolderListVO,
    FolderMoveDTO,
    FolderResponse,
    FolderUpdateDTO,
)
from homevault.server.services.folder import VirtualFolderService

from .common import current_user, parse_body, to_file_vo, to_folder_vo

logger = logging.getLogger(__name__)
routes = web.RouteTableDef()


@routes.post("/virtual-folders")
async def handle_create_folder(request: web.Request) -> web.Response:
    # Endpoint: POST /virtual-folders
    # Purpose: Create a single folder below an existing parent.
    req = await parse_body(request, FolderCreateDTO)
    folder_service: VirtualFolderService = request.app["folder_service"]
    folder = await folder_service.create_folder(
        current_user(request), req.name, path=req.path, parent_path_str=req.parent_path
    )
    return web.json_response(FolderResponse(data=to_folder_vo(folder)).to_dict())


@routes.get("/virtual-folders")
async def handle_list_folders(request: web.Request) -> web.Response:
    """List the contents of `parent_path`, or every folder when it is omitted."""
    folder_service: VirtualFolderService = request.app["folder_service"]
    user = current_user(request)
    if "parent_path" not in request.query:
        folders = await folder_service.list_folders(user)
        return web.json_response(
            FolderListVO(data=[to_folder_vo(f) for f in folders]).to_dict()
        )

    contents = await folder_service.get_folder_contents(
        user, request.query["parent_path"]
    )
    files: list[FileVO] = [to_file_vo(f) for f in contents.files]
    return web.json_response(
        FolderContentsVO(
            data=FolderContentsData(
                current_path=contents.current_path,
                parent_path=contents.parent_path,
                folders=[to_folder_vo(f) for f in contents.folders],
                files=files,
            )
        ).to_dict()
    )


@routes.get("/virtual-folders/hierarchy")
async def handle_folder_hierarchy(request: web.Request) -> web.Response:
    folder_service: VirtualFolderService = request.app["folder_service"]
    folders = await folder_service.get_path_hierarchy(current_user(request))
    return web.json_response(
        FolderListVO(data=[to_folder_vo(f) for f in folders]).to_dict()
    )


@routes.get(r"/virtual-folders/{folder_id:\d+}")
async def handle_get_folder(request: web.Request) -> web.Response:
    folder_service: VirtualFolderService = request.app["folder_service"]
    folder = await folder_service.get_folder(
        current_user(request), int(request.match_info["folder_id"])
    )
    return web.json_response(FolderResponse(data=to_folder_vo(folder)).to_dict())


@routes.put(r"/virtual-folders/{folder_id:\d+}")
async def handle_update_folder(request: web.Request) -> web.Response:
    # Endpoint: PUT /virtual-folders/{id}
    # Purpose: Rename a folder and/or relocate it to a new path.
    req = await parse_body(request, FolderUpdateDTO)
    folder_service: VirtualFolderService = request.app["folder_service"]
    folder = await folder_service.update_folder(
        current_user(request),
        int(request.match_info["folder_id"]),
        name=req.name,
        path=req.path,
    )
    return web.json_response(FolderResponse(data=to_folder_vo(folder)).to_dict())


@routes.delete(r"/virtual-folders/{folder_id:\d+}")
async def handle_delete_folder(request: web.Request) -> web.Response:
    """Delete an empty folder."""
    folder_service: VirtualFolderService = request.app["folder_service"]
    await folder_service.delete_folder(
        current_user(request), int(request.match_info["folder_id"])
    )
    return web.json_response(BaseResponse().to_dict())


@routes.post(r"/virtual-folders/{folder_id:\d+}/move")
async def handle_move_folder(request: web.Request) -> web.Response:
    req = await parse_body(request, FolderMoveDTO)
    folder_service: VirtualFolderService = request.app["folder_service"]
    folder = await folder_service.move_folder(
        current_user(request),
        int(request.match_info["folder_id"]),
        req.new_parent_path,
    )
    return web.json_response(FolderResponse(data=to_folder_vo(folder)).to_dict())


@routes.delete("/folders")
async def handle_delete_folder_recursive(request: web.Request) -> web.Response:
    # Endpoint: DELETE /folders?path=P
    # Purpose: Delete a folder with all of its sub-folders and files.
    folder_service: VirtualFolderService = request.app["folder_service"]
    report = await folder_service.delete_folder_recursive(
        current_user(request), request.query.get("path")
    )
    return web.json_response(
        FolderDeleteVO(
            data=FolderDeleteData(
                path=report.path,
                folders_deleted=report.folders_deleted,
                files_deleted=report.files_deleted,
                unlink_failures=report.unlink_failures,
            )
        ).to_dict()
    )
