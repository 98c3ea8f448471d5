"""Handlers for shared links.

Creating, listing and revoking links needs a bearer token. Resolving a link
is public; a password protected link takes its password from the
`password` query parameter.
"""

from aiohttp import hdrs, web

from homevault.models.shared_link import (
    SharedFileResponse,
    SharedFileVO,
    SharedLinkCreateDTO,
    SharedLinkListVO,
    SharedLinkResponse,
    SharedLinkVO,
)
from homevault.server.services.shared_link import SharedLinkEntity, SharedLinkService

from .common import current_user, is_streaming_request, parse_body, send_file_stream
from .decorators import public_route

routes = web.RouteTableDef()


def _to_link_vo(link: SharedLinkEntity) -> SharedLinkVO:
    return SharedLinkVO(
        token=link.token,
        url=link.url,
        file_id=link.file_id,
        has_password=link.has_password,
        access_count=link.access_count,
        revoked=link.revoked,
        create_time=link.create_time,
        expires_at=link.expires_at,
        max_access_count=link.max_access_count,
        last_access_time=link.last_access_time,
    )


@routes.post("/share")
async def handle_create_link(request: web.Request) -> web.Response:
    # Endpoint: POST /share
    # Purpose: Share one of the caller's files through a public link.
    req = await parse_body(request, SharedLinkCreateDTO)
    shared_link_service: SharedLinkService = request.app["shared_link_service"]
    link = await shared_link_service.create_link(
        current_user(request),
        req.file_id,
        password=req.password,
        expires_at=req.expires_at,
        max_access_count=req.max_access_count,
    )
    return web.json_response(SharedLinkResponse(data=_to_link_vo(link)).to_dict())


@routes.get("/share")
async def handle_list_links(request: web.Request) -> web.Response:
    shared_link_service: SharedLinkService = request.app["shared_link_service"]
    links = await shared_link_service.list_links(current_user(request))
    return web.json_response(
        SharedLinkListVO(data=[_to_link_vo(link) for link in links]).to_dict()
    )


@routes.delete("/share/{token}")
async def handle_revoke_link(request: web.Request) -> web.Response:
    shared_link_service: SharedLinkService = request.app["shared_link_service"]
    link = await shared_link_service.revoke_link(
        current_user(request), request.match_info["token"]
    )
    return web.json_response(SharedLinkResponse(data=_to_link_vo(link)).to_dict())


@routes.get("/shared/{token}")
@public_route
async def handle_shared_info(request: web.Request) -> web.Response:
    # Endpoint: GET /shared/{token}?password=
    # Purpose: Public details of a shared file. Does not count as a download.
    shared_link_service: SharedLinkService = request.app["shared_link_service"]
    shared = await shared_link_service.get_shared_file(
        request.match_info["token"], request.query.get("password")
    )
    return web.json_response(
        SharedFileResponse(
            file=SharedFileVO(
                id=shared.file.id,
                name=shared.file.original_filename,
                mime_type=shared.file.mime_type,
                size=shared.file.size,
            ),
            link=_to_link_vo(shared.link),
        ).to_dict()
    )


@routes.get("/shared/{token}/download")
@public_route
async def handle_shared_download(request: web.Request) -> web.StreamResponse:
    """Serve the file behind a link, honouring ranges like `/files/{id}/download`."""
    shared_link_service: SharedLinkService = request.app["shared_link_service"]
    streaming = is_streaming_request(request)
    _, stream = await shared_link_service.open_shared_stream(
        request.match_info["token"],
        request.query.get("password"),
        request.headers.get(hdrs.RANGE),
    )
    return await send_file_stream(request, stream, streaming)
