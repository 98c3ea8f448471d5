"""Handlers for service status."""

from aiohttp import web

from homevault.models.base import BaseResponse

from .decorators import public_route

routes = web.RouteTableDef()


@routes.get("/health")
@public_route
async def handle_health(request: web.Request) -> web.Response:
    return web.json_response(BaseResponse().to_dict())
