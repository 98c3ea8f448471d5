import json
import logging
import time
from typing import Any, Awaitable, Callable

from aiohttp import web

from .config import ServerConfig
from .db.session import DatabaseSessionManager
from .exceptions import HomeVaultError, Unauthorized
from .routes import files, shared_links, system, virtual_folders
from .services.blob import LocalBlobStorage
from .services.file import FileService
from .services.folder import VirtualFolderService
from .services.integrity import IntegrityService
from .services.shared_link import SharedLinkService
from .services.user import UserService

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

MAX_TRACE_BODY = 1024


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Render service errors as JSON error responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except HomeVaultError as err:
        if err.status >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, err.message)
        return err.to_response()
    except Exception as err:
        logger.exception("Unhandled error for %s %s", request.method, request.path)
        return HomeVaultError.uncaught(err).to_response()


@web.middleware
async def trace_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Append one JSON line per request to the trace log."""
    trace_log_file = request.app["config"].trace_log_file
    if not trace_log_file:
        return await handler(request)

    # Multipart bodies are streamed by the handler and must not be consumed.
    body_str = None
    if request.can_read_body and not request.content_type.startswith("multipart/"):
        body_bytes = await request.read()
        body_str = body_bytes.decode("utf-8", errors="replace")
        if len(body_str) > MAX_TRACE_BODY:
            body_str = body_str[:MAX_TRACE_BODY] + "... (truncated)"

    start = time.perf_counter()
    response = await handler(request)
    log_entry = {
        "timestamp": time.time(),
        "method": request.method,
        "url": str(request.url),
        "status": response.status,
        "duration_ms": round((time.perf_counter() - start) * 1000, 2),
        "body": body_str,
    }
    try:
        with open(trace_log_file, "a") as f:
            f.write(json.dumps(log_entry) + "\n")
    except OSError as err:
        logger.error("Failed to write to trace log: %s", err)
    return response


@web.middleware
async def jwt_auth_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Resolve the bearer token to a user unless the route is public."""
    match_info = request.match_info
    if match_info.http_exception is not None or getattr(
        match_info.handler, "is_public", False
    ):
        return await handler(request)

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise Unauthorized("Missing bearer token")
    user_service: UserService = request.app["user_service"]
    request["user"] = user_service.verify_token(auth_header.split(" ", 1)[1].strip())
    return await handler(request)


def create_app(config: ServerConfig | None = None) -> web.Application:
    if config is None:
        config = ServerConfig.load()

    app = web.Application(
        middlewares=[error_middleware, trace_middleware, jwt_auth_middleware]
    )
    app["config"] = config

    # Initialize services
    session_manager = DatabaseSessionManager(config.db_url)
    blob_storage = LocalBlobStorage(config.storage_root)
    folder_service = VirtualFolderService(session_manager, blob_storage)
    app["session_manager"] = session_manager
    app["blob_storage"] = blob_storage
    app["user_service"] = UserService(config.auth)
    app["folder_service"] = folder_service
    file_service = FileService(
        config.upload, session_manager, blob_storage, folder_service
    )
    app["file_service"] = file_service
    app["shared_link_service"] = SharedLinkService(session_manager, file_service)
    app["integrity_service"] = IntegrityService(session_manager, blob_storage)

    # Register routes
    app.add_routes(system.routes)
    app.add_routes(virtual_folders.routes)
    app.add_routes(files.routes)
    app.add_routes(shared_links.routes)

    async def on_startup(app: web.Application) -> None:
        await session_manager.create_all()
        logger.info("Storing files under %s", config.storage_root)

    async def on_cleanup(app: web.Application) -> None:
        await session_manager.close()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


def run(args: Any) -> None:
    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    config = ServerConfig.load(getattr(args, "config_dir", None))
    if getattr(args, "host", None):
        config.host = args.host
    if getattr(args, "port", None):
        config.port = args.port
    app = create_app(config)
    web.run_app(app, host=config.host, port=config.port)
