"""Server CLI commands."""

import asyncio
import logging
import sys

from homevault.server.config import ServerConfig
from homevault.server.db.session import DatabaseSessionManager
from homevault.server.exceptions import Unauthorized
from homevault.server.services.blob import LocalBlobStorage
from homevault.server.services.integrity import IntegrityService
from homevault.server.services.user import UserService

_LOGGER = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )
    if verbose:
        logging.getLogger("homevault").setLevel(logging.DEBUG)
        logging.getLogger("aiohttp").setLevel(logging.DEBUG)


def subcommand_serve(args) -> None:
    # Imported here so the other subcommands do not pull in the web stack
    from homevault.server.app import run

    run(args)


def subcommand_token(args) -> None:
    """Print an access token for a configured user."""
    setup_logging(args.verbose)
    config = ServerConfig.load(args.config_dir)
    try:
        token = UserService(config.auth).create_token(args.username)
    except Unauthorized as err:
        print(f"Error: {err.message}")
        sys.exit(1)
    print(token)


async def async_check(config: ServerConfig, user_id: int) -> bool:
    session_manager = DatabaseSessionManager(config.db_url)
    try:
        await session_manager.create_all()
        service = IntegrityService(session_manager, LocalBlobStorage(config.storage_root))
        report = await service.verify_user_storage(user_id)
    finally:
        await session_manager.close()

    print(f"Scanned:       {report.scanned}")
    print(f"OK:            {report.ok}")
    print(f"Missing file:  {report.missing_file}")
    print(f"Size mismatch: {report.size_mismatch}")
    for file_id in report.problem_file_ids:
        print(f"  problem file id: {file_id}")
    return report.missing_file == 0 and report.size_mismatch == 0


def subcommand_check(args) -> None:
    """Verify that every catalog entry of a user has matching bytes on disk."""
    setup_logging(args.verbose)
    config = ServerConfig.load(args.config_dir)
    if not asyncio.run(async_check(config, args.user_id)):
        sys.exit(1)


def add_parser(subparsers):
    # 'serve' subcommand
    parser_serve = subparsers.add_parser("serve", help="run the storage server")
    parser_serve.add_argument(
        "--config-dir", type=str, default=None, help="directory holding config.yaml"
    )
    parser_serve.add_argument("--host", type=str, default=None, help="bind address")
    parser_serve.add_argument("--port", type=int, default=None, help="bind port")
    parser_serve.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )
    parser_serve.set_defaults(func=subcommand_serve)

    # 'token' subcommand
    parser_token = subparsers.add_parser(
        "token", help="issue an access token for a configured user"
    )
    parser_token.add_argument("username", type=str, help="configured username")
    parser_token.add_argument(
        "--config-dir", type=str, default=None, help="directory holding config.yaml"
    )
    parser_token.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )
    parser_token.set_defaults(func=subcommand_token)

    # 'check' subcommand
    parser_check = subparsers.add_parser(
        "check", help="verify stored files against the catalog"
    )
    parser_check.add_argument("user_id", type=int, help="owner user ID to check")
    parser_check.add_argument(
        "--config-dir", type=str, default=None, help="directory holding config.yaml"
    )
    parser_check.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )
    parser_check.set_defaults(func=subcommand_check)
