from __future__ import annotations

import argparse
from getpass import getpass
import logging
import sys

from taskboard_client.apis import AuthApi, BoardApi
from taskboard_client.auth import AUTH_STATE_KEY, AuthenticationError, SessionStore
from taskboard_client.cache import EntityCache
from taskboard_client.config import AppSettings, ConfigurationError
from taskboard_client.http import ApiHttpError, HttpClient
from taskboard_client.logging_utils import configure_logging
from taskboard_client.models import Board, BoardStatus, BoardType
from taskboard_client.mutations import MutationEngine, MutationError, Notifier
from taskboard_client.preferences import MAX_PINNED_BOARDS, SORT_FIELDS, PreferenceStore
from taskboard_client.queries import BoardQueries
from taskboard_client.services import BoardClientService
from taskboard_client.storage import StateStore

logger = logging.getLogger(__name__)


class ConsoleNotifier(Notifier):
    def success(self, message: str) -> None:
        print(message)

    def error(self, message: str) -> None:
        print(message, file=sys.stderr)


def build_service(settings: AppSettings, notifier: Notifier | None = None) -> BoardClientService:
    http_client = HttpClient(settings)
    board_api = BoardApi(http_client)
    state_store = StateStore(settings.state_dir, protected_keys=(AUTH_STATE_KEY,))
    cache = EntityCache()
    session = SessionStore(AuthApi(http_client), cache, state_store)
    preferences = PreferenceStore(state_store)
    return BoardClientService(
        session=session,
        cache=cache,
        board_api=board_api,
        queries=BoardQueries(board_api, cache, session, stale_seconds=settings.stale_seconds),
        engine=MutationEngine(cache, notifier),
        preferences=preferences,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskboard", description="Task board client")
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="sign in and remember the session")
    login.add_argument("username")
    login.add_argument("--password", help="prompted for when omitted")

    commands.add_parser("logout", help="sign out and forget cached data")
    commands.add_parser("whoami", help="check the stored session with the server")

    boards = commands.add_parser("boards", help="list your boards, pinned first")
    boards.add_argument("--sort", choices=SORT_FIELDS)
    boards.add_argument("--desc", action="store_true")

    show = commands.add_parser("show", help="show one board by slug")
    show.add_argument("slug")

    create = commands.add_parser("create", help="create a board")
    create.add_argument("name")
    create.add_argument("--status", choices=[status.value for status in BoardStatus], default="PLANNED")
    create.add_argument("--type", dest="board_type", choices=[kind.value for kind in BoardType], default="INDIVIDUAL")
    create.add_argument("--description")
    create.add_argument("--deadline")
    create.add_argument("--link")
    create.add_argument("--category")

    rename = commands.add_parser("rename", help="rename a board")
    rename.add_argument("board_id", type=int)
    rename.add_argument("name")

    status = commands.add_parser("status", help="change a board's status")
    status.add_argument("board_id", type=int)
    status.add_argument("status", choices=[status.value for status in BoardStatus])

    delete = commands.add_parser("delete", help="delete a board")
    delete.add_argument("board_id", type=int)

    pin = commands.add_parser("pin", help="pin or unpin a board")
    pin.add_argument("board_id", type=int)
    return parser


def run_cli(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = AppSettings.from_env()
    except ConfigurationError as exc:
        configure_logging()
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    configure_logging(settings.numeric_log_level)
    service = build_service(settings, ConsoleNotifier())

    try:
        return _dispatch(service, args)
    except MutationError:
        return 1
    except AuthenticationError as exc:
        print(exc, file=sys.stderr)
        return 1
    except (ApiHttpError, LookupError, ValueError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(exc, file=sys.stderr)
        return 1


def _dispatch(service: BoardClientService, args: argparse.Namespace) -> int:
    if args.command == "login":
        password = args.password or getpass("Password: ")
        identity = service.sign_in(args.username, password)
        print(f"Signed in as {identity.username}")
        return 0

    if args.command == "logout":
        service.sign_out()
        print("Signed out")
        return 0

    if args.command == "whoami":
        if not service.validate_session():
            print("Not signed in")
            return 1
        identity = service.identity()
        print(f"{identity.username} (id {identity.user_id})")
        return 0

    if not service.identity().is_authenticated:
        print("Not signed in. Run 'taskboard login <username>' first.", file=sys.stderr)
        return 1

    if args.command == "boards":
        if args.sort:
            service.preferences.set_sort_field(args.sort)
        service.preferences.set_sort_direction("desc" if args.desc else "asc")
        pinned = set(service.preferences.pinned_board_ids)
        for board in service.arranged_boards():
            print(_format_board(board, board.id in pinned))
        return 0

    if args.command == "show":
        board = service.board_detail(args.slug)
        print(_format_board(board, service.preferences.is_pinned(board.id)))
        if board.description:
            print(f"  {board.description}")
        return 0

    if args.command == "create":
        service.create_board(
            args.name,
            status=args.status,
            board_type=args.board_type,
            link=args.link,
            description=args.description,
            deadline=args.deadline,
            category=args.category,
        )
        return 0

    if args.command == "rename":
        service.update_board(args.board_id, name=args.name)
        return 0

    if args.command == "status":
        service.update_board_status(args.board_id, args.status)
        return 0

    if args.command == "delete":
        service.delete_board(args.board_id)
        return 0

    if args.command == "pin":
        was_pinned = service.preferences.is_pinned(args.board_id)
        if service.toggle_pin_board(args.board_id):
            print(f"Pinned board {args.board_id}")
        elif was_pinned:
            print(f"Unpinned board {args.board_id}")
        else:
            print(f"Cannot pin more than {MAX_PINNED_BOARDS} boards")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def _format_board(board: Board, pinned: bool) -> str:
    marker = "*" if pinned else " "
    deadline = f"  due {board.deadline}" if board.deadline else ""
    return f"{marker} {board.id:>5}  {board.status.value:<12} {board.name}{deadline}"
