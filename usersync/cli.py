import argparse
import asyncio
import sys

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from usersync import Outcome, UserService, __version__, settings
from usersync.models import User
from usersync.utils import logger

console = Console()


def _users_table(users: list[User], title: str) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Name")
    table.add_column("Email", style="magenta")
    table.add_column("Created", style="green")
    table.add_column("Updated", style="green")
    for user in users:
        table.add_row(
            str(user.id),
            user.name,
            user.email,
            user.created_at.isoformat(timespec="seconds"),
            user.updated_at.isoformat(timespec="seconds"),
        )
    return table


def _report_failure(outcome: Outcome) -> int:
    error = outcome.error
    console.print(f"[bold red]{error.kind.value}[/]: {escape(error.message)}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usersync",
        description="Cliente de linha de comando para a coleção de usuários.",
    )
    parser.add_argument("--version", action="version", version=f"usersync v{__version__}")
    parser.add_argument(
        "--base-url",
        default=settings.API_BASE_URL,
        help="URL base da API (padrão: %(default)s).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_list = subparsers.add_parser("list", help="Lista os usuários.")
    parser_list.add_argument("--search", default="", help="Filtra por nome ou email.")

    parser_get = subparsers.add_parser("get", help="Mostra um usuário.")
    parser_get.add_argument("id", type=int)

    parser_create = subparsers.add_parser("create", help="Cria um usuário.")
    parser_create.add_argument("--name", required=True)
    parser_create.add_argument("--email", required=True)

    parser_update = subparsers.add_parser("update", help="Atualiza um usuário.")
    parser_update.add_argument("id", type=int)
    parser_update.add_argument("--name", required=True)
    parser_update.add_argument("--email", required=True)

    parser_delete = subparsers.add_parser("delete", help="Remove um usuário.")
    parser_delete.add_argument("id", type=int)

    subparsers.add_parser("stats", help="Mostra os totais da coleção.")
    return parser


async def _dispatch(args: argparse.Namespace, service: UserService) -> int:
    if args.command == "get":
        outcome = await service.get_user(args.id)
        if not outcome.ok:
            return _report_failure(outcome)
        console.print(_users_table([outcome.value], f"Usuário {args.id}"))
        return 0

    # every other command works on the cached collection
    fresh = await service.ensure_fresh()
    if not fresh.ok:
        return _report_failure(fresh)

    if args.command == "list":
        users = service.search(args.search)
        title = f"Usuários ({len(users)})"
        if args.search:
            title += f" | busca: {args.search!r}"
        console.print(_users_table(users, title))
        return 0

    if args.command == "stats":
        stats = service.stats()
        console.print(f"Total de usuários: [bold]{stats.total}[/]")
        console.print(
            f"Cadastros nos últimos {stats.window_days} dias: [bold]{stats.recent_signups}[/]"
        )
        return 0

    if args.command == "create":
        outcome = await service.create(name=args.name, email=args.email)
    elif args.command == "update":
        outcome = await service.update(args.id, name=args.name, email=args.email)
    elif args.command == "delete":
        outcome = await service.delete(args.id)
    else:
        raise ValueError(f"Comando desconhecido: {args.command}")

    if not outcome.ok:
        return _report_failure(outcome)
    if isinstance(outcome.value, User):
        console.print(_users_table([outcome.value], f"Usuário {outcome.value.id}"))
    else:
        console.print(f"Usuário {outcome.value} removido.")
    return 0


async def main(argv: list[str] | None = None, service: UserService | None = None) -> int:
    """
    Parses `argv` and runs one command against a fresh session.

    Args:
        argv: Command line arguments, defaults to `sys.argv[1:]`.
        service: Session to use instead of one built from `--base-url`.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)
    session = service or UserService(base_url=args.base_url)
    async with session:
        return await _dispatch(args, session)


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.warning("Execução interrompida pelo usuário.")
        sys.exit(130)
