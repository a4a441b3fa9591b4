"""CLI entrypoint for wp-prospector."""

import logging
from pathlib import Path

import rich_click as click

from wp_prospector import __version__
from wp_prospector.config import Settings
from wp_prospector.prospecting.controllers import (
    ProspectingCliController,
    SearchDeleteCommand,
    SearchHistoryCommand,
    SearchResultsCommand,
    SearchRunCommand,
)
from wp_prospector.prospecting.errors import ProspectingError

click.rich_click.USE_MARKDOWN = True
PROSPECTING_CONTROLLER = ProspectingCliController()


@click.group()
@click.version_option(version=__version__, prog_name="wp-prospector")
def wp_prospector() -> None:
    """WordPress lead prospecting CLI."""


@wp_prospector.group()
def db() -> None:
    """Database commands."""


@db.command("upgrade")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def db_upgrade(db_path: Path | None) -> None:
    """Apply schema migrations up to head."""

    _emit_lines(PROSPECTING_CONTROLLER.upgrade_db(db_path))


@wp_prospector.group()
def search() -> None:
    """Search cycle and stored-result commands."""


@search.command("run")
@click.argument("query")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--user-id", required=True, help="Owner of the stored results.")
@click.option(
    "--reset",
    "reset_pagination",
    is_flag=True,
    default=False,
    help="Restart pagination for this query from the first page.",
)
def search_run(query: str, db_path: Path | None, user_id: str, reset_pagination: bool) -> None:
    """Run one search cycle for QUERY and store new domains."""

    try:
        lines = PROSPECTING_CONTROLLER.run_search(
            SearchRunCommand(
                db_path=db_path,
                query=query,
                user_id=user_id,
                reset_pagination=reset_pagination,
            ),
        )
    except (ProspectingError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@search.command("history")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--user-id", required=True, help="Owner of the stored results.")
def search_history(db_path: Path | None, user_id: str) -> None:
    """List stored queries with result counts and pagination state."""

    _emit_lines(
        PROSPECTING_CONTROLLER.history(SearchHistoryCommand(db_path=db_path, user_id=user_id)),
    )


@search.command("results")
@click.argument("query")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--user-id", required=True, help="Owner of the stored results.")
def search_results(query: str, db_path: Path | None, user_id: str) -> None:
    """Show stored results for QUERY."""

    _emit_lines(
        PROSPECTING_CONTROLLER.results(
            SearchResultsCommand(db_path=db_path, query=query, user_id=user_id),
        ),
    )


@search.command("delete")
@click.argument("query")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--user-id", required=True, help="Owner of the stored results.")
def search_delete(query: str, db_path: Path | None, user_id: str) -> None:
    """Delete stored results and pagination state for QUERY."""

    _emit_lines(
        PROSPECTING_CONTROLLER.delete(
            SearchDeleteCommand(db_path=db_path, query=query, user_id=user_id),
        ),
    )


@wp_prospector.command("serve")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", type=click.IntRange(min=1, max=65535), default=8000, show_default=True)
def serve(db_path: Path | None, host: str, port: int) -> None:
    """Run the HTTP API."""

    import uvicorn

    from wp_prospector.api.server import create_app

    settings = Settings.from_env(db_path=db_path)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host=host, port=port, log_level=settings.log_level.lower())


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    wp_prospector()
