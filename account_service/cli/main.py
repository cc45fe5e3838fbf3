"""Main CLI entry point for account-service management commands."""

import click

from account_service import __version__
from account_service.cli.commands import outbox, server, worker
from account_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="account-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Account Service CLI - integration event delivery.

    \b
    Commands:
      worker     Run subscriptions and the outbox replay timer
      outbox     Inspect and replay saved integration events
      server     Run the HTTP server

    \b
    Quick Start:
      account-service outbox count      # Events waiting for replay
      account-service outbox sweep      # Replay them once
      account-service worker            # Keep replaying until stopped
    """
    ctx.ensure_object(dict)


cli.add_command(worker.worker)
cli.add_command(outbox.outbox)
cli.add_command(server.server)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
