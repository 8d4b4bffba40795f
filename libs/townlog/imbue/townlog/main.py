import click

from imbue.townlog.cli.log import log
from imbue.townlog.cli.record import record


@click.group(name="townlog")
@click.version_option(package_name="townlog", prog_name="townlog")
def cli() -> None:
    """Record and view the lifecycle events of the agents in a town."""


cli.add_command(log)
cli.add_command(record)


def main() -> None:
    cli()
