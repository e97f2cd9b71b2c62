"""modproxy CLI"""

import click

from modproxy import __version__
from modproxy.cli.serve import config, serve

from .debug import debug_option


@click.group()
@click.version_option(__version__, prog_name="modproxy")
@debug_option
@click.pass_context
def cli(ctx):
    """
    Go module proxy serving a namespace from a mapped git host.
    """
    ctx.ensure_object(dict)


cli.add_command(serve)
cli.add_command(config)

if __name__ == "__main__":
    cli(obj={})
