import click

from .utils.logging import configure_logging


def _apply_debug(ctx: click.Context, param: click.Parameter, value: bool) -> bool:
    # --debug on the group stays in effect for the subcommand
    root = ctx.find_root()
    root.ensure_object(dict)
    debug = value or root.obj.get("debug", False)
    root.obj["debug"] = debug
    configure_logging(debug)
    return debug


debug_option = click.option(
    "--debug/--no-debug",
    default=False,
    is_eager=True,
    expose_value=False,
    callback=_apply_debug,
    help="Log at debug level, including request lines.",
)
