from modproxy.cli.main import cli

cli(obj={})
