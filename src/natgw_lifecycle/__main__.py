"""Allow ``python -m natgw_lifecycle``."""

from natgw_lifecycle.cli.main import cli

if __name__ == '__main__':
    cli()
