"""
Config command for imagesync.

Prints the effective configuration (defaults, config file and
``IMAGESYNC_*`` environment overrides merged).
"""

import json

import click

from ..config import get_config_path, load_config


@click.group("config")
def config_cmd():
    """Inspect imagesync configuration."""
    pass


@config_cmd.command("show")
@click.option("--pretty", is_flag=True, help="Indent the JSON output")
@click.option("--path", is_flag=True, help="Only print which config file is read")
@click.option("--section", type=click.Choice(["registry", "copy", "logging"]),
              help="Only print one section")
def show_config(pretty, path, section):
    """Show the effective configuration as JSON.

    \b
    Examples:
        imagesync config show
        imagesync config show --section registry --pretty
        IMAGESYNC_COPY_RETRY_TIMES=3 imagesync config show --section copy
    """
    if path:
        config_path = get_config_path()
        click.echo(json.dumps({
            "config_path": str(config_path),
            "exists": config_path.exists(),
        }))
        return

    config = load_config()
    if section:
        config = config[section]
    click.echo(json.dumps(config, indent=2 if pretty else None, ensure_ascii=False))
