#!/usr/bin/env python3

import click

from imagesync.commands.sync import sync_handler
from imagesync.commands.config import config_cmd


@click.group()
@click.version_option(package_name="imagesync")
def cli():
    """imagesync - Bulk replication of container images.

    Copies images from a registry repository, a directory tree of stored
    images or a multi-registry YAML manifest to a registry or a directory.
    """
    pass


cli.add_command(sync_handler, name='sync')
cli.add_command(config_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
