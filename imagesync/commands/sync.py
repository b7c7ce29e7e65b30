"""
Sync command for imagesync.

Copies all the images from a SOURCE to a DESTINATION. The source is a
registry repository, a directory tree of stored images or a YAML manifest
listing images of several registries.
"""

import logging
import sys
from typing import List, Optional

import click

from ..config import DEBUG_LOG_FORMAT, configure_logging, load_config
from ..domain.context import Credentials, Deadline, ExecutionContext, TLSVerify
from ..domain.descriptor import RepositoryDescriptor, RunSummary
from ..exit_codes import INTERRUPTED, CommandError, UsageError
from ..infra.registry_client import RegistryClient
from ..infra.skopeo_client import SkopeoClient
from ..output import emit, emit_error
from ..services.inventory_service import InventoryPlanner, validate_kinds
from ..services.sync_service import SyncExecutor, SyncOptions

logger = logging.getLogger(__name__)


def build_context(
    side: str,
    creds: Optional[str] = None,
    cert_dir: Optional[str] = None,
    tls_verify: Optional[bool] = None,
    registry_token: Optional[str] = None,
    no_creds: bool = False,
    authfile: Optional[str] = None,
) -> ExecutionContext:
    """
    Build the execution context of one side of the copy from CLI flags.

    Raises:
        UsageError: For conflicting or malformed credential flags
    """
    if creds and no_creds:
        raise UsageError(f"--{side}-creds and --{side}-no-creds cannot be specified at the same time")
    if creds and registry_token:
        raise UsageError(f"--{side}-creds and --{side}-registry-token cannot be specified at the same time")

    credentials = None
    if creds:
        try:
            credentials = Credentials.parse(creds)
        except ValueError as e:
            raise UsageError(f"Invalid --{side}-creds: {e}") from e

    return ExecutionContext(
        credentials=credentials,
        tls_verify=TLSVerify.from_bool(tls_verify),
        cert_dir=cert_dir,
        registry_token=registry_token,
        no_creds=no_creds,
        auth_file=authfile,
    )


def _context_options(side: str):
    """Credential and TLS options for one side (``src`` or ``dest``)."""
    label = 'SOURCE' if side == 'src' else 'DESTINATION'
    options = [
        click.option(f'--{side}-creds', metavar='USERNAME[:PASSWORD]',
                     help=f'Use USERNAME[:PASSWORD] for accessing the {label} registry'),
        click.option(f'--{side}-cert-dir', type=click.Path(), metavar='PATH',
                     help=f'Use certificates at PATH (*.crt, *.cert, *.key) to connect to the {label} registry'),
        click.option(f'--{side}-tls-verify', type=click.BOOL, default=None, metavar='BOOL',
                     help=f'Require HTTPS and verify certificates when talking to the {label} registry'),
        click.option(f'--{side}-registry-token', metavar='TOKEN',
                     help=f'Provide a Bearer token for accessing the {label} registry'),
        click.option(f'--{side}-no-creds', is_flag=True,
                     help=f'Access the {label} registry anonymously'),
        click.option(f'--{side}-authfile', type=click.Path(), metavar='PATH',
                     help=f'Path of the authentication file for the {label} registry'),
    ]

    def decorator(func):
        for option in reversed(options):
            func = option(func)
        return func
    return decorator


@click.command('sync')
@click.argument('source')
@click.argument('destination')
@click.option('--src', '-s', 'source_kind', metavar='TRANSPORT',
              help='SOURCE transport type: docker, dir or yaml')
@click.option('--dest', '-d', 'destination_kind', metavar='TRANSPORT',
              help='DESTINATION transport type: docker or dir')
@click.option('--scoped', is_flag=True,
              help='Images at DESTINATION are prefixed using the full source image path as scope')
@click.option('--remove-signatures', is_flag=True, help='Do not copy signatures from SOURCE images')
@click.option('--sign-by', metavar='FINGERPRINT',
              help='Sign the image using a GPG key with the specified FINGERPRINT')
@click.option('--authfile', type=click.Path(), metavar='PATH',
              help='Path of the authentication file, used for both sides unless overridden')
@_context_options('src')
@_context_options('dest')
@click.option('--command-timeout', type=click.FloatRange(min=0, min_open=True), metavar='SECONDS',
              help='Timeout for the whole sync run')
@click.option('--policy', type=click.Path(), metavar='PATH', help='Path to a trust policy file')
@click.option('--insecure-policy', is_flag=True,
              help='Run the copy engine without any signature policy check')
@click.option('--dry-run', is_flag=True, help='Plan and resolve destinations without copying')
@click.option('--json', 'output_json', is_flag=True, help='Output as JSONL')
@click.option('--pretty', is_flag=True, help='Display progress with rich formatting')
@click.option('--debug', is_flag=True, help='Enable debug logging')
def sync_handler(
    source: str,
    destination: str,
    source_kind: Optional[str],
    destination_kind: Optional[str],
    scoped: bool,
    remove_signatures: bool,
    sign_by: Optional[str],
    authfile: Optional[str],
    src_creds: Optional[str],
    src_cert_dir: Optional[str],
    src_tls_verify: Optional[bool],
    src_registry_token: Optional[str],
    src_no_creds: bool,
    src_authfile: Optional[str],
    dest_creds: Optional[str],
    dest_cert_dir: Optional[str],
    dest_tls_verify: Optional[bool],
    dest_registry_token: Optional[str],
    dest_no_creds: bool,
    dest_authfile: Optional[str],
    command_timeout: Optional[float],
    policy: Optional[str],
    insecure_policy: bool,
    dry_run: bool,
    output_json: bool,
    pretty: bool,
    debug: bool,
):
    """
    Synchronize one or more images from one location to another.

    Allowed SOURCE transports (--src): docker, dir, yaml.
    Allowed DESTINATION transports (--dest): docker, dir.

    Examples:

        # Copy every tag of a repository into a directory tree
        imagesync sync --src docker --dest dir --scoped registry.example.com/busybox /media/usb

        # Push images stored on disk to a registry namespace
        imagesync sync --src dir --dest docker /media/usb/images my-registry.local.lan/mirror

        # Mirror the images listed in a manifest
        imagesync sync --src yaml --dest docker sync.yml my-registry.local.lan/repo

        # Preview
        imagesync sync --src yaml --dest dir --dry-run --pretty sync.yml /media/usb
    """
    config = load_config()
    if debug:
        configure_logging('DEBUG', DEBUG_LOG_FORMAT)
    else:
        configure_logging(config['logging']['level'], config['logging']['format'])

    try:
        kind, destination_transport = validate_kinds(source_kind, destination_kind)
        source_context = build_context(
            'src', src_creds, src_cert_dir, src_tls_verify,
            src_registry_token, src_no_creds, src_authfile or authfile,
        )
        destination_context = build_context(
            'dest', dest_creds, dest_cert_dir, dest_tls_verify,
            dest_registry_token, dest_no_creds, dest_authfile or authfile,
        )

        deadline = Deadline(command_timeout)
        registry_config = config['registry']
        planner = InventoryPlanner(
            RegistryClient(
                timeout=registry_config['timeout_seconds'],
                page_size=registry_config['page_size'],
                user_agent=registry_config['user_agent'],
            ),
            deadline=deadline,
        )
        descriptors = planner.plan(source, kind, source_context)

        engine = SkopeoClient(
            binary=config['copy']['skopeo_binary'],
            policy=policy,
            insecure_policy=insecure_policy,
            retry_times=config['copy']['retry_times'],
            debug=debug,
        )
        executor = SyncExecutor(engine, deadline=deadline)
        options = SyncOptions(
            destination=destination,
            destination_transport=destination_transport,
            scoped=scoped,
            remove_signatures=remove_signatures,
            sign_by=sign_by,
            destination_context=destination_context,
            dry_run=dry_run,
        )
        summary = RunSummary(skipped=list(planner.skipped))

        if pretty:
            _sync_pretty(executor, descriptors, options, summary)
        elif output_json:
            _sync_json(executor, descriptors, options, summary)
        else:
            _sync_simple(executor, descriptors, options, summary)

    except CommandError as e:
        if output_json:
            emit_error(str(e), type=type(e).__name__, context={'exit_code': e.exit_code})
        else:
            print(f"Error: {e}", file=sys.stderr)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        print("Interrupted by user", file=sys.stderr)
        sys.exit(INTERRUPTED)


def _sync_simple(executor: SyncExecutor, descriptors: List[RepositoryDescriptor],
                 options: SyncOptions, summary: RunSummary):
    """Simple text output for sync."""
    mode = "[dry run] " if options.dry_run else ""

    for progress in executor.sync(descriptors, options, summary):
        if not progress.completed:
            print(f"{mode}{progress}", file=sys.stderr)

    print(f"\n{mode}Sync complete:", file=sys.stderr)
    print(f"  Images copied: {summary.images_copied}", file=sys.stderr)
    print(f"  Sources processed: {summary.descriptors_processed}", file=sys.stderr)
    if summary.skipped:
        print(f"  Entries skipped: {len(summary.skipped)}", file=sys.stderr)
        for message in summary.skipped:
            print(f"    - {message}", file=sys.stderr)


def _sync_json(executor: SyncExecutor, descriptors: List[RepositoryDescriptor],
               options: SyncOptions, summary: RunSummary):
    """JSONL output for sync; a dry run also emits the plan."""
    if options.dry_run:
        emit(descriptors)

    for progress in executor.sync(descriptors, options, summary):
        emit([{'progress': str(progress), 'completed': progress.completed}])

    emit(summary.details)
    summary_record = summary.to_dict()
    summary_record['dry_run'] = options.dry_run
    emit([summary_record])


def _sync_pretty(executor: SyncExecutor, descriptors: List[RepositoryDescriptor],
                 options: SyncOptions, summary: RunSummary):
    """Rich formatted output for sync."""
    from rich.console import Console
    from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
    from rich.table import Table

    console = Console(stderr=True)
    mode = "[bold yellow]DRY RUN[/bold yellow] " if options.dry_run else ""
    total_images = sum(len(descriptor) for descriptor in descriptors)

    console.print(f"\n{mode}[bold]Syncing to:[/bold] {options.destination} "
                  f"({options.destination_transport.value})")
    console.print(f"[bold]Sources:[/bold] {len(descriptors)}  [bold]Images:[/bold] {total_images}")
    if options.scoped:
        console.print("[dim]Scoped destination names[/dim]")
    console.print()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Starting sync...", total=total_images)
        for event in executor.sync(descriptors, options, summary):
            progress.update(task, advance=1 if event.completed else 0, description=str(event))

    if options.dry_run:
        emit(summary.details, pretty=True, columns=['from', 'to', 'status'], err=True)

    table = Table(title=f"{mode}Sync Summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Images copied", str(summary.images_copied))
    table.add_row("Sources processed", str(summary.descriptors_processed))
    if summary.skipped:
        table.add_row("Entries skipped", str(len(summary.skipped)))
    console.print(table)

    if summary.skipped:
        console.print(f"\n[yellow]Skipped ({len(summary.skipped)}):[/yellow]")
        for message in summary.skipped:
            console.print(f"  [yellow]•[/yellow] {message}")

    console.print(f"\n[bold green]✓[/bold green] Sync complete: {options.destination}")
