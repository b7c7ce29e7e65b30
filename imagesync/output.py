"""
Output helpers for imagesync commands.

Machine output is JSONL on stdout, one record per line, so a run can be
piped into ``jq``. Human output is a rich table. Errors in JSON mode are a
single JSON object on stderr.

Usage:
    from imagesync.output import emit, emit_error

    emit(summary.details)                               # JSONL
    emit(summary.details, pretty=True, err=True)        # table on stderr
    emit_error("Destination exists", type="DestinationError")
"""

import json
import sys
from typing import Any, Dict, Iterable, List, Optional

from rich.console import Console
from rich.table import Table

MAX_CELL_WIDTH = 100


def _record(item: Any) -> Dict[str, Any]:
    if isinstance(item, dict):
        return item
    if hasattr(item, 'to_dict'):
        return item.to_dict()
    return {'value': str(item)}


def emit(
    items: Iterable[Any],
    pretty: bool = False,
    columns: Optional[List[str]] = None,
    err: bool = False,
) -> None:
    """
    Write ``items`` as JSONL or as a table.

    Args:
        items: Dicts or objects with a ``to_dict()`` method
        pretty: Render a table instead of JSONL
        columns: Table columns (keys of the first record if None)
        err: Write to stderr instead of stdout
    """
    stream = sys.stderr if err else sys.stdout
    records = [_record(item) for item in items]

    if not pretty:
        for record in records:
            print(json.dumps(record, ensure_ascii=False), file=stream, flush=True)
        return

    console = Console(file=stream)
    if not records:
        console.print("[dim]Nothing to show[/dim]")
        return

    columns = columns or list(records[0])
    table = Table(show_header=True, header_style="bold")
    for column in columns:
        table.add_column(column, overflow="fold")
    for record in records:
        table.add_row(*(_cell(record.get(column)) for column in columns))
    console.print(table)


def _cell(value: Any) -> str:
    """Render one table cell; long image names keep their tail."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'yes' if value else 'no'
    if isinstance(value, (list, tuple)):
        return '\n'.join(str(v) for v in value)
    text = str(value)
    if len(text) > MAX_CELL_WIDTH:
        return '...' + text[-(MAX_CELL_WIDTH - 3):]
    return text


def emit_error(
    error: str,
    type: str = "error",
    context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Write one JSON error object to stderr.

    Args:
        error: Error message
        type: Error class name, e.g. ``CopyError``
        context: Extra fields such as the exit code
    """
    record: Dict[str, Any] = {'error': error, 'type': type}
    if context:
        record['context'] = context
    print(json.dumps(record, ensure_ascii=False), file=sys.stderr, flush=True)
