"""
CSV record reader and writer.

``read_records`` turns a delimited file into flat ``{field: value}`` records;
``serialize_rows`` turns value lists into CSV bytes accepted by
``COPY ... FROM STDIN (FORMAT CSV)``.
"""
import csv
import io
from itertools import islice
from typing import Any, Dict, Iterable, Iterator, List, Sequence

from ..setup.config.models import CsvConfig


def read_records(path: str, csv_config: CsvConfig) -> Iterator[Dict[str, Any]]:
    """
    Yield one dict per data row.

    When ``csv_config.headers`` is set the file has no header row; otherwise
    the first row names the fields. Values listed in ``null_values`` become
    ``None``.
    """
    null_values = set(csv_config.null_values)
    with open(path, "r", newline="", encoding=csv_config.encoding) as f:
        reader = csv.DictReader(
            f,
            fieldnames=csv_config.headers,
            delimiter=csv_config.delimiter,
            quotechar=csv_config.quotechar,
        )
        for row in reader:
            # DictReader stores surplus fields under the None key
            row.pop(None, None)
            if null_values:
                row = {k: (None if v in null_values else v) for k, v in row.items()}
            yield row


def next_batch(records: Iterator[Dict[str, Any]], size: int) -> List[Dict[str, Any]]:
    """Pull up to ``size`` records; an empty list means the source is exhausted."""
    return list(islice(records, size))


def to_copy_value(value: Any) -> Any:
    """Render one value the way the COPY CSV format expects it."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "t" if value else "f"
    if isinstance(value, (list, tuple)):
        return to_array_literal(value)
    return value


def to_array_literal(values: Iterable[Any]) -> str:
    """PostgreSQL array literal, e.g. ``['a', None, 'b c']`` -> ``{"a",NULL,"b c"}``."""
    items = []
    for value in values:
        if value is None:
            items.append("NULL")
        elif isinstance(value, (list, tuple)):
            items.append(to_array_literal(value))
        else:
            text = str(to_copy_value(value))
            escaped = text.replace("\\", "\\\\").replace('"', '\\"')
            items.append(f'"{escaped}"')
    return "{" + ",".join(items) + "}"


def serialize_rows(rows: Iterable[Sequence[Any]]) -> bytes:
    """
    CSV-encode rows for COPY.

    ``None`` is written as an unquoted empty field, which COPY reads as NULL.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for row in rows:
        writer.writerow([to_copy_value(value) for value in row])
    return buffer.getvalue().encode("utf-8")
