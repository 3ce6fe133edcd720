"""
Decodes delimited GTFS tables into typed, immutable records.

Every record type in schedule.models tags its fields with a "column"
metadata entry.  The first time a type is decoded its tags are turned into
a (field, column, converter) table which is cached for the life of the
process, so no per-row introspection happens.

Rules:
  - Supported field types are str, int, float and bool.  Anything else is a
    hard DecodeError.
  - Empty numeric/boolean cells and missing columns decode to the field's
    zero value.
  - Malformed numeric/boolean cells raise DecodeError naming the field.
"""

import dataclasses
import functools
import io
import logging
from typing import IO, Callable, TypeVar

import pandas as pd

from ingestion.errors import DecodeError

logger = logging.getLogger(__name__)

Record = TypeVar("Record")

_TRUE = {"1", "t", "true"}
_FALSE = {"0", "f", "false"}


def _to_str(value: str) -> str:
    return value.strip('"')


def _to_int(value: str) -> int:
    return int(value) if value != "" else 0


def _to_float(value: str) -> float:
    return float(value) if value != "" else 0.0


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered == "" or lowered in _FALSE:
        return False
    if lowered in _TRUE:
        return True
    raise ValueError(f"invalid boolean {value!r}")


_CONVERTERS: dict[type, Callable[[str], object]] = {
    str: _to_str,
    int: _to_int,
    float: _to_float,
    bool: _to_bool,
}


@functools.lru_cache(maxsize=None)
def column_table(record_cls: type) -> tuple[tuple[str, str, Callable[[str], object]], ...]:
    """Return the cached (field_name, column, converter) table for a record type."""
    if not dataclasses.is_dataclass(record_cls):
        raise DecodeError(f"{record_cls.__name__} is not a record type.")
    table = []
    for f in dataclasses.fields(record_cls):
        column = f.metadata.get("column")
        if not column:
            continue
        converter = _CONVERTERS.get(f.type)
        if converter is None:
            raise DecodeError(
                f"Unsupported type {f.type!r} for field {record_cls.__name__}.{f.name}"
            )
        table.append((f.name, column, converter))
    return tuple(table)


def read_records(source: IO[bytes] | bytes, record_cls: type[Record], name: str = "") -> list[Record]:
    """
    Decode one delimited table into a list of record_cls instances.

    Args:
        source:     File-like object or raw bytes of the CSV table.
        record_cls: A dataclass from schedule.models.
        name:       File name, used in error messages.

    Raises:
        DecodeError: Empty input, malformed CSV or an unparseable cell.
    """
    table = column_table(record_cls)
    label = name or record_cls.__name__
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    try:
        df = pd.read_csv(source, dtype=str, keep_default_na=False, skipinitialspace=False)
    except pd.errors.EmptyDataError as exc:
        raise DecodeError(f"{label} must not be empty") from exc
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise DecodeError(f"Failed to read {label}: {exc}") from exc

    df.columns = [c.strip() for c in df.columns]
    row_count = len(df)

    columns: list[list[object]] = []
    for field_name, column, converter in table:
        if column not in df.columns:
            zero = converter("")
            columns.append([zero] * row_count)
            continue
        try:
            columns.append([converter(v) for v in df[column].tolist()])
        except ValueError as exc:
            raise DecodeError(f"Failed to parse field {field_name} in {label}: {exc}") from exc

    field_names = [field_name for field_name, _, _ in table]
    records = [record_cls(**dict(zip(field_names, values))) for values in zip(*columns)]
    logger.debug("Decoded %d %s rows from %s.", len(records), record_cls.__name__, label)
    return records
