"""
Rate Table Loader (``dairy_config.loader``).

Responsibility
--------------
Turn loosely-typed rate table rows (JSON stored in the row store, or YAML
authored by hand) into the typed per-method configurations of
``dairy_kernel.domain.rate_tables``, and back again.

Architecture position
---------------------
**Config layer**.  Consumed by ``dairy_services`` when saving and resolving
rate configurations.  Depends on the kernel only; the engines never see
untyped rows.

Invariants enforced
-------------------
* A row missing a required field, or carrying a non-numeric value, raises
  ``InvalidRateTableError`` naming the method, row index and field.  No
  silent defaults for required fields.
* Row order is preserved in both directions.
* ``serialize_rate_config`` writes decimals as strings so a round trip
  through JSON keeps exact values.
* ``compute_checksum`` is deterministic for identical rows.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown method  -> ``UnknownRateMethodError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from dairy_kernel.domain.rate_tables import (
    ChartRateConfig,
    ChartRow,
    FatRateConfig,
    FatRow,
    RateConfig,
    TsNewRateConfig,
    TsNewRow,
    TsRateConfig,
    TsRow,
)
from dairy_kernel.domain.values import ZERO, MilkType, RateMethod, parse_decimal
from dairy_kernel.exceptions import InvalidRateTableError, UnknownRateMethodError
from dairy_kernel.logging_config import get_logger

logger = get_logger("config.loader")

# Column names used by the earlier rate screen exports
_FIELD_ALIASES = {
    "minFat": "min_fat",
    "maxFat": "max_fat",
    "fatRate": "fat_rate",
    "minSnf": "min_snf",
    "maxSnf": "max_snf",
    "tsFrom": "ts_from",
    "tsTo": "ts_to",
}


@dataclass(frozen=True)
class RateBookEntry:
    """One rate table of a YAML rate book, addressed to a branch and milk type."""

    branch_id: str
    milk_type: MilkType
    config: RateConfig
    active: bool = False


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_method(value: object) -> RateMethod:
    """Parse a rate method name, raising for anything unknown."""
    method = RateMethod.parse(value)
    if method is None:
        raise UnknownRateMethodError(value)
    return method


def _normalize(row: dict[str, Any]) -> dict[str, Any]:
    return {_FIELD_ALIASES.get(key, key): value for key, value in row.items()}


def _required(method: RateMethod, index: int, row: dict[str, Any], name: str) -> Decimal:
    value = parse_decimal(row.get(name))
    if value is None:
        raise InvalidRateTableError(method.value, index, name, row.get(name))
    return value


def _optional(method: RateMethod, index: int, row: dict[str, Any], name: str) -> Decimal | None:
    raw = row.get(name)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    value = parse_decimal(raw)
    if value is None:
        raise InvalidRateTableError(method.value, index, name, raw)
    return value


def _code(row: dict[str, Any]) -> str | None:
    code = row.get("code")
    if code is None:
        return None
    return str(code)


def _parse_row(method: RateMethod, index: int, row: dict[str, Any]):
    if method is RateMethod.CHART:
        return ChartRow(
            fat=_required(method, index, row, "fat"),
            snf=_required(method, index, row, "snf"),
            rate=_required(method, index, row, "rate"),
        )
    if method is RateMethod.FAT:
        return FatRow(
            code=_code(row) or "",
            fat=_required(method, index, row, "fat"),
            rate=_required(method, index, row, "rate"),
        )
    if method is RateMethod.TS:
        return TsRow(
            min_fat=_required(method, index, row, "min_fat"),
            max_fat=_required(method, index, row, "max_fat"),
            fat_rate=_required(method, index, row, "fat_rate"),
            min_snf=_optional(method, index, row, "min_snf"),
            max_snf=_optional(method, index, row, "max_snf"),
            code=_code(row),
        )
    return TsNewRow(
        code=_code(row) or "",
        ts_from=_required(method, index, row, "ts_from"),
        ts_to=_required(method, index, row, "ts_to"),
        rate=_required(method, index, row, "rate"),
        incentive=_optional(method, index, row, "incentive") or ZERO,
    )


_CONFIG_BUILDERS = {
    RateMethod.CHART: ChartRateConfig,
    RateMethod.FAT: FatRateConfig,
    RateMethod.TS: TsRateConfig,
    RateMethod.TS_NEW: TsNewRateConfig,
}


def parse_rate_config(method: RateMethod | str, rows: list[dict[str, Any]] | None) -> RateConfig:
    """
    Parse loosely-typed rows into the typed configuration for ``method``.

    Accepts snake_case keys and the camelCase names of older exports
    (``minFat``, ``tsFrom`` ...).  Numbers may be ints, floats or strings.

    Raises:
        UnknownRateMethodError: if ``method`` is not a pricing method.
        InvalidRateTableError: if a row is not a mapping, lacks a required
            field, or holds a non-numeric value.
    """
    parsed_method = parse_method(method)
    typed = []
    for index, row in enumerate(rows or ()):
        if not isinstance(row, dict):
            raise InvalidRateTableError(parsed_method.value, index, "<row>", row)
        typed.append(_parse_row(parsed_method, index, _normalize(row)))
    return _CONFIG_BUILDERS[parsed_method](rows=tuple(typed))


def _row_to_dict(row: Any) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for name, value in vars(row).items():
        if value is None:
            continue
        data[name] = str(value) if isinstance(value, Decimal) else value
    return data


def serialize_rate_config(config: RateConfig) -> list[dict[str, Any]]:
    """JSON-safe rows for ``config``; decimals become strings, None fields are dropped."""
    return [_row_to_dict(row) for row in config.rows]


def compute_checksum(data: Any) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_rate_book(data: dict[str, Any]) -> tuple[RateBookEntry, ...]:
    """
    Parse a rate book document.

    Shape::

        rates:
          - branch_id: B1
            milk_type: Cow
            method: TS
            active: true
            rows:
              - {min_fat: 3.5, max_fat: 4.5, min_snf: 8.0, max_snf: 9.0, fat_rate: 10}

    Raises:
        KeyError: if an entry lacks branch_id, milk_type or method.
        UnknownRateMethodError / InvalidRateTableError: as parse_rate_config.
    """
    entries = []
    for item in data.get("rates", []):
        entries.append(
            RateBookEntry(
                branch_id=str(item["branch_id"]),
                milk_type=MilkType.coerce(item["milk_type"]),
                config=parse_rate_config(item["method"], item.get("rows", [])),
                active=bool(item.get("active", False)),
            )
        )
    return tuple(entries)


def load_rate_book(path: Path) -> tuple[RateBookEntry, ...]:
    """Load and parse a YAML rate book file."""
    entries = parse_rate_book(load_yaml_file(path))
    logger.info(
        "rate_book_loaded",
        extra={"path": str(path), "table_count": len(entries)},
    )
    return entries
