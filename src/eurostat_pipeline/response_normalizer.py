"""Normalize decoded statistical responses into the observation table.

Three structurally different encodings of the same logical table are
supported, tried in order:

1. ``TUPLES``: ``id`` holds one explicit position tuple per value.
2. ``STRIDED``: ``id`` is a flat list (dimension names) and ``size`` declares
   more than one dimension; positions come from row-major stride arithmetic.
3. ``LEGACY``: two-dimension layout, entity outer and time inner.

Malformed or partially-absent responses degrade to zero accepted values;
nothing raised inside this module escapes ``normalize_response``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from eurostat_pipeline.exceptions import MalformedResponseError
from eurostat_pipeline.index_codec import IndexCodec, build_codec
from eurostat_pipeline.logging_config import create_logger
from eurostat_pipeline.reference import (
    OUTPUT_UNIT_VARIANTS,
    UNIT_DIMENSION,
    Indicator,
    is_known_entity,
)
from eurostat_pipeline.table import ObservationTable, is_finite_number

logger = create_logger(__name__)


class ResponseLayout(str, Enum):
    """Encodings a response may use for its flat value container."""
    TUPLES = "tuples"
    STRIDED = "strided"
    LEGACY = "legacy"


@dataclass
class NormalizationStats:
    """Outcome of normalizing one response."""

    indicator: Indicator
    layout: Optional[ResponseLayout] = None
    accepted: int = 0
    dropped_unit: int = 0
    dropped_reference: int = 0
    dropped_value: int = 0
    skipped_reason: Optional[str] = None

    @property
    def dropped(self) -> int:
        return self.dropped_unit + self.dropped_reference + self.dropped_value


def value_items(values: Any) -> List[Tuple[int, Any]]:
    """Return ``(flat_index, raw_value)`` pairs from a list or sparse dict."""
    if isinstance(values, list):
        return list(enumerate(values))
    if isinstance(values, dict):
        items = []
        for key, raw in values.items():
            try:
                items.append((int(key), raw))
            except (TypeError, ValueError):
                logger.debug(f"Ignoring non-numeric value key {key!r}")
        return sorted(items, key=lambda item: item[0])
    raise MalformedResponseError(f"Unsupported value container type: {type(values).__name__}")


def value_at(values: Any, flat_index: int) -> Any:
    if isinstance(values, list):
        return values[flat_index] if 0 <= flat_index < len(values) else None
    return values.get(str(flat_index), values.get(flat_index))


def category_indices(dimension: Mapping[str, Any]) -> Dict[str, Mapping[str, int]]:
    indices = {}
    for name, descriptor in dimension.items():
        if not isinstance(descriptor, dict):
            continue
        index = (descriptor.get("category") or {}).get("index")
        if isinstance(index, dict):
            indices[name] = index
    return indices


def resolve_target_unit(indicator: Indicator, codec: IndexCodec,
                        indices: Mapping[str, Mapping[str, int]]) -> Optional[int]:
    """Position of the preferred unit variant for output responses, if any."""
    if indicator is not Indicator.OUTPUT or codec.unit_position() < 0:
        return None
    unit_index = indices.get(UNIT_DIMENSION) or {}
    for variant in OUTPUT_UNIT_VARIANTS:
        if variant in unit_index:
            return int(unit_index[variant])
    return None


def _is_tuple_list(id_field: Any) -> bool:
    return (
        isinstance(id_field, list)
        and len(id_field) > 0
        and isinstance(id_field[0], (list, tuple))
    )


def _detect_layout(id_field: Any, sizes: List[int]) -> ResponseLayout:
    if _is_tuple_list(id_field):
        return ResponseLayout.TUPLES
    if isinstance(id_field, list) and id_field and len(sizes) > 1:
        return ResponseLayout.STRIDED
    return ResponseLayout.LEGACY


class ResponseNormalizer:
    """Write one indicator response into a shared ``ObservationTable``."""

    def __init__(self, table: ObservationTable) -> None:
        self.table = table

    def normalize(self, payload: Any, indicator: Indicator) -> NormalizationStats:
        """Normalize ``payload`` for ``indicator``.

        Never raises; failures are logged and reported through the stats.
        """
        stats = NormalizationStats(indicator=indicator)
        try:
            self._normalize(payload, indicator, stats)
        except MalformedResponseError as e:
            stats.skipped_reason = str(e)
            logger.warning(f"Skipping {indicator.value} response: {e}")
        except Exception as e:
            stats.skipped_reason = f"{type(e).__name__}: {e}"
            logger.error(f"Error transforming {indicator.value} response: {e}")

        logger.info(
            f"{indicator.value}: layout={stats.layout.value if stats.layout else None} "
            f"accepted={stats.accepted} dropped={stats.dropped} "
            f"(unit={stats.dropped_unit}, reference={stats.dropped_reference}, "
            f"value={stats.dropped_value})"
        )
        return stats

    def _normalize(self, payload: Any, indicator: Indicator, stats: NormalizationStats) -> None:
        if not isinstance(payload, dict):
            raise MalformedResponseError("Response is not a JSON object")
        if payload.get("error"):
            raise MalformedResponseError(f"API error: {payload['error']}")

        dimension = payload.get("dimension")
        values = payload.get("value")
        if not isinstance(dimension, dict) or not dimension or values is None:
            raise MalformedResponseError("Response lacks 'dimension' or 'value'")

        items = value_items(values)
        if not items:
            return

        id_field = payload.get("id") or []
        sizes = [int(size) for size in (payload.get("size") or [])]
        indices = category_indices(dimension)

        if isinstance(id_field, list) and id_field and all(isinstance(x, str) for x in id_field):
            names = list(id_field)
        else:
            names = list(dimension.keys())

        codec = build_codec(names, indices, sizes or None, total_count=len(items))
        if codec.is_empty:
            raise MalformedResponseError("No usable dimension indices")

        layout = _detect_layout(id_field, sizes)
        stats.layout = layout
        target_unit = resolve_target_unit(indicator, codec, indices)

        if layout is ResponseLayout.TUPLES:
            decoded = self._decode_tuples(id_field, values, codec, target_unit, stats)
        elif layout is ResponseLayout.STRIDED:
            decoded = self._decode_strided(items, codec, target_unit, stats)
        else:
            decoded = self._decode_legacy(items, codec, sizes)

        for entity_label, time_label, raw in decoded:
            self._accept(indicator, entity_label, time_label, raw, stats)

    def _decode_tuples(self, id_field, values, codec: IndexCodec,
                       target_unit: Optional[int], stats: NormalizationStats
                       ) -> Iterator[Tuple[Optional[str], Optional[str], Any]]:
        width = len(id_field[0])
        entity_dim, time_dim = codec.entity_time_positions(ndim=width)
        unit_dim = codec.unit_position()
        self._require_axes(codec, entity_dim, time_dim)

        for flat_index, entry in enumerate(id_field):
            entry = list(entry) if isinstance(entry, (list, tuple)) else [entry]
            if len(entry) <= max(entity_dim, time_dim):
                stats.dropped_reference += 1
                continue
            if target_unit is not None and 0 <= unit_dim < len(entry):
                if entry[unit_dim] != target_unit:
                    stats.dropped_unit += 1
                    continue
            yield (
                codec.label(entity_dim, entry[entity_dim]),
                codec.label(time_dim, entry[time_dim]),
                value_at(values, flat_index),
            )

    def _decode_strided(self, items, codec: IndexCodec, target_unit: Optional[int],
                        stats: NormalizationStats
                        ) -> Iterator[Tuple[Optional[str], Optional[str], Any]]:
        entity_dim, time_dim = codec.entity_time_positions()
        unit_dim = codec.unit_position()
        self._require_axes(codec, entity_dim, time_dim)

        for flat_index, raw in items:
            positions = codec.decode(flat_index)
            if target_unit is not None and unit_dim >= 0:
                if positions[unit_dim] != target_unit:
                    stats.dropped_unit += 1
                    continue
            yield (
                codec.label(entity_dim, positions[entity_dim]),
                codec.label(time_dim, positions[time_dim]),
                raw,
            )

    def _decode_legacy(self, items, codec: IndexCodec, sizes: List[int]
                       ) -> Iterator[Tuple[Optional[str], Optional[str], Any]]:
        entity_dim, time_dim = codec.entity_time_positions()
        self._require_axes(codec, entity_dim, time_dim)

        if len(sizes) >= 2:
            entity_size, time_size = sizes[0] or 1, sizes[1] or 1
        else:
            entity_size = codec.sizes[entity_dim] or 1
            time_size = codec.sizes[time_dim] or 1

        for flat_index, raw in items:
            yield (
                codec.label(entity_dim, (flat_index // time_size) % entity_size),
                codec.label(time_dim, flat_index % time_size),
                raw,
            )

    @staticmethod
    def _require_axes(codec: IndexCodec, entity_dim: int, time_dim: int) -> None:
        if entity_dim < 0 or time_dim < 0:
            raise MalformedResponseError("Fewer than two dimensions declared")
        if max(entity_dim, time_dim) >= codec.ndim:
            raise MalformedResponseError(
                f"Position tuples are wider than the {codec.ndim} declared dimensions"
            )
        if not codec.reverse_maps[entity_dim] or not codec.reverse_maps[time_dim]:
            raise MalformedResponseError(
                f"Entity or time categories missing "
                f"({codec.dimensions[entity_dim]!r}, {codec.dimensions[time_dim]!r})"
            )

    def _accept(self, indicator: Indicator, entity: Optional[str], time_label: Optional[str],
                raw: Any, stats: NormalizationStats) -> None:
        if not entity or not is_known_entity(entity) or not time_label:
            logger.debug(f"Dropping {indicator.value} value for unresolved entity {entity!r}")
            stats.dropped_reference += 1
            return
        try:
            year = int(str(time_label)[:4])
        except ValueError:
            logger.debug(f"Dropping {indicator.value} value with time label {time_label!r}")
            stats.dropped_reference += 1
            return
        if not is_finite_number(raw):
            logger.debug(f"Dropping {indicator.value} {entity} {year}: non-finite value {raw!r}")
            stats.dropped_value += 1
            return
        self.table.set(indicator, entity, year, raw)
        stats.accepted += 1


def normalize_response(payload: Any, indicator: Indicator,
                       table: ObservationTable) -> NormalizationStats:
    """Convenience wrapper around ``ResponseNormalizer.normalize``."""
    return ResponseNormalizer(table).normalize(payload, indicator)
