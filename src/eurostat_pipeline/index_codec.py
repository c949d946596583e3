"""Index codec for flattened multi-dimensional statistical tables.

A JSON-stat style response stores its values in a single flat container
laid out in row-major order (the last declared dimension varies fastest).
This module rebuilds the position -> label lookups for every dimension and
the strides needed to turn a flat index back into per-dimension positions.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from eurostat_pipeline.logging_config import create_logger
from eurostat_pipeline.reference import ENTITY_DIMENSION, TIME_DIMENSION, UNIT_DIMENSION

logger = create_logger(__name__)


def compute_strides(sizes: Sequence[int]) -> List[int]:
    """Compute row-major strides, right to left.

    ``stride[last] = 1`` and ``stride[d] = stride[d + 1] * size[d + 1]``.
    """
    strides = [0] * len(sizes)
    stride = 1
    for dim in range(len(sizes) - 1, -1, -1):
        strides[dim] = stride
        stride *= sizes[dim]
    return strides


def decode_flat_index(flat_index: int, sizes: Sequence[int], strides: Sequence[int]) -> List[int]:
    """Return the position along every dimension for ``flat_index``."""
    return [
        (flat_index // strides[dim]) % sizes[dim] if sizes[dim] else 0
        for dim in range(len(sizes))
    ]


def reverse_index(index: Mapping[str, int]) -> Dict[int, str]:
    reverse: Dict[int, str] = {}
    for label, position in index.items():
        try:
            reverse[int(position)] = label
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-integer position {position!r} for label {label!r}")
    return reverse


@dataclass
class IndexCodec:
    """Reverse lookups and strides for one decoded response.

    Attributes:
        dimensions: Declared dimension names in flat-array order
        sizes: Cardinality of each dimension
        strides: Row-major stride of each dimension
        reverse_maps: Position -> label map per dimension
    """

    dimensions: List[str] = field(default_factory=list)
    sizes: List[int] = field(default_factory=list)
    strides: List[int] = field(default_factory=list)
    reverse_maps: List[Dict[int, str]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.dimensions or not self.reverse_maps

    @property
    def ndim(self) -> int:
        return len(self.dimensions)

    def dimension_position(self, name: str) -> int:
        """Position of ``name`` among the declared dimensions, or -1."""
        try:
            return self.dimensions.index(name)
        except ValueError:
            return -1

    def entity_time_positions(self, ndim: Optional[int] = None):
        """Locate the entity and time dimensions.

        When either is not declared by name, the last two dimensions are
        assumed to be entity and time, in that order.
        """
        entity_dim = self.dimension_position(ENTITY_DIMENSION)
        time_dim = self.dimension_position(TIME_DIMENSION)
        if entity_dim == -1 or time_dim == -1:
            count = self.ndim if ndim is None else ndim
            entity_dim, time_dim = count - 2, count - 1
        return entity_dim, time_dim

    def unit_position(self) -> int:
        return self.dimension_position(UNIT_DIMENSION)

    def decode(self, flat_index: int) -> List[int]:
        return decode_flat_index(flat_index, self.sizes, self.strides)

    def label(self, dim: int, position: int) -> Optional[str]:
        if dim < 0 or dim >= len(self.reverse_maps):
            return None
        return self.reverse_maps[dim].get(position)


def build_codec(
    dimension_names: Sequence[str],
    indices: Mapping[str, Mapping[str, int]],
    sizes: Optional[Sequence[int]] = None,
    total_count: Optional[int] = None,
) -> IndexCodec:
    """Build an ``IndexCodec`` from dimension metadata.

    :param dimension_names: Declared dimension names, in flat-array order
    :param indices: Label -> position map for each dimension name
    :param sizes: Explicit cardinalities; derived from the indices when absent
    :param total_count: Number of elements in the flat value container
    :return: Codec, empty when the names or indices are missing
    """
    names = list(dimension_names or [])
    if not names or not indices:
        logger.debug("Dimension names or indices missing; returning empty codec")
        return IndexCodec()

    reverse_maps = [reverse_index(indices.get(name) or {}) for name in names]

    if sizes and len(sizes) == len(names):
        dim_sizes = [int(size) for size in sizes]
    else:
        if sizes:
            logger.warning(
                f"Declared sizes {list(sizes)} do not match {len(names)} dimensions; "
                "deriving sizes from category indices"
            )
        dim_sizes = [len(indices.get(name) or {}) for name in names]

    strides = compute_strides(dim_sizes)

    if total_count is not None and dim_sizes:
        capacity = strides[0] * dim_sizes[0]
        if total_count > capacity:
            logger.warning(
                f"Flat container holds {total_count} values but dimensions "
                f"{dict(zip(names, dim_sizes))} only address {capacity}"
            )

    return IndexCodec(
        dimensions=names,
        sizes=dim_sizes,
        strides=strides,
        reverse_maps=reverse_maps,
    )
