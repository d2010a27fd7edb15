from __future__ import annotations

import bisect
import itertools
import math
import operator
from collections.abc import Sequence
from dataclasses import dataclass

import torch as t
from jaxtyping import Bool, Integer

from .combinations import Combination, Combinations
from .utils.constants import (
    DIMENSION_INDEX_DTYPE,
    FIBER_INDEX_DTYPE,
    GLOBAL_INDEX_DTYPE,
    DimensionIndex,
    FiberIndex,
    GlobalIndex,
)
from .utils.dtypes import as_long, check_dtype_capacity
from .utils.mixed_radix import pack_mixed_radix, unpack_mixed_radix


@dataclass(frozen=True)
class Element:
    """
    Descriptor of a `k`-cell in an `n`-fold tensor product grid.

    directions: the `k` axes along which the cell extends.

    position_along: for each extending axis `directions.in_axes[j]`, the index of
    the 1D edge the cell spans.

    position_across: for each flat axis `directions.out_axes[j]`, the index of
    the 1D vertex the cell sits on.
    """

    directions: Combination
    position_along: tuple[FiberIndex, ...]
    position_across: tuple[FiberIndex, ...]

    def __post_init__(self):
        for attr in ["position_along", "position_across"]:
            digits = tuple(operator.index(p) for p in getattr(self, attr))
            object.__setattr__(self, attr, digits)

    def coordinates(self) -> tuple[FiberIndex, ...]:
        """
        The positions in natural axis order `(x_0, ..., x_{n-1})`.
        """
        coords = [0] * self.directions.n
        for axis, p in zip(self.directions.in_axes, self.position_along):
            coords[axis] = p
        for axis, p in zip(self.directions.out_axes, self.position_across):
            coords[axis] = p
        return tuple(coords)

    def __str__(self) -> str:
        coords = ",".join(str(x) for x in self.coordinates())
        return f"{self.directions} ({coords})"


@dataclass
class CellBatch:
    """
    A batch of cells in tensor form.

    directions: the combination index (i.e., block index) of each cell.

    position_along/position_across: the digits of each cell, with the same
    meaning as in `Element`.
    """

    directions: Integer[t.Tensor, " cell"]
    position_along: Integer[t.Tensor, "cell k"]
    position_across: Integer[t.Tensor, "cell n-k"]

    def __len__(self) -> int:
        return self.directions.size(0)

    def to(self, *args, **kwargs) -> CellBatch:
        return CellBatch(
            self.directions.to(*args, **kwargs),
            self.position_along.to(*args, **kwargs),
            self.position_across.to(*args, **kwargs),
        )


class Lexicographic:
    """
    Bijective enumeration of the `k`-cells of a tensor product grid.

    The grid has `dimensions[i]` edges (and `dimensions[i] + 1` vertices) along
    axis `i`. The cells are grouped into C(n, k) blocks by the axes they extend
    along, with the blocks ordered by combination index. Within a block, a cell
    is a mixed-radix number whose least significant digit is the position along
    the first extending axis, followed by the remaining along positions, and then
    by the across positions in complement order. Along digits have radix
    `dimensions[axis]`; across digits have radix `dimensions[axis] + 1`.

    All tables are computed at construction; an instance is immutable afterwards.
    """

    def __init__(
        self,
        dimensions: Sequence[int],
        k: int,
        *,
        global_dtype: t.dtype = GLOBAL_INDEX_DTYPE,
        fiber_dtype: t.dtype = FIBER_INDEX_DTYPE,
        dimension_dtype: t.dtype = DIMENSION_INDEX_DTYPE,
    ):
        dimensions = tuple(dimensions)
        for i, d in enumerate(dimensions):
            if isinstance(d, bool) or not isinstance(d, int):
                raise ValueError(
                    f"dimensions[{i}] must be an integer, got {type(d).__name__}."
                )
            if d <= 0:
                raise ValueError(f"dimensions[{i}] must be positive, got {d}.")

        n = len(dimensions)
        if not 0 <= k <= n:
            raise ValueError(f"The cell dimension k must be in [0, {n}], got {k}.")

        self._dimensions = dimensions
        self._k = k
        self._combinations = Combinations(n, k)

        block_sizes = []
        for b in range(self._combinations.count()):
            combination = self._combinations.at(b)
            along = math.prod(dimensions[a] for a in combination.in_axes)
            across = math.prod(dimensions[a] + 1 for a in combination.out_axes)
            block_sizes.append(along * across)

        self._block_sizes = tuple(block_sizes)
        # offsets[b] = sum(block_sizes[:b]); offsets[-1] = size.
        self._block_offsets = (0, *itertools.accumulate(block_sizes))

        check_dtype_capacity(global_dtype, self.size() - 1, "global_dtype")
        check_dtype_capacity(fiber_dtype, max(dimensions, default=0) + 1, "fiber_dtype")
        check_dtype_capacity(
            dimension_dtype, max(n, self._combinations.count()), "dimension_dtype"
        )
        self.global_dtype = global_dtype
        self.fiber_dtype = fiber_dtype
        self.dimension_dtype = dimension_dtype

        # Per-block tables for the batched API, with along columns first and
        # across columns second.
        in_axes = self._combinations.in_axes_table()
        out_axes = self._combinations.out_axes_table()
        dims = t.tensor(dimensions, dtype=t.long)

        self._axes_table: Integer[t.LongTensor, "comb n"] = t.cat(
            (in_axes, out_axes), dim=-1
        )
        self._radix_table: Integer[t.LongTensor, "comb n"] = t.cat(
            (dims[in_axes], dims[out_axes] + 1), dim=-1
        )
        self._offset_table: Integer[t.LongTensor, " comb+1"] = t.tensor(
            self._block_offsets, dtype=t.long
        )

    @property
    def order(self) -> DimensionIndex:
        return len(self._dimensions)

    @property
    def cell_dimension(self) -> DimensionIndex:
        return self._k

    @property
    def dimensions(self) -> tuple[FiberIndex, ...]:
        return self._dimensions

    @property
    def combinations(self) -> Combinations:
        return self._combinations

    @property
    def block_sizes(self) -> tuple[GlobalIndex, ...]:
        return self._block_sizes

    def size(self) -> GlobalIndex:
        return self._block_offsets[-1]

    def __len__(self) -> int:
        return self.size()

    def _check_block(self, block: int):
        if not 0 <= block < len(self._block_sizes):
            raise IndexError(
                f"Block {block} is out of range [0, {len(self._block_sizes)})."
            )

    def block_size(self, block: DimensionIndex) -> GlobalIndex:
        self._check_block(block)
        return self._block_sizes[block]

    def block_offset(self, block: DimensionIndex) -> GlobalIndex:
        """
        The global index of the first cell in `block`.
        """
        self._check_block(block)
        return self._block_offsets[block]

    def _along_radices(self, combination: Combination) -> list[int]:
        return [self._dimensions[a] for a in combination.in_axes]

    def _across_radices(self, combination: Combination) -> list[int]:
        return [self._dimensions[a] + 1 for a in combination.out_axes]

    def at(self, index: GlobalIndex) -> Element:
        """
        The cell at position `index` in the enumeration.
        """
        if not 0 <= index < self.size():
            raise IndexError(f"Cell index {index} is out of range [0, {self.size()}).")

        # The block b is the last one whose offset does not exceed the index.
        block = bisect.bisect_right(self._block_offsets, index) - 1
        local = index - self._block_offsets[block]

        combination = self._combinations.at(block)

        along = []
        for radix in self._along_radices(combination):
            along.append(local % radix)
            local //= radix

        across = []
        for radix in self._across_radices(combination):
            across.append(local % radix)
            local //= radix

        return Element(combination, tuple(along), tuple(across))

    def __getitem__(self, index: GlobalIndex) -> Element:
        return self.at(index)

    def _validate(self, element: Element):
        directions = element.directions
        if not isinstance(directions, Combination):
            raise ValueError(
                "Element directions must be a Combination, got "
                f"{type(directions).__name__}."
            )

        if directions.n != self.order or directions.k != self._k:
            raise ValueError(
                f"Element directions {directions} (n={directions.n}, "
                f"k={directions.k}) do not match the enumerator "
                f"(n={self.order}, k={self._k})."
            )

        checks = {
            "position_along": (element.position_along, self._along_radices(directions)),
            "position_across": (
                element.position_across,
                self._across_radices(directions),
            ),
        }
        for name, (digits, radices) in checks.items():
            if len(digits) != len(radices):
                raise ValueError(
                    f"'{name}' has {len(digits)} entries, expected {len(radices)}."
                )
            for j, (digit, radix) in enumerate(zip(digits, radices)):
                if not 0 <= digit < radix:
                    raise ValueError(
                        f"{name}[{j}] = {digit} is out of range [0, {radix})."
                    )

    def index_of(self, element: Element) -> GlobalIndex:
        """
        The position of `element` in the enumeration; the inverse of `at()`.
        """
        self._validate(element)

        combination = element.directions
        result = self._block_offsets[self._combinations.index_of(combination)]

        factor = 1
        for digit, radix in zip(
            element.position_along + element.position_across,
            self._along_radices(combination) + self._across_radices(combination),
        ):
            result += digit * factor
            factor *= radix

        return result

    def __contains__(self, element: object) -> bool:
        if not isinstance(element, Element):
            return False
        try:
            self._validate(element)
        except ValueError:
            return False
        return True

    def decode(self, indices: Integer[t.Tensor, " cell"]) -> CellBatch:
        """
        Batched version of `at()`. The block of each index is located by binary
        search over the block offsets.
        """
        device = indices.device
        idx = as_long(indices, self.global_dtype, "indices").reshape(-1)

        if idx.numel() > 0 and (idx.min() < 0 or idx.max() >= self.size()):
            raise IndexError(
                f"'indices' contains values out of range [0, {self.size()})."
            )

        offsets = self._offset_table.to(device)
        block = t.searchsorted(offsets[1:], idx, right=True)
        local = idx - offsets[block]

        digits = unpack_mixed_radix(local, self._radix_table.to(device)[block])

        return CellBatch(
            directions=block.to(self.dimension_dtype),
            position_along=digits[:, : self._k].to(self.fiber_dtype),
            position_across=digits[:, self._k :].to(self.fiber_dtype),
        )

    def _validate_batch(
        self, batch: CellBatch
    ) -> tuple[
        Integer[t.LongTensor, " cell"],
        Integer[t.LongTensor, "cell n"],
        Integer[t.LongTensor, "cell n"],
    ]:
        """
        Check the shapes, block indices and digits of a batch, and return the
        block indices, the digits (along first), and their radices as int64.
        """
        device = batch.directions.device
        block = as_long(batch.directions, self.dimension_dtype, "directions")
        along = as_long(batch.position_along, self.fiber_dtype, "position_along")
        across = as_long(batch.position_across, self.fiber_dtype, "position_across")

        n_cells = block.size(0)
        if along.shape != (n_cells, self._k) or across.shape != (
            n_cells,
            self.order - self._k,
        ):
            raise ValueError(
                f"Expected position_along of shape ({n_cells}, {self._k}) and "
                f"position_across of shape ({n_cells}, {self.order - self._k}), got "
                f"{tuple(along.shape)} and {tuple(across.shape)}."
            )

        n_blocks = len(self._block_sizes)
        if n_cells > 0 and (block.min() < 0 or block.max() >= n_blocks):
            raise ValueError(
                f"'directions' contains values out of range [0, {n_blocks})."
            )

        digits = t.cat((along, across), dim=-1)
        radices = self._radix_table.to(device)[block]
        if ((digits < 0) | (digits >= radices)).any():
            raise ValueError("The batch contains positions outside their radices.")

        return block, digits, radices

    def encode(self, batch: CellBatch) -> Integer[t.Tensor, " cell"]:
        """
        Batched version of `index_of()`.
        """
        block, digits, radices = self._validate_batch(batch)

        offsets = self._offset_table.to(block.device)
        indices = offsets[block] + pack_mixed_radix(digits, radices)

        return indices.to(self.global_dtype)

    def grid_coords(
        self, batch: CellBatch
    ) -> tuple[Integer[t.Tensor, "cell n"], Bool[t.Tensor, "cell n"]]:
        """
        Scatter the along/across positions of each cell into natural axis order.
        Also return a mask that is True on the axes along which each cell extends.
        """
        block, digits, _ = self._validate_batch(batch)

        axes = self._axes_table.to(block.device)[block]
        digits = digits.to(self.fiber_dtype)

        coords = t.zeros_like(digits).scatter_(1, axes, digits)

        is_along = t.zeros_like(axes, dtype=t.bool)
        is_along[:, : self._k] = True
        extends = t.zeros_like(is_along).scatter_(1, axes, is_along)

        return coords, extends

    def to_batch(
        self, elements: Sequence[Element], device: t.device | str | None = None
    ) -> CellBatch:
        for element in elements:
            self._validate(element)

        n_cells = len(elements)
        return CellBatch(
            directions=t.tensor(
                [self._combinations.index_of(e.directions) for e in elements],
                dtype=self.dimension_dtype,
                device=device,
            ),
            position_along=t.tensor(
                [e.position_along for e in elements],
                dtype=self.fiber_dtype,
                device=device,
            ).view(n_cells, self._k),
            position_across=t.tensor(
                [e.position_across for e in elements],
                dtype=self.fiber_dtype,
                device=device,
            ).view(n_cells, self.order - self._k),
        )

    def from_batch(self, batch: CellBatch) -> list[Element]:
        block, digits, _ = self._validate_batch(batch)
        return [
            Element(
                self._combinations.at(b),
                tuple(cell_digits[: self._k]),
                tuple(cell_digits[self._k :]),
            )
            for b, cell_digits in zip(block.tolist(), digits.tolist())
        ]

    def __repr__(self) -> str:
        return f"Lexicographic(dimensions={self._dimensions}, k={self._k})"
