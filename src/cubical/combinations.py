import math
import operator
from collections.abc import Sequence
from dataclasses import dataclass

import torch as t
from jaxtyping import Integer

from .utils.constants import DimensionIndex
from .utils.faces import enumerate_in_axes, enumerate_out_axes


def binomial(n: int, k: int) -> int:
    """
    The binomial coefficient C(n, k), with C(n, k) = 0 for k > n.
    """
    if n < 0 or k < 0:
        return 0
    return math.comb(n, k)


@dataclass(frozen=True)
class Combination:
    """
    A strictly increasing tuple of `k` axes drawn from `{0, ..., n-1}`.

    The "in" axes are the chosen axes themselves; the "out" axes are the
    complement in `{0, ..., n-1}`, also in increasing order.
    """

    n: int
    axes: tuple[DimensionIndex, ...]

    def __post_init__(self):
        axes = tuple(operator.index(a) for a in self.axes)
        object.__setattr__(self, "axes", axes)

        if self.n < 0:
            raise ValueError(f"The ambient order must be nonnegative, got {self.n}.")

        for a in self.axes:
            if not 0 <= a < self.n:
                raise ValueError(f"Axis {a} is out of range for order {self.n}.")

        for a, b in zip(self.axes, self.axes[1:]):
            if a >= b:
                raise ValueError(f"The axes {self.axes} are not strictly increasing.")

    @property
    def k(self) -> int:
        return len(self.axes)

    @property
    def in_axes(self) -> tuple[DimensionIndex, ...]:
        return self.axes

    @property
    def out_axes(self) -> tuple[DimensionIndex, ...]:
        chosen = set(self.axes)
        return tuple(a for a in range(self.n) if a not in chosen)

    def axis_in(self, j: int) -> DimensionIndex:
        """
        The `j`-th chosen axis.
        """
        if not 0 <= j < self.k:
            raise IndexError(f"In-axis position {j} is out of range [0, {self.k}).")
        return self.axes[j]

    def axis_out(self, j: int) -> DimensionIndex:
        """
        The `j`-th axis of the complement.
        """
        out_axes = self.out_axes
        if not 0 <= j < len(out_axes):
            raise IndexError(
                f"Out-axis position {j} is out of range [0, {len(out_axes)})."
            )
        return out_axes[j]

    def __str__(self) -> str:
        return "[" + ",".join(str(a) for a in self.axes) + "]"


class Combinations:
    """
    The C(n, k) strictly increasing `k`-subsets of `{0, ..., n-1}`.

    The combinations are ranked with the combinatorial number system, where the
    combination `(a_0 < ... < a_{k-1})` has index `sum_j C(a_j, j + 1)`. Both
    directions of the ranking are computed in closed form and never materialize
    the full list of combinations.
    """

    def __init__(self, n: int, k: int):
        if n < 0:
            raise ValueError(f"The order n must be nonnegative, got {n}.")
        if not 0 <= k <= n:
            raise ValueError(f"The subset size k must be in [0, {n}], got {k}.")

        self.n = n
        self.k = k
        self._count = binomial(n, k)

    def count(self) -> int:
        return self._count

    def __len__(self) -> int:
        return self._count

    def at(self, index: int) -> Combination:
        """
        Unrank `index` into a combination. Greedily peel off the largest axis
        first: `a_{k-1}` is the largest `a` with `C(a, k) <= index`, and so on.
        """
        if not 0 <= index < self._count:
            raise IndexError(
                f"Combination index {index} is out of range [0, {self._count})."
            )

        axes = [0] * self.k
        rem = index
        upper = self.n - 1
        for j in range(self.k - 1, -1, -1):
            a = upper
            while binomial(a, j + 1) > rem:
                a -= 1
            axes[j] = a
            rem -= binomial(a, j + 1)
            upper = a - 1

        return Combination(self.n, tuple(axes))

    def __getitem__(self, index: int) -> Combination:
        return self.at(index)

    def index_of(self, combination: Combination | Sequence[int]) -> int:
        if not isinstance(combination, Combination):
            combination = Combination(self.n, tuple(combination))

        if combination.n != self.n or combination.k != self.k:
            raise ValueError(
                f"Combination {combination} (n={combination.n}, k={combination.k}) "
                f"does not belong to Combinations(n={self.n}, k={self.k})."
            )

        return sum(binomial(a, j + 1) for j, a in enumerate(combination.axes))

    def in_axes_table(
        self, device: t.device | str | None = None
    ) -> Integer[t.LongTensor, "comb k"]:
        return enumerate_in_axes(self, device=device)

    def out_axes_table(
        self, device: t.device | str | None = None
    ) -> Integer[t.LongTensor, "comb n-k"]:
        return enumerate_out_axes(self, device=device)

    def __repr__(self) -> str:
        return f"Combinations(n={self.n}, k={self.k})"
