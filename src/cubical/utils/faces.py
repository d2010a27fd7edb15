from __future__ import annotations

from typing import TYPE_CHECKING

import torch as t
from jaxtyping import Integer

if TYPE_CHECKING:
    from ..combinations import Combinations


def enumerate_in_axes(
    combinations: Combinations, device: t.device | str | None = None
) -> Integer[t.LongTensor, "comb k"]:
    """
    For each combination (in combination index order), list its chosen axes.
    Row `b` spans the directions of the `k`-faces in block `b`.
    """
    return t.tensor(
        [combinations.at(b).in_axes for b in range(combinations.count())],
        dtype=t.long,
        device=device,
    ).view(combinations.count(), combinations.k)


def enumerate_out_axes(
    combinations: Combinations, device: t.device | str | None = None
) -> Integer[t.LongTensor, "comb n-k"]:
    """
    For each combination (in combination index order), list the complement of
    its chosen axes.
    """
    return t.tensor(
        [combinations.at(b).out_axes for b in range(combinations.count())],
        dtype=t.long,
        device=device,
    ).view(combinations.count(), combinations.n - combinations.k)
