import warnings

import torch as t
from jaxtyping import Integer


def check_dtype_capacity(dtype: t.dtype, max_value: int, name: str):
    """
    Raise a `ValueError` if `dtype` is not an integer dtype, or if it cannot
    represent `max_value`.
    """
    if dtype.is_floating_point or dtype.is_complex or dtype == t.bool:
        raise ValueError(f"'{name}' must be an integer dtype, got {dtype}.")

    if max_value > t.iinfo(dtype).max:
        raise ValueError(
            f"'{name}' ({dtype}) cannot hold the value {max_value}; "
            "use a wider integer dtype."
        )


def as_long(x: Integer[t.Tensor, "..."], expected: t.dtype, name: str):
    """
    Cast an integer tensor to int64 for internal arithmetic. A tensor whose dtype
    differs from `expected` is still accepted, with a warning.
    """
    if x.dtype.is_floating_point or x.dtype.is_complex or x.dtype == t.bool:
        raise ValueError(f"'{name}' must be an integer tensor, got {x.dtype}.")

    if x.dtype != expected:
        warnings.warn(
            f"'{name}' has dtype {x.dtype} but {expected} was configured; "
            "the tensor will be cast.",
            UserWarning,
        )

    return x.to(dtype=t.long)
