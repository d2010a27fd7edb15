import torch as t
from jaxtyping import Integer


def mixed_radix_place_values(
    radices: Integer[t.LongTensor, "*b digit"],
) -> Integer[t.LongTensor, "*b digit"]:
    """
    Compute the place value of each digit, with the first digit being the least
    significant; i.e., `place[..., 0] = 1` and `place[..., j] = prod(radices[..., :j])`.

    Raises a `RuntimeError` if the largest representable value would overflow
    int64.
    """
    max_allowed_val = t.iinfo(t.int64).max
    if radices.numel() > 0:
        worst_case_val = radices.to(t.float64).prod(dim=-1).max().item()
        if worst_case_val > max_allowed_val:
            raise RuntimeError("Potential mixed-radix overflow detected.")

    # Exclusive cumulative product: shift the radices right by one and pad with 1.
    shifted = t.cat(
        (t.ones_like(radices[..., :1]), radices[..., :-1]),
        dim=-1,
    )
    return t.cumprod(shifted, dim=-1)


def pack_mixed_radix(
    digits: Integer[t.LongTensor, "*b digit"],
    radices: Integer[t.LongTensor, "*b digit"],
) -> Integer[t.LongTensor, " *b"]:
    """
    Convert digits into integers under a (possibly per-row) mixed-radix system,
    with the first digit being the least significant. This function does not
    check that the digits are within their radices.
    """
    if digits.size(-1) == 0:
        return t.zeros(digits.shape[:-1], dtype=t.long, device=digits.device)

    place = mixed_radix_place_values(radices)
    return (digits * place).sum(dim=-1)


def unpack_mixed_radix(
    values: Integer[t.LongTensor, " *b"],
    radices: Integer[t.LongTensor, "*b digit"],
) -> Integer[t.LongTensor, "*b digit"]:
    """
    Inverse of `pack_mixed_radix()`; decompose integers into digits, least
    significant first. Any remainder left after the last digit is discarded.
    """
    n_digits = radices.size(-1)
    digits = t.empty(
        (*values.shape, n_digits), dtype=t.long, device=values.device
    )

    rem = values.clone()
    for j in range(n_digits):
        radix = radices[..., j]
        digits[..., j] = t.remainder(rem, radix)
        rem = t.div(rem, radix, rounding_mode="floor")

    return digits
