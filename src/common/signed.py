from __future__ import annotations


SIGN_BIT = 1 << 31  # 2^31
UINT32_RANGE = 1 << 32  # 2^32


def normalize_signed32(value: int) -> int:
    """Interpret an unsigned 32-bit wire integer as a two's-complement value.

    Values in [0, 2^31) are returned unchanged; values in [2^31, 2^32) map to
    [-2^31, 0). Inputs are expected to already be within the uint32 range.
    """
    v = int(value)
    if v >= SIGN_BIT:
        return v - UINT32_RANGE
    return v


__all__ = ["normalize_signed32", "SIGN_BIT", "UINT32_RANGE"]
