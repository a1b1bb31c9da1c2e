"""Fixed-point biquad coefficient engines

Both firmwares take five Q30 coefficients per band, but they define the
biquad differently: Savitech uses 10^(gain/20) with sqrt(A) terms and
sends -a2, Moondrop/Comtrue uses 10^(gain/40) and sends the negated,
normalized a2. Keep them as separate functions.
"""

import logging
import math
from typing import Iterable, List

logger = logging.getLogger(__name__)

SAMPLE_RATE = 96000        # Hardware-fixed DSP rate
BIQUAD_SCALE = 1073741824  # 2^30 for biquad coefficients


def to_q30(value: float) -> int:
    """Quantize to Q30, wrapped into the signed 32-bit range"""
    scaled = int(round(value * BIQUAD_SCALE)) & 0xFFFFFFFF
    if scaled > 0x7FFFFFFF:
        scaled -= 0x100000000
    return scaled


def encode_int32_le(value: int) -> List[int]:
    """Encode 32-bit signed integer as 4 little-endian bytes"""
    # Handle negative values (two's complement)
    if value < 0:
        value = value + 0x100000000

    return [
        value & 0xFF,
        (value >> 8) & 0xFF,
        (value >> 16) & 0xFF,
        (value >> 24) & 0xFF,
    ]


def decode_int32_le(data: bytes, offset: int) -> int:
    """Decode 32-bit signed integer from 4 little-endian bytes"""
    value = (data[offset] |
             (data[offset + 1] << 8) |
             (data[offset + 2] << 16) |
             (data[offset + 3] << 24))

    if value > 0x7FFFFFFF:
        value -= 0x100000000

    return value


def coefficients_to_bytes(coefficients: Iterable[int]) -> bytes:
    """Serialize Q30 coefficients, 4 little-endian bytes each"""
    out = []
    for coeff in coefficients:
        out.extend(encode_int32_le(coeff))
    return bytes(out)


def savitech_coefficients(freq: int, gain: float, q: float) -> List[int]:
    """Calculate Savitech biquad taps

    RBJ peaking design in the firmware's normalized form.

    Args:
        freq: Center frequency in Hz
        gain: Effective gain in dB
        q: Q factor

    Returns:
        [b0, b1, b2, -a1, -a2] scaled by 2^30
    """
    A = math.pow(10, gain / 20.0)
    w0 = (2 * math.pi * freq) / SAMPLE_RATE
    alpha = math.sin(w0) / (2 * q)

    d4 = alpha * math.sqrt(A)
    d5 = alpha / math.sqrt(A)
    inv_a0 = 1 / (d5 + 1)

    b0 = (1 + d4) * inv_a0
    b1 = -2 * math.cos(w0) * inv_a0
    b2 = (1 - d4) * inv_a0
    na1 = -b1
    na2 = -((1 - d5) * inv_a0)

    scaled = [to_q30(c) for c in (b0, b1, b2, na1, na2)]
    logger.debug(
        "savitech biquad: freq=%sHz gain=%sdB q=%s -> %s",
        freq, gain, q, [f'0x{s & 0xFFFFFFFF:08X}' for s in scaled],
    )
    return scaled


def moondrop_coefficients(freq: int, gain: float, q: float) -> List[int]:
    """Calculate Moondrop/Comtrue biquad taps

    Based on Robert Bristow-Johnson's Audio EQ Cookbook

    Args:
        freq: Center frequency in Hz
        gain: Effective gain in dB
        q: Q factor

    Returns:
        [b0, b1, b2, a1, -a2] scaled by 2^30
    """
    # Step 1: Convert gain to amplitude
    A = math.pow(10, gain / 40.0)

    # Step 2: Angular frequency and bandwidth
    w0 = (2 * math.pi * freq) / SAMPLE_RATE
    alpha = math.sin(w0) / (2 * q)
    cos_w0 = math.cos(w0)

    # Step 3: Normalization factor
    norm = 1 + alpha / A

    b0 = (1 + alpha * A) / norm
    b1 = (-2 * cos_w0) / norm
    b2 = (1 - alpha * A) / norm
    a1 = -b1
    a2 = (1 - alpha / A) / norm

    scaled = [to_q30(c) for c in (b0, b1, b2, a1, -a2)]
    logger.debug(
        "moondrop biquad: freq=%sHz gain=%sdB q=%s -> %s",
        freq, gain, q, [f'0x{s & 0xFFFFFFFF:08X}' for s in scaled],
    )
    return scaled


def savitech_coefficient_bytes(freq: int, gain: float, q: float) -> bytes:
    return coefficients_to_bytes(savitech_coefficients(freq, gain, q))


def moondrop_coefficient_bytes(freq: int, gain: float, q: float) -> bytes:
    return coefficients_to_bytes(moondrop_coefficients(freq, gain, q))
