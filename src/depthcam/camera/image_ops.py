"""
Image operations for the live-view pipeline.

Brightness sampling, infrared tone mapping, box blur and pixel format
conversion, all vectorized with numpy.
"""

import numpy as np

# Normalization window used when an IR frame has no usable samples
IR_DEFAULT_RANGE = (1, 2000)

# Integer luma weights (per mille)
LUMA_WEIGHTS = (299, 587, 114)


def average_luma(bgra: np.ndarray, step: int = 8) -> float:
    """
    Approximate scene brightness of a BGRA frame.

    Samples every ``step``-th pixel in both directions, computes integer
    luma (299 R + 587 G + 114 B) / 1000 per sample and averages.
    """
    sample = bgra[::step, ::step].astype(np.int32)
    if sample.size == 0:
        return 0.0
    b, g, r = sample[..., 0], sample[..., 1], sample[..., 2]
    wr, wg, wb = LUMA_WEIGHTS
    luma = (wr * r + wg * g + wb * b) // 1000
    return float(luma.mean())


def bgra_to_rgb(bgra: np.ndarray) -> np.ndarray:
    """Drop alpha and reorder channels to RGB (new contiguous array)."""
    return np.ascontiguousarray(bgra[..., 2::-1])


def ir_normalization_window(ir: np.ndarray, step: int = 8) -> tuple[int, int]:
    """
    Find the (min, max) of non-zero intensities over a sparse sample.

    Falls back to IR_DEFAULT_RANGE when no valid sample exists or the
    range is degenerate.
    """
    sample = ir[::step, ::step]
    valid = sample[sample > 0]
    if valid.size == 0:
        return IR_DEFAULT_RANGE
    low, high = int(valid.min()), int(valid.max())
    if high <= low:
        return IR_DEFAULT_RANGE
    return low, high


def ir_to_rgb(
    ir: np.ndarray,
    green_tint: bool = False,
    smooth: bool = True,
    step: int = 8,
    blur_passes: int = 1,
) -> np.ndarray:
    """
    Tone-map 16-bit infrared intensities to an 8-bit RGB image.

    Args:
        ir: (H, W) uint16 intensities (little-endian sensor samples)
        green_tint: Write (0, v, 0) instead of a gray triple
        smooth: Apply a 3x3 box blur to the interior
        step: Sampling stride for the normalization window
        blur_passes: Number of blur passes when smoothing

    Returns:
        (H, W, 3) uint8 array
    """
    low, high = ir_normalization_window(ir, step)
    scale = 255.0 / (high - low)

    values = ir.astype(np.float32)
    values[ir == 0] = low
    levels = np.floor((values - low) * scale + 0.5)
    levels = np.clip(levels, 0, 255).astype(np.uint8)

    rgb = np.zeros(ir.shape + (3,), dtype=np.uint8)
    if green_tint:
        rgb[..., 1] = levels
    else:
        rgb[...] = levels[..., None]

    if smooth:
        rgb = box_blur(rgb, passes=blur_passes)
    return rgb


def box_blur(image: np.ndarray, passes: int = 1) -> np.ndarray:
    """
    3x3 box blur over interior pixels; border pixels are left as-is.

    Each pass reads from a full copy of the previous result, so the output
    does not depend on traversal order.
    """
    out = image.copy()
    h, w = image.shape[:2]
    if h < 3 or w < 3:
        return out

    for _ in range(passes):
        src = out.astype(np.uint16)
        acc = np.zeros((h - 2, w - 2) + image.shape[2:], dtype=np.uint16)
        for dy in range(3):
            for dx in range(3):
                acc += src[dy : h - 2 + dy, dx : w - 2 + dx]
        out[1:-1, 1:-1] = (acc // 9).astype(np.uint8)
    return out
