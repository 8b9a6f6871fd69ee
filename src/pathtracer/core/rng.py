"""Per-stream pseudo-random numbers for Taichi kernels.

Taichi's built-in ti.random() keeps one state per worker thread, so the values a
pixel sees depend on how the scheduler hands out work. The renderer needs
images that are reproducible for a fixed seed, so every pixel owns a private
xorshift32 stream instead:

    state ^= state << 13
    state ^= state >> 17
    state ^= state << 5

Streams are seeded on the Python side with numpy's SeedSequence, which turns
one global seed into well-mixed, non-overlapping 32-bit words.

Example:
    >>> seed_streams(seed=7, count=16)
    >>> @ti.kernel
    ... def sample() -> ti.f32:
    ...     return next_float(3)  # draw from stream 3
"""

import numpy as np
import taichi as ti

# One stream per pixel of the largest supported image (2048 x 2048)
MAX_STREAMS = 2048 * 2048

# xorshift32 never leaves the all-zero state, so zero seeds are replaced
_ZERO_STATE_REPLACEMENT = 0x6D2B79F5

_rng_state = ti.field(dtype=ti.u32, shape=MAX_STREAMS)


def seed_streams(seed: int, count: int) -> None:
    """Seed the first ``count`` streams from a global seed.

    The same (seed, count) pair always yields the same stream states. Streams
    beyond ``count`` are reset to zero and lazily repaired on first use.

    Args:
        seed: Non-negative global seed.
        count: Number of streams to seed (typically width * height).

    Raises:
        ValueError: If seed is negative or count is outside [0, MAX_STREAMS].
    """
    if seed < 0:
        raise ValueError(f"Seed must be non-negative, got {seed}")
    if count < 0 or count > MAX_STREAMS:
        raise ValueError(f"Stream count {count} outside [0, {MAX_STREAMS}]")

    states = np.zeros(MAX_STREAMS, dtype=np.uint32)
    if count > 0:
        words = np.random.SeedSequence(seed).generate_state(count, dtype=np.uint32)
        words[words == 0] = _ZERO_STATE_REPLACEMENT
        states[:count] = words
    _rng_state.from_numpy(states)


def get_stream_states(count: int) -> np.ndarray:
    """Return a copy of the first ``count`` stream states (for debugging)."""
    return _rng_state.to_numpy()[:count].copy()


@ti.func
def next_u32(stream: ti.i32) -> ti.u32:
    """Advance a stream and return its new 32-bit state.

    Args:
        stream: Index of the stream to advance.

    Returns:
        The next xorshift32 value (never zero).
    """
    x = _rng_state[stream]
    if x == ti.cast(0, ti.u32):
        x = ti.cast(_ZERO_STATE_REPLACEMENT, ti.u32)
    x ^= x << ti.cast(13, ti.u32)
    x ^= x >> ti.cast(17, ti.u32)
    x ^= x << ti.cast(5, ti.u32)
    _rng_state[stream] = x
    return x


@ti.func
def next_float(stream: ti.i32) -> ti.f32:
    """Draw a uniform float in [0, 1) from a stream.

    The top 24 bits of the state are used so every value is exactly
    representable in float32.

    Args:
        stream: Index of the stream to draw from.

    Returns:
        A float in [0, 1).
    """
    bits = next_u32(stream) >> ti.cast(8, ti.u32)
    return ti.cast(bits, ti.f32) * (1.0 / 16777216.0)
