"""Iteration over fixed-size segments of a packet batch."""

from __future__ import annotations

from typing import Iterator, Union


def iter_segments(data: Union[bytes, bytearray, memoryview], segment_size: int) -> Iterator[memoryview]:
    """Yield consecutive views of ``segment_size`` bytes; the last may be shorter."""
    if segment_size <= 0:
        raise ValueError("segment size must be positive")
    view = memoryview(data)
    while view:
        yield view[:segment_size]
        view = view[segment_size:]