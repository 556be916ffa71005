#!/usr/bin/env python3
"""
Tick Range Evaluation

Pure helpers for classifying a tick against a position's bounds and for
detecting range crossings between two ticks. Tick bounds follow Uniswap V3.
"""

from typing import Tuple

from .errors import InvalidTickRange

# Uniswap V3 tick bounds
MIN_TICK = -887272
MAX_TICK = 887272
TICK_BASE = 1.0001


def validate_tick_range(tick_lower: int, tick_upper: int) -> None:
    """Raise InvalidTickRange unless MIN_TICK <= tick_lower < tick_upper <= MAX_TICK"""
    if not isinstance(tick_lower, int) or not isinstance(tick_upper, int):
        raise InvalidTickRange(f"Ticks must be integers, got {tick_lower!r}, {tick_upper!r}")
    if tick_lower >= tick_upper:
        raise InvalidTickRange(f"tick_lower {tick_lower} must be below tick_upper {tick_upper}")
    if tick_lower < MIN_TICK or tick_upper > MAX_TICK:
        raise InvalidTickRange(f"Ticks [{tick_lower}, {tick_upper}] out of bounds [{MIN_TICK}, {MAX_TICK}]")


def is_in_range(current_tick: int, tick_lower: int, tick_upper: int) -> bool:
    """A position is active when tick_lower <= current_tick <= tick_upper (both bounds inclusive)"""
    return tick_lower <= current_tick <= tick_upper


def detect_range_crossing(old_tick: int, new_tick: int, tick_lower: int, tick_upper: int) -> Tuple[bool, bool]:
    """
    Classify a tick move against a range

    Returns:
        (was_in_range, is_in_range) for the old and new tick
    """
    return (
        is_in_range(old_tick, tick_lower, tick_upper),
        is_in_range(new_tick, tick_lower, tick_upper),
    )


def has_exited_range(old_tick: int, new_tick: int, tick_lower: int, tick_upper: int) -> bool:
    """True when the move takes the tick from inside the range to outside it"""
    was_in, now_in = detect_range_crossing(old_tick, new_tick, tick_lower, tick_upper)
    return was_in and not now_in


def tick_to_price(tick: int) -> float:
    """Convert tick to price (token1 per token0): price = 1.0001^tick"""
    if tick < MIN_TICK or tick > MAX_TICK:
        raise ValueError(f"Tick {tick} out of bounds [{MIN_TICK}, {MAX_TICK}]")
    return TICK_BASE ** tick
