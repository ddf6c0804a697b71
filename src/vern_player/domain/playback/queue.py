"""Pure queue-index math for next/previous navigation.

No state lives here: every function takes the queue position facts it needs
and returns a new index (or history tuple). The player store applies them.
"""

import random
from typing import Optional, Sequence

from .models import NO_INDEX, SHUFFLE_HISTORY_LIMIT, RepeatMode, Track


def find_track_index(queue: Sequence[Track], track_id: str) -> int:
    """Get the position of a track in the queue by id.

    Returns:
        0-based position, or NO_INDEX if the track is not queued
    """
    for i, track in enumerate(queue):
        if track.id == track_id:
            return i
    return NO_INDEX


def pick_shuffle_index(
    queue_length: int,
    history: Sequence[int],
    current_index: int = NO_INDEX,
    rng: Optional[random.Random] = None,
) -> int:
    """Pick a random queue index, avoiding recently visited ones.

    Candidates are indices not in ``history`` and not the current index.
    Once history covers the whole queue, any index other than the current
    one is acceptable; a single-track queue always returns 0.

    Returns:
        Chosen index, or NO_INDEX for an empty queue
    """
    if queue_length <= 0:
        return NO_INDEX

    chooser = rng or random
    visited = set(history)

    candidates = [
        i for i in range(queue_length) if i not in visited and i != current_index
    ]
    if not candidates:
        candidates = [i for i in range(queue_length) if i != current_index]
    if not candidates:
        return 0

    return chooser.choice(candidates)


def next_index(
    queue_index: int,
    queue_length: int,
    repeat_mode: RepeatMode,
    is_shuffle: bool,
    history: Sequence[int] = (),
    rng: Optional[random.Random] = None,
) -> int:
    """Compute the queue index "next" should move to.

    Precedence: empty queue, shuffle, repeat-one, then sequential with
    repeat-all wrapping.

    Returns:
        Next index, or NO_INDEX when playback should stop at the end
    """
    if queue_length <= 0:
        return NO_INDEX

    if is_shuffle:
        return pick_shuffle_index(queue_length, history, queue_index, rng)

    # Repeat-one replays the selection; with nothing selected, fall through
    if repeat_mode == RepeatMode.ONE and queue_index != NO_INDEX:
        return queue_index

    candidate = queue_index + 1
    if candidate < queue_length:
        return candidate

    if repeat_mode == RepeatMode.ALL:
        return 0

    return NO_INDEX


def previous_index(queue_index: int, queue_length: int) -> int:
    """Compute the queue index "previous" should move to.

    Always wraps from the start to the last track, regardless of repeat mode.
    """
    if queue_length <= 0:
        return NO_INDEX

    candidate = queue_index - 1
    if candidate < 0:
        return queue_length - 1
    return candidate


def push_shuffle_history(
    history: Sequence[int], index: int, limit: int = SHUFFLE_HISTORY_LIMIT
) -> tuple[int, ...]:
    """Append a visited index, keeping only the most recent ``limit`` entries."""
    if index < 0:
        return tuple(history)
    updated = (*history, index)
    return updated[-limit:] if limit > 0 else ()


def reindex_after_remove(queue_index: int, removed_index: int) -> int:
    """Adjust the current queue index after the entry at ``removed_index`` is removed.

    - Removed before the current entry: current shifts left by one.
    - Removed the current entry: nothing is selected any more.
    - Removed after the current entry: unchanged.
    """
    if removed_index < queue_index:
        return queue_index - 1
    if removed_index == queue_index:
        return NO_INDEX
    return queue_index


def reindex_history_after_remove(
    history: Sequence[int], removed_index: int
) -> tuple[int, ...]:
    """Drop the removed index from shuffle history and shift later indices down."""
    return tuple(
        i - 1 if i > removed_index else i for i in history if i != removed_index
    )
