"""Timeline Builder - places normalized clips on the cross-faded timeline."""

from typing import Sequence

from scenecast.models.schemas import TimelineSegment

MIN_SLOT_SECONDS = 0.1


def build_timeline(durations: Sequence[float], fade: float) -> list[TimelineSegment]:
    """
    Compute each scene's span in the composite video.

    Consecutive scenes overlap by ``fade`` seconds during the cross-fade, so
    segment i starts at the sum of prior durations minus ``i * fade``.

    Args:
        durations: Normalized clip durations in playback order
        fade: Cross-fade duration in seconds

    Returns:
        One segment per clip
    """
    segments = []
    cursor = 0.0
    for i, duration in enumerate(durations):
        start = cursor
        end = start + duration
        segments.append(TimelineSegment(index=i, start=start, end=end, duration=duration))
        cursor = end - (fade if i < len(durations) - 1 else 0.0)
    return segments


def slot_duration(timeline: Sequence[TimelineSegment], index: int, fade: float) -> float:
    """
    Seconds of narration a scene may occupy.

    Every scene but the last loses ``fade`` seconds to the following
    transition; the last scene keeps its full clip duration.
    """
    if index < 0 or index >= len(timeline):
        return MIN_SLOT_SECONDS
    segment = timeline[index]
    if index == len(timeline) - 1:
        return segment.duration
    return max(MIN_SLOT_SECONDS, segment.duration - fade)


def total_duration(timeline: Sequence[TimelineSegment]) -> float:
    """Length of the composite video."""
    return timeline[-1].end if timeline else 0.0
