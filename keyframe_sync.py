# keyframe_sync.py
"""
Conversion between the sparse per-component keyframe tracks found in files and
the synchronized form used for editing.

`synchronize` merges N independent tracks into N tracks sharing one timeline;
`compile_value` reduces a synchronized value back to the minimal set of tracks
that need to be stored.
"""
import logging

from data_models import ArityError, DenseKeyframe, SparseTrack, SynchronizedValue
from keyframe_logic import (
    MAX_KEYFRAME_TIME, MIN_LOOP_DURATION, KeyframeTimeError, all_keyframe_times, interpolate_value
)

_log = logging.getLogger(__name__)


def synchronize(constant, tracks, is_modifier=None, value_type=None, parameter=0,
                min_duration: int = MIN_LOOP_DURATION) -> SynchronizedValue:
    """
    Builds a SynchronizedValue from one SparseTrack per component.

    `constant` holds the fallback value of each component, used for tracks that
    carry no keyframes. When `is_modifier` is not given it is taken from
    `value_type`, defaulting to False.
    """
    constant, tracks = list(constant), list(tracks)
    if not tracks:
        raise ArityError("Cannot synchronize a value with zero components")
    if len(constant) != len(tracks):
        raise ArityError(f"Got {len(constant)} constants for {len(tracks)} tracks")
    if any(track is None for track in tracks):
        raise ArityError("Missing tracks must be filled in with fill_missing_tracks() first")
    if value_type is not None and value_type.component_count != len(tracks):
        _log.warning("%s normally has %d components, got %d",
                     value_type.display_name, value_type.component_count, len(tracks))
    if is_modifier is None:
        is_modifier = value_type.is_modifier if value_type is not None else False

    # The first track decides, other tracks are expected to agree with it.
    first = tracks[0]
    interpolate = first.interpolate
    if any(t.interpolate != interpolate or t.etr_interpolation != first.etr_interpolation for t in tracks[1:]):
        _log.warning("Component tracks disagree on interpolation settings, using component 0's")

    is_animated = False
    values = []
    for i, track in enumerate(tracks):
        if not track.is_default:
            is_animated = True
        values.append(_dense_points(track, constant[i], i))

    if all(t.loop for t in tracks):
        loop = True
    else:
        loop = False
        if any(t.loop for t in tracks):
            target_duration = max(max(t.duration for t in tracks), min_duration)
            _log.debug("Mixed looping across components, expanding looped tracks to %d", target_duration)
            for i, track in enumerate(tracks):
                if track.loop:
                    _expand_loop(values[i], track.duration, target_duration, track.interpolate)

    _fill_gaps(values, interpolate)

    for points in values:
        points.sort(key=lambda p: p.time)

    synced = SynchronizedValue(
        values,
        is_animated=is_animated,
        loop=loop,
        interpolate=interpolate,
        etr_interpolation=first.etr_interpolation,
        is_modifier=is_modifier,
        components=[t.component_index for t in tracks],
        parameter=parameter,
        value_type=value_type
    )
    synced.validate()
    return synced


def compile_value(value: SynchronizedValue, constant) -> list:
    """
    Turns a SynchronizedValue back into one optional SparseTrack per component.
    None means the component needs no stored definition.
    """
    constant = list(constant)
    if len(constant) != value.component_count:
        raise ArityError(f"Got {len(constant)} constants for a {value.component_count}-component value")
    value.validate()

    compiled = [None] * value.component_count
    if value.is_animated:
        for i, points in enumerate(value.tracks):
            if not value.is_modifier and all(p.value == constant[i] for p in points):
                _log.debug("Component %d matches its constant, omitting", i)
                continue
            compiled[i] = SparseTrack(
                component_index=value.components[i],
                constant=constant[i] if value.is_modifier else 0.0,
                keyframes=[(p.time, p.value) for p in points],
                loop=value.loop,
                interpolate=value.interpolate,
                duration=points[-1].time,
                etr_interpolation=value.etr_interpolation
            )
    elif value.is_modifier:
        # Modifiers still need a definition to hold their constant values
        for i in range(value.component_count):
            compiled[i] = SparseTrack(
                component_index=value.components[i],
                constant=constant[i],
                keyframes=[(0, constant[i])],
                etr_interpolation=value.etr_interpolation
            )
    return compiled


def fill_missing_tracks(constant, tracks, components=None) -> list:
    """
    Replaces absent (None) tracks with default tracks, sharing the flags of the
    first present track so a missing component doesn't look like a different loop mode.
    """
    constant, tracks = list(constant), list(tracks)
    if len(constant) != len(tracks):
        raise ArityError(f"Got {len(constant)} constants for {len(tracks)} tracks")
    if components is None:
        components = range(len(tracks))
    like = next((t for t in tracks if t is not None), None)
    return [
        track if track is not None else SparseTrack.default(index, constant[i], like)
        for i, (track, index) in enumerate(zip(tracks, components))
    ]


def _dense_points(track, constant, component):
    if track.uses_constant:
        return [DenseKeyframe(0, constant)]

    points, by_time = [], {}
    for time, value in track.keyframes:
        if not 0 <= time <= MAX_KEYFRAME_TIME:
            raise KeyframeTimeError(f"Component {component} has a keyframe at {time}, outside 0..{MAX_KEYFRAME_TIME}")
        existing = by_time.get(time)
        if existing is None:
            point = DenseKeyframe(time, value)
            by_time[time] = point
            points.append(point)
        else:
            # Duplicate times do occur in files, the last one wins
            _log.debug("Component %d has duplicate keyframes at %d, keeping the last", component, time)
            existing.value = float(value)
    return points


def _expand_loop(points, loop_duration, target_duration, interpolate):
    """Repeats a looped track's pattern until it spans `target_duration`."""
    if loop_duration == 0:
        end_time = target_duration - 1
        if all(p.time != end_time for p in points):
            points.append(DenseKeyframe(end_time, points[0].value))
        return

    present = {p.time for p in points}
    block_start = loop_duration
    while block_start < target_duration:
        for phase in range(loop_duration):
            time = block_start + phase
            if time >= target_duration: break
            if time in present: continue
            points.append(DenseKeyframe(time, interpolate_value(points, phase, interpolate)))
            present.add(time)
        block_start += loop_duration


def _fill_gaps(values, interpolate):
    present = [{p.time for p in points} for points in values]
    for time in all_keyframe_times(values):
        for i, points in enumerate(values):
            if time not in present[i]:
                points.append(DenseKeyframe(time, interpolate_value(points, time, interpolate)))
                present[i].add(time)
