# keyframe_logic.py
import struct

# Whole particle lifetime, in frames. Mixed-loop values are expanded to at least this.
MIN_LOOP_DURATION = 101
MAX_KEYFRAME_TIME = 0xFFFF


class KeyframeSyncError(Exception):
    """Base class for all keyframe synchronization failures."""
    pass

class KeyframeDecodeError(KeyframeSyncError, ValueError):
    """Raised when an encoded keyframe string is malformed."""
    pass

class KeyframeTimeError(KeyframeSyncError, ValueError):
    """Raised for keyframe times that don't fit the stored u16 range."""
    pass


class KeyframeEncoder:
    """
    Compact string form of a (time, value) keyframe, as stored in keyframe files.
    A value equal to the previous keyframe's value is left out.
    """
    @staticmethod
    def encode_keyframe(time: int, value: float, last_v: float) -> str:
        """Encodes a single keyframe into the compact string format."""
        if not 0 <= time <= MAX_KEYFRAME_TIME:
            raise KeyframeTimeError(f"Keyframe time {time} is outside 0..{MAX_KEYFRAME_TIME}")
        sb = []
        packed_value = struct.pack('<f', value)
        has_value = packed_value != struct.pack('<f', last_v)
        encoded_value = 0
        if has_value: encoded_value |= (1 << 0)
        sb.append(chr(ord('A') + encoded_value))
        sb.append(struct.pack('<H', time).hex().upper())
        if has_value:
            sb.append(packed_value.hex().upper())
        return "".join(sb)

    @staticmethod
    def encode_keyframes(keyframes) -> list[str]:
        """Delta-encodes a whole keyframe list, starting from a previous value of 0.0."""
        encoded, last_v = [], 0.0
        for time, value in keyframes:
            encoded.append(KeyframeEncoder.encode_keyframe(time, value, last_v))
            last_v = value
        return encoded


class KeyframeDecoder:
    """
    Reverse of KeyframeEncoder.
    """
    @staticmethod
    def decode_keyframe(encoded_str: str, last_v: float) -> tuple[int, float]:
        """Decodes a single keyframe from the compact string format."""
        if not encoded_str: raise KeyframeDecodeError("Encoded string is empty")
        encoded_value = ord(encoded_str[0]) - ord('A')
        if not 0 <= encoded_value <= 1:
            raise KeyframeDecodeError(f"Unknown keyframe flag '{encoded_str[0]}'")
        has_value = (encoded_value & (1 << 0)) != 0
        expected_len = 1 + 4 + (8 if has_value else 0)
        if len(encoded_str) != expected_len:
            raise KeyframeDecodeError(f"Encoded keyframe '{encoded_str}' should be {expected_len} characters long")
        try:
            ptr = 1
            time = struct.unpack('<H', bytes.fromhex(encoded_str[ptr:ptr+4]))[0]
            ptr += 4
            value = last_v
            if has_value:
                value = struct.unpack('<f', bytes.fromhex(encoded_str[ptr:ptr+8]))[0]
                ptr += 8
        except ValueError as e:
            raise KeyframeDecodeError(f"Invalid hex in keyframe '{encoded_str}': {e}") from e
        return time, value

    @staticmethod
    def decode_keyframes(encoded_list) -> list[tuple[int, float]]:
        keyframes, last_v = [], 0.0
        for encoded in encoded_list:
            time, last_v = KeyframeDecoder.decode_keyframe(encoded, last_v)
            keyframes.append((time, last_v))
        return keyframes


def interpolate_value(points, time: int, interpolate: bool) -> float:
    """
    Evaluates a keyframe sequence at an arbitrary time.

    `points` are objects with `time` and `value` attributes, in any order.
    With `interpolate` the result is linear between the two bracketing points,
    otherwise it is the value of the last point at or before `time`. Outside the
    covered range the nearest endpoint is used.
    """
    if not points:
        raise ValueError("Cannot evaluate an empty keyframe sequence")
    ordered = sorted(points, key=lambda p: p.time)
    if len(ordered) == 1 or time <= ordered[0].time:
        return ordered[0].value
    if time >= ordered[-1].time:
        return ordered[-1].value

    prev_point = ordered[0]
    for point in ordered[1:]:
        if point.time == time:
            return point.value
        if point.time > time:
            if not interpolate:
                return prev_point.value
            factor = (time - prev_point.time) / (point.time - prev_point.time)
            return prev_point.value + (point.value - prev_point.value) * factor
        prev_point = point
    return ordered[-1].value


def all_keyframe_times(tracks) -> list[int]:
    """Distinct times across all tracks, in first-seen order."""
    seen, times = set(), []
    for track in tracks:
        for point in track:
            if point.time in seen: continue
            seen.add(point.time)
            times.append(point.time)
    return times
