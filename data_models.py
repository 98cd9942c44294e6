# data_models.py
import copy
from bisect import bisect_left
from enum import Enum, IntEnum

from keyframe_logic import (
    KeyframeEncoder, KeyframeDecoder, KeyframeSyncError,
    MAX_KEYFRAME_TIME, interpolate_value
)

class DesynchronizedTracksError(KeyframeSyncError):
    """Component tracks of one value no longer share the same timeline."""
    pass

class ArityError(KeyframeSyncError, ValueError):
    """Constant and track arrays don't match the value's component count."""
    pass

class KeyframeEditError(KeyframeSyncError, ValueError):
    """An edit request that can't be applied to the synchronized value."""
    pass


# Stored ETR interpolation byte. Only the default is named, other bytes are kept as plain ints.
class EtrInterpolationType(IntEnum):
    DEFAULT = 0


class KeyframedValueType(Enum):
    ACTIVE_ROTATION = 0
    COLOR1 = 1
    COLOR2 = 2
    COLOR1_TRANSPARENCY = 3
    COLOR2_TRANSPARENCY = 4
    POSITION_Y = 5
    SCALE_BASE = 6
    SCALE_XY = 7
    SIZE1 = 8
    SIZE2 = 9
    ETR_COLOR1 = 10
    ETR_COLOR2 = 11
    ETR_COLOR1_TRANSPARENCY = 12
    ETR_COLOR2_TRANSPARENCY = 13
    ETR_SCALE = 14
    ECF_AMBIENT_COLOR = 15
    ECF_MULTI_COLOR = 16
    ECF_RIM_COLOR = 17
    ECF_AMBIENT_TRANSPARENCY = 18
    ECF_DIFFUSE_TRANSPARENCY = 19
    ECF_SPECULAR_TRANSPARENCY = 20
    ECF_BLENDING_FACTOR = 21
    MODIFIER_AXIS = 22
    MODIFIER_AXIS2 = 23
    MODIFIER_ROTATION_RATE = 24
    MODIFIER_RADIAL = 25
    MODIFIER_DRAG_STRENGTH = 26
    MODIFIER_DIRECTION = 27

    @property
    def display_name(self):
        return _VALUE_TYPE_INFO[self][0]

    @property
    def component_count(self):
        return _VALUE_TYPE_INFO[self][1]

    @property
    def is_modifier(self):
        return self.name.startswith("MODIFIER_")

_VALUE_TYPE_INFO = {
    KeyframedValueType.ACTIVE_ROTATION: ("Active Rotation", 1),
    KeyframedValueType.COLOR1: ("Color (Primary)", 3),
    KeyframedValueType.COLOR2: ("Color (Secondary)", 3),
    KeyframedValueType.COLOR1_TRANSPARENCY: ("Alpha (Primary)", 1),
    KeyframedValueType.COLOR2_TRANSPARENCY: ("Alpha (Secondary)", 1),
    KeyframedValueType.POSITION_Y: ("Position Y", 1),
    KeyframedValueType.SCALE_BASE: ("Scale", 1),
    KeyframedValueType.SCALE_XY: ("Scale XY", 2),
    KeyframedValueType.SIZE1: ("Size 1", 1),
    KeyframedValueType.SIZE2: ("Size 2", 1),
    KeyframedValueType.ETR_COLOR1: ("Color (Primary)", 3),
    KeyframedValueType.ETR_COLOR2: ("Color (Secondary)", 3),
    KeyframedValueType.ETR_COLOR1_TRANSPARENCY: ("Alpha (Primary)", 1),
    KeyframedValueType.ETR_COLOR2_TRANSPARENCY: ("Alpha (Secondary)", 1),
    KeyframedValueType.ETR_SCALE: ("Scale", 1),
    KeyframedValueType.ECF_AMBIENT_COLOR: ("Add Color", 3),
    KeyframedValueType.ECF_MULTI_COLOR: ("Multiplier", 3),
    KeyframedValueType.ECF_RIM_COLOR: ("Rim Color", 3),
    KeyframedValueType.ECF_AMBIENT_TRANSPARENCY: ("Add Factor", 1),
    KeyframedValueType.ECF_DIFFUSE_TRANSPARENCY: ("Multi Factor", 1),
    KeyframedValueType.ECF_SPECULAR_TRANSPARENCY: ("Rim Factor", 1),
    KeyframedValueType.ECF_BLENDING_FACTOR: ("Blending Factor", 1),
    KeyframedValueType.MODIFIER_AXIS: ("Axis", 3),
    KeyframedValueType.MODIFIER_AXIS2: ("Axis", 3),
    KeyframedValueType.MODIFIER_ROTATION_RATE: ("Rotation Rate", 1),
    KeyframedValueType.MODIFIER_RADIAL: ("Radial", 1),
    KeyframedValueType.MODIFIER_DRAG_STRENGTH: ("Drag Strength", 1),
    KeyframedValueType.MODIFIER_DIRECTION: ("Direction", 3),
}


class SparseTrack:
    """One component's keyframes as stored on disk. Times may repeat."""
    def __init__(self, component_index, constant=0.0, keyframes=None, loop=False, interpolate=True,
                 duration=0, etr_interpolation=EtrInterpolationType.DEFAULT, is_default=False):
        self.component_index = component_index
        self.constant = constant
        self.keyframes = list(keyframes) if keyframes else []
        self.loop = loop
        self.interpolate = interpolate
        self.duration = duration
        self.etr_interpolation = int(etr_interpolation)
        self.is_default = is_default

    @classmethod
    def default(cls, component_index, constant, like=None):
        """A keyframe-less track standing in for a component with no stored definition."""
        if like is None:
            return cls(component_index, constant, is_default=True)
        return cls(component_index, constant, loop=like.loop, interpolate=like.interpolate,
                   duration=like.duration, etr_interpolation=like.etr_interpolation, is_default=True)

    @property
    def uses_constant(self):
        return self.is_default or not self.keyframes

    @classmethod
    def from_dict(cls, data):
        return cls(
            component_index=int(data.get("Component", 0)),
            constant=float(data.get("Constant", 0.0)),
            keyframes=KeyframeDecoder.decode_keyframes(data.get("Keyframes", [])),
            loop=bool(data.get("Loop", False)),
            interpolate=bool(data.get("Interpolate", True)),
            duration=int(data.get("Duration", 0)),
            etr_interpolation=int(data.get("EtrInterpolation", 0)),
            is_default=bool(data.get("Default", False))
        )

    def to_dict(self):
        data = {
            "Component": self.component_index,
            "Constant": self.constant,
            "Loop": self.loop,
            "Interpolate": self.interpolate,
            "Duration": self.duration,
            "EtrInterpolation": int(self.etr_interpolation),
            "Keyframes": KeyframeEncoder.encode_keyframes(self.keyframes)
        }
        if self.is_default: data["Default"] = True
        return data

    def __repr__(self):
        return f"SparseTrack(component={self.component_index}, keyframes={self.keyframes}, loop={self.loop}, interpolate={self.interpolate})"


class DenseKeyframe:
    def __init__(self, time, value):
        self.time, self.value = time, float(value)

    def __eq__(self, other):
        if not isinstance(other, DenseKeyframe): return NotImplemented
        return self.time == other.time and self.value == other.value

    def __repr__(self):
        return f"{self.time}: {self.value}"


class SynchronizedValue:
    """
    Editable form of an animated value: every component track holds exactly the
    same ordered set of keyframe times. All mutators keep that alignment and
    re-validate it before returning.
    """
    def __init__(self, tracks, is_animated=False, loop=False, interpolate=True,
                 etr_interpolation=EtrInterpolationType.DEFAULT, is_modifier=False,
                 components=None, parameter=0, value_type=None):
        if not tracks:
            raise ArityError("A synchronized value needs at least one component")
        self.tracks = [list(track) for track in tracks]
        self._component_count = len(self.tracks)
        self.components = list(components) if components is not None else list(range(self._component_count))
        if len(self.components) != self._component_count:
            raise ArityError(f"Got {len(self.components)} component indices for {self._component_count} tracks")
        self.is_animated = is_animated
        self.loop = loop
        self.interpolate = interpolate
        self.etr_interpolation = int(etr_interpolation)
        self.is_modifier = is_modifier
        self.parameter = parameter
        self.value_type = value_type

    @property
    def component_count(self):
        return self._component_count

    @property
    def times(self):
        return [p.time for p in self.tracks[0]]

    def validate(self):
        expected = self.times
        for i, track in enumerate(self.tracks[1:], start=1):
            if len(track) != len(expected) or [p.time for p in track] != expected:
                raise DesynchronizedTracksError(
                    f"Desynchronized keyframe tracks: component {i} has {len(track)} keyframes, "
                    f"component 0 has {len(expected)}")

    def value_at(self, component, time):
        self._check_component(component)
        return interpolate_value(self.tracks[component], time, self.interpolate)

    def values_at(self, time):
        return tuple(interpolate_value(track, time, self.interpolate) for track in self.tracks)

    def set_keyframe(self, component, time, value):
        """Sets one component's value at `time`, adding the time to every track if needed."""
        self._check_component(component)
        self._check_time(time)
        times = self.times
        idx = bisect_left(times, time)
        if idx < len(times) and times[idx] == time:
            self.tracks[component][idx].value = float(value)
        else:
            for i, track in enumerate(self.tracks):
                new_value = value if i == component else interpolate_value(track, time, self.interpolate)
                track.insert(idx, DenseKeyframe(time, new_value))
        self.validate()
        return self.tracks[component][idx]

    def remove_keyframe(self, time):
        idx = self._index_of(time)
        if len(self.tracks[0]) == 1:
            raise KeyframeEditError("Cannot remove the only keyframe of a value")
        for track in self.tracks:
            del track[idx]
        self.validate()
        return self.times

    def move_keyframe(self, old_time, new_time):
        self._check_time(new_time)
        idx = self._index_of(old_time)
        if old_time == new_time:
            return self.values_at(new_time)
        if new_time in self.times:
            raise KeyframeEditError(f"A keyframe already exists at time {new_time}")
        for track in self.tracks:
            track[idx].time = new_time
            track.sort(key=lambda p: p.time)
        self.validate()
        return self.values_at(new_time)

    def set_animated(self, flag):
        self.is_animated = bool(flag)
        return self.is_animated

    def set_loop(self, flag):
        self.loop = bool(flag)
        return self.loop

    def set_interpolate(self, flag):
        self.interpolate = bool(flag)
        return self.interpolate

    def copy(self):
        return copy.deepcopy(self)

    def _index_of(self, time):
        times = self.times
        idx = bisect_left(times, time)
        if idx >= len(times) or times[idx] != time:
            raise KeyframeEditError(f"No keyframe at time {time}")
        return idx

    def _check_component(self, component):
        if not 0 <= component < self._component_count:
            raise IndexError(f"Component {component} out of range for a {self._component_count}-component value")

    @staticmethod
    def _check_time(time):
        if not 0 <= time <= MAX_KEYFRAME_TIME:
            raise KeyframeEditError(f"Keyframe time {time} is outside 0..{MAX_KEYFRAME_TIME}")

    def __repr__(self):
        name = self.value_type.display_name if self.value_type else "Value"
        return f"<SynchronizedValue {name} x{self._component_count} times={self.times}>"


SERIALIZE_VERSION = "1"

class KeyframedValue:
    """A named value as stored in a keyframe file: constants plus optional per-component tracks."""
    def __init__(self, name, constant, tracks=None, value_type=None, parameter=0):
        self.name = name
        self.constant = [float(c) for c in constant]
        self.tracks = list(tracks) if tracks is not None else [None] * len(self.constant)
        self.value_type = value_type
        self.parameter = parameter
        if len(self.tracks) != len(self.constant):
            raise ArityError(f"Value '{name}' has {len(self.constant)} constants but {len(self.tracks)} tracks")

    @classmethod
    def from_dict(cls, data):
        type_name = data.get("ValueType")
        try:
            value_type = KeyframedValueType[type_name] if type_name else None
        except KeyError:
            raise ValueError(f"Unknown value type '{type_name}'") from None
        tracks = data.get("Tracks")
        if tracks is not None:
            tracks = [SparseTrack.from_dict(t) if t is not None else None for t in tracks]
        return cls(
            name=data.get("Name", "Unnamed"),
            constant=data.get("Constant", []),
            tracks=tracks,
            value_type=value_type,
            parameter=int(data.get("Parameter", 0))
        )

    def to_dict(self):
        return {
            "Name": self.name,
            "ValueType": self.value_type.name if self.value_type else None,
            "Parameter": self.parameter,
            "Constant": self.constant,
            "Tracks": [t.to_dict() if t is not None else None for t in self.tracks]
        }

class KeyframeFile:
    def __init__(self):
        self.version = SERIALIZE_VERSION
        self.values = []

    @classmethod
    def from_dict(cls, data):
        instance = cls()
        instance.version = data.get("SerializeVersion", SERIALIZE_VERSION)
        instance.values = [KeyframedValue.from_dict(v) for v in data.get("Values", [])]
        return instance

    def to_dict(self):
        return {
            "SerializeVersion": self.version,
            "Values": [v.to_dict() for v in self.values]
        }
