# app_logic.py
import os
import json

from PyQt6.QtCore import QObject, pyqtSignal

from data_models import KeyframeFile, KeyframedValue, SERIALIZE_VERSION
from keyframe_logic import KeyframeSyncError, MIN_LOOP_DURATION
from keyframe_sync import synchronize, compile_value, fill_missing_tracks

class AppLogic(QObject):
    """
    Editing session over a keyframe file. Values are synchronized on load,
    edited in their synchronized form and compiled back on save.
    """
    file_changed = pyqtSignal(object)
    values_updated = pyqtSignal()
    log_requested = pyqtSignal(str)
    error_occurred = pyqtSignal(str, str)

    def __init__(self, min_duration=MIN_LOOP_DURATION):
        super().__init__()
        self.keyframe_file = None
        self.current_file_path = None
        self.min_duration = min_duration
        self.values = {}

    def load_file(self, file_name):
        try:
            with open(file_name, 'r', encoding='utf-8') as f: data = json.load(f)

            keyframe_file = KeyframeFile.from_dict(data)
            if keyframe_file.version != SERIALIZE_VERSION:
                self.log_requested.emit(f"File version '{keyframe_file.version}' differs from '{SERIALIZE_VERSION}', loading anyway.")

            values = {}
            for entry in keyframe_file.values:
                if entry.name in values:
                    raise ValueError(f"Duplicate value name '{entry.name}'")
                values[entry.name] = self._synchronize_entry(entry)

            self.keyframe_file = keyframe_file
            self.values = values
            self.current_file_path = file_name
            self.log_requested.emit(f"Loaded {len(values)} value(s) from: {file_name}")
            self.file_changed.emit(file_name)

        except (OSError, ValueError, KeyError, TypeError, KeyframeSyncError) as e:
            self.keyframe_file = None
            self.values = {}
            self.current_file_path = None
            self.error_occurred.emit("Error Loading File", f"Failed to load '{file_name}':\n{e}")
            self.file_changed.emit(None)

    def save_file(self, file_name):
        if not self.keyframe_file:
            self.log_requested.emit("Save cancelled: No data loaded.")
            return

        try:
            clean_path = file_name.replace(" *", "")
            for entry in self.keyframe_file.values:
                entry.tracks = compile_value(self.values[entry.name], entry.constant)
                omitted = sum(1 for t in entry.tracks if t is None)
                if omitted:
                    self.log_requested.emit(f"'{entry.name}': {omitted} constant component(s) left undefined.")

            output = json.dumps(self.keyframe_file.to_dict(), indent=3, ensure_ascii=False)
            with open(clean_path, 'w', encoding='utf-8') as f:
                f.write(output)

            self.current_file_path = clean_path
            self.log_requested.emit(f"File saved: {clean_path}")
            self.file_changed.emit(clean_path)

        except (OSError, ValueError, OverflowError, KeyframeSyncError) as e:
            self.error_occurred.emit("Save Error", f"Save failed: {e}")

    def add_value(self, name, constant, tracks=None, value_type=None, parameter=0):
        """Registers a value built outside of a file, e.g. by an importer."""
        if self.keyframe_file is None:
            self.keyframe_file = KeyframeFile()
        if name in self.values:
            self.error_occurred.emit("Name Conflict", f"A value named '{name}' already exists.")
            return None
        try:
            entry = KeyframedValue(name, constant, tracks, value_type=value_type, parameter=parameter)
            synced = self._synchronize_entry(entry)
        except KeyframeSyncError as e:
            self.error_occurred.emit("Invalid Value", f"Cannot add '{name}': {e}")
            return None
        self.keyframe_file.values.append(entry)
        self.values[name] = synced
        self.log_requested.emit(f"Added value '{name}' with {synced.component_count} component(s).")
        self.mark_as_dirty()
        return synced

    def get_value(self, name):
        return self.values.get(name)

    def mark_as_dirty(self):
        if self.current_file_path and not self.current_file_path.endswith(" *"):
            self.current_file_path += " *"
        elif not self.current_file_path:
             self.current_file_path = "Unsaved File *"

        self.file_changed.emit(os.path.basename(self.current_file_path))
        self.values_updated.emit()

    def set_keyframe(self, name, component, time, value):
        point = self._edit(name, "Set Keyframe", lambda v: v.set_keyframe(component, time, value))
        if point is not None:
            self.log_requested.emit(f"'{name}' component {component}: keyframe at {time} set to {point.value:.4f}.")
        return point

    def remove_keyframe(self, name, time):
        times = self._edit(name, "Remove Keyframe", lambda v: v.remove_keyframe(time))
        if times is not None:
            self.log_requested.emit(f"'{name}': removed keyframe at {time}.")
        return times

    def move_keyframe(self, name, old_time, new_time):
        values = self._edit(name, "Move Keyframe", lambda v: v.move_keyframe(old_time, new_time))
        if values is not None:
            self.log_requested.emit(f"'{name}': moved keyframe {old_time} -> {new_time}.")
        return values

    def set_animated(self, name, flag):
        return self._toggle(name, "animation", lambda v: v.set_animated(flag))

    def set_loop(self, name, flag):
        return self._toggle(name, "loop", lambda v: v.set_loop(flag))

    def set_interpolate(self, name, flag):
        return self._toggle(name, "interpolation", lambda v: v.set_interpolate(flag))

    def _toggle(self, name, label, action):
        result = self._edit(name, "Invalid Operation", action)
        if result is not None:
            self.log_requested.emit(f"'{name}': {label} {'enabled' if result else 'disabled'}.")
        return result

    def _edit(self, name, title, action):
        value = self.values.get(name)
        if value is None:
            self.error_occurred.emit(title, f"No value named '{name}'.")
            return None
        try:
            result = action(value)
        except (KeyframeSyncError, IndexError) as e:
            self.error_occurred.emit(title, str(e))
            return None
        self.mark_as_dirty()
        return result

    def _synchronize_entry(self, entry):
        components = [t.component_index if t is not None else i for i, t in enumerate(entry.tracks)]
        tracks = fill_missing_tracks(entry.constant, entry.tracks, components)
        return synchronize(entry.constant, tracks, value_type=entry.value_type,
                           parameter=entry.parameter, min_duration=self.min_duration)
