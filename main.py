# main.py
import sys
import argparse

from PyQt6.QtCore import QDateTime

from app_logic import AppLogic
from keyframe_logic import MIN_LOOP_DURATION


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="keyframe-sync",
        description="Synchronize the keyframe tracks of a keyframe file and write them back in minimal form."
    )
    parser.add_argument("input", help="Keyframe file (.json) to read.")
    parser.add_argument("-o", "--output", help="Where to write the result. Defaults to overwriting the input.")
    parser.add_argument("--min-duration", type=int, default=MIN_LOOP_DURATION,
                        help=f"Minimum timeline length for mixed-loop values (default: {MIN_LOOP_DURATION}).")
    parser.add_argument("--list", action="store_true", help="Print the synchronized timelines instead of saving.")
    args = parser.parse_args(argv)

    logic = AppLogic(min_duration=args.min_duration)
    errors = []

    def log_message(message):
        timestamp = QDateTime.currentDateTime().toString("hh:mm:ss")
        print(f"[{timestamp}] {message}")

    def show_error(title, message):
        errors.append(title)
        print(f"{title}: {message}", file=sys.stderr)

    logic.log_requested.connect(log_message)
    logic.error_occurred.connect(show_error)

    logic.load_file(args.input)
    if errors:
        return 1

    if args.list:
        for name, value in logic.values.items():
            flags = [f for f, on in (("animated", value.is_animated), ("loop", value.loop), ("interpolate", value.interpolate)) if on]
            print(f"{name} [{', '.join(flags) or 'constant'}]")
            for time in value.times:
                print(f"  {time:5d}: " + ", ".join(f"{v:.4f}" for v in value.values_at(time)))
        return 0

    logic.save_file(args.output or args.input)
    return 1 if errors else 0


if __name__ == '__main__':
    sys.exit(main())
