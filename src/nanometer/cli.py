"""
NanoMeter command line.

Usage:
    nanometer meter scene.jpg --shutter 1/125 --iso 400 --aperture 1.8
    nanometer meter greycard.dng --shutter 1/60 --iso 100 --calibrate
    nanometer meter scene.jpg --shutter 1/125 --iso 400 --mode spot --spot 0.3,0.6 --film "Kodak Gold 200"
    nanometer calibration show
    nanometer aperture set 1.78
    nanometer presets
"""

import argparse
import sys
from typing import List, Optional, Tuple

from nanometer import config
from nanometer.exposure import MeteringMode
from nanometer.frame import LumaFrame
from nanometer.log import configure_logging
from nanometer.presets import APERTURE_LABELS, FILM_PRESETS, ISOS, SHUTTER_LABELS, find_film, match_film, parse_shutter
from nanometer.session import MeterReading, MeterSession
from nanometer.store import JsonFileStore


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _spot_point(text: str) -> Tuple[float, float]:
    try:
        x, y = (float(v) for v in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected X,Y in [0,1], got {text!r}")
    return x, y


def _common_options(suppress: bool) -> argparse.ArgumentParser:
    # Accepted before or after the subcommand; the subcommand copy only overrides when given
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--store", default=argparse.SUPPRESS if suppress else config.STORE_PATH,
                        help="Settings file (calibration, aperture override)")
    common.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS,
                        default=argparse.SUPPRESS if suppress else config.LOG_LEVEL.upper(),
                        help="Logging level")
    return common


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nanometer", description="Reflected-light exposure meter",
                                     parents=[_common_options(suppress=False)])
    common = _common_options(suppress=True)
    sub = parser.add_subparsers(dest="command", required=True)

    meter = sub.add_parser("meter", help="Meter a still image", parents=[common])
    meter.add_argument("image", help="Image file (JPEG/PNG/TIFF or camera RAW)")
    meter.add_argument("--shutter", "-t", required=True, help="Exposure time, e.g. 1/125 or 2")
    meter.add_argument("--iso", "-s", type=float, required=True, help="ISO the image was shot at")
    meter.add_argument("--aperture", "-a", type=float, default=None,
                       help=f"Lens f-number (default f/{config.DEFAULT_APERTURE:g})")
    meter.add_argument("--mode", "-m", default=MeteringMode.MATRIX.value,
                       choices=[m.value for m in MeteringMode], help="Metering mode")
    meter.add_argument("--spot", type=_spot_point, default=(0.5, 0.5), help="Spot point X,Y in [0,1]")
    group = meter.add_mutually_exclusive_group()
    group.add_argument("--suggest-iso", type=float, default=None, help="ISO for equivalent exposures")
    group.add_argument("--film", default=None, help="Film preset name for equivalent exposures")
    meter.add_argument("--calibrate", action="store_true", help="Treat the image as a grey card and store K")
    meter.add_argument("--heatmap", action="store_true", help="Print the 5x5 zone grid")

    calibration = sub.add_parser("calibration", help="Inspect or reset the grey-card constant",
                                 parents=[common])
    calibration.add_argument("action", choices=["show", "reset"])

    aperture = sub.add_parser("aperture", help="Inspect, set or clear the aperture override",
                              parents=[common])
    aperture.add_argument("action", choices=["show", "set", "clear"])
    aperture.add_argument("value", nargs="?", type=float, help="f-number for 'set'")

    sub.add_parser("presets", help="List apertures, shutter speeds, ISOs and film presets", parents=[common])
    return parser


def print_reading(reading: MeterReading) -> None:
    s = reading.sample
    e = reading.exposure
    print(f"Exposure:  {e.duration_seconds:.6g}s  ISO {e.iso:g}  ƒ{e.aperture:.2f}")
    print(f"Luma:      avg {s.average:.3f}  matrix {s.matrix_median:.3f}  "
          f"center {s.center_weighted:.3f}  spot {s.spot:.3f}")
    print(f"Base EV100:  {reading.base_ev100:.2f}")
    tag = "grey-card calibrated" if reading.calibrated else "relative"
    print(f"Scene EV100: {reading.scene_ev100:.2f}  ({reading.mode.value}, {tag})")

    if reading.heatmap is not None:
        print("\nZone grid:")
        for row in reading.heatmap:
            print("  " + " ".join(f"{v:.2f}" for v in row))


def _meter(args, session: MeterSession) -> int:
    film = None
    if args.film:
        film = find_film(args.film)
        if film is None:
            print(f"Error: unknown film preset {args.film!r}")
            return 1

    try:
        frame = LumaFrame.load(args.image)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1

    session.set_mode(args.mode)
    session.set_spot_point(*args.spot)
    session.heatmap_enabled = args.heatmap
    session.update_exposure(parse_shutter(args.shutter), args.iso, args.aperture)

    if args.calibrate:
        # Calibrate against the camera EV, then re-meter with the new constant
        session.reset_calibration()
        session.submit_frame(frame)
        k = session.calibrate()
        print(f"Grey-card calibration stored: K = {k:.4f}")

    reading = session.submit_frame(frame)
    print_reading(reading)

    iso = args.suggest_iso if args.suggest_iso is not None else args.iso
    if film is not None:
        iso = film.iso
        print(f"\nFilm: {film.name}")

    suggestions = session.suggestions(iso)
    print(f"\nEquivalent exposures at ISO {iso:g}:")
    match = match_film(iso) if film is None else None
    if match is not None:
        print(f"  (matches film preset {match.name})")
    if not suggestions:
        print("  No usable standard combination, change ISO or meter again.")
    for sug in suggestions:
        print(f"  {sug.aperture_label:>6}  {sug.shutter_label:>7}  {sug.iso_label:>9}  {sug.delta_ev:+.2f} EV")
    return 0


def _calibration(args, session: MeterSession) -> int:
    if args.action == "reset":
        session.reset_calibration()
        print("Calibration cleared")
        return 0
    k = session.calibration.constant
    print(f"K = {k:.4f}" if k is not None else "Not calibrated (relative metering)")
    return 0


def _aperture(args, session: MeterSession) -> int:
    if args.action == "set":
        if args.value is None:
            print("Error: 'aperture set' needs a value")
            return 1
        try:
            session.set_aperture_override(args.value)
        except ValueError as exc:
            print(f"Error: {exc}")
            return 1
    elif args.action == "clear":
        session.set_aperture_override(None)

    override = session.aperture_override.aperture
    print(f"Aperture override: ƒ{override:.2f}" if override is not None
          else f"No override (default ƒ{session.default_aperture:.2f})")
    return 0


def _presets() -> int:
    print("Apertures: " + " ".join(f"ƒ{a}" for a in APERTURE_LABELS))
    print("Shutters:  " + " ".join(SHUTTER_LABELS))
    print("ISO:       " + " ".join(str(i) for i in ISOS))
    print("Films:")
    for film in FILM_PRESETS:
        print(f"  {film.name:<20} ISO {film.iso}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "presets":
        return _presets()

    session = MeterSession(store=JsonFileStore(args.store))
    if args.command == "meter":
        return _meter(args, session)
    if args.command == "calibration":
        return _calibration(args, session)
    return _aperture(args, session)


if __name__ == "__main__":
    sys.exit(main())
