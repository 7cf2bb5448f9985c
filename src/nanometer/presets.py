"""
Standard exposure tables and film presets.

Full-stop apertures, shutter speeds from 1/8000 s to 30 s, and the ISO
steps offered when suggesting equivalent exposures.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

APERTURE_LABELS: List[str] = ["1.4", "2", "2.8", "4", "5.6", "8", "11", "16", "22"]

SHUTTER_LABELS: List[str] = [
    "1/8000", "1/4000", "1/2000", "1/1000", "1/500", "1/250", "1/125", "1/60", "1/30",
    "1/15", "1/8", "1/4", "1/2", "1", "2", "4", "8", "15", "30",
]

ISO_LABELS: List[str] = ["25", "50", "100", "200", "400", "800", "1600", "3200"]

DEFAULT_APERTURE_VALUE = 8.0
DEFAULT_SHUTTER_SECONDS = 1.0


def parse_shutter(label: str) -> float:
    """'1/125' -> 0.008, '2' -> 2.0. Unparseable labels read as one second."""
    label = label.strip()
    if "/" in label:
        parts = label.split("/")
        if len(parts) == 2:
            try:
                num, denom = float(parts[0]), float(parts[1])
            except ValueError:
                return DEFAULT_SHUTTER_SECONDS
            if num > 0 and denom > 0:
                return num / denom
        return DEFAULT_SHUTTER_SECONDS
    try:
        seconds = float(label)
    except ValueError:
        return DEFAULT_SHUTTER_SECONDS
    return seconds if seconds > 0 else DEFAULT_SHUTTER_SECONDS


def parse_aperture(label: str) -> float:
    """'2.8' -> 2.8, also accepts 'f/2.8' and 'ƒ2.8'. Falls back to f/8."""
    text = label.strip().lower()
    for prefix in ("f/", "ƒ", "f"):
        if text.startswith(prefix):
            text = text[len(prefix):]
            break
    try:
        value = float(text)
    except ValueError:
        return DEFAULT_APERTURE_VALUE
    return value if value > 0 else DEFAULT_APERTURE_VALUE


APERTURES: List[float] = [parse_aperture(a) for a in APERTURE_LABELS]
SHUTTERS: List[Tuple[str, float]] = [(s, parse_shutter(s)) for s in SHUTTER_LABELS]
ISOS: List[int] = [int(i) for i in ISO_LABELS]


@dataclass(frozen=True)
class FilmPreset:
    name: str
    iso: int


FILM_PRESETS: List[FilmPreset] = [
    FilmPreset("Kodak Portra 400", 400),
    FilmPreset("Kodak Gold 200", 200),
    FilmPreset("ILFORD HP5+", 400),
    FilmPreset("ILFORD Delta 100", 100),
    FilmPreset("Manual ISO", 100),
]


def match_film(iso: float) -> Optional[FilmPreset]:
    """First preset shot at `iso`, if any."""
    for film in FILM_PRESETS:
        if film.iso == iso:
            return film
    return None


def find_film(name: str) -> Optional[FilmPreset]:
    """Case-insensitive lookup by preset name."""
    wanted = name.strip().lower()
    for film in FILM_PRESETS:
        if film.name.lower() == wanted:
            return film
    return None
