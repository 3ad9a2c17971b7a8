"""Input validation and unit conversion helpers for the MCP tools."""
import math
import logging
from typing import Union

logger = logging.getLogger("ParanoidAbleton")

# 0 dB sits at 0.85 on Live's normalized fader
VOLUME_UNITY: float = 0.85
VOLUME_FLOOR_DB: float = -70.0
VOLUME_CEILING_DB: float = 6.0

MIN_TEMPO: float = 20.0
MAX_TEMPO: float = 999.0


def _validate_index(value: int, name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an integer.")
    if value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value}.")


def _validate_range(value: float, name: str, min_val: float, max_val: float) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValueError(f"{name} must be a number.")
    if value < min_val or value > max_val:
        raise ValueError(f"{name} must be between {min_val} and {max_val}, got {value}.")


# ---------------------------------------------------------------------------
# Volume (dB <-> normalized 0.0-1.0)
# ---------------------------------------------------------------------------

def db_to_normalized(db: float) -> float:
    """-70 dB or below -> 0.0, 0 dB -> 0.85, +6 dB -> 1.0."""
    if db <= VOLUME_FLOOR_DB:
        return 0.0
    if db <= 0:
        return min(1.0, max(0.0, VOLUME_UNITY * math.pow(10, db / 20)))
    # 0 to +6 dB is linear between unity and full scale
    return min(1.0, max(0.0, VOLUME_UNITY + (db / VOLUME_CEILING_DB) * (1.0 - VOLUME_UNITY)))


def normalized_to_db(value: float) -> float:
    if value < 1e-7:
        return -math.inf
    if value <= VOLUME_UNITY:
        return 20 * math.log10(value / VOLUME_UNITY)
    return min(VOLUME_CEILING_DB, ((value - VOLUME_UNITY) / (1.0 - VOLUME_UNITY)) * VOLUME_CEILING_DB)


def parse_volume_input(volume: Union[str, float]) -> float:
    """Accepts "0db", "-6dB", "-inf" or a normalized 0.0-1.0 number."""
    if isinstance(volume, str):
        lower = volume.strip().lower()
        if lower in ("-inf", "-infinity"):
            return 0.0
        if lower.endswith("db"):
            try:
                db = float(lower[:-2])
            except ValueError:
                raise ValueError(f'Cannot parse dB value from "{volume}".') from None
            return db_to_normalized(db)
        try:
            number = float(lower)
        except ValueError:
            raise ValueError(f'Cannot parse volume from "{volume}".') from None
        _validate_range(number, "volume", 0.0, 1.0)
        return number
    if isinstance(volume, (int, float)) and not isinstance(volume, bool):
        _validate_range(volume, "volume", 0.0, 1.0)
        return float(volume)
    raise ValueError(f"volume must be a number or a dB string, got {type(volume).__name__}.")


def format_db(db: float):
    """JSON has no -Infinity; silence is reported as the string "-inf"."""
    return "-inf" if math.isinf(db) else round(db, 2)


# ---------------------------------------------------------------------------
# Pan (MIDI 0-127 <-> float -1.0..1.0)
# ---------------------------------------------------------------------------

def midi_pan_to_float(midi_value: float) -> float:
    """0 = hard left, 64 = center, 127 = hard right."""
    clamped = min(127, max(0, round(midi_value)))
    return (clamped - 64) / 64


def float_pan_to_midi(float_value: float) -> int:
    return min(127, max(0, round(float_value * 64 + 64)))


def parse_pan_input(pan: Union[str, int]) -> float:
    if isinstance(pan, str):
        try:
            pan = int(pan.strip(), 10)
        except ValueError:
            raise ValueError(f'pan must be an integer 0-127, got "{pan}".') from None
    if not isinstance(pan, int) or isinstance(pan, bool):
        raise ValueError(f"pan must be an integer 0-127, got {pan!r}.")
    _validate_range(pan, "pan", 0, 127)
    return midi_pan_to_float(pan)


# ---------------------------------------------------------------------------
# Tempo
# ---------------------------------------------------------------------------

def parse_tempo_input(tempo: Union[str, float], current_tempo: float) -> float:
    """Absolute BPM, relative change ("+5", "-10") or "double" / "half"."""
    if isinstance(tempo, bool):
        raise ValueError("tempo must be a number or a string.")
    if isinstance(tempo, (int, float)):
        result = float(tempo)
    elif isinstance(tempo, str):
        lower = tempo.strip().lower()
        try:
            if lower == "double":
                result = current_tempo * 2
            elif lower == "half":
                result = current_tempo / 2
            elif lower.startswith(("+", "-")):
                result = current_tempo + float(lower)
            else:
                result = float(lower)
        except ValueError:
            raise ValueError(f'Cannot parse tempo from "{tempo}".') from None
    else:
        raise ValueError(f"tempo must be a number or a string, got {type(tempo).__name__}.")

    if math.isnan(result) or result < MIN_TEMPO or result > MAX_TEMPO:
        raise ValueError(f"Tempo must be {MIN_TEMPO:g}-{MAX_TEMPO:g} BPM, got {result:g}.")
    return result


# ---------------------------------------------------------------------------
# MIDI notes
# ---------------------------------------------------------------------------

DEFAULT_NOTE_VELOCITY: int = 100


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_notes(notes: list) -> None:
    """Each note needs pitch, start_time and duration; velocity and mute are optional."""
    if not isinstance(notes, list) or len(notes) == 0:
        raise ValueError("notes must be a non-empty list.")
    required_keys = {"pitch", "start_time", "duration"}
    for i, note in enumerate(notes):
        if not isinstance(note, dict):
            raise ValueError(f"Each note must be a dictionary (note at index {i} is not).")
        missing = required_keys - note.keys()
        if missing:
            raise ValueError(f"Note at index {i} is missing required keys: {', '.join(sorted(missing))}.")
        pitch = note["pitch"]
        if not isinstance(pitch, int) or isinstance(pitch, bool) or pitch < 0 or pitch > 127:
            raise ValueError(f"Note at index {i}: pitch must be an integer between 0 and 127, got {pitch}.")
        start_time = note["start_time"]
        if not _is_number(start_time) or start_time < 0:
            raise ValueError(f"Note at index {i}: start_time must be a non-negative number, got {start_time}.")
        duration = note["duration"]
        if not _is_number(duration) or duration <= 0:
            raise ValueError(f"Note at index {i}: duration must be a positive number, got {duration}.")
        velocity = note.get("velocity", DEFAULT_NOTE_VELOCITY)
        if not isinstance(velocity, int) or isinstance(velocity, bool) or velocity < 1 or velocity > 127:
            raise ValueError(f"Note at index {i}: velocity must be an integer between 1 and 127, got {velocity}.")
