"""JSON profile import/export

Format (shared with the web tool):

    {
      "device": "JM98MAX",
      "timestamp": "2024-01-01T12:00:00.000Z",
      "globalGain": 0,
      "bands": [
        {"index": 0, "freq": 40, "gain": 0, "q": 0.75, "type": "PK", "enabled": true},
        ...
      ]
    }
"""

import json
import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Tuple, Union

from .base import Band, EqState, FilterType, ProfileValidationError

logger = logging.getLogger(__name__)


def band_to_dict(band: Band) -> Dict[str, Any]:
    return {
        "index": band.index,
        "freq": band.freq,
        "gain": band.gain,
        "q": band.q,
        "type": band.type.value,
        "enabled": band.enabled,
    }


def band_from_dict(data: Dict[str, Any], position: int) -> Band:
    """Build a Band from its profile dict

    Raises:
        ProfileValidationError: If a field is missing or has the wrong type
    """
    if not isinstance(data, dict):
        raise ProfileValidationError(f"Band {position} is not an object")
    try:
        filter_type = FilterType(data.get("type", FilterType.PEAK.value))
    except ValueError:
        raise ProfileValidationError(
            f"Band {position}: unknown filter type {data.get('type')!r}"
        ) from None

    enabled = data.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ProfileValidationError(f"Band {position}: enabled must be true or false, got {enabled!r}")

    try:
        return Band(
            index=int(data.get("index", position)),
            freq=int(round(float(data["freq"]))),
            gain=float(data["gain"]),
            q=float(data["q"]),
            type=filter_type,
            enabled=enabled,
        )
    except KeyError as e:
        raise ProfileValidationError(f"Band {position}: missing field {e.args[0]!r}") from None
    except (TypeError, ValueError, OverflowError) as e:
        raise ProfileValidationError(f"Band {position}: {e}") from None


def export_profile(eq_state: EqState, global_gain: int, device: str) -> Dict[str, Any]:
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return {
        "device": device,
        "timestamp": timestamp,
        "globalGain": global_gain,
        "bands": [band_to_dict(b) for b in eq_state],
    }


def profile_to_json(eq_state: EqState, global_gain: int, device: str) -> str:
    return json.dumps(export_profile(eq_state, global_gain, device), indent=2)


def load_profile(text: str) -> Tuple[EqState, int]:
    """Parse profile JSON into (EqState, global gain)

    Raises:
        ProfileValidationError: On invalid JSON, missing bands or a wrong band count
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProfileValidationError(f"JSON error: {e}") from None

    if not isinstance(data, dict) or "bands" not in data:
        raise ProfileValidationError("Profile has no 'bands' list")
    bands = data["bands"]
    if not isinstance(bands, list):
        raise ProfileValidationError("Profile 'bands' must be a list")

    state = EqState([band_from_dict(b, i) for i, b in enumerate(bands)])

    global_gain = data.get("globalGain") or 0
    if (isinstance(global_gain, bool) or not isinstance(global_gain, (int, float))
            or not math.isfinite(global_gain)):
        raise ProfileValidationError(f"globalGain must be a number, got {global_gain!r}")

    return state, int(round(global_gain))


def read_profile(path: Union[str, Path]) -> Tuple[EqState, int]:
    text = Path(path).read_text(encoding="utf-8")
    state, gain = load_profile(text)
    logger.info("Profile imported from %s", path)
    return state, gain


def write_profile(path: Union[str, Path], eq_state: EqState, global_gain: int, device: str) -> None:
    Path(path).write_text(profile_to_json(eq_state, global_gain, device), encoding="utf-8")
    logger.info("Profile exported to %s", path)
