"""Inbound telemetry parsing.

The simulator speaks socket.io over a WebSocket. Event frames look like:

    42["telemetry",{"ptsx":[...],"ptsy":[...],"x":..,"y":..,"psi":..,"speed":..}]

where "4" marks a message and "2" an event. Frames whose payload is ``null``
carry no data and are answered with a manual-mode message.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from .exceptions import InvalidInput
from .frame import Pose

TELEMETRY_EVENT = "telemetry"


@dataclass(frozen=True)
class Telemetry:
    """One telemetry record.

    Attributes:
        ptsx: World-frame waypoint x coordinates.
        ptsy: World-frame waypoint y coordinates.
        pose: Vehicle pose and speed.
        steering_angle: Normalized steering currently applied, if reported.
        throttle: Normalized throttle currently applied, if reported.
    """

    ptsx: Tuple[float, ...]
    ptsy: Tuple[float, ...]
    pose: Pose
    steering_angle: Optional[float] = None
    throttle: Optional[float] = None


def is_event_frame(message: Union[str, bytes]) -> bool:
    """Return True for socket.io event frames (prefix "42")."""
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    return len(message) > 2 and message.startswith("42")


def extract_payload(message: str) -> Optional[str]:
    """Return the JSON array text of an event frame, or None if it has no data.

    Args:
        message: Raw frame text.

    Returns:
        Substring from the first "[" to the last "}]" inclusive, or None when
        the frame contains "null" or no such array.
    """
    if "null" in message:
        return None
    start = message.find("[")
    end = message.rfind("}]")
    if start == -1 or end == -1 or end < start:
        return None
    return message[start : end + 2]


def decode_event(message: Union[str, bytes]) -> Optional[Tuple[str, Any]]:
    """Decode an event frame into (event_name, data).

    Returns:
        The event tuple, or None when the frame carries no data.

    Raises:
        InvalidInput: If the payload is not valid JSON or not an event array.
    """
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")

    payload = extract_payload(message)
    if payload is None:
        return None

    try:
        decoded = json.loads(payload)
    except json.JSONDecodeError as e:
        raise InvalidInput(f"Malformed event payload: {e}") from e

    if not isinstance(decoded, list) or not decoded or not isinstance(decoded[0], str):
        raise InvalidInput(f"Event payload is not an [name, data] array: {payload[:80]}")

    data = decoded[1] if len(decoded) > 1 else None
    return decoded[0], data


def _number(data: Dict[str, Any], key: str) -> float:
    if key not in data:
        raise InvalidInput(f"Telemetry missing field '{key}'")
    value = data[key]
    # bool is an int subclass but never a valid measurement
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"Telemetry field '{key}' is not a number: {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidInput(f"Telemetry field '{key}' is not finite: {value}")
    return value


def _optional_number(data: Dict[str, Any], key: str) -> Optional[float]:
    if data.get(key) is None:
        return None
    return _number(data, key)


def _number_list(data: Dict[str, Any], key: str) -> List[float]:
    values = data.get(key)
    if not isinstance(values, list):
        raise InvalidInput(f"Telemetry field '{key}' must be a list")
    return [_number({key: v}, key) for v in values]


def parse_telemetry(data: Any) -> Telemetry:
    """Validate a telemetry event's data object.

    Args:
        data: Decoded JSON object of a "telemetry" event.

    Returns:
        Telemetry record.

    Raises:
        InvalidInput: If fields are missing, have the wrong type, are not
            finite, or the waypoint arrays are empty or of different lengths.
    """
    if not isinstance(data, dict):
        raise InvalidInput(f"Telemetry data must be an object, got {type(data).__name__}")

    ptsx = _number_list(data, "ptsx")
    ptsy = _number_list(data, "ptsy")
    if not ptsx:
        raise InvalidInput("Telemetry has no waypoints")
    if len(ptsx) != len(ptsy):
        raise InvalidInput(f"Waypoint length mismatch: {len(ptsx)} vs {len(ptsy)}")

    pose = Pose(
        x=_number(data, "x"),
        y=_number(data, "y"),
        psi=_number(data, "psi"),
        speed=_number(data, "speed"),
    )

    return Telemetry(
        ptsx=tuple(ptsx),
        ptsy=tuple(ptsy),
        pose=pose,
        steering_angle=_optional_number(data, "steering_angle"),
        throttle=_optional_number(data, "throttle"),
    )
