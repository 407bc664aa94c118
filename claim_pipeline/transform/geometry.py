"""Route geometry: encoded polylines and great-circle distances."""

import logging
import math

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6378137  # WGS84 equatorial radius in meters

Checkpoint = tuple[float, float]  # (lat, lon)


def decode_polyline(encoded: str, precision: int = 5) -> list[Checkpoint]:
    """
    Decode an encoded polyline string into (lat, lon) checkpoints.

    Each coordinate is stored as a zigzag-encoded delta from the previous one,
    split into 5-bit chunks offset by 63.
    """
    if not encoded:
        return []

    factor = 10**precision
    checkpoints: list[Checkpoint] = []
    index = 0
    lat = 0
    lon = 0

    while index < len(encoded):
        deltas = []
        for _ in range(2):
            shift = 0
            result = 0
            while True:
                if index >= len(encoded):
                    raise ValueError(f"Truncated polyline at offset {index}")
                byte = ord(encoded[index]) - 63
                index += 1
                result |= (byte & 0x1F) << shift
                shift += 5
                if byte < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)

        lat += deltas[0]
        lon += deltas[1]
        checkpoints.append((lat / factor, lon / factor))

    return checkpoints


def encode_polyline(checkpoints: list[Checkpoint], precision: int = 5) -> str:
    """Encode (lat, lon) checkpoints as a polyline string."""
    factor = 10**precision
    chunks: list[str] = []
    prev_lat = 0
    prev_lon = 0

    for lat, lon in checkpoints:
        lat_i = round(lat * factor)
        lon_i = round(lon * factor)
        for delta in (lat_i - prev_lat, lon_i - prev_lon):
            value = ~(delta << 1) if delta < 0 else delta << 1
            while value >= 0x20:
                chunks.append(chr((0x20 | (value & 0x1F)) + 63))
                value >>= 5
            chunks.append(chr(value + 63))
        prev_lat = lat_i
        prev_lon = lon_i

    return "".join(chunks)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate haversine distance between two points in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def is_within_radius(
    lat: float, lon: float, center_lat: float, center_lon: float, radius: float
) -> bool:
    """True when a point lies within `radius` meters of a center."""
    return haversine_distance(lat, lon, center_lat, center_lon) <= radius
