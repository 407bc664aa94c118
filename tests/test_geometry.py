"""Tests for polyline and distance helpers."""

import pytest

from claim_pipeline.transform.geometry import (
    decode_polyline,
    encode_polyline,
    haversine_distance,
    is_within_radius,
)


def test_decode_reference_polyline() -> None:
    """Test decoding the reference three-point polyline."""
    points = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")

    assert points == [
        pytest.approx((38.5, -120.2)),
        pytest.approx((40.7, -120.95)),
        pytest.approx((43.252, -126.453)),
    ]


def test_encode_reference_polyline() -> None:
    """Test encoding produces the reference string."""
    encoded = encode_polyline([(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)])
    assert encoded == "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


def test_decode_route_fixture_polyline() -> None:
    """Test the polyline used by the CSV fixture dataset."""
    points = decode_polyline("_n|Q_wbkRg^?g^?g^?g^?g^?g^?")

    assert len(points) == 7
    assert points[0] == pytest.approx((3.1, 101.6))
    assert points[5] == pytest.approx((3.125, 101.6))
    assert points[-1] == pytest.approx((3.13, 101.6))


def test_decode_empty() -> None:
    assert decode_polyline("") == []


def test_decode_truncated_raises() -> None:
    """Test a polyline cut mid-coordinate is rejected."""
    with pytest.raises(ValueError):
        decode_polyline("_p~iF~ps|U_")


def test_haversine_distance() -> None:
    """Test great-circle distance along a meridian."""
    # 0.002 degrees of latitude on a 6378137 m sphere
    assert haversine_distance(3.100, 101.6, 3.102, 101.6) == pytest.approx(222.64, abs=0.1)
    assert haversine_distance(3.1, 101.6, 3.1, 101.6) == 0


def test_is_within_radius() -> None:
    assert is_within_radius(3.1015, 101.6, 3.100, 101.6, 200)
    assert not is_within_radius(3.1015, 101.6, 3.100, 101.6, 100)
    assert not is_within_radius(3.103, 101.6, 3.105, 101.6, 200)
