from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from devkit.timezone import JST_ZONE
from tabibito.errors import ValidationError
from tabibito.models import LocationPoint, Region, TravelStyle
from tabibito.storage.kv import InMemoryKeyValueStore
from tabibito.storage.repository import LocalRepository
from tabibito.tracks import (
    TrackRecorder,
    elevation_gain_m,
    format_distance_km,
    format_elapsed,
    haversine_distance_km,
    summarize_track,
    track_duration_minutes,
)

SAPPORO = LocationPoint(latitude=43.0621, longitude=141.3544, timestamp=1_700_000_000_000, altitude=20.0)
OTARU = LocationPoint(latitude=43.1907, longitude=140.9947, timestamp=1_700_003_600_000, altitude=5.0)
ASAHIKAWA = LocationPoint(latitude=43.7706, longitude=142.3650, timestamp=1_700_010_800_000, altitude=115.0)


def test_haversine_distance_is_zero_for_same_point() -> None:
    assert haversine_distance_km(SAPPORO, SAPPORO) == 0.0


def test_haversine_distance_sapporo_to_otaru() -> None:
    distance = haversine_distance_km(SAPPORO, OTARU)
    assert 30 < distance < 35


def test_summary_is_computed_over_all_points() -> None:
    summary = summarize_track([SAPPORO, OTARU, ASAHIKAWA])

    assert summary.point_count == 3
    assert summary.distance_km > haversine_distance_km(SAPPORO, ASAHIKAWA)
    assert summary.duration_minutes == 180
    assert summary.elevation_gain_m == 110.0


def test_summary_of_short_tracks() -> None:
    assert track_duration_minutes([SAPPORO]) == 0.0
    assert summarize_track([]).distance_km == 0
    assert elevation_gain_m([SAPPORO.model_copy(update={"altitude": None}), OTARU]) == 0.0


def test_formatting_helpers() -> None:
    assert format_elapsed(3661) == "01:01:01"
    assert format_elapsed(0) == "00:00:00"
    assert format_distance_km(12.345) == "12.3 km"


class StepClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 7, 1, 9, 0, tzinfo=JST_ZONE)

    def __call__(self) -> datetime:
        return self.now


@pytest.mark.asyncio
async def test_recorder_saves_track_with_metadata() -> None:
    clock = StepClock()
    repository = LocalRepository(InMemoryKeyValueStore())
    recorder = TrackRecorder(repository, clock=clock)

    recorder.start()
    recorder.add_point(SAPPORO)
    recorder.add_point(OTARU)
    clock.now += timedelta(minutes=75)
    assert recorder.elapsed_seconds() == 4500

    track_id, track = await recorder.stop("小樽ドライブ", travel_style=TravelStyle.CAR, region=Region.DOOU)

    assert recorder.is_recording is False
    saved = await repository.get_saved_tracks()
    assert track_id in saved
    assert saved[track_id].metadata.name == "小樽ドライブ"
    assert saved[track_id].metadata.distance == track.metadata.distance
    assert len(saved[track_id].points) == 2


@pytest.mark.asyncio
async def test_recorder_requires_start() -> None:
    recorder = TrackRecorder(LocalRepository(InMemoryKeyValueStore()))
    with pytest.raises(ValidationError):
        recorder.add_point(SAPPORO)
    with pytest.raises(ValidationError):
        await recorder.stop("empty")

    recorder.start()
    with pytest.raises(ValidationError):
        recorder.start()
