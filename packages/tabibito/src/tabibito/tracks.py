from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from devkit.timezone import from_epoch_millis, now_jst
from tabibito.errors import ValidationError
from tabibito.ids import new_id
from tabibito.models import LocationPoint, Region, SavedTrack, TrackMetadata, TravelStyle
from tabibito.storage.repository import LocalRepository

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6_371.0


@dataclass(frozen=True)
class TrackSummary:
    distance_km: float
    duration_minutes: float
    elevation_gain_m: float
    point_count: int


def haversine_distance_km(start: LocationPoint, end: LocationPoint) -> float:
    start_lat = math.radians(start.latitude)
    end_lat = math.radians(end.latitude)
    delta_lat = math.radians(end.latitude - start.latitude)
    delta_lng = math.radians(end.longitude - start.longitude)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(start_lat) * math.cos(end_lat) * math.sin(delta_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def track_distance_km(points: Sequence[LocationPoint]) -> float:
    return sum(haversine_distance_km(a, b) for a, b in zip(points, points[1:]))


def track_duration_minutes(points: Sequence[LocationPoint]) -> float:
    """Point timestamps are epoch milliseconds."""
    if len(points) < 2:
        return 0.0
    return max(points[-1].timestamp - points[0].timestamp, 0.0) / 60_000


def elevation_gain_m(points: Sequence[LocationPoint]) -> float:
    altitudes = [point.altitude for point in points if point.altitude is not None]
    return sum(max(b - a, 0.0) for a, b in zip(altitudes, altitudes[1:]))


def summarize_track(points: Sequence[LocationPoint]) -> TrackSummary:
    return TrackSummary(
        distance_km=track_distance_km(points),
        duration_minutes=track_duration_minutes(points),
        elevation_gain_m=elevation_gain_m(points),
        point_count=len(points),
    )


def format_elapsed(seconds: int) -> str:
    hours, remainder = divmod(max(int(seconds), 0), 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_distance_km(distance_km: float) -> str:
    return f"{distance_km:.1f} km"


class TrackRecorder:
    """Collects GPS points for one recording and saves the result as a track."""

    def __init__(
        self,
        repository: LocalRepository,
        *,
        clock: Callable[[], datetime] = now_jst,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._points: list[LocationPoint] = []
        self._started_at: datetime | None = None

    @property
    def is_recording(self) -> bool:
        return self._started_at is not None

    @property
    def points(self) -> list[LocationPoint]:
        return list(self._points)

    def start(self) -> None:
        if self.is_recording:
            raise ValidationError("track recording already started", field="recording")
        self._points = []
        self._started_at = self._clock()
        logger.info("track_recording_started", extra={"component": "tabibito"})

    def add_point(self, point: LocationPoint) -> None:
        if not self.is_recording:
            raise ValidationError("track recording has not started", field="recording")
        self._points.append(point)

    def elapsed_seconds(self) -> int:
        if self._started_at is None:
            return 0
        return int((self._clock() - self._started_at).total_seconds())

    async def stop(
        self,
        name: str,
        *,
        travel_style: TravelStyle = TravelStyle.CAR,
        region: Region = Region.DOOU,
        track_id: str | None = None,
    ) -> tuple[str, SavedTrack]:
        if self._started_at is None:
            raise ValidationError("track recording has not started", field="recording")
        started_at = self._started_at
        ended_at = self._clock()
        points = self._points
        self._started_at = None
        self._points = []

        start_time = from_epoch_millis(points[0].timestamp).isoformat() if points else started_at.isoformat()
        end_time = from_epoch_millis(points[-1].timestamp).isoformat() if points else ended_at.isoformat()
        track = SavedTrack(
            points=points,
            metadata=TrackMetadata(
                name=name,
                start_time=start_time,
                end_time=end_time,
                distance=round(track_distance_km(points), 3),
                travel_style=travel_style,
                region=region,
            ),
        )
        track_id = track_id or new_id("track")
        await self._repository.save_track(track_id, track)
        logger.info(
            "track_recording_stopped",
            extra={"component": "tabibito", "track_id": track_id, "point_count": len(points)},
        )
        return track_id, track
