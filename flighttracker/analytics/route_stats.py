"""
Route duration statistics using NumPy.

A flight's duration is (arrival - departure), preferring actual times and
falling back to scheduled ones. Records where either end is unknown are
left out. The average duration per route is what the history view shows;
the spread (std/min/max) helps spot outliers such as diversions.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from flighttracker.records import FlightRecord

logger = logging.getLogger(__name__)


@dataclass
class RouteStats:
    """
    Duration statistics for one (departure, arrival) pair, in minutes.
    """
    departure_airport: str
    arrival_airport: str
    count: int
    mean: float
    std: float
    min_val: float
    max_val: float

    @property
    def average_minutes(self) -> int:
        return int(round(self.mean))

    def to_dict(self) -> dict:
        return {
            'departure': self.departure_airport,
            'arrival': self.arrival_airport,
            'count': self.count,
            'average_minutes': self.average_minutes,
            'std_minutes': round(self.std, 1),
            'min_minutes': round(self.min_val, 1),
            'max_minutes': round(self.max_val, 1),
        }


def route_durations(records: Iterable[FlightRecord]) -> np.ndarray:
    """Durations in minutes for every record with a derivable start and end."""
    durations = [r.duration_minutes for r in records]
    return np.array([d for d in durations if d is not None], dtype=float)


def compute_route_stats(
    departure_airport: str,
    arrival_airport: str,
    records: Iterable[FlightRecord],
) -> Optional[RouteStats]:
    """
    Compute duration statistics for a route.

    Returns None when no record has a known duration.
    """
    durations = route_durations(records)
    if durations.size == 0:
        return None

    stats = RouteStats(
        departure_airport=departure_airport,
        arrival_airport=arrival_airport,
        count=int(durations.size),
        mean=float(np.mean(durations)),
        std=float(np.std(durations)),
        min_val=float(np.min(durations)),
        max_val=float(np.max(durations)),
    )
    logger.debug(
        f'Route {departure_airport}->{arrival_airport}: '
        f'{stats.count} flights, mean {stats.mean:.1f} min'
    )
    return stats
