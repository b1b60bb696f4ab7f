# electiontracker/hierarchy/levels.py

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LocationLevel(Enum):
    NATIONAL = "national"
    DIVISION = "division"
    DISTRICT = "district"
    CONSTITUENCY = "constituency"
    UPAZILA = "upazila"
    UNION = "union"
    CENTER = "center"

    @property
    def label(self) -> str:
        """Display name used as the `locationType` of results."""
        return _LABELS[self]

    @property
    def child(self) -> Optional["LocationLevel"]:
        """Level listed beneath this one when drilling down, None for centers."""
        return _CHILDREN.get(self)

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


_LABELS = {
    LocationLevel.NATIONAL: "National",
    LocationLevel.DIVISION: "Division",
    LocationLevel.DISTRICT: "District",
    LocationLevel.CONSTITUENCY: "Constituency",
    LocationLevel.UPAZILA: "Upazila",
    LocationLevel.UNION: "Union",
    LocationLevel.CENTER: "Vote Center",
}

_CHILDREN = {
    LocationLevel.NATIONAL: LocationLevel.DIVISION,
    LocationLevel.DIVISION: LocationLevel.DISTRICT,
    LocationLevel.DISTRICT: LocationLevel.CONSTITUENCY,
    LocationLevel.CONSTITUENCY: LocationLevel.UPAZILA,
    LocationLevel.UPAZILA: LocationLevel.UNION,
    LocationLevel.UNION: LocationLevel.CENTER,
}

# Seats are only counted for scopes large enough to span constituencies
SEAT_LEVEL_LABELS = frozenset(["National", "Division", "District"])


@dataclass(frozen=True)
class CenterPath:
    """Ancestor ids of one vote center through the primary hierarchy."""

    center_id: int
    union_id: int
    upazila_id: int
    district_id: int
    division_id: int
    constituency_id: Optional[int] = None

    def id_at(self, level: LocationLevel) -> Optional[int]:
        return {
            LocationLevel.DIVISION: self.division_id,
            LocationLevel.DISTRICT: self.district_id,
            LocationLevel.CONSTITUENCY: self.constituency_id,
            LocationLevel.UPAZILA: self.upazila_id,
            LocationLevel.UNION: self.union_id,
            LocationLevel.CENTER: self.center_id,
        }.get(level)
