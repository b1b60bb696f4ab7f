# electiontracker/hierarchy/scope.py

from dataclasses import dataclass
from typing import Optional

from electiontracker.hierarchy.levels import CenterPath, LocationLevel

# A candidate is national or bound to exactly one of these levels.
# Constituencies are deliberately absent: they only matter for seat counting.
CANDIDATE_SCOPE_LEVELS = (
    LocationLevel.NATIONAL,
    LocationLevel.DIVISION,
    LocationLevel.DISTRICT,
    LocationLevel.UPAZILA,
    LocationLevel.UNION,
)


@dataclass(frozen=True)
class Scope:
    """Set of centers at which a candidate may receive votes."""

    level: LocationLevel = LocationLevel.NATIONAL
    location_id: Optional[int] = None

    def __post_init__(self):
        if self.level not in CANDIDATE_SCOPE_LEVELS:
            raise ValueError(f"Candidates cannot be scoped to a {self.level.value}")
        if self.level is LocationLevel.NATIONAL and self.location_id is not None:
            raise ValueError("A national scope takes no location id")
        if self.level is not LocationLevel.NATIONAL and self.location_id is None:
            raise ValueError(f"A {self.level.value} scope needs a location id")

    @classmethod
    def national(cls):
        return cls()

    @classmethod
    def division(cls, division_id):
        return cls(LocationLevel.DIVISION, division_id)

    @classmethod
    def district(cls, district_id):
        return cls(LocationLevel.DISTRICT, district_id)

    @classmethod
    def upazila(cls, upazila_id):
        return cls(LocationLevel.UPAZILA, upazila_id)

    @classmethod
    def union(cls, union_id):
        return cls(LocationLevel.UNION, union_id)

    @property
    def is_national(self) -> bool:
        return self.level is LocationLevel.NATIONAL

    def covers(self, path: CenterPath) -> bool:
        if self.is_national:
            return True
        return path.id_at(self.level) == self.location_id

    def describe(self) -> str:
        if self.is_national:
            return "National"
        return f"{self.level.label} #{self.location_id}"
