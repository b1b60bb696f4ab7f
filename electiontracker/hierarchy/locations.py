# electiontracker/hierarchy/locations.py

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, literal, select

from electiontracker.database.models import (
    Constituency, District, Division, Union, Upazila, VoteCenter,
)
from electiontracker.hierarchy.levels import CenterPath, LocationLevel

logger = logging.getLogger(__name__)

MODELS = {
    LocationLevel.DIVISION: Division,
    LocationLevel.DISTRICT: District,
    LocationLevel.CONSTITUENCY: Constituency,
    LocationLevel.UPAZILA: Upazila,
    LocationLevel.UNION: Union,
    LocationLevel.CENTER: VoteCenter,
}

# level -> (column linking it to its drill-down parent, fk of its own children)
# Upazilas hang under constituencies when browsing results.
_DRILL_DOWN = {
    LocationLevel.DIVISION: (None, District.division_id),
    LocationLevel.DISTRICT: (District.division_id, Constituency.district_id),
    LocationLevel.CONSTITUENCY: (Constituency.district_id, Upazila.constituency_id),
    LocationLevel.UPAZILA: (Upazila.constituency_id, Union.upazila_id),
    LocationLevel.UNION: (Union.upazila_id, VoteCenter.union_id),
    LocationLevel.CENTER: (VoteCenter.union_id, None),
}


@dataclass(frozen=True)
class ChildLocation:
    id: int
    name: str
    sub_unit_count: int

    def to_dict(self):
        return {"id": self.id, "name": self.name, "subUnitCount": self.sub_unit_count}


class LocationDirectory:
    """Read-only access to the location tree."""

    def __init__(self, session):
        self.session = session

    def child_locations(self, level, parent_id=None) -> List[ChildLocation]:
        level = LocationLevel.parse(level)
        if level not in _DRILL_DOWN:
            return []
        parent_column, child_fk = _DRILL_DOWN[level]
        if parent_column is not None and parent_id is None:
            return []

        model = MODELS[level]
        if child_fk is not None:
            counts = (
                select(child_fk.label('parent_id'), func.count().label('children'))
                .where(child_fk.isnot(None))
                .group_by(child_fk)
                .subquery()
            )
            query = (
                self.session.query(model.id, model.name, func.coalesce(counts.c.children, 0))
                .outerjoin(counts, counts.c.parent_id == model.id)
            )
        else:
            query = self.session.query(model.id, model.name, literal(0))

        if parent_column is not None:
            query = query.filter(parent_column == parent_id)

        if level is LocationLevel.CONSTITUENCY:
            query = query.order_by(
                Constituency.seat_number.is_(None), Constituency.seat_number, Constituency.name
            )
        else:
            query = query.order_by(model.name, model.id)

        return [ChildLocation(id=row[0], name=row[1], sub_unit_count=int(row[2])) for row in query.all()]

    def get(self, level, location_id):
        model = MODELS.get(LocationLevel.parse(level))
        if model is None or location_id is None:
            return None
        return self.session.get(model, location_id)

    def resolve(self, location_filter):
        """Display (name, type) for a filter; a missing node reads "Unknown <Type>"."""
        if location_filter.is_national:
            return "National", "National"
        label = location_filter.label
        node = self.get(location_filter.level, location_filter.location_id)
        if node is None:
            logger.info("No %s with id %r", location_filter.level.value, location_filter.location_id)
            return f"Unknown {label.split()[-1]}", label
        return node.name, label

    def center_path(self, center_id) -> Optional[CenterPath]:
        row = (
            self.session.query(
                VoteCenter.id, Union.id, Upazila.id, District.id, District.division_id,
                Upazila.constituency_id,
            )
            .join(Union, VoteCenter.union_id == Union.id)
            .join(Upazila, Union.upazila_id == Upazila.id)
            .join(District, Upazila.district_id == District.id)
            .filter(VoteCenter.id == center_id)
            .first()
        )
        if row is None:
            return None
        return CenterPath(
            center_id=row[0], union_id=row[1], upazila_id=row[2],
            district_id=row[3], division_id=row[4], constituency_id=row[5],
        )

    def find_center(self, division, district, upazila, union, center):
        """Look a center up by the names along its path; names repeat across parents."""
        return (
            self.session.query(VoteCenter)
            .join(Union, VoteCenter.union_id == Union.id)
            .join(Upazila, Union.upazila_id == Upazila.id)
            .join(District, Upazila.district_id == District.id)
            .join(Division, District.division_id == Division.id)
            .filter(
                VoteCenter.name == center,
                Union.name == union,
                Upazila.name == upazila,
                District.name == district,
                Division.name == division,
            )
            .first()
        )
