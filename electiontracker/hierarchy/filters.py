# electiontracker/hierarchy/filters.py

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import false, select, true

from electiontracker.database.models import Constituency, District, Union, Upazila, VoteCenter
from electiontracker.hierarchy.levels import LocationLevel

# Query-string keys, most specific first. The first one present wins.
PARAM_PRECEDENCE = (
    ('centerId', LocationLevel.CENTER),
    ('unionId', LocationLevel.UNION),
    ('upazilaId', LocationLevel.UPAZILA),
    ('constituencyId', LocationLevel.CONSTITUENCY),
    ('districtId', LocationLevel.DISTRICT),
    ('divisionId', LocationLevel.DIVISION),
)


def _parse_id(raw):
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class LocationFilter:
    """Path constraint through the hierarchy selecting a set of vote centers.

    `location_id` of None on a non-national level matches nothing; that is how
    unparseable identifiers degrade to an empty scope.
    """

    level: LocationLevel = LocationLevel.NATIONAL
    location_id: Optional[int] = None

    @classmethod
    def national(cls):
        return cls()

    @classmethod
    def for_level(cls, level, location_id):
        level = LocationLevel.parse(level)
        if level is None or level is LocationLevel.NATIONAL:
            return cls.national()
        return cls(level, _parse_id(location_id))

    @classmethod
    def from_params(cls, params):
        for key, level in PARAM_PRECEDENCE:
            raw = params.get(key)
            if raw not in (None, ''):
                return cls(level, _parse_id(raw))
        return cls.national()

    @property
    def is_national(self):
        return self.level is LocationLevel.NATIONAL

    @property
    def label(self):
        return self.level.label

    def center_ids(self):
        """SELECT of reachable center ids, or None when the whole nation is in scope."""
        if self.is_national:
            return None
        if self.location_id is None:
            return select(VoteCenter.id).where(false())

        level, node_id = self.level, self.location_id
        if level is LocationLevel.CENTER:
            return select(VoteCenter.id).where(VoteCenter.id == node_id)
        if level is LocationLevel.UNION:
            return select(VoteCenter.id).where(VoteCenter.union_id == node_id)

        query = select(VoteCenter.id).join(Union, VoteCenter.union_id == Union.id)
        if level is LocationLevel.UPAZILA:
            return query.where(Union.upazila_id == node_id)

        query = query.join(Upazila, Union.upazila_id == Upazila.id)
        if level is LocationLevel.CONSTITUENCY:
            return query.where(Upazila.constituency_id == node_id)
        if level is LocationLevel.DISTRICT:
            return query.where(Upazila.district_id == node_id)

        query = query.join(District, Upazila.district_id == District.id)
        return query.where(District.division_id == node_id)

    def constituency_clause(self):
        """Predicate on Constituency selecting the seats inside this scope.

        Division and district membership is read through the same parent links
        as `center_ids`, so both views agree on what a division contains.
        """
        if self.is_national:
            return true()
        if self.location_id is None:
            return false()
        if self.level is LocationLevel.DISTRICT:
            return Constituency.district_id == self.location_id
        if self.level is LocationLevel.DIVISION:
            return Constituency.district_id.in_(
                select(District.id).where(District.division_id == self.location_id)
            )
        if self.level is LocationLevel.CONSTITUENCY:
            return Constituency.id == self.location_id
        return false()
