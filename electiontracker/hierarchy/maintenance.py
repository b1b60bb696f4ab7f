# electiontracker/hierarchy/maintenance.py

import logging

from sqlalchemy.exc import IntegrityError

from electiontracker.audit.audit_logger import LOCATION_DELETED
from electiontracker.database.models import (
    UNION_TYPES, Candidate, CenterSubmission, Constituency, District, Division, Union, Upazila,
    User, VoteCenter, VoteEntry,
)
from electiontracker.errors import NotFoundError, ReferentialIntegrityError, SubmissionValidationError
from electiontracker.hierarchy.levels import LocationLevel
from electiontracker.hierarchy.locations import MODELS
from electiontracker.security.input_validator import InputValidator

logger = logging.getLogger(__name__)

# Rows that keep a node alive. Nothing cascades: the caller must remove these first.
DEPENDANTS = {
    LocationLevel.DIVISION: (
        ('districts', District.division_id),
        ('candidates', Candidate.division_id),
    ),
    LocationLevel.DISTRICT: (
        ('constituencies', Constituency.district_id),
        ('upazilas', Upazila.district_id),
        ('candidates', Candidate.district_id),
    ),
    LocationLevel.CONSTITUENCY: (
        ('upazilas', Upazila.constituency_id),
        ('candidates', Candidate.constituency_id),
    ),
    LocationLevel.UPAZILA: (
        ('unions', Union.upazila_id),
        ('candidates', Candidate.upazila_id),
    ),
    LocationLevel.UNION: (
        ('centers', VoteCenter.union_id),
        ('candidates', Candidate.union_id),
    ),
    LocationLevel.CENTER: (
        ('vote entries', VoteEntry.center_id),
        ('submissions', CenterSubmission.center_id),
    ),
}


def constituency_name(seat_number):
    """Name for a seat number: "Pabna-1" -> "Pabna Parliamentary Constituency 1"."""
    seat_number = seat_number.strip()
    parts = seat_number.split('-')
    if len(parts) >= 2:
        return f"{parts[0]} Parliamentary Constituency {parts[1]}"
    return seat_number


class LocationEditor:
    def __init__(self, session, audit_logger=None, validator=None):
        self.session = session
        self.audit_logger = audit_logger
        self.validator = validator or InputValidator()

    def _require(self, model, node_id, label):
        node = self.session.get(model, node_id) if node_id is not None else None
        if node is None:
            raise NotFoundError(f"{label} {node_id} not found")
        return node

    def _save(self, node, what):
        self.session.add(node)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ReferentialIntegrityError(f"A {what} with that name already exists here.")
        logger.info("Saved %s %s (%s)", what, node.id, node.name)
        return node

    def create_division(self, name):
        return self._save(Division(name=self.validator.sanitize_name(name)), 'division')

    def create_district(self, division_id, name):
        self._require(Division, division_id, 'Division')
        return self._save(District(name=self.validator.sanitize_name(name), division_id=division_id),
                          'district')

    def create_constituency(self, district_id, seat_number, name=None):
        self._require(District, district_id, 'District')
        seat_number = self.validator.optional_text(seat_number, field='Seat number', max_length=50)
        if seat_number is None:
            raise SubmissionValidationError("Seat Number is required")
        name = self.validator.sanitize_name(name) if name else constituency_name(seat_number)
        return self._save(
            Constituency(name=name, seat_number=seat_number, district_id=district_id), 'constituency'
        )

    def create_upazila(self, district_id, name, constituency_id=None):
        self._require(District, district_id, 'District')
        if constituency_id is not None:
            constituency = self._require(Constituency, constituency_id, 'Constituency')
            if constituency.district_id != district_id:
                raise SubmissionValidationError("Constituency belongs to a different district")
        return self._save(
            Upazila(name=self.validator.sanitize_name(name), district_id=district_id,
                    constituency_id=constituency_id),
            'upazila',
        )

    def create_union(self, upazila_id, name, union_type='UNION'):
        self._require(Upazila, upazila_id, 'Upazila')
        union_type = (union_type or 'UNION').upper()
        if union_type not in UNION_TYPES:
            raise SubmissionValidationError(f"Union type must be one of {', '.join(UNION_TYPES)}")
        return self._save(
            Union(name=self.validator.sanitize_name(name), upazila_id=upazila_id, union_type=union_type),
            'union',
        )

    def create_center(self, union_id, name, assigned_to_user_id=None):
        self._require(Union, union_id, 'Union')
        if assigned_to_user_id is not None:
            self._require(User, assigned_to_user_id, 'User')
        return self._save(
            VoteCenter(name=self.validator.sanitize_name(name), union_id=union_id,
                       assigned_to_user_id=assigned_to_user_id),
            'center',
        )

    def rename(self, level, node_id, name):
        level = LocationLevel.parse(level)
        model = MODELS.get(level)
        if model is None:
            raise SubmissionValidationError(f"Unknown location type: {level}")
        node = self._require(model, node_id, level.label)
        node.name = self.validator.sanitize_name(name, max_length=model.__table__.c.name.type.length)
        return self._save(node, level.value)

    def assign_center(self, center_id, user_id):
        """Point a center at a sub-user (or nobody). Past submissions are untouched."""
        center = self._require(VoteCenter, center_id, 'Vote center')
        if user_id is not None:
            self._require(User, user_id, 'User')
        center.assigned_to_user_id = user_id
        self.session.commit()
        logger.info("Center %s assigned to user %s", center_id, user_id)
        return center

    def dependants(self, level, node_id):
        """Counts of rows still referencing the node, by kind; empty when it is free to delete."""
        found = {}
        for label, column in DEPENDANTS[level]:
            count = self.session.query(column).filter(column == node_id).count()
            if count:
                found[label] = count
        return found

    def delete(self, level, node_id, actor_id=None):
        level = LocationLevel.parse(level)
        model = MODELS.get(level)
        if model is None:
            raise SubmissionValidationError(f"Unknown location type: {level}")
        node = self._require(model, node_id, level.label)

        blocking = self.dependants(level, node_id)
        if blocking:
            detail = ', '.join(f"{count} {label}" for label, count in blocking.items())
            logger.warning("Refused to delete %s %s: %s", level.value, node_id, detail)
            raise ReferentialIntegrityError(
                f"Cannot delete: this {level.value} still has related data ({detail})."
            )

        name = node.name
        self.session.delete(node)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ReferentialIntegrityError(
                f"Cannot delete: this {level.value} still has related data."
            )
        logger.info("Deleted %s %s (%s)", level.value, node_id, name)
        if self.audit_logger is not None:
            self.audit_logger.record(LOCATION_DELETED, {"type": level.value, "id": node_id, "name": name},
                                     actor_id=actor_id)
