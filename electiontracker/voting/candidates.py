# electiontracker/voting/candidates.py

import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from electiontracker.audit.audit_logger import CANDIDATE_DELETED
from electiontracker.database.models import Candidate, Constituency, VoteEntry
from electiontracker.errors import NotFoundError, ReferentialIntegrityError, SubmissionValidationError
from electiontracker.hierarchy.locations import LocationDirectory
from electiontracker.hierarchy.scope import Scope
from electiontracker.security.input_validator import InputValidator

logger = logging.getLogger(__name__)

_UNSET = object()


class CandidateRegistry:
    def __init__(self, session, audit_logger=None, validator=None):
        self.session = session
        self.audit_logger = audit_logger
        self.validator = validator or InputValidator()
        self.directory = LocationDirectory(session)

    def get(self, candidate_id):
        candidate = self.session.get(Candidate, candidate_id)
        if candidate is None:
            raise NotFoundError(f"Candidate {candidate_id} not found")
        return candidate

    def search(self, query=None):
        q = self.session.query(Candidate)
        if query and query.strip():
            pattern = f"%{query.strip()}%"
            q = q.filter(or_(
                Candidate.name.ilike(pattern),
                Candidate.party.ilike(pattern),
                Candidate.symbol.ilike(pattern),
            ))
        return q.order_by(Candidate.name, Candidate.id).all()

    def create(self, name, party, scope=None, symbol=None, seat_number=None, constituency_id=None):
        candidate = Candidate()
        self._apply(candidate, name=name, party=party, scope=scope or Scope.national(),
                    symbol=symbol, seat_number=seat_number, constituency_id=constituency_id)
        self.session.add(candidate)
        self._commit("create candidate")
        logger.info("Created candidate %s (%s) scoped %s", candidate.id, candidate.party,
                    candidate.scope.describe())
        return candidate

    def update(self, candidate_id, name=_UNSET, party=_UNSET, scope=_UNSET, symbol=_UNSET,
               seat_number=_UNSET, constituency_id=_UNSET):
        candidate = self.get(candidate_id)
        self._apply(candidate, name=name, party=party, scope=scope, symbol=symbol,
                    seat_number=seat_number, constituency_id=constituency_id)
        self._commit("update candidate")
        return candidate

    def delete(self, candidate_id, actor_id=None):
        candidate = self.get(candidate_id)
        entries = self.session.query(VoteEntry.id).filter(VoteEntry.candidate_id == candidate_id).count()
        if entries:
            raise ReferentialIntegrityError(
                "Cannot delete candidate: they have vote entries associated with them."
            )
        self.session.delete(candidate)
        self._commit("delete candidate")
        logger.info("Deleted candidate %s", candidate_id)
        if self.audit_logger is not None:
            self.audit_logger.record(CANDIDATE_DELETED, {"candidate_id": candidate_id}, actor_id=actor_id)

    def _apply(self, candidate, name, party, scope, symbol, seat_number, constituency_id):
        if name is not _UNSET:
            candidate.name = self.validator.sanitize_name(name, field='Name')
        if party is not _UNSET:
            candidate.party = self.validator.sanitize_name(party, field='Party', max_length=100)
        if symbol is not _UNSET:
            candidate.symbol = self.validator.optional_text(symbol, field='Symbol', max_length=100)
        if seat_number is not _UNSET:
            candidate.seat_number = self.validator.optional_text(seat_number, field='Seat number', max_length=50)
        if scope is not _UNSET:
            if not isinstance(scope, Scope):
                raise SubmissionValidationError("Candidate scope must be a Scope")
            if not scope.is_national and self.directory.get(scope.level, scope.location_id) is None:
                raise NotFoundError(f"No {scope.level.value} with id {scope.location_id}")
            candidate.scope = scope
        if constituency_id is not _UNSET:
            if constituency_id is not None and self.session.get(Constituency, constituency_id) is None:
                raise NotFoundError(f"Constituency {constituency_id} not found")
            candidate.constituency_id = constituency_id

    def _commit(self, action):
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.warning("Integrity error during %s", action)
            raise ReferentialIntegrityError(f"Could not {action}: it conflicts with existing data.")
