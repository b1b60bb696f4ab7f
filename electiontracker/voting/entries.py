# electiontracker/voting/entries.py

import logging
from dataclasses import dataclass, field
from typing import List

from sqlalchemy.exc import IntegrityError

from electiontracker.audit.audit_logger import VOTE_SUBMISSION_DENIED, VOTES_SUBMITTED
from electiontracker.database.models import Candidate, CenterSubmission, VoteCenter, VoteEntry
from electiontracker.errors import (
    NotFoundError, ReferentialIntegrityError, SubmissionValidationError, UnauthorizedError,
)
from electiontracker.authentication.access_policy import REASON_ALREADY_SUBMITTED
from electiontracker.hierarchy.locations import LocationDirectory
from electiontracker.security.input_validator import InputValidator

logger = logging.getLogger(__name__)


@dataclass
class SubmissionReceipt:
    center_id: int
    submitted_by: int
    created: List[int] = field(default_factory=list)
    updated: List[int] = field(default_factory=list)
    total_votes: int = 0

    def to_dict(self):
        return {
            "centerId": self.center_id,
            "submittedBy": self.submitted_by,
            "created": self.created,
            "updated": self.updated,
            "totalVotes": self.total_votes,
        }


class VoteEntryStore:
    """Latest vote count per (center, candidate); writes are gated by the access policy."""

    def __init__(self, session, policy, audit_logger=None, validator=None):
        self.session = session
        self.policy = policy
        self.audit_logger = audit_logger
        self.validator = validator or InputValidator()
        self.directory = LocationDirectory(session)

    def has_submission(self, center_id):
        return self.policy.has_submission(center_id)

    def eligible_candidates(self, center_id):
        path = self.directory.center_path(center_id)
        if path is None:
            raise NotFoundError(f"Vote center {center_id} not found")
        candidates = self.session.query(Candidate).order_by(Candidate.name, Candidate.id).all()
        return [c for c in candidates if c.scope.covers(path)]

    def entries_for_center(self, actor, center_id):
        decision = self.policy.can_read(actor, center_id)
        if not decision:
            raise UnauthorizedError(decision.reason)
        if self.session.get(VoteCenter, center_id) is None:
            raise NotFoundError(f"Vote center {center_id} not found")
        return (
            self.session.query(VoteEntry)
            .filter(VoteEntry.center_id == center_id)
            .order_by(VoteEntry.candidate_id)
            .all()
        )

    def submit(self, actor, center_id, counts) -> SubmissionReceipt:
        path = self.directory.center_path(center_id)
        if path is None:
            raise NotFoundError(f"Vote center {center_id} not found")

        decision = self.policy.can_write(actor, center_id)
        if not decision:
            self._audit(VOTE_SUBMISSION_DENIED, {"center_id": center_id, "reason": decision.reason}, actor)
            logger.warning("Vote submission for center %s denied: %s", center_id, decision.reason)
            raise UnauthorizedError(decision.reason)

        parsed = self.validator.parse_vote_counts(counts)
        candidates = {
            c.id: c for c in self.session.query(Candidate).filter(Candidate.id.in_(list(parsed)))
        }
        missing = sorted(set(parsed) - set(candidates))
        if missing:
            raise NotFoundError(f"Unknown candidate ids: {', '.join(map(str, missing))}")
        ineligible = sorted(cid for cid, c in candidates.items() if not c.scope.covers(path))
        if ineligible:
            raise SubmissionValidationError(
                f"Candidates not standing at this center: {', '.join(map(str, ineligible))}"
            )

        receipt = SubmissionReceipt(center_id=center_id, submitted_by=actor.id)
        try:
            self._claim_center(actor, center_id)
            existing = {
                e.candidate_id: e
                for e in self.session.query(VoteEntry).filter(
                    VoteEntry.center_id == center_id,
                    VoteEntry.candidate_id.in_(list(parsed)),
                )
            }
            for candidate_id in sorted(parsed):
                count = parsed[candidate_id]
                entry = existing.get(candidate_id)
                if entry is None:
                    self.session.add(VoteEntry(
                        center_id=center_id,
                        candidate_id=candidate_id,
                        vote_count=count,
                        submitted_by_user_id=actor.id,
                    ))
                    receipt.created.append(candidate_id)
                else:
                    entry.vote_count = count
                    entry.submitted_by_user_id = actor.id
                    receipt.updated.append(candidate_id)
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            if not actor.is_admin:
                logger.warning("Concurrent first submission for center %s rejected", center_id)
                raise UnauthorizedError(REASON_ALREADY_SUBMITTED)
            raise ReferentialIntegrityError(
                "Another submission for this center was saved at the same time; reload and retry."
            )
        except Exception:
            # Driver errors (OverflowError and the like) also need the rollback
            self.session.rollback()
            logger.exception("Failed to save vote entries for center %s", center_id)
            raise

        receipt.total_votes = sum(parsed.values())
        logger.info("User %s submitted %d counts for center %s (%d new, %d updated)",
                    actor.id, len(parsed), center_id, len(receipt.created), len(receipt.updated))
        self._audit(VOTES_SUBMITTED, {
            "center_id": center_id,
            "counts": {str(k): v for k, v in sorted(parsed.items())},
        }, actor)
        return receipt

    def _claim_center(self, actor, center_id):
        # Sub-users always insert the marker; a second insert violates its
        # primary key and the whole submission rolls back.
        if actor.is_admin and self.session.get(CenterSubmission, center_id) is not None:
            return
        self.session.add(CenterSubmission(center_id=center_id, submitted_by_user_id=actor.id))
        self.session.flush()

    def _audit(self, event_type, data, actor):
        if self.audit_logger is not None:
            self.audit_logger.record(event_type, data, actor_id=getattr(actor, 'id', None))
