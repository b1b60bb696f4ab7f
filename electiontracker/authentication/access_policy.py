# electiontracker/authentication/access_policy.py

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from electiontracker.database.models import (
    ROLE_ADMIN, ROLE_SUB_USER, CenterSubmission, User, VoteCenter, VoteEntry,
)
from electiontracker.extensions import db

logger = logging.getLogger(__name__)

# Admins may write and correct any center. Sub-users may write only their own
# centers, and only once per center.

REASON_UNAUTHENTICATED = "Authentication required."
REASON_CENTER_NOT_FOUND = "Vote center not found."
REASON_NOT_ASSIGNED = "Unauthorized: You can only update votes for your assigned centers."
REASON_ALREADY_SUBMITTED = "Votes for this center were already submitted; ask an administrator to correct them."
REASON_UNKNOWN_ROLE = "Unauthorized: unknown role."


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls):
        return cls(True)

    @classmethod
    def deny(cls, reason):
        return cls(False, reason)

    def __bool__(self):
        return self.allowed


class AccessPolicy:
    def __init__(self, session):
        self.session = session

    def has_submission(self, center_id):
        if self.session.get(CenterSubmission, center_id) is not None:
            return True
        return self.session.query(VoteEntry.id).filter(VoteEntry.center_id == center_id).first() is not None

    def can_write(self, actor, center_id) -> AccessDecision:
        if actor is None:
            return AccessDecision.deny(REASON_UNAUTHENTICATED)
        if actor.role == ROLE_ADMIN:
            return AccessDecision.allow()
        if actor.role != ROLE_SUB_USER:
            return AccessDecision.deny(REASON_UNKNOWN_ROLE)

        center = self.session.get(VoteCenter, center_id)
        if center is None:
            return AccessDecision.deny(REASON_CENTER_NOT_FOUND)
        if center.assigned_to_user_id != actor.id:
            return AccessDecision.deny(REASON_NOT_ASSIGNED)
        if self.has_submission(center_id):
            return AccessDecision.deny(REASON_ALREADY_SUBMITTED)
        return AccessDecision.allow()

    def can_read(self, actor, center_id) -> AccessDecision:
        if actor is None:
            return AccessDecision.deny(REASON_UNAUTHENTICATED)
        if actor.role == ROLE_ADMIN:
            return AccessDecision.allow()
        center = self.session.get(VoteCenter, center_id)
        if center is None or center.assigned_to_user_id != actor.id:
            return AccessDecision.deny(REASON_NOT_ASSIGNED)
        return AccessDecision.allow()


def current_actor():
    """User behind the JWT of the current request, or None."""
    identity = get_jwt_identity()
    if identity is None:
        return None
    try:
        return db.session.get(User, int(identity))
    except (TypeError, ValueError):
        return None


def require_admin(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        actor = current_actor()
        if actor is None or not actor.is_admin:
            logger.warning("Admin-only endpoint %s refused", func.__name__)
            return jsonify({"error": "Administrator access required."}), 403
        return func(*args, **kwargs)
    return wrapper
