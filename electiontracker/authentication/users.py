# electiontracker/authentication/users.py

import logging
import secrets

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError
from sqlalchemy.exc import IntegrityError

from electiontracker.database.models import ROLE_ADMIN, ROLE_SUB_USER, User
from electiontracker.errors import NotFoundError, ReferentialIntegrityError, SubmissionValidationError
from electiontracker.security.input_validator import InputValidator

logger = logging.getLogger(__name__)

ROLES = (ROLE_ADMIN, ROLE_SUB_USER)
MIN_PASSWORD_LENGTH = 8

_UNSET = object()


class PasswordHashingService:
    """Argon2id hashes for operator accounts."""

    def __init__(self):
        self.ph = PasswordHasher(
            time_cost=3,
            memory_cost=65536,
            parallelism=4,
            hash_len=32,
            salt_len=16,
        )

    def hash_password(self, password):
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise SubmissionValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        try:
            return self.ph.hash(password)
        except HashingError as e:
            raise SubmissionValidationError(f"Password hashing failed: {e}")

    def verify_password(self, password, hash_value):
        try:
            return self.ph.verify(hash_value, password)
        except (VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, hash_value):
        return self.ph.check_needs_rehash(hash_value)

    def generate_password(self, nbytes=12):
        return secrets.token_urlsafe(nbytes)


class UserService:
    def __init__(self, session, hasher=None, validator=None):
        self.session = session
        self.hasher = hasher or PasswordHashingService()
        self.validator = validator or InputValidator()

    def get(self, user_id):
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def create_user(self, username, password, role=ROLE_SUB_USER, email=None, mobile=None):
        role = self._role(role)
        user = User(
            username=self.validator.validate_username(username),
            password_hash=self.hasher.hash_password(password),
            role=role,
            email=self.validator.optional_text(email, field='Email', max_length=254),
            mobile=self.validator.optional_text(mobile, field='Mobile', max_length=30),
        )
        self.session.add(user)
        self._commit(f"A user named {user.username} already exists.")
        logger.info("Created %s user %s", role, user.username)
        return user

    def update_user(self, user_id, username=_UNSET, role=_UNSET, email=_UNSET, mobile=_UNSET,
                    password=None):
        user = self.get(user_id)
        if username is not _UNSET:
            user.username = self.validator.validate_username(username)
        if role is not _UNSET:
            user.role = self._role(role)
        if email is not _UNSET:
            user.email = self.validator.optional_text(email, field='Email', max_length=254)
        if mobile is not _UNSET:
            user.mobile = self.validator.optional_text(mobile, field='Mobile', max_length=30)
        # A blank password leaves the current one in place
        if password and password.strip():
            user.password_hash = self.hasher.hash_password(password)
        self._commit("That username is already taken.")
        return user

    def authenticate(self, username, password):
        if not username or not password:
            return None
        user = self.session.query(User).filter_by(username=username.strip()).first()
        if user is None or not self.hasher.verify_password(password, user.password_hash):
            return None
        if self.hasher.needs_rehash(user.password_hash):
            user.password_hash = self.hasher.hash_password(password)
            self.session.commit()
        return user

    def seed_initial_admin(self, username='admin', password=None):
        """Create the first admin if there is none. Returns (user, generated_password)."""
        if self.session.query(User).filter_by(role=ROLE_ADMIN).count():
            return None, None
        generated = None
        if not password:
            password = generated = self.hasher.generate_password()
        logger.info("Seeding initial admin user %s", username)
        return self.create_user(username, password, role=ROLE_ADMIN), generated

    def _role(self, role):
        role = (role or ROLE_SUB_USER).upper()
        if role not in ROLES:
            raise SubmissionValidationError(f"Role must be one of {', '.join(ROLES)}")
        return role

    def _commit(self, conflict_message):
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ReferentialIntegrityError(conflict_message)
