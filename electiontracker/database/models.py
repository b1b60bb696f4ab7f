# electiontracker/database/models.py

from datetime import datetime

from electiontracker.extensions import db
from electiontracker.hierarchy.levels import LocationLevel
from electiontracker.hierarchy.scope import Scope

# Primary hierarchy: Division -> District -> Upazila -> Union -> VoteCenter.
# Constituency is an overlay attached through Upazila.constituency_id.

ROLE_ADMIN = 'ADMIN'
ROLE_SUB_USER = 'SUB_USER'

UNION_TYPES = ('UNION', 'POURASHAVA')


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(200), nullable=False)  # Argon2id
    role = db.Column(db.String(20), nullable=False, default=ROLE_SUB_USER)
    email = db.Column(db.String(254), nullable=True)
    mobile = db.Column(db.String(30), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    assigned_centers = db.relationship('VoteCenter', backref='assigned_to', lazy=True)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def __repr__(self):
        return f'<User {self.username} ({self.role})>'


class Division(db.Model):
    __tablename__ = 'divisions'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)

    districts = db.relationship('District', backref='division', lazy=True)


class District(db.Model):
    __tablename__ = 'districts'
    __table_args__ = (db.UniqueConstraint('division_id', 'name', name='uq_district_name'),)
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    division_id = db.Column(db.Integer, db.ForeignKey('divisions.id'), nullable=False)

    constituencies = db.relationship('Constituency', backref='district', lazy=True)
    upazilas = db.relationship('Upazila', backref='district', lazy=True)


class Constituency(db.Model):
    __tablename__ = 'constituencies'
    __table_args__ = (db.UniqueConstraint('district_id', 'name', name='uq_constituency_name'),)
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    seat_number = db.Column(db.String(50), nullable=True)  # free text, e.g. "Pabna-1"
    district_id = db.Column(db.Integer, db.ForeignKey('districts.id'), nullable=False)

    upazilas = db.relationship('Upazila', backref='constituency', lazy=True)
    candidates = db.relationship('Candidate', backref='constituency', lazy=True)


class Upazila(db.Model):
    __tablename__ = 'upazilas'
    __table_args__ = (db.UniqueConstraint('district_id', 'name', name='uq_upazila_name'),)
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    district_id = db.Column(db.Integer, db.ForeignKey('districts.id'), nullable=False)
    constituency_id = db.Column(db.Integer, db.ForeignKey('constituencies.id'), nullable=True)

    unions = db.relationship('Union', backref='upazila', lazy=True)


class Union(db.Model):
    __tablename__ = 'unions'
    __table_args__ = (db.UniqueConstraint('upazila_id', 'name', name='uq_union_name'),)
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    union_type = db.Column(db.String(20), nullable=False, default='UNION')
    upazila_id = db.Column(db.Integer, db.ForeignKey('upazilas.id'), nullable=False)

    centers = db.relationship('VoteCenter', backref='union', lazy=True)


class VoteCenter(db.Model):
    __tablename__ = 'vote_centers'
    __table_args__ = (db.UniqueConstraint('union_id', 'name', name='uq_center_name'),)
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    union_id = db.Column(db.Integer, db.ForeignKey('unions.id'), nullable=False)
    assigned_to_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    entries = db.relationship('VoteEntry', backref='center', lazy=True)


# Column holding the location id for each non-national candidate scope
SCOPE_COLUMNS = {
    LocationLevel.DIVISION: 'division_id',
    LocationLevel.DISTRICT: 'district_id',
    LocationLevel.UPAZILA: 'upazila_id',
    LocationLevel.UNION: 'union_id',
}


class Candidate(db.Model):
    __tablename__ = 'candidates'
    __table_args__ = (
        db.CheckConstraint(
            '(CASE WHEN division_id IS NULL THEN 0 ELSE 1 END'
            ' + CASE WHEN district_id IS NULL THEN 0 ELSE 1 END'
            ' + CASE WHEN upazila_id IS NULL THEN 0 ELSE 1 END'
            ' + CASE WHEN union_id IS NULL THEN 0 ELSE 1 END) <= 1',
            name='ck_candidate_single_scope',
        ),
    )
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    party = db.Column(db.String(100), nullable=False)
    symbol = db.Column(db.String(100), nullable=True)
    seat_number = db.Column(db.String(50), nullable=True)  # display label only

    # Eligibility scope, read and written through `scope`
    division_id = db.Column(db.Integer, db.ForeignKey('divisions.id'), nullable=True)
    district_id = db.Column(db.Integer, db.ForeignKey('districts.id'), nullable=True)
    upazila_id = db.Column(db.Integer, db.ForeignKey('upazilas.id'), nullable=True)
    union_id = db.Column(db.Integer, db.ForeignKey('unions.id'), nullable=True)

    # Seat contested, used only by seat counting
    constituency_id = db.Column(db.Integer, db.ForeignKey('constituencies.id'), nullable=True)

    entries = db.relationship('VoteEntry', backref='candidate', lazy=True)

    @property
    def scope(self):
        for level, column in SCOPE_COLUMNS.items():
            value = getattr(self, column)
            if value is not None:
                return Scope(level, value)
        return Scope.national()

    @scope.setter
    def scope(self, scope):
        for column in SCOPE_COLUMNS.values():
            setattr(self, column, None)
        if not scope.is_national:
            setattr(self, SCOPE_COLUMNS[scope.level], scope.location_id)

    def __repr__(self):
        return f'<Candidate {self.name} ({self.party})>'


class VoteEntry(db.Model):
    __tablename__ = 'vote_entries'
    __table_args__ = (
        db.UniqueConstraint('center_id', 'candidate_id', name='uq_vote_entry_center_candidate'),
        db.CheckConstraint('vote_count >= 0', name='ck_vote_entry_non_negative'),
    )
    id = db.Column(db.Integer, primary_key=True)
    center_id = db.Column(db.Integer, db.ForeignKey('vote_centers.id'), nullable=False, index=True)
    candidate_id = db.Column(db.Integer, db.ForeignKey('candidates.id'), nullable=False, index=True)
    vote_count = db.Column(db.Integer, nullable=False, default=0)
    submitted_by_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<VoteEntry center={self.center_id} candidate={self.candidate_id} votes={self.vote_count}>'


class CenterSubmission(db.Model):
    """First-writer marker; its primary key makes sub-user submissions write-once."""

    __tablename__ = 'center_submissions'
    center_id = db.Column(db.Integer, db.ForeignKey('vote_centers.id'), primary_key=True)
    submitted_by_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    submitted_at = db.Column(db.DateTime, default=datetime.utcnow)
