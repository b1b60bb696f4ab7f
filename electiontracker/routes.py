# electiontracker/routes.py

# JSON endpoints consumed by the dashboard front end. Handlers stay thin: they
# parse the request, hand a session to the domain services and serialise the
# result. TallyError subclasses are rendered by the app-level error handler.

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import (
    create_access_token, create_refresh_token, get_jwt_identity, jwt_required,
    set_access_cookies, set_refresh_cookies, unset_jwt_cookies,
)
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from electiontracker.audit.audit_logger import LOGIN_FAILED, LOGIN_SUCCEEDED
from electiontracker.authentication.access_policy import AccessPolicy, current_actor, require_admin
from electiontracker.authentication.users import UserService
from electiontracker.errors import NotFoundError, SubmissionValidationError, UnauthorizedError
from electiontracker.extensions import db, limiter
from electiontracker.hierarchy.filters import LocationFilter
from electiontracker.hierarchy.levels import LocationLevel
from electiontracker.hierarchy.locations import LocationDirectory
from electiontracker.hierarchy.maintenance import LocationEditor
from electiontracker.voting.aggregation import AggregationEngine
from electiontracker.voting.entries import VoteEntryStore

api = Blueprint('api', __name__)


def _audit_logger():
    return current_app.extensions.get('audit_logger')


def _vote_store():
    return VoteEntryStore(db.session, AccessPolicy(db.session), audit_logger=_audit_logger())


def _payload():
    # JSON arrays and scalars carry no fields; fall back to the (empty) form
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else request.form


def _int_arg(value):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


@api.post('/login')
@limiter.limit("20/minute")
def login():
    payload = _payload()
    username = payload.get('username')
    user = UserService(db.session).authenticate(username, payload.get('password'))
    audit = _audit_logger()
    if user is None:
        audit.record(LOGIN_FAILED, {'username': username, 'ip': request.remote_addr})
        return jsonify({'error': 'Invalid username or password.'}), 401

    audit.record(LOGIN_SUCCEEDED, {'role': user.role}, actor_id=user.id)
    resp = jsonify({'id': user.id, 'username': user.username, 'role': user.role})
    set_access_cookies(resp, create_access_token(identity=str(user.id)))
    set_refresh_cookies(resp, create_refresh_token(identity=str(user.id)))
    return resp


@api.post('/refresh')
@jwt_required(refresh=True)
def refresh():
    # Rotate refresh token and issue new access token
    identity = get_jwt_identity()
    resp = jsonify({'refresh': True})
    set_access_cookies(resp, create_access_token(identity=identity))
    set_refresh_cookies(resp, create_refresh_token(identity=identity))
    return resp


@api.post('/logout')
def logout():
    resp = jsonify({'logout': True})
    unset_jwt_cookies(resp)
    return resp


@api.get('/api/results')
def results():
    location_filter = LocationFilter.from_params(request.args)
    directory = LocationDirectory(db.session)
    location_name, location_type = directory.resolve(location_filter)
    stats = AggregationEngine(db.session).compute_results(location_filter, location_name, location_type)

    child_type = location_filter.level.child
    children = directory.child_locations(child_type, location_filter.location_id) if child_type else []
    return jsonify({
        'stats': stats.to_dict(),
        'childType': child_type.value if child_type else None,
        'childLocations': [c.to_dict() for c in children],
    })


@api.get('/api/centers/<division>/<district>/<upazila>/<union>/<center>')
def center_details(division, district, upazila, union, center):
    found = LocationDirectory(db.session).find_center(division, district, upazila, union, center)
    if found is None:
        raise NotFoundError("Center Not Found")
    stats = AggregationEngine(db.session).compute_results(
        LocationFilter.for_level(LocationLevel.CENTER, found.id), found.name, LocationLevel.CENTER.label
    )
    return jsonify({'center': {'id': found.id, 'name': found.name}, 'stats': stats.to_dict()})


@api.get('/api/locations')
def locations():
    level = request.args.get('type')
    children = LocationDirectory(db.session).child_locations(level, _int_arg(request.args.get('parentId')))
    return jsonify({'type': level, 'data': [c.to_dict() for c in children]})


@api.delete('/api/locations/<level>/<int:node_id>')
@require_admin
def delete_location(level, node_id):
    actor = current_actor()
    LocationEditor(db.session, audit_logger=_audit_logger()).delete(level, node_id, actor_id=actor.id)
    return jsonify({'success': True, 'message': 'Deleted successfully'})


@api.get('/api/votes')
@jwt_required()
def center_votes():
    center_id = _int_arg(request.args.get('centerId'))
    if center_id is None:
        raise SubmissionValidationError("Center ID is required")
    entries = _vote_store().entries_for_center(current_actor(), center_id)
    return jsonify({'votes': [
        {
            'candidateId': e.candidate_id,
            'voteCount': e.vote_count,
            'submittedByUserId': e.submitted_by_user_id,
        }
        for e in entries
    ]})


@api.post('/api/votes')
@jwt_required()
@limiter.limit(lambda: current_app.config['VOTE_SUBMISSION_RATE_LIMIT'])
def submit_votes():
    payload = _payload()
    center_id = _int_arg(payload.get('centerId'))
    if center_id is None:
        raise SubmissionValidationError("Please select a vote center.")
    # JSON bodies nest counts under "votes"; forms send candidate_<id> fields
    counts = payload.get('votes') if request.is_json else payload
    actor = current_actor()
    if actor is None:
        raise UnauthorizedError("Authentication required.")
    receipt = _vote_store().submit(actor, center_id, counts if counts is not None else {})
    return jsonify({'success': True, 'receipt': receipt.to_dict()})


@api.get('/api/centers/<int:center_id>/candidates')
@jwt_required()
def center_candidates(center_id):
    decision = AccessPolicy(db.session).can_read(current_actor(), center_id)
    if not decision:
        raise UnauthorizedError(decision.reason)
    candidates = _vote_store().eligible_candidates(center_id)
    return jsonify({'candidates': [
        {
            'id': c.id,
            'name': c.name,
            'party': c.party,
            'symbol': c.symbol,
            'seatNumber': c.seat_number,
            'scope': c.scope.describe(),
        }
        for c in candidates
    ]})


@api.get('/health')
def health():
    try:
        db.session.execute(text("SELECT 1"))
        return jsonify({'db': {'ok': True}, 'overall_ok': True})
    except SQLAlchemyError as e:
        current_app.logger.error("Health check failed: %s", e)
        return jsonify({'db': {'ok': False, 'error': str(e)}, 'overall_ok': False}), 503
