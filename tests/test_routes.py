from urllib.parse import quote

import pytest

from electiontracker.audit.audit_logger import LOGIN_FAILED, LOGIN_SUCCEEDED
from electiontracker.database.models import VoteEntry

from conftest import PASSWORD


def login(client, username):
    resp = client.post('/login', json={'username': username, 'password': PASSWORD})
    assert resp.status_code == 200
    return resp


def test_login_sets_cookies_and_is_audited(world, client, audit_logger):
    resp = login(client, 'officer')
    assert resp.get_json()['role'] == 'SUB_USER'
    cookies = resp.headers.getlist('Set-Cookie')
    assert any(c.startswith('access_token_cookie=') for c in cookies)

    bad = client.post('/login', json={'username': 'officer', 'password': 'nope-nope-nope'})
    assert bad.status_code == 401

    assert [e['event_type'] for e in audit_logger.entries()] == [LOGIN_SUCCEEDED, LOGIN_FAILED]


def test_national_results_without_votes(world, client):
    resp = client.get('/api/results')
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['stats'] == {
        'locationName': 'National',
        'locationType': 'National',
        'totalVotes': 0,
        'results': [],
        'partySeats': [],
    }
    assert body['childType'] == 'division'
    assert [c['name'] for c in body['childLocations']] == ['Dhaka', 'Rajshahi']


def test_submit_then_read_results(world, client, session):
    login(client, 'officer')
    resp = client.post('/api/votes', json={
        'centerId': world.pakshi_center.id,
        'votes': {str(world.bnp_pabna.id): 500, str(world.jamaat_pabna.id): '700'},
    })
    assert resp.status_code == 200
    assert resp.get_json()['receipt']['totalVotes'] == 1200

    again = client.post('/api/votes', json={
        'centerId': world.pakshi_center.id,
        'votes': {str(world.bnp_pabna.id): 900},
    })
    assert again.status_code == 403
    assert 'already submitted' in again.get_json()['error']
    assert session.query(VoteEntry).filter_by(candidate_id=world.bnp_pabna.id).one().vote_count == 500

    results = client.get(f'/api/results?districtId={world.pabna.id}').get_json()
    stats = results['stats']
    assert stats['locationName'] == 'Pabna'
    assert stats['totalVotes'] == 1200
    assert stats['leadingParty']['name'] == 'Bangladesh Jamaat-e-Islami'
    assert stats['partySeats'] == [
        {'partyName': 'Bangladesh Jamaat-e-Islami', 'seats': 1, 'color': 'border-sky-500'},
    ]
    assert results['childType'] == 'constituency'


def test_form_submission_by_admin(world, client, session):
    login(client, 'admin')
    resp = client.post('/api/votes', data={
        'centerId': str(world.savar_school.id),
        f'candidate_{world.bnp_dhaka.id}': '15',
        f'candidate_{world.al_dhaka.id}': '',
    })
    assert resp.status_code == 200
    rows = session.query(VoteEntry).filter_by(center_id=world.savar_school.id).all()
    assert {(r.candidate_id, r.vote_count) for r in rows} == {(world.bnp_dhaka.id, 15), (world.al_dhaka.id, 0)}


@pytest.mark.parametrize("payload,status", [
    ({'votes': {'1': 1}}, 400),
    ({'centerId': 99999, 'votes': {'1': 1}}, 404),
    ({'centerId': 'abc', 'votes': {'1': 1}}, 400),
])
def test_bad_submissions(world, client, payload, status):
    login(client, 'admin')
    assert client.post('/api/votes', json=payload).status_code == status


def test_empty_vote_map(world, client):
    login(client, 'admin')
    resp = client.post('/api/votes', json={'centerId': world.savar_school.id, 'votes': {}})
    assert resp.status_code == 400
    assert resp.get_json() == {'error': 'No vote data provided.'}


def test_submit_requires_login(world, client):
    resp = client.post('/api/votes', json={'centerId': world.savar_school.id, 'votes': {'1': 1}})
    assert resp.status_code == 401


def test_sub_user_cannot_submit_for_other_centers(world, client):
    login(client, 'other_officer')
    resp = client.post('/api/votes', json={
        'centerId': world.pakshi_center.id, 'votes': {str(world.bnp_pabna.id): 1},
    })
    assert resp.status_code == 403


def test_center_votes_and_candidates(world, client, submit):
    submit(world.pakshi_center, {world.bnp_pabna: 4})
    login(client, 'officer')

    votes = client.get(f'/api/votes?centerId={world.pakshi_center.id}').get_json()['votes']
    assert votes == [{'candidateId': world.bnp_pabna.id, 'voteCount': 4, 'submittedByUserId': world.admin.id}]

    candidates = client.get(f'/api/centers/{world.pakshi_center.id}/candidates').get_json()['candidates']
    assert {c['id'] for c in candidates} == {
        world.bnp_dhaka.id, world.al_dhaka.id, world.bnp_pabna.id, world.jamaat_pabna.id,
    }
    assert client.get(f'/api/centers/{world.savar_school.id}/candidates').status_code == 403
    assert client.get('/api/votes').status_code == 400


def test_center_details_by_path(world, client, submit):
    submit(world.savar_school, {world.bnp_dhaka: 9})
    path = '/'.join(quote(part) for part in (
        'Dhaka', 'Dhaka', 'Savar', 'Aminbazar', 'Aminbazar Govt Primary School',
    ))
    body = client.get(f'/api/centers/{path}').get_json()
    assert body['center']['id'] == world.savar_school.id
    assert body['stats']['locationType'] == 'Vote Center'
    assert body['stats']['totalVotes'] == 9

    missing = client.get('/api/centers/Dhaka/Dhaka/Savar/Aminbazar/Nowhere')
    assert missing.status_code == 404


def test_locations_listing(world, client):
    body = client.get(f'/api/locations?type=union&parentId={world.savar.id}').get_json()
    assert body['type'] == 'union'
    assert [(u['name'], u['subUnitCount']) for u in body['data']] == [('Aminbazar', 1), ('Tetuljhora', 1)]
    assert client.get('/api/locations?type=district').get_json()['data'] == []


def test_location_delete_is_admin_only(world, client):
    assert client.delete(f'/api/locations/center/{world.satbaria_center.id}').status_code == 401

    login(client, 'officer')
    assert client.delete(f'/api/locations/center/{world.satbaria_center.id}').status_code == 403

    login(client, 'admin')
    blocked = client.delete(f'/api/locations/division/{world.dhaka.id}')
    assert blocked.status_code == 409
    assert blocked.get_json()['error'].startswith('Cannot delete')

    assert client.delete(f'/api/locations/center/{world.satbaria_center.id}').get_json() == {
        'success': True, 'message': 'Deleted successfully',
    }


def test_logout_clears_session(world, client):
    login(client, 'admin')
    client.post('/logout')
    resp = client.post('/api/votes', json={'centerId': world.savar_school.id, 'votes': {'1': 1}})
    assert resp.status_code == 401


def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json()['overall_ok'] is True


@pytest.mark.parametrize("body", [[1, 2], "centerId", 42])
def test_non_object_json_bodies(world, client, body):
    assert client.post('/login', json=body).status_code == 401

    login(client, 'admin')
    resp = client.post('/api/votes', json=body)
    assert resp.status_code == 400
    assert resp.get_json() == {'error': 'Please select a vote center.'}
