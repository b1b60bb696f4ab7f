import pytest
from sqlalchemy.exc import IntegrityError

from electiontracker.database.models import Candidate
from electiontracker.errors import NotFoundError, ReferentialIntegrityError
from electiontracker.hierarchy.levels import CenterPath, LocationLevel
from electiontracker.hierarchy.scope import Scope

PATH = CenterPath(center_id=50, union_id=40, upazila_id=30, district_id=20, division_id=10, constituency_id=7)


def test_national_scope_covers_every_center():
    assert Scope.national().covers(PATH)
    assert Scope.national().describe() == "National"


@pytest.mark.parametrize("scope,covered", [
    (Scope.division(10), True),
    (Scope.division(11), False),
    (Scope.district(20), True),
    (Scope.upazila(30), True),
    (Scope.upazila(31), False),
    (Scope.union(40), True),
])
def test_scoped_candidates_cover_only_their_subtree(scope, covered):
    assert scope.covers(PATH) is covered


def test_invalid_scopes():
    with pytest.raises(ValueError):
        Scope(LocationLevel.CONSTITUENCY, 7)
    with pytest.raises(ValueError):
        Scope(LocationLevel.CENTER, 50)
    with pytest.raises(ValueError):
        Scope(LocationLevel.NATIONAL, 1)
    with pytest.raises(ValueError):
        Scope(LocationLevel.DISTRICT, None)


def test_scope_is_stored_in_one_column(world, session):
    candidate = session.get(Candidate, world.al_sujanagar.id)
    assert candidate.scope == Scope.upazila(world.sujanagar.id)
    assert candidate.scope.describe() == f"Upazila #{world.sujanagar.id}"
    assert (candidate.division_id, candidate.district_id, candidate.union_id) == (None, None, None)


def test_changing_scope_clears_the_previous_level(world, registry):
    candidate = registry.update(world.bnp_pabna.id, scope=Scope.union(world.pakshi.id))
    assert candidate.district_id is None
    assert candidate.union_id == world.pakshi.id

    candidate = registry.update(world.bnp_pabna.id, scope=Scope.national())
    assert candidate.scope.is_national
    assert candidate.union_id is None


def test_candidate_scope_must_point_at_an_existing_location(world, registry):
    with pytest.raises(NotFoundError):
        registry.create("Ghost", "BNP", scope=Scope.district(99999))
    with pytest.raises(NotFoundError):
        registry.create("Ghost", "BNP", constituency_id=99999)


def test_two_scope_columns_violate_the_check_constraint(world, session):
    candidate = session.get(Candidate, world.bnp_pabna.id)
    candidate.division_id = world.rajshahi.id
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()


def test_search_and_delete(world, submit, registry):
    assert [c.id for c in registry.search("jatiya")] == [world.jp_sujanagar.id]
    assert len(registry.search("  ")) == 6

    submit(world.satbaria_center, {world.jp_sujanagar: 3})
    with pytest.raises(ReferentialIntegrityError):
        registry.delete(world.jp_sujanagar.id)

    registry.delete(world.al_sujanagar.id)
    with pytest.raises(NotFoundError):
        registry.get(world.al_sujanagar.id)
