from types import SimpleNamespace

import pytest

from electiontracker import create_app
from electiontracker.audit.audit_logger import AuditLogger
from electiontracker.authentication.access_policy import AccessPolicy
from electiontracker.authentication.users import UserService
from electiontracker.config import TestingConfig
from electiontracker.database.models import ROLE_ADMIN
from electiontracker.extensions import db as _db
from electiontracker.hierarchy.maintenance import LocationEditor
from electiontracker.hierarchy.scope import Scope
from electiontracker.voting.aggregation import AggregationEngine
from electiontracker.voting.candidates import CandidateRegistry
from electiontracker.voting.entries import VoteEntryStore

PASSWORD = "correct-horse-battery"


@pytest.fixture
def app(tmp_path):
    app = create_app(TestingConfig, AUDIT_LOG_DIR=str(tmp_path / "audit"))
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def session(app):
    return _db.session


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def audit_logger(app):
    return app.extensions['audit_logger']


@pytest.fixture
def editor(session):
    return LocationEditor(session)


@pytest.fixture
def registry(session):
    return CandidateRegistry(session)


@pytest.fixture
def store(session, audit_logger):
    return VoteEntryStore(session, AccessPolicy(session), audit_logger=audit_logger)


@pytest.fixture
def engine(session):
    return AggregationEngine(session)


@pytest.fixture
def world(session, editor, registry):
    """Two divisions, three districts, three constituencies and five centers.

    Rajshahi/Pabna carries two seats (Pabna-1, Pabna-2); Dhaka/Dhaka carries
    Dhaka-1; Gazipur has an upazila outside any constituency.
    """
    users = UserService(session)
    admin = users.create_user("admin", PASSWORD, role=ROLE_ADMIN)
    officer = users.create_user("officer", PASSWORD)
    other_officer = users.create_user("other_officer", PASSWORD)

    dhaka = editor.create_division("Dhaka")
    rajshahi = editor.create_division("Rajshahi")

    dhaka_district = editor.create_district(dhaka.id, "Dhaka")
    gazipur = editor.create_district(dhaka.id, "Gazipur")
    pabna = editor.create_district(rajshahi.id, "Pabna")

    dhaka_1 = editor.create_constituency(dhaka_district.id, "Dhaka-1")
    pabna_1 = editor.create_constituency(pabna.id, "Pabna-1")
    pabna_2 = editor.create_constituency(pabna.id, "Pabna-2")

    savar = editor.create_upazila(dhaka_district.id, "Savar", constituency_id=dhaka_1.id)
    kaliakair = editor.create_upazila(gazipur.id, "Kaliakair")
    ishwardi = editor.create_upazila(pabna.id, "Ishwardi", constituency_id=pabna_1.id)
    sujanagar = editor.create_upazila(pabna.id, "Sujanagar", constituency_id=pabna_2.id)

    aminbazar = editor.create_union(savar.id, "Aminbazar")
    tetuljhora = editor.create_union(savar.id, "Tetuljhora")
    mouchak = editor.create_union(kaliakair.id, "Mouchak", union_type="POURASHAVA")
    pakshi = editor.create_union(ishwardi.id, "Pakshi")
    satbaria = editor.create_union(sujanagar.id, "Satbaria")

    savar_school = editor.create_center(aminbazar.id, "Aminbazar Govt Primary School")
    savar_college = editor.create_center(tetuljhora.id, "Tetuljhora College")
    mouchak_center = editor.create_center(mouchak.id, "Mouchak High School")
    pakshi_center = editor.create_center(pakshi.id, "Pakshi Union Office", assigned_to_user_id=officer.id)
    satbaria_center = editor.create_center(satbaria.id, "Satbaria Madrasa")

    bnp_dhaka = registry.create("Mirza Abbas", "BNP", constituency_id=dhaka_1.id)
    al_dhaka = registry.create("Saber Hossain", "Awami League", constituency_id=dhaka_1.id)
    bnp_pabna = registry.create("Habibur Rahman", "BNP", scope=Scope.district(pabna.id),
                                constituency_id=pabna_1.id)
    jamaat_pabna = registry.create("Abdur Rahim", "Bangladesh Jamaat-e-Islami",
                                   scope=Scope.district(pabna.id), constituency_id=pabna_1.id)
    al_sujanagar = registry.create("Ahmed Firoz", "Awami League", scope=Scope.upazila(sujanagar.id),
                                   constituency_id=pabna_2.id)
    jp_sujanagar = registry.create("Kamal Uddin", "Jatiya Party", scope=Scope.upazila(sujanagar.id),
                                   constituency_id=pabna_2.id)

    return SimpleNamespace(
        admin=admin, officer=officer, other_officer=other_officer,
        dhaka=dhaka, rajshahi=rajshahi,
        dhaka_district=dhaka_district, gazipur=gazipur, pabna=pabna,
        dhaka_1=dhaka_1, pabna_1=pabna_1, pabna_2=pabna_2,
        savar=savar, kaliakair=kaliakair, ishwardi=ishwardi, sujanagar=sujanagar,
        aminbazar=aminbazar, tetuljhora=tetuljhora, mouchak=mouchak, pakshi=pakshi, satbaria=satbaria,
        savar_school=savar_school, savar_college=savar_college, mouchak_center=mouchak_center,
        pakshi_center=pakshi_center, satbaria_center=satbaria_center,
        bnp_dhaka=bnp_dhaka, al_dhaka=al_dhaka, bnp_pabna=bnp_pabna, jamaat_pabna=jamaat_pabna,
        al_sujanagar=al_sujanagar, jp_sujanagar=jp_sujanagar,
    )


@pytest.fixture
def submit(store, world):
    """Submit counts as the admin: submit(center, {candidate: count, ...})."""
    def _submit(center, counts, actor=None):
        return store.submit(actor or world.admin, center.id, {c.id: n for c, n in counts.items()})
    return _submit


@pytest.fixture
def temp_audit_logger(tmp_path):
    return AuditLogger(log_dir=str(tmp_path / "audit_only"))
