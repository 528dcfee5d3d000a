from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from geovote import create_app
from geovote.config import TestingConfig
from geovote.extensions import db
from geovote.models import Candidate, CustomField, Election, Organizer, Position, Region

from .helpers import ISLAMABAD


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def organizer(app):
    org = Organizer(email="board@example.com", name="Election Board")
    org.set_password("StrongPass123")
    db.session.add(org)
    db.session.commit()
    return org


@pytest.fixture
def auth_headers(organizer):
    token = create_access_token(identity=str(organizer.id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_election(organizer):
    def _make(
        status=Election.STATUS_REGISTRATION,
        auto_transition=True,
        positions=1,
        candidates=2,
        regions=(),
        custom_fields=(),
        **kwargs,
    ):
        election = Election(
            organizer_id=organizer.id,
            title=kwargs.pop("title", "Student Council"),
            status=status,
            auto_transition=auto_transition,
            **kwargs,
        )
        for p in range(positions):
            position = Position(title=f"Position {p + 1}", display_order=p)
            for c in range(candidates):
                position.candidates.append(Candidate(name=f"Candidate {p + 1}.{c + 1}", display_order=c))
            election.positions.append(position)
        for i, (name, geometry, buffer_meters) in enumerate(regions):
            election.regions.append(
                Region(name=name, geometry=geometry, buffer_meters=buffer_meters, display_order=i)
            )
        for i, (label, required) in enumerate(custom_fields):
            election.custom_fields.append(
                CustomField(label=label, field_type="text", is_required=required, display_order=i)
            )
        db.session.add(election)
        db.session.commit()
        return election

    return _make


@pytest.fixture
def campus_circle():
    return {"type": "circle", "center": list(ISLAMABAD), "radiusMeters": 500}


@pytest.fixture
def past():
    return datetime.utcnow() - timedelta(days=1)


@pytest.fixture
def future():
    return datetime.utcnow() + timedelta(days=1)
