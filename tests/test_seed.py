from decimal import Decimal

from cowork.db import models
from cowork.services.seed import seed


def test_seed_creates_workspaces_once(db_session):
    assert seed(db_session) == 8
    assert seed(db_session) == 0

    rooms = db_session.query(models.Workspace).filter_by(category=models.WorkspaceCategory.meeting_room).all()
    desks = db_session.query(models.Workspace).filter_by(category=models.WorkspaceCategory.desk).all()
    assert len(rooms) == 6 and len(desks) == 2
    assert all(room.accepts_credits for room in rooms)
    assert {desk.hourly_rate for desk in desks} == {Decimal("2.50")}
    assert all(room.granularity_minutes == 30 for room in rooms)
