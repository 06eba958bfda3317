from decimal import Decimal
from sqlalchemy.orm import Session
from ..db.session import Base, SessionLocal, engine
from ..db import models

WORKSPACES = [
    ("Hot Desk - Main Floor", models.WorkspaceCategory.desk, 1, "2.50", False, "1.0", "12.0"),
    ("Hot Desk - Quiet Zone", models.WorkspaceCategory.desk, 1, "2.50", False, "1.0", "12.0"),
    ("Focus Room A", models.WorkspaceCategory.meeting_room, 4, "25.00", True, "0.5", "8.0"),
    ("Focus Room B", models.WorkspaceCategory.meeting_room, 4, "25.00", True, "0.5", "8.0"),
    ("Collaborate Room", models.WorkspaceCategory.meeting_room, 6, "40.00", True, "0.5", "8.0"),
    ("Boardroom", models.WorkspaceCategory.meeting_room, 8, "60.00", True, "0.5", "8.0"),
    ("Communications Pod 1", models.WorkspaceCategory.meeting_room, 1, "5.00", True, "0.5", "4.0"),
    ("Communications Pod 2", models.WorkspaceCategory.meeting_room, 1, "5.00", True, "0.5", "4.0"),
]


def seed(session: Session) -> int:
    if session.query(models.Workspace).count():
        return 0
    for name, category, capacity, rate, accepts_credits, min_hours, max_hours in WORKSPACES:
        session.add(
            models.Workspace(
                name=name,
                category=category,
                capacity=capacity,
                hourly_rate=Decimal(rate),
                accepts_credits=accepts_credits,
                min_duration_hours=Decimal(min_hours),
                max_duration_hours=Decimal(max_hours),
            )
        )
    session.commit()
    return len(WORKSPACES)


if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        created = seed(session)
        print(f"Seeded {created} workspaces")
