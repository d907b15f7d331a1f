from datetime import date

from resort.dashboard import dashboard_stats
from resort.models import Billing, Resident, Room, Visitor
from resort.occupancy import activate_occupancy


def test_dashboard_counts(session):
    rooms = [Room(unit_number=f"D-{n}", monthly_rate=700) for n in range(3)]
    residents = [Resident(full_name=f"R{n}", ic_number=f"IC-D{n}") for n in range(2)]
    session.add_all(rooms + residents)
    session.add_all(
        [
            Visitor(full_name="V1", email="v1@example.com", phone="0123", visit_date=date(2026, 3, 2)),
            Visitor(full_name="V2", email="v2@example.com", phone="0124", visit_date=date(2026, 3, 2), status="approved"),
        ]
    )
    session.commit()
    activate_occupancy(session, residents[0].id, rooms[0].id, date(2026, 1, 1))
    session.add_all(
        [
            Billing(resident_id=residents[0].id, amount=700, due_date=date(2026, 3, 4)),
            Billing(resident_id=residents[1].id, amount=700, due_date=date(2026, 4, 1)),
        ]
    )
    session.commit()

    stats = dashboard_stats(session, 7, today=date(2026, 3, 1))

    assert stats.resident_count == 2
    assert stats.room_count == 3
    assert stats.occupied_rooms == 1
    assert stats.occupancy_rate == 33
    assert stats.pending_renewals == 1
    assert stats.visitor_requests == 1


def test_dashboard_empty(session):
    stats = dashboard_stats(session, 7, today=date(2026, 3, 1))
    assert stats.occupancy_rate == 0
    assert stats.room_count == 0
