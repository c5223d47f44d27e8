"""Writes to one client from separate sessions stay consistent.

Each test loads rows in session A, commits a conflicting change from session
B, then lets A write. A must act on B's committed state, not on what it had
loaded earlier.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from orgchart.database import db
from orgchart.models.position import Position
from orgchart.services.errors import CycleError
from orgchart.services.hierarchy_service import OrgHierarchyService
from orgchart.services.hierarchy_validator import ancestor_chain, parent_map
from orgchart.services.position_store import PositionStore


@pytest.fixture
def engine(db_session, tmp_path):
    """A file-backed database so each session gets its own connection."""
    engine = create_engine(f"sqlite:///{tmp_path / 'org.db'}")
    db.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sessions(engine):
    first, second = Session(engine), Session(engine)
    yield first, second
    first.close()
    second.close()


def _service(session) -> OrgHierarchyService:
    return OrgHierarchyService(store=PositionStore(session=session), lock_timeout=2)


def _add(service, title, parent=None):
    return service.create_position({
        "client_id": "acme", "title": title, "parent_id": parent.id if parent else None,
    }).id


def _committed(engine) -> dict[str, Position]:
    with Session(engine) as session:
        positions = session.query(Position).filter_by(client_id="acme").all()
        session.expunge_all()
    return {p.id: p for p in positions}


def _assert_consistent(positions: dict[str, Position]):
    parents = parent_map(positions.values())
    for position in positions.values():
        ancestor_chain(parents, position.id)
        expected = 0 if position.parent_id is None else positions[position.parent_id].level + 1
        assert position.level == expected, position.title


class TestReassignDeleteAfterMove:

    def test_children_levelled_from_committed_parent(self, engine, sessions):
        session_a, session_b = sessions
        service_a, service_b = _service(session_a), _service(session_b)

        root = service_a.get_position(_add(service_a, "Root"))
        p_id = _add(service_a, "P", root)
        d_id = _add(service_a, "D", service_a.get_position(p_id))
        c_id = _add(service_a, "C", service_a.get_position(d_id))
        s_id = _add(service_a, "S")
        s2_id = _add(service_a, "S2", service_a.get_position(s_id))

        # A holds D (level 2) in memory while B pushes P one level down
        assert service_a.get_position(d_id).level == 2
        service_b.move_position(p_id, s2_id)

        result = service_a.delete_position(d_id, "reassign-to-grandparent")

        assert result.reassigned_ids == [c_id]
        positions = _committed(engine)
        assert d_id not in positions
        assert positions[p_id].level == 2
        assert positions[c_id].parent_id == p_id
        assert positions[c_id].level == 3
        _assert_consistent(positions)


class TestCrossingMoves:

    def test_second_move_sees_first_and_rejects_cycle(self, engine, sessions):
        session_a, session_b = sessions
        service_a, service_b = _service(session_a), _service(session_b)

        x_id = _add(service_a, "X")
        y_id = _add(service_a, "Y")
        # A has both roots loaded before B commits
        service_a.list_positions("acme")

        service_b.move_position(x_id, y_id)

        with pytest.raises(CycleError):
            service_a.move_position(y_id, x_id)

        positions = _committed(engine)
        assert positions[x_id].parent_id == y_id
        assert positions[y_id].parent_id is None
        _assert_consistent(positions)

    def test_move_under_relocated_parent_takes_its_new_level(self, engine, sessions):
        session_a, session_b = sessions
        service_a, service_b = _service(session_a), _service(session_b)

        top_id = _add(service_a, "Top")
        mid_id = _add(service_a, "Mid")
        leaf_id = _add(service_a, "Leaf")
        service_a.list_positions("acme")

        service_b.move_position(mid_id, top_id)
        moved = service_a.move_position(leaf_id, mid_id)

        assert moved.level == 2
        positions = _committed(engine)
        assert positions[leaf_id].level == 2
        _assert_consistent(positions)
