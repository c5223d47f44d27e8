"""Tests for organization statistics."""

from types import SimpleNamespace

from orgchart.services.org_stats import compute_stats, is_filled


def _position(employee_name=None, department=None, department_id=None, level=0):
    return SimpleNamespace(
        employee_name=employee_name,
        department=department,
        department_id=department_id,
        level=level,
    )


class TestComputeStats:
    """Tests for compute_stats."""

    def test_empty_and_missing_names_are_vacant(self):
        stats = compute_stats([
            _position("X"),
            _position(None),
            _position(""),
        ])

        assert stats.total_positions == 3
        assert stats.filled_positions == 1
        assert stats.vacant_positions == 2

    def test_whitespace_name_is_vacant(self):
        assert is_filled(_position("   ")) is False

    def test_empty_set(self):
        stats = compute_stats([])

        assert stats.to_dict() == {
            "total_positions": 0,
            "filled_positions": 0,
            "vacant_positions": 0,
            "fill_rate": 0.0,
            "by_department": [],
            "by_level": [],
        }

    def test_fill_rate(self):
        stats = compute_stats([_position("A"), _position(None), _position(None)])
        assert stats.fill_rate == 0.3333

    def test_by_department(self):
        stats = compute_stats([
            _position("A", "Engineering", "d-eng"),
            _position(None, "Engineering", "d-eng"),
            _position("B", "Executive"),
            _position(None),
        ])

        assert stats.by_department == [
            {"department_id": "d-eng", "department": "Engineering", "total": 2, "filled": 1, "vacant": 1},
            {"department_id": None, "department": "Executive", "total": 1, "filled": 1, "vacant": 0},
            {"department_id": None, "department": "Unassigned", "total": 1, "filled": 0, "vacant": 1},
        ]

    def test_by_level(self):
        stats = compute_stats([
            _position("A", level=0),
            _position("B", level=1),
            _position(None, level=1),
        ])

        assert stats.by_level == [
            {"level": 0, "total": 1, "filled": 1, "vacant": 0},
            {"level": 1, "total": 2, "filled": 1, "vacant": 1},
        ]
