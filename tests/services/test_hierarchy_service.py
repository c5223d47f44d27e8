"""Tests for the organization hierarchy service facade."""

from unittest.mock import patch

import pytest

from orgchart.services.errors import (
    CycleError,
    ForeignClientError,
    LockTimeoutError,
    NotFoundError,
    SubordinatesPresentError,
    ValidationError,
)


@pytest.fixture
def org(service):
    """ceo <- cto <- dev; ceo <- cfo, all for client 'acme'."""
    ceo = service.create_position({"client_id": "acme", "title": "CEO", "employee_name": "Ada"})
    cto = service.create_position({"client_id": "acme", "title": "CTO", "parent_id": ceo.id})
    cfo = service.create_position({
        "client_id": "acme", "title": "CFO", "parent_id": ceo.id, "employee_name": "Joan",
    })
    dev = service.create_position({"client_id": "acme", "title": "Developer", "parent_id": cto.id})
    return {"ceo": ceo, "cto": cto, "cfo": cfo, "dev": dev}


class TestCreatePosition:
    """Tests for create_position."""

    def test_level_derived_from_parent(self, service, org):
        assert org["ceo"].level == 0
        assert org["cto"].level == 1
        assert org["dev"].level == 2

    def test_supplied_level_ignored(self, service, org):
        position = service.create_position({
            "client_id": "acme", "title": "Intern", "parent_id": org["dev"].id, "level": 0,
        })
        assert position.level == 3

    def test_negative_level_rejected(self, service):
        with pytest.raises(ValidationError, match="non-negative"):
            service.create_position({"client_id": "acme", "title": "CEO", "level": -1})

    def test_missing_parent(self, service):
        with pytest.raises(NotFoundError):
            service.create_position({"client_id": "acme", "title": "CTO", "parent_id": "nope"})

    def test_foreign_parent(self, service, org):
        with pytest.raises(ForeignClientError):
            service.create_position({
                "client_id": "globex", "title": "CTO", "parent_id": org["ceo"].id,
            })

    def test_rejected_write_leaves_nothing(self, service, org):
        with pytest.raises(ValidationError):
            service.create_position({"client_id": "acme", "title": ""})
        assert len(service.list_positions("acme")) == 4

    def test_lock_timeout_surfaces(self, service):
        with patch(
            "orgchart.services.hierarchy_service.org_lock",
            side_effect=LockTimeoutError("busy"),
        ):
            with pytest.raises(LockTimeoutError):
                service.create_position({"client_id": "acme", "title": "CEO"})


class TestReads:
    """Tests for tree, flat, subordinate and stats reads."""

    def test_fetch_tree(self, service, org):
        roots = service.fetch_tree("acme")

        assert [r.title for r in roots] == ["CEO"]
        assert [c.title for c in roots[0].children] == ["CFO", "CTO"]
        assert [c.title for c in roots[0].children[1].children] == ["Developer"]

    def test_fetch_tree_is_client_scoped(self, service, org):
        assert service.fetch_tree("globex") == []

    def test_fetch_tree_department_scope(self, service, org):
        department = service.departments.create("acme", "Engineering")
        service.update_position(org["dev"].id, {"department_id": department.id})

        roots = service.fetch_tree("acme", department_id=department.id)

        assert [r.title for r in roots] == ["Developer"]

    def test_fetch_flat_pre_order(self, service, org):
        flat = service.fetch_flat("acme")

        assert [n.title for n in flat] == ["CEO", "CFO", "CTO", "Developer"]
        assert all(n.children == [] for n in flat)

    def test_subordinates(self, service, org):
        assert [p.title for p in service.get_subordinates(org["ceo"].id)] == ["CFO", "CTO"]

    def test_available_parents(self, service, org):
        titles = [p.title for p in service.get_available_parents("acme", org["cto"].id)]
        assert titles == ["CEO", "CFO"]

    def test_stats(self, service, org):
        stats = service.get_stats("acme")

        assert stats.total_positions == 4
        assert stats.filled_positions == 2
        assert stats.vacant_positions == 2

    def test_validate_hierarchy(self, service, org):
        assert service.validate_hierarchy("acme", org["cfo"].id, org["dev"].id) == {"valid": True}

        result = service.validate_hierarchy("acme", org["ceo"].id, org["dev"].id)
        assert result["valid"] is False
        assert result["code"] == "cycle"

        result = service.validate_hierarchy("globex", org["ceo"].id, None)
        assert result["code"] == "foreign_client"


class TestUpdateAndMove:
    """Tests for update_position and move_position."""

    def test_update_fields(self, service, org):
        position = service.update_position(org["cto"].id, {"employee_name": "Grace"})
        assert position.employee_name == "Grace"

    def test_update_rejects_level(self, service, org):
        with pytest.raises(ValidationError, match="level"):
            service.update_position(org["cto"].id, {"level": 4})

    def test_update_rejects_reparent(self, service, org):
        with pytest.raises(ValidationError, match="move"):
            service.update_position(org["dev"].id, {"parent_id": org["cfo"].id})

    def test_update_with_unchanged_parent(self, service, org):
        position = service.update_position(
            org["dev"].id, {"parent_id": org["cto"].id, "title": "Engineer"},
        )
        assert position.title == "Engineer"

    def test_move_to_root(self, service, org):
        moved = service.move_position(org["cto"].id, None)

        assert moved.level == 0
        assert service.get_position(org["dev"].id).level == 1
        assert service.get_position(org["ceo"].id).level == 0

    def test_move_cycle_rejected_and_tree_unchanged(self, service, org):
        with pytest.raises(CycleError):
            service.move_position(org["ceo"].id, org["dev"].id)

        ceo = service.get_position(org["ceo"].id)
        assert ceo.parent_id is None
        assert ceo.level == 0


class TestDeleteAndImport:
    """Tests for delete_position, bulk_import and CSV round trips."""

    def test_delete_blocked(self, service, org):
        with pytest.raises(SubordinatesPresentError) as exc_info:
            service.delete_position(org["cto"].id)

        assert exc_info.value.subordinate_count == 1
        assert service.get_position(org["cto"].id) is not None

    def test_delete_reassign(self, service, org):
        result = service.delete_position(org["cto"].id, "reassign-to-grandparent")

        assert result.reassigned_ids == [org["dev"].id]
        dev = service.get_position(org["dev"].id)
        assert (dev.parent_id, dev.level) == (org["ceo"].id, 1)

    def test_delete_plan(self, service, org):
        plan = service.plan_delete_position(org["ceo"].id)
        assert (plan.allowed, plan.subordinate_count) == (False, 2)

    def test_bulk_import(self, service, org):
        result = service.bulk_import("acme", [
            {"key": "vp", "title": "VP Sales", "parent_id": org["ceo"].id},
            {"title": "Account Exec", "parent_key": "vp"},
        ])

        assert result.success is True
        levels = {p.title: p.level for p in service.list_positions("acme")}
        assert levels["VP Sales"] == 1
        assert levels["Account Exec"] == 2

    def test_failed_import_leaves_tree_unchanged(self, service, org):
        result = service.bulk_import("acme", [
            {"title": "VP Sales", "parent_id": org["ceo"].id},
            {"title": "Account Exec", "email": "broken"},
        ])

        assert result.success is False
        assert len(service.list_positions("acme")) == 4

    def test_bulk_import_requires_list(self, service):
        with pytest.raises(ValidationError):
            service.bulk_import("acme", {"title": "CEO"})

    def test_export_then_import_round_trip(self, service, org):
        text = service.export_csv("acme")

        result = service.import_csv("acme", text)

        assert result.success is True
        assert (result.created, result.updated) == (0, 4)
        dev = service.get_position(org["dev"].id)
        assert (dev.parent_id, dev.level) == (org["cto"].id, 2)
