"""
Tests for services.projection: role-based redaction of read results.
"""
import uuid

import pytest

from firewood_bank.services.projection import (
    ADDRESS_FIELDS,
    project_clients,
    project_work_orders,
)


def _client_row(**overrides):
    row = {f: f"value of {f}" for f in ADDRESS_FIELDS}
    row.update(
        id=uuid.uuid4(),
        name="Ada Lovelace",
        telephone="555-0100",
        email="ada@example.org",
        directions="Left at the red barn",
        gate_combo="1234",
        notes="Dog in yard",
    )
    row.update(overrides)
    return row


def _order_row(assignees, **overrides):
    row = _client_row(client_name="Ada Lovelace", status="scheduled")
    row["assignees"] = assignees
    row.update(overrides)
    return row


class TestProjectClients:
    def test_lead_without_hipaa_sees_sentinel(self, make_actor):
        rows = project_clients([_client_row(), _client_row()], make_actor("lead"))
        assert len(rows) == 2
        for row in rows:
            assert all(row[f] == "Hidden" for f in ADDRESS_FIELDS)
            assert row["telephone"] is None
            assert row["email"] is None
            assert row["gate_combo"] is None

    def test_admin_sees_everything(self, make_actor):
        original = _client_row()
        rows = project_clients([original], make_actor("admin"))
        assert rows == [original]
        assert rows[0] is not original

    def test_hipaa_lead_sees_everything(self, make_actor):
        original = _client_row()
        assert project_clients([original], make_actor("lead", hipaa_certified=True)) == [original]

    def test_staff_is_masked(self, make_actor):
        row = project_clients([_client_row()], make_actor("staff"))[0]
        assert row["physical_address_line1"] == "Hidden"
        assert row["directions"] == "Left at the red barn"

    def test_driver_sees_only_assigned_clients_without_address(self, make_actor):
        mine, other = _client_row(), _client_row()
        rows = project_clients([mine, other], make_actor("driver", "dan"), assigned_client_ids={mine["id"]})
        assert [r["id"] for r in rows] == [mine["id"]]
        assert all(rows[0][f] is None for f in ADDRESS_FIELDS + ("gate_combo", "notes"))
        assert rows[0]["telephone"] == "555-0100"

    def test_volunteer_sees_names_only(self, make_actor):
        mine = _client_row()
        row = project_clients([mine], make_actor("volunteer", "val"), assigned_client_ids={mine["id"]})[0]
        assert row["name"] == "Ada Lovelace"
        assert row["telephone"] is None
        assert row["directions"] is None

    def test_input_rows_untouched(self, make_actor):
        original = _client_row()
        project_clients([original], make_actor("staff"))
        assert original["telephone"] == "555-0100"


class TestProjectWorkOrders:
    def test_driver_filtered_to_assignments(self, make_actor):
        rows = [
            _order_row(["DAN", "kim"]),
            _order_row(["kim"]),
            _order_row([]),
            _order_row(None),
        ]
        out = project_work_orders(rows, make_actor("driver", "dan"))
        assert len(out) == 1
        assert out[0]["gate_combo"] is None
        assert out[0]["notes"] is None
        assert out[0]["directions"] == "Left at the red barn"

    def test_staff_with_driver_flag_is_filtered(self, make_actor):
        rows = [_order_row(["sam"]), _order_row(["kim"])]
        assert len(project_work_orders(rows, make_actor("staff", "sam", is_driver=True))) == 1

    def test_lead_with_driver_flag_sees_all(self, make_actor):
        rows = [_order_row(["sam"]), _order_row(["kim"])]
        out = project_work_orders(rows, make_actor("lead", "sam", is_driver=True, hipaa_certified=True))
        assert out == rows

    def test_volunteer_filtered_and_stripped(self, make_actor):
        rows = [_order_row(["val"]), _order_row(["kim"])]
        out = project_work_orders(rows, make_actor("volunteer", "Val"))
        assert len(out) == 1
        assert all(out[0][f] is None for f in ADDRESS_FIELDS + ("telephone", "email", "directions"))

    @pytest.mark.parametrize("role", ["staff", "lead"])
    def test_masked_roles_see_every_row(self, make_actor, role):
        rows = [_order_row(["kim"]), _order_row([])]
        out = project_work_orders(rows, make_actor(role))
        assert len(out) == 2
        assert {r["physical_address_city"] for r in out} == {"Hidden"}
