"""
Tests for services.permissions: actor context and role gates.
"""
import uuid

import pytest

from firewood_bank.errors import Forbidden, ValidationError
from firewood_bank.services.permissions import (
    ActorContext,
    can_record_mileage,
    has_full_client_access,
    is_restricted_driver,
    require_roles,
)


class TestActorContext:
    def test_role_normalized(self):
        actor = ActorContext(username=" kim ", role=" Lead ")
        assert (actor.username, actor.role) == ("kim", "lead")

    def test_employee_alias(self):
        assert ActorContext(username="sam", role="employee").role == "staff"

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError, match="unknown role"):
            ActorContext.build(username="x", role="superuser")

    def test_blank_username_rejected(self):
        with pytest.raises(ValidationError):
            ActorContext.build(username="  ", role="admin")

    def test_frozen(self):
        actor = ActorContext(username="kim", role="lead")
        with pytest.raises(Exception):
            actor.role = "admin"

    def test_from_user(self, make_user):
        user = make_user("dan", role="volunteer", is_driver=True)
        actor = ActorContext.from_user(user)
        assert actor.is_driver_capable
        assert actor.user_id == user.id

    def test_from_deleted_user(self, make_user):
        with pytest.raises(Forbidden):
            ActorContext.from_user(make_user("gone", is_deleted=True))


class TestGates:
    def test_require_roles(self, make_actor):
        require_roles(make_actor("admin"), "admin", "lead")
        with pytest.raises(Forbidden):
            require_roles(make_actor("staff"), "admin", "lead")

    @pytest.mark.parametrize("role, hipaa, expected", [
        ("admin", False, True),
        ("lead", True, True),
        ("lead", False, False),
        ("staff", True, False),
    ])
    def test_full_client_access(self, make_actor, role, hipaa, expected):
        assert has_full_client_access(make_actor(role, hipaa_certified=hipaa)) is expected

    def test_restricted_driver(self, make_actor):
        assert is_restricted_driver(make_actor("driver"))
        assert is_restricted_driver(make_actor("staff", is_driver=True))
        assert not is_restricted_driver(make_actor("admin", is_driver=True))
        assert not is_restricted_driver(make_actor("staff"))

    def test_mileage_recorders(self, make_actor):
        assert can_record_mileage(make_actor("driver"))
        assert can_record_mileage(make_actor("lead"))
        assert not can_record_mileage(make_actor("staff"))
        assert not can_record_mileage(make_actor("volunteer"))
