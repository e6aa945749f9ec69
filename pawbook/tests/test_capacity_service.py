import pytest

from ..core.exceptions import NotFoundError, ValidationError
from ..services.capacity_service import CapacityStore
from .conftest import MONDAY, SATURDAY


@pytest.fixture
def store(test_db):
    return CapacityStore(test_db)


class TestCapacityRules:
    """容量规则维护"""

    def test_saving_same_key_updates(self, store, seeded):
        first = store.save_rule(seeded["daycare"], 12, day_of_week=6)
        second = store.save_rule(seeded["daycare"], 18, day_of_week=6)

        saturday_rules = [r for r in store.list_rules(seeded["daycare"]) if r.day_of_week == 6]
        assert first.id == second.id
        assert len(saturday_rules) == 1
        assert saturday_rules[0].max_capacity == 18

    def test_default_and_day_rules_are_separate(self, store, seeded):
        store.save_rule(seeded["daycare"], 12, day_of_week=6)

        rules = store.day_rules(seeded["daycare"])

        assert rules[None].max_capacity == 25
        assert rules[6].max_capacity == 12

    def test_slot_rules_kept_apart(self, store, seeded):
        slots = store.slot_rules(seeded["grooming"])

        assert [r.start_time for r in slots] == ["09:00", "11:00"]
        assert set(store.day_rules(seeded["grooming"])) == {None}

    def test_invalid_rules_rejected(self, store, seeded):
        with pytest.raises(ValidationError):
            store.save_rule(seeded["grooming"], 2, start_time="10:00", end_time="09:00")
        with pytest.raises(ValidationError):
            store.save_rule(seeded["grooming"], 2, end_time="09:00")
        with pytest.raises(ValidationError):
            store.save_rule(seeded["grooming"], 2, start_time="9:00")
        with pytest.raises(ValidationError):
            store.save_rule(seeded["daycare"], -1)
        with pytest.raises(ValidationError):
            store.save_rule(seeded["daycare"], 5, day_of_week=7)

    def test_unknown_service(self, store, seeded):
        with pytest.raises(NotFoundError):
            store.save_rule(9999, 5)


class TestCapacityOverrides:
    """容量例外维护"""

    def test_setting_again_replaces(self, store, seeded):
        store.set_override(MONDAY, "event", max_capacity=30, service_type_id=seeded["daycare"])
        store.set_override(MONDAY, "holiday", service_type_id=seeded["daycare"])

        overrides = store.list_overrides(MONDAY, MONDAY)

        assert len(overrides) == 1
        assert overrides[0].is_closure
        assert overrides[0].reason == "holiday"

    def test_global_and_service_overrides_coexist(self, store, seeded):
        store.set_override(MONDAY, "holiday")
        store.set_override(MONDAY, "open_anyway", max_capacity=5, service_type_id=seeded["boarding"])

        assert len(store.list_overrides(MONDAY, MONDAY)) == 2
        assert store.overrides_for(seeded["boarding"], MONDAY, MONDAY)[MONDAY].max_capacity == 5
        assert store.overrides_for(seeded["daycare"], MONDAY, MONDAY)[MONDAY].is_closure

    def test_remove_override(self, store, seeded):
        store.set_override(SATURDAY, "holiday")

        store.remove_override(SATURDAY)

        assert store.list_overrides(SATURDAY, SATURDAY) == []
        with pytest.raises(NotFoundError):
            store.remove_override(SATURDAY)

    def test_override_requires_reason(self, store, seeded):
        with pytest.raises(ValidationError):
            store.set_override(MONDAY, "")

    def test_override_for_unknown_service(self, store, seeded):
        with pytest.raises(NotFoundError):
            store.set_override(MONDAY, "event", max_capacity=3, service_type_id=9999)
