"""Tests for computed fields."""

import pytest

from stanx import DerivationError, computed, create_store


class TestComputed:
    def test_initial_evaluation(self):
        s = create_store({"count": 3, "double": computed(lambda st: st.count * 2)})
        assert s.get_state().double == 6

    def test_recomputes_on_dependency_change(self):
        calls = []

        def double(st):
            calls.append(st.count)
            return st.count * 2

        s = create_store({"count": 1, "double": computed(double)})
        s.actions.set_count(4)
        assert s.get_state().double == 8
        assert calls == [1, 4]

    def test_exactly_one_recomputation_per_change(self):
        calls = []

        def total(st):
            calls.append(1)
            return st.a + st.b

        s = create_store({"a": 1, "b": 2, "total": computed(total)})
        s.actions.set_a(10)
        assert len(calls) == 2
        s.actions.set_b(20)
        assert len(calls) == 3

    def test_unread_field_does_not_recompute(self):
        calls = []

        def only_a(st):
            calls.append(1)
            return st.a

        s = create_store({"a": 1, "b": 2, "c": computed(only_a)})
        s.actions.set_b(5)
        assert calls == [1]

    def test_unchanged_result_does_not_notify(self):
        s = create_store({"n": 1, "parity": computed(lambda st: st.n % 2)})
        log = []
        s.subscribe(["parity"])(log.append)
        s.actions.set_n(3)
        assert log == []
        s.actions.set_n(4)
        assert log == [0]

    def test_dependency_tracking_is_dynamic(self):
        s = create_store(
            {
                "flag": True,
                "a": 1,
                "b": 2,
                "pick": computed(lambda st: st.a if st.flag else st.b),
            }
        )
        assert s.dependencies("pick") == ["flag", "a"]
        s.actions.set_flag(False)
        assert s.get_state().pick == 2
        assert s.dependencies("pick") == ["flag", "b"]

    def test_stale_dependencies_are_dropped(self):
        calls = []

        def pick(st):
            calls.append(1)
            return st.a if st.flag else st.b

        s = create_store({"flag": True, "a": 1, "b": 2, "pick": computed(pick)})
        s.actions.set_flag(False)
        assert len(calls) == 2
        s.actions.set_a(100)  # no longer a dependency
        assert len(calls) == 2
        assert s.get_state().pick == 2

    def test_constant_computed_has_no_dependencies(self):
        s = create_store({"a": 1, "c": computed(lambda st: 42)})
        assert s.dependencies("c") == []
        s.actions.set_a(2)
        assert s.get_state().c == 42

    def test_chained_computed(self):
        s = create_store(
            {
                "n": 3,
                "doubled": computed(lambda st: st.n * 2),
                "quadrupled": computed(lambda st: st.doubled * 2),
            }
        )
        assert s.get_state().quadrupled == 12
        log = []
        s.subscribe(["quadrupled"])(log.append)
        s.actions.set_n(5)
        assert s.get_state().quadrupled == 20
        assert log == [20]

    def test_decorator_form(self):
        @computed
        def total(state):
            return state.price * state.quantity

        s = create_store({"price": 2, "quantity": 3, "total": total})
        s.actions.set_quantity(5)
        assert s.get_state().total == 10


class TestDerivationErrors:
    def test_construction_failure_propagates(self):
        def broken(st):
            raise ValueError("boom")

        with pytest.raises(DerivationError) as info:
            create_store({"a": 1, "bad": computed(broken)})
        assert info.value.field == "bad"
        assert isinstance(info.value.__cause__, ValueError)

    def test_recompute_failure_propagates_to_writer(self):
        s = create_store({"d": 1, "inv": computed(lambda st: 1 / st.d)})
        with pytest.raises(DerivationError) as info:
            s.actions.set_d(0)
        assert isinstance(info.value.__cause__, ZeroDivisionError)
        # The write itself was committed.
        assert s.get_state().d == 0

    def test_not_rewrapped_through_chain(self):
        s = create_store(
            {
                "d": 1,
                "mid": computed(lambda st: st.d),
                "inv": computed(lambda st: 1 / st.mid),
            }
        )
        with pytest.raises(DerivationError) as info:
            s.actions.set_d(0)
        assert info.value.field == "inv"

    def test_reading_later_computed_fails(self):
        with pytest.raises(DerivationError):
            create_store(
                {
                    "first": computed(lambda st: st.second + 1),
                    "second": computed(lambda st: 1),
                }
            )


class TestListenerConsistency:
    def test_same_key_listener_sees_fresh_value(self):
        s = create_store({"count": 0, "double": computed(lambda st: st.count * 2)})
        state = s.get_state()
        seen = []
        s.subscribe(["count"])(lambda v: seen.append((v, state.double)))
        for n in (1, 2, 3):
            s.actions.set_count(n)
        assert seen == [(1, 2), (2, 4), (3, 6)]

    def test_effect_sees_fresh_value(self):
        s = create_store({"count": 0, "double": computed(lambda st: st.count * 2)})
        log = []
        s.effect(lambda st: log.append((st.count, st.double)))
        s.actions.set_count(1)
        s.actions.set_count(2)
        assert log == [(0, 0), (1, 2), (2, 4)]

    def test_listener_on_other_key_sees_fresh_value(self):
        s = create_store(
            {"a": 1, "b": 1, "sum": computed(lambda st: st.a + st.b)}
        )
        state = s.get_state()
        seen = []
        s.subscribe(["a"])(lambda v: seen.append(state.sum))
        s.actions.set_a(2)
        s.actions.set_a(3)
        assert seen == [3, 4]

    def test_listener_sees_value_after_dependency_switch(self):
        s = create_store(
            {
                "flag": True,
                "a": 1,
                "b": 10,
                "pick": computed(lambda st: st.a if st.flag else st.b),
            }
        )
        state = s.get_state()
        seen = []
        s.subscribe(["flag"])(lambda v: seen.append(state.pick))
        s.actions.set_flag(False)
        s.actions.set_flag(True)
        assert seen == [10, 1]

    def test_dependent_recomputed_after_its_inputs_settle(self):
        s = create_store(
            {
                "flag": False,
                "a": 1,
                "b": computed(lambda st: st.a * 10 if st.flag else 0),
                "c": computed(lambda st: st.a + st.b),
            }
        )
        s.actions.set_flag(True)
        assert s.get_state().c == 11
        log = []
        s.subscribe(["c"])(log.append)
        s.actions.set_a(2)
        assert s.get_state().c == 22
        assert log == [22]

    def test_unchanged_dependencies_keep_registration(self):
        calls = []

        def double(st):
            calls.append(1)
            return st.count * 2

        s = create_store({"count": 0, "double": computed(double)})
        first = s.dependencies("double")
        s.actions.set_count(1)
        s.actions.set_count(2)
        assert s.dependencies("double") == first == ["count"]
        assert len(calls) == 3
