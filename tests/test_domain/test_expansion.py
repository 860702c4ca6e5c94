"""Tests for obligation expansion"""
from datetime import date

from cuentas.domain.calendar_math import OPEN_ENDED_PERIOD
from cuentas.domain.expansion import (
    RecurringSpec, OneOffSpec, expand_scope, expand_range, expand_recurring, instance_id,
)
from cuentas.domain.movement import MovementKind


def recurring(id=1, start=(2025, 1), end=OPEN_ENDED_PERIOD, payment_day=None, amount=100000,
              direction="expense", category="Casa", is_goal=False):
    kind = MovementKind.RECURRING_GOAL if is_goal else (
        MovementKind.RECURRING_INCOME if direction == "income" else MovementKind.RECURRING_EXPENSE
    )
    return RecurringSpec(
        id=id, group_id=1, owner_user_id=1, description=f"Recurring {id}", amount=amount,
        direction=direction, category=category, kind=kind, start=start, end=end,
        payment_day=payment_day, is_goal=is_goal,
    )


def one_off(id=1, period=(2025, 6), deadline=None, amount=50000):
    return OneOffSpec(
        id=id, group_id=1, owner_user_id=1, description=f"One-off {id}", amount=amount,
        direction="expense", category="Casa", kind=MovementKind.ONE_OFF_EXPENSE,
        period=period, deadline=deadline,
    )


class TestRecurringRange:
    def test_included_at_start_and_end(self):
        spec = recurring(start=(2025, 3), end=(2025, 5))
        assert expand_recurring(spec, 2025, 3) is not None
        assert expand_recurring(spec, 2025, 5) is not None

    def test_excluded_outside_range(self):
        spec = recurring(start=(2025, 3), end=(2025, 5))
        assert expand_recurring(spec, 2025, 2) is None
        assert expand_recurring(spec, 2025, 6) is None

    def test_single_month_range(self):
        spec = recurring(start=(2025, 6), end=(2025, 6))
        instances = expand_range([spec], [], (2025, 1), (2025, 12))
        assert [(i.year, i.month) for i in instances] == [(2025, 6)]

    def test_open_ended_far_future(self):
        spec = recurring(start=(2025, 1))
        assert expand_recurring(spec, 2099, 7) is not None


class TestDeadline:
    def test_day_31_clamped_in_february(self):
        """payment_day=31 в феврале 2026 -> 28"""
        inst = expand_recurring(recurring(payment_day=31), 2026, 2)
        assert inst.deadline == date(2026, 2, 28)

    def test_no_payment_day_no_deadline(self):
        inst = expand_recurring(recurring(payment_day=None), 2025, 6)
        assert inst.deadline is None

    def test_one_off_deadline_verbatim(self):
        instances = expand_scope([], [one_off(deadline=date(2025, 7, 15))], 2025, 6)
        assert instances[0].deadline == date(2025, 7, 15)


class TestDeterminism:
    def test_idempotent(self):
        specs = [recurring(id=1, payment_day=5), recurring(id=2, payment_day=20)]
        offs = [one_off(id=7, deadline=date(2025, 6, 1))]
        assert expand_scope(specs, offs, 2025, 6) == expand_scope(specs, offs, 2025, 6)

    def test_stable_instance_id(self):
        assert instance_id("recurring", 1, 2025, 6) == instance_id("recurring", 1, 2025, 6)
        assert instance_id("recurring", 1, 2025, 6) != instance_id("one_off", 1, 2025, 6)
        assert instance_id("recurring", 1, 2025, 6) != instance_id("recurring", 1, 2025, 7)

    def test_sorted_by_deadline_then_undated(self):
        specs = [recurring(id=1, payment_day=None), recurring(id=2, payment_day=20), recurring(id=3, payment_day=5)]
        instances = expand_scope(specs, [], 2025, 6)
        assert [i.source_id for i in instances] == [3, 2, 1]


class TestOneOff:
    def test_only_in_own_period(self):
        assert expand_scope([], [one_off(period=(2025, 6))], 2025, 7) == []
        assert len(expand_scope([], [one_off(period=(2025, 6))], 2025, 6)) == 1


class TestExpandRange:
    def test_open_ended_bounded_by_window(self):
        instances = expand_range([recurring(start=(2025, 1))], [], (2025, 1), (2025, 12))
        assert len(instances) == 12

    def test_window_clips_start(self):
        instances = expand_range([recurring(start=(2024, 1), end=(2025, 3))], [], (2025, 1), (2025, 12))
        assert [(i.year, i.month) for i in instances] == [(2025, 1), (2025, 2), (2025, 3)]

    def test_includes_one_offs_in_window(self):
        instances = expand_range([], [one_off(period=(2025, 6)), one_off(id=2, period=(2026, 6))],
                                 (2025, 1), (2025, 12))
        assert [i.source_id for i in instances] == [1]

    def test_goal_flag_propagated(self):
        instances = expand_range([recurring(is_goal=True, start=(2025, 1), end=(2025, 3))], [],
                                 (2025, 1), (2025, 3))
        assert all(i.is_goal for i in instances)
        assert all(i.kind == MovementKind.RECURRING_GOAL for i in instances)

    def test_open_ended_capped_separately_from_window(self):
        """Дальний разовый платёж расширяет окно, но не бессрочные обязательства"""
        instances = expand_range(
            [recurring(id=1, start=(2025, 1)), recurring(id=2, start=(2025, 1), end=(2026, 3))],
            [one_off(period=(9000, 1))],
            (2025, 1), (9000, 1), open_ended_until=(2025, 12),
        )
        by_source = {}
        for instance in instances:
            by_source.setdefault((instance.source, instance.source_id), []).append((instance.year, instance.month))
        assert len(by_source[("recurring", 1)]) == 12
        assert by_source[("recurring", 1)][-1] == (2025, 12)
        assert len(by_source[("recurring", 2)]) == 15
        assert by_source[("one_off", 1)] == [(9000, 1)]
