"""
Tests for the read side: expand -> reconcile -> aggregate, with memo + versions
"""
from datetime import date

import pytest

from cuentas.application.groups import InviteMemberUseCase, AcceptInvitationUseCase
from cuentas.application.month_view import MonthViewService, summary_horizon
from cuentas.application.obligations import CreateObligationUseCase
from cuentas.application.payments import RecordPaymentUseCase
from cuentas.application.sync import ScopeCache
from cuentas.domain.errors import Forbidden, ValidationError
from cuentas.domain.movement import STATUS_PAID, STATUS_PENDING, STATUS_OVERDUE
from cuentas.infrastructure.db.models import RecurringObligationModel


def create(db, user_id, group_id, **kwargs):
    params = dict(
        actor_user_id=user_id, group_id=group_id, source="recurring", description="Obligación",
        amount=50000, direction="expense", period=(2025, 1),
    )
    params.update(kwargs)
    return CreateObligationUseCase(db).execute(**params)


@pytest.fixture
def service(db_session, today):
    return MonthViewService(db_session, cache=ScopeCache(), today=today)


class TestScenarios:
    def test_june_overdue_july_pending(self, db_session, alice, group_id, service):
        """50000, 2025-01..2025-12, день 5, сегодня 2025-06-10"""
        create(db_session, alice.id, group_id, period_end=(2025, 12), payment_day=5)
        june = service.expand_and_reconcile(alice.id, group_id, 2025, 6).data
        july = service.expand_and_reconcile(alice.id, group_id, 2025, 7).data
        assert [i.status for i in june] == [STATUS_OVERDUE]
        assert [i.status for i in july] == [STATUS_PENDING]
        assert june[0].deadline == date(2025, 6, 5)

    def test_range_inclusivity(self, db_session, alice, group_id, service):
        create(db_session, alice.id, group_id, period=(2025, 3), period_end=(2025, 3))
        assert len(service.expand_and_reconcile(alice.id, group_id, 2025, 3).data) == 1
        assert service.expand_and_reconcile(alice.id, group_id, 2025, 2).data == ()
        assert service.expand_and_reconcile(alice.id, group_id, 2025, 4).data == ()

    def test_day_clamping_february(self, db_session, alice, group_id, service):
        create(db_session, alice.id, group_id, period=(2026, 1), payment_day=31)
        feb = service.expand_and_reconcile(alice.id, group_id, 2026, 2).data
        assert feb[0].deadline == date(2026, 2, 28)

    def test_boundary_date_pending(self, db_session, alice, group_id, service):
        create(db_session, alice.id, group_id, payment_day=10)
        assert service.expand_and_reconcile(alice.id, group_id, 2025, 6).data[0].status == STATUS_PENDING

    def test_idempotent_reads(self, db_session, alice, group_id, today):
        create(db_session, alice.id, group_id, payment_day=5)
        first = MonthViewService(db_session, cache=ScopeCache(), today=today).expand_and_reconcile(
            alice.id, group_id, 2025, 6)
        second = MonthViewService(db_session, cache=ScopeCache(), today=today).expand_and_reconcile(
            alice.id, group_id, 2025, 6)
        assert first.data == second.data
        assert first.version == second.version

    def test_invalid_month_rejected(self, alice, group_id, service):
        with pytest.raises(ValidationError):
            service.monthly_summary(alice.id, group_id, 2025, 13)


class TestAuthorization:
    def test_pending_invitee_forbidden_then_allowed(self, db_session, alice, bob, group_id):
        """pending_invitation -> Forbidden; после accept -> успех"""
        InviteMemberUseCase(db_session).execute(actor_user_id=alice.id, group_id=group_id, email=bob.email)
        with pytest.raises(Forbidden):
            create(db_session, bob.id, group_id)
        AcceptInvitationUseCase(db_session).execute(user_id=bob.id, group_id=group_id)
        oid = create(db_session, bob.id, group_id)
        assert db_session.get(RecurringObligationModel, oid).owner_user_id == bob.id

    def test_reads_require_membership(self, bob, group_id, service):
        with pytest.raises(Forbidden):
            service.expand_and_reconcile(bob.id, group_id, 2025, 6)


class TestCacheInvalidation:
    def test_create_visible_without_force(self, db_session, alice, group_id, service):
        before = service.expand_and_reconcile(alice.id, group_id, 2025, 6)
        assert before.data == ()
        create(db_session, alice.id, group_id)
        after = service.expand_and_reconcile(alice.id, group_id, 2025, 6)
        assert after.version > before.version
        assert len(after.data) == 1

    def test_memo_reused_while_version_unchanged(self, db_session, alice, group_id, service):
        create(db_session, alice.id, group_id)
        service.monthly_summary(alice.id, group_id, 2025, 6)
        service.monthly_summary(alice.id, group_id, 2025, 6)
        assert service.cache.hits == 1
        assert service.cache.misses == 1

    def test_force_bypasses_memo(self, db_session, alice, group_id, service):
        create(db_session, alice.id, group_id)
        service.monthly_summary(alice.id, group_id, 2025, 6)
        service.monthly_summary(alice.id, group_id, 2025, 6, force=True)
        assert service.cache.hits == 0
        assert service.cache.misses == 2

    def test_teammate_write_visible_on_next_read(self, db_session, alice, bob, shared_group_id, service):
        service.expand_and_reconcile(bob.id, shared_group_id, 2025, 6)
        create(db_session, alice.id, shared_group_id)
        assert len(service.expand_and_reconcile(bob.id, shared_group_id, 2025, 6).data) == 1

    def test_memo_evicts_least_recent(self):
        cache = ScopeCache(max_entries=2)
        for n in range(3):
            cache.get_or_compute(n, "v", date(2025, 6, 10), 1, lambda: n)
        assert len(cache) == 2


class TestSummaries:
    def test_monthly_summary_cap(self, db_session, alice, group_id, service):
        paid = create(db_session, alice.id, group_id, amount=9999, payment_day=1)
        create(db_session, alice.id, group_id, amount=1, payment_day=2)
        create(db_session, alice.id, group_id, amount=200000, direction="income", description="Salario")
        RecordPaymentUseCase(db_session).execute(alice.id, "recurring", paid, 2025, 6, 9999, date(2025, 6, 1))
        summary = service.monthly_summary(alice.id, group_id, 2025, 6).data
        assert summary.overdue_expense == 1
        assert summary.paid_percentage == 99
        assert summary.total_income == 200000
        assert summary.remaining == 200000 - 10000

    def test_category_rollup(self, db_session, alice, group_id, service):
        create(db_session, alice.id, group_id, category="Servicios")
        create(db_session, alice.id, group_id, category="Servicios")
        create(db_session, alice.id, group_id, category="Casa")
        create(db_session, alice.id, group_id, category="savings")
        stats = service.category_rollup(alice.id, group_id, 2025, 6).data
        assert [(s.category, s.count) for s in stats] == [("Servicios", 2), ("Casa", 1)]

    def test_savings_lifetime(self, db_session, alice, group_id, service):
        """Накопления за всё время, а не только за текущий месяц"""
        oid = create(db_session, alice.id, group_id, category="savings", amount=100000, payment_day=28)
        record = RecordPaymentUseCase(db_session)
        for month in (3, 4, 5):
            record.execute(alice.id, "recurring", oid, 2025, month, 100000, date(2025, month, 20))
        record.execute(alice.id, "recurring", oid, 2025, 6, 40000, date(2025, 6, 9))
        record.execute(alice.id, "recurring", oid, 2025, 7, 100000, date(2025, 6, 9))

        savings = service.savings_summary(alice.id, group_id, 2025, 6).data
        assert savings.planned == 100000
        assert savings.saved_this_month == 40000
        assert savings.lifetime_saved == 340000
        assert savings.overdue_count == 0

    def test_goal_progress(self, db_session, alice, group_id, service):
        oid = create(db_session, alice.id, group_id, description="Viaje", is_goal=True,
                     amount=1000, installments=3, payment_day=1)
        record = RecordPaymentUseCase(db_session)
        for month in (1, 2, 3):
            record.execute(alice.id, "recurring", oid, 2025, month, 1000, date(2025, month, 1))
        create(db_session, alice.id, group_id, description="Carro", is_goal=True,
               amount=500, period=(2025, 5), installments=4, payment_day=1)

        stats = service.goal_progress(alice.id, group_id).data
        assert stats.total_goals == 2
        assert stats.completed == 1
        assert stats.in_progress == 1
        by_name = {g.description: g for g in stats.goals}
        assert by_name["Viaje"].progress == 100
        assert by_name["Carro"].overdue_count == 2  # May and June due on the 1st
        assert by_name["Carro"].progress == 0

    def test_group_financial_summary(self, db_session, alice, group_id, service):
        create(db_session, alice.id, group_id, amount=100, period=(2025, 1), period_end=(2025, 3))
        create(db_session, alice.id, group_id, amount=1000, direction="income", description="Salario",
               period=(2025, 1), period_end=(2025, 2))
        CreateObligationUseCase(db_session).execute(
            actor_user_id=alice.id, group_id=group_id, source="one_off", description="Regalo",
            amount=50, direction="expense", period=(2024, 12),
        )
        summary = service.group_financial_summary(alice.id, group_id).data
        assert summary.total_income == 2000
        assert summary.total_expense == 350
        assert summary.total == 1650

    def test_group_summary_empty(self, alice, group_id, service):
        summary = service.group_financial_summary(alice.id, group_id).data
        assert (summary.total_income, summary.total_expense, summary.total) == (0, 0, 0)

    def test_open_ended_bounded_by_horizon(self, db_session, alice, group_id, service):
        create(db_session, alice.id, group_id, amount=10, period=(2025, 1))
        # today = 2025-06-10 -> horizon 2025-12
        assert service.group_financial_summary(alice.id, group_id).data.total_expense == 120

    def test_far_one_off_does_not_stretch_open_ended(self, db_session, alice, group_id, service):
        create(db_session, alice.id, group_id, amount=10, period=(2025, 1))
        CreateObligationUseCase(db_session).execute(
            actor_user_id=alice.id, group_id=group_id, source="one_off", description="Herencia",
            amount=7, direction="expense", period=(9000, 1),
        )
        assert service.group_financial_summary(alice.id, group_id).data.total_expense == 127


class TestHorizon:
    def test_defaults_to_december(self):
        assert summary_horizon(date(2025, 6, 10), 0) == (2025, 12)

    def test_months_ahead_past_december(self):
        assert summary_horizon(date(2025, 11, 1), 3) == (2026, 2)
