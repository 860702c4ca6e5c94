"""
Seed demo data: two users sharing a "Casa" group with a few obligations.
Run:  python seed_test_data.py
"""
import sys
from datetime import date

# ── bootstrap ────────────────────────────────────────────────────
from cuentas.auth import create_user, get_user_by_email
from cuentas.infrastructure.db.session import get_session_factory

db = get_session_factory()()

if get_user_by_email(db, "ana@example.com"):
    print("Seed data already exists (ana@example.com)"); sys.exit(0)

# ── use cases ────────────────────────────────────────────────────
from cuentas.application.groups import CreateGroupUseCase, InviteMemberUseCase, AcceptInvitationUseCase
from cuentas.application.obligations import CreateObligationUseCase
from cuentas.application.payments import RecordPaymentUseCase, SettleInstanceUseCase

ana = create_user(db, "ana@example.com", "password123", first_name="Ana")
luis = create_user(db, "luis@example.com", "password123", first_name="Luis")
db.commit()

group_id = CreateGroupUseCase(db).execute(user_id=ana.id, name="Casa")
InviteMemberUseCase(db).execute(actor_user_id=ana.id, group_id=group_id, email=luis.email)
AcceptInvitationUseCase(db).execute(user_id=luis.id, group_id=group_id)

year = date.today().year
create = CreateObligationUseCase(db).execute

create(actor_user_id=ana.id, group_id=group_id, source="recurring", description="Salario",
       amount=4_500_000, direction="income", period=(year, 1), category="Trabajo")
rent = create(actor_user_id=ana.id, group_id=group_id, source="recurring", description="Arriendo",
              amount=1_500_000, direction="expense", period=(year, 1), payment_day=5, category="Vivienda")
internet = create(actor_user_id=luis.id, group_id=group_id, source="recurring", description="Internet",
                  amount=120_000, direction="expense", period=(year, 1), payment_day=15, category="Servicios")
savings = create(actor_user_id=ana.id, group_id=group_id, source="recurring", description="Ahorro mensual",
                 amount=300_000, direction="expense", period=(year, 1), payment_day=28, category="savings")
trip = create(actor_user_id=ana.id, group_id=group_id, source="recurring", description="Viaje a la costa",
              amount=400_000, direction="expense", period=(year, 1), installments=10, payment_day=1,
              is_goal=True)
create(actor_user_id=luis.id, group_id=group_id, source="one_off", description="Revisión del carro",
       amount=650_000, direction="expense", period=(year, 3), deadline=date(year, 3, 20), category="Transporte")

settle = SettleInstanceUseCase(db)
for month in (1, 2):
    for obligation_id in (rent, internet, savings, trip):
        settle.execute(ana.id, "recurring", obligation_id, year, month, paid_at=date(year, month, 1))
RecordPaymentUseCase(db).execute(luis.id, "recurring", internet, year, 3, 60_000, paid_at=date(year, 3, 10))

db.close()
print(f"Seeded group {group_id}: ana@example.com / luis@example.com (password123)")
