from datetime import datetime
from decimal import Decimal

from printshop.db.init_db import ROLE_NAMES, seed_roles, seed_settings
from printshop.db.session import atomic
from printshop.models import AuditLog, Role
from printshop.services import numbering
from printshop.services.audit_logger import log_audit
from printshop.services.money import totals_for
from printshop.services.settings_service import (DbSettingsStore, get_setting,
                                                 set_setting, tax_rate_percent)

from tests.base import WorkflowTestCase


class NumberingTests(WorkflowTestCase):
    def test_sequence_per_type_and_year(self):
        now = datetime(2026, 12, 31, 23, 0)
        self.assertEqual(numbering.next_number(self.db, doc_type="INV", now=now),
                         "INV-2026-0001")
        self.assertEqual(numbering.next_number(self.db, doc_type="INV", now=now),
                         "INV-2026-0002")
        self.assertEqual(numbering.next_number(self.db, doc_type="ORD", now=now),
                         "ORD-2026-0001")
        self.assertEqual(
            numbering.next_number(self.db, doc_type="INV", now=datetime(2027, 1, 1)),
            "INV-2027-0001")


class SettingsTests(WorkflowTestCase):
    def test_tax_rate_defaults_to_ten(self):
        store = DbSettingsStore(self.db)
        self.assertEqual(tax_rate_percent(store), Decimal("10"))

        set_setting(self.db, "tax_rate", "7.5")
        self.assertEqual(tax_rate_percent(store), Decimal("7.5"))

    def test_seeding_is_repeatable(self):
        self.assertEqual(seed_roles(self.db), 0)
        self.assertEqual(self.db.query(Role).count(), len(ROLE_NAMES))

        seed_settings(self.db)
        set_setting(self.db, "tax_rate", 12)
        seed_settings(self.db)
        self.assertEqual(get_setting(self.db, "tax_rate"), "12")


class MoneyTests(WorkflowTestCase):
    def test_tax_is_rounded_before_total(self):
        t = totals_for("10.05", "0", "7.5")
        self.assertEqual(t["tax"], Decimal("0.75"))
        self.assertEqual(t["total"], Decimal("10.80"))


class TransactionScopeTests(WorkflowTestCase):
    def test_outer_scope_rolls_back_everything(self):
        with self.assertRaises(RuntimeError):
            with atomic(self.db):
                numbering.next_number(self.db, doc_type="PAY", now=datetime(2026, 1, 1))
                with atomic(self.db):
                    numbering.next_number(self.db, doc_type="PAY", now=datetime(2026, 1, 1))
                raise RuntimeError("boom")

        self.assertEqual(
            numbering.next_number(self.db, doc_type="PAY", now=datetime(2026, 1, 1)),
            "PAY-2026-0001")

    def test_audit_failure_does_not_break_caller(self):
        with atomic(self.db):
            numbering.next_number(self.db, doc_type="JOB", now=datetime(2026, 1, 1))
            with self.assertLogs("printshop.db.session", level="ERROR"):
                # action is NOT NULL
                log_audit(self.db, user_id=None, action=None, table_name="orders",
                          record_id=1)

        self.assertEqual(self.db.query(AuditLog).count(), 0)
        self.assertEqual(
            numbering.next_number(self.db, doc_type="JOB", now=datetime(2026, 1, 1)),
            "JOB-2026-0002")
