from io import BytesIO
from unittest import mock

import openpyxl
from sqlalchemy.exc import IntegrityError

from balancetracker.extensions import db
from balancetracker.models import BankAccount, MonthlyBalance, MonthlyIncome, User

from helpers import AppTestCase, month


class AuthRouteTests(AppTestCase):
    def test_dashboard_requires_login(self):
        resp = self.client.get("/dashboard/")
        self.assertEqual(resp.status_code, 302)
        self.assertIn("/auth/login", resp.headers["Location"])

    def test_mutations_require_login(self):
        resp = self.client.post("/balances/", data={"month_year": "2025-01", "balance": "1"})
        self.assertEqual(resp.status_code, 302)
        self.assertIn("/auth/login", resp.headers["Location"])
        self.assertEqual(MonthlyBalance.query.count(), 0)

    def test_register_signs_in(self):
        resp = self.client.post(
            "/auth/register",
            data={"email": "New@Example.com", "password": "secret123"},
            follow_redirects=True,
        )
        self.assertEqual(resp.status_code, 200)
        self.assertIn(b"Dashboard", resp.data)
        self.assertIsNotNone(User.query.filter_by(email="new@example.com").first())

    def test_register_rejects_duplicates_and_short_passwords(self):
        self.make_user()
        resp = self.client.post("/auth/register", data={"email": "alice@example.com", "password": "secret123"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn(b"Email already registered", resp.data)
        resp = self.client.post("/auth/register", data={"email": "carol@example.com", "password": "abc"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn(b"at least 6 characters", resp.data)

    def test_register_race_on_unique_email_is_reported(self):
        clash = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: users.email"))
        with mock.patch.object(db.session, "commit", side_effect=clash):
            resp = self.client.post("/auth/register", data={"email": "dave@example.com", "password": "secret123"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn(b"Email already registered", resp.data)
        self.assertIsNone(User.query.filter_by(email="dave@example.com").first())

    def test_bad_credentials(self):
        self.make_user()
        resp = self.login(password="nope")
        self.assertIn(b"Invalid credentials", resp.data)


class DashboardRouteTests(AppTestCase):
    def setUp(self):
        super().setUp()
        self.user = self.make_user()
        self.login()

    def test_save_balance_and_income_then_read_metrics(self):
        self.client.post("/balances/", data={"month_year": "2025-01", "balance": "1000"})
        self.client.post("/balances/", data={"month_year": "2025-02", "balance": "1200", "interest_earned": "20"})
        self.client.post("/income/", data={"month_year": "2025-02", "income_amount": "400"})

        data = self.client.get("/dashboard/metrics.json").get_json()
        self.assertEqual(data["current_month"], "2025-02-01")
        self.assertEqual(data["total_balance"], 1200)
        feb, jan = data["summary"]
        self.assertEqual(feb["savings"], 180)
        self.assertEqual(feb["spend"], 220)
        self.assertTrue(jan["is_opening_month"])
        self.assertIsNone(jan["savings"])
        self.assertEqual(data["averages"]["save"]["3"], 180)
        self.assertIsNone(data["trends"]["save"]["3"])

    def test_dashboard_renders(self):
        self.make_balance(self.user, month(2025, 1), 1000)
        self.make_balance(self.user, month(2025, 2), 1500)
        resp = self.client.get("/dashboard/")
        self.assertEqual(resp.status_code, 200)
        self.assertIn(b"1,500.00", resp.data)
        self.assertIn(b"Opening", resp.data)

    def test_invalid_balance_is_reported_inline(self):
        resp = self.client.post("/balances/", data={"month_year": "2025-01", "balance": "-3"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn(b"Balance must be a valid number", resp.data)
        self.assertEqual(self.count(MonthlyBalance, self.user), 0)

    def test_account_filter_narrows_balance_chart(self):
        a = self.make_account(self.user, name="A")
        b = self.make_account(self.user, name="B")
        self.make_balance(self.user, month(2025, 1), 100, account=a)
        self.make_balance(self.user, month(2025, 1), 900, account=b)
        data = self.client.get(f"/dashboard/metrics.json?account={a.id}").get_json()
        self.assertEqual(data["balance_chart"], [{"month": "2025-01-01", "balance": 100}])
        self.assertEqual(data["total_balance"], 1000)

    def test_only_own_data_is_shown(self):
        bob = self.make_user("bob@example.com")
        self.make_balance(bob, month(2025, 1), 777)
        data = self.client.get("/dashboard/metrics.json").get_json()
        self.assertEqual(data["summary"], [])

    def test_export(self):
        account = self.make_account(self.user, name="Everyday")
        self.make_balance(self.user, month(2025, 1), 1000, account=account)
        self.make_income(self.user, month(2025, 1), 400)
        resp = self.client.get("/dashboard/export.xlsx")
        self.assertEqual(resp.status_code, 200)
        self.assertIn("spreadsheetml", resp.headers["Content-Type"])
        self.assertIn("bank-balance-export-", resp.headers["Content-Disposition"])
        wb = openpyxl.load_workbook(BytesIO(resp.data))
        self.assertEqual(wb.sheetnames, ["Summary by month", "Balances", "Income"])
        self.assertEqual(wb["Balances"]["B2"].value, "Everyday")


class RecordRouteTests(AppTestCase):
    def setUp(self):
        super().setUp()
        self.user = self.make_user()
        self.login()

    def test_delete_balance_of_another_user_is_a_noop(self):
        bob = self.make_user("bob@example.com")
        row = self.make_balance(bob, month(2025, 1), 10)
        resp = self.client.post(f"/balances/{row.id}/delete", follow_redirects=True)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.count(MonthlyBalance, bob), 1)

    def test_edit_forms_are_owner_scoped(self):
        bob = self.make_user("bob@example.com")
        account = self.make_account(bob)
        balance = self.make_balance(bob, month(2025, 1), 10)
        income = self.make_income(bob, month(2025, 1), 10)
        self.assertEqual(self.client.get(f"/accounts/{account.id}/edit").status_code, 404)
        self.assertEqual(self.client.get(f"/balances/{balance.id}/edit").status_code, 404)
        self.assertEqual(self.client.get(f"/income/{income.id}/edit").status_code, 404)

    def test_account_crud(self):
        resp = self.client.post(
            "/accounts/create",
            data={"name": "Rainy day", "account_type": "emergency", "currency": "USD"},
            follow_redirects=True,
        )
        self.assertIn(b"Rainy day", resp.data)
        account = BankAccount.query.filter_by(user_id=self.user.id).one()
        self.assertEqual(account.account_type, "emergency")

        self.assertEqual(self.client.get(f"/accounts/{account.id}/edit").status_code, 200)
        self.client.post(f"/accounts/{account.id}/edit", data={"name": "Buffer", "is_active": "true"})
        self.assertEqual(BankAccount.query.filter_by(name="Buffer").count(), 1)

        self.client.post(f"/accounts/{account.id}/delete")
        self.assertEqual(self.count(BankAccount, self.user), 0)

    def test_delete_all_needs_confirmation(self):
        self.make_balance(self.user, month(2025, 1), 10)
        self.make_income(self.user, month(2025, 1), 10)
        self.make_account(self.user)

        resp = self.client.post("/settings/delete-all", data={"confirm": "yes"}, follow_redirects=True)
        self.assertIn(b"Type DELETE to confirm", resp.data)
        self.assertEqual(self.count(MonthlyBalance, self.user), 1)

        self.client.post("/settings/delete-all", data={"confirm": "DELETE"})
        for model in (MonthlyBalance, MonthlyIncome, BankAccount):
            self.assertEqual(self.count(model, self.user), 0)

    def test_change_password(self):
        resp = self.client.post(
            "/settings/password",
            data={"current_password": "secret123", "new_password": "another1"},
            follow_redirects=True,
        )
        self.assertIn(b"Password updated", resp.data)
