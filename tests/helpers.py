import unittest
from datetime import date

from balancetracker import create_app
from balancetracker.config import TestingConfig
from balancetracker.extensions import db
from balancetracker.models import BankAccount, MonthlyBalance, MonthlyIncome, User


class AppTestCase(unittest.TestCase):
    def setUp(self):
        self.app = create_app(TestingConfig)
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.client = self.app.test_client()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def make_user(self, email="alice@example.com", password="secret123"):
        user = User(email=email)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    def make_account(self, user, name="Everyday", **kwargs):
        account = BankAccount(user_id=user.id, name=name, **kwargs)
        db.session.add(account)
        db.session.commit()
        return account

    def make_balance(self, user, month, balance, account=None, interest=0.0, one_off=0.0):
        row = MonthlyBalance(
            user_id=user.id,
            bank_account_id=account.id if account else None,
            month_year=month,
            balance=balance,
            interest_earned=interest,
            one_off_deposit=one_off,
        )
        db.session.add(row)
        db.session.commit()
        return row

    def make_income(self, user, month, amount):
        row = MonthlyIncome(user_id=user.id, month_year=month, amount=amount)
        db.session.add(row)
        db.session.commit()
        return row

    def login(self, email="alice@example.com", password="secret123"):
        return self.client.post(
            "/auth/login",
            data={"email": email, "password": password},
            follow_redirects=True,
        )

    def count(self, model, user):
        db.session.expire_all()
        return model.query.filter_by(user_id=user.id).count()


def month(year, m):
    return date(year, m, 1)
