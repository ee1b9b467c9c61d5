from datetime import datetime
from ..extensions import db
from ..metrics import BalancePoint


class MonthlyBalance(db.Model):
    __tablename__ = "monthly_balances"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # NULL means the balance is not tied to a specific account
    bank_account_id = db.Column(db.Integer, db.ForeignKey("bank_accounts.id", ondelete="CASCADE"))
    month_year = db.Column(db.Date, nullable=False)  # always the 1st of the month
    balance = db.Column(db.Float, nullable=False)
    interest_earned = db.Column(db.Float, nullable=False, default=0.0)
    one_off_deposit = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bank_account = db.relationship("BankAccount", back_populates="balances")

    # Two partial indexes because NULL account ids never collide in a plain
    # unique constraint.
    __table_args__ = (
        db.Index(
            "uq_balance_user_month_account",
            "user_id", "month_year", "bank_account_id",
            unique=True,
            sqlite_where=db.text("bank_account_id IS NOT NULL"),
            postgresql_where=db.text("bank_account_id IS NOT NULL"),
        ),
        db.Index(
            "uq_balance_user_month_unassigned",
            "user_id", "month_year",
            unique=True,
            sqlite_where=db.text("bank_account_id IS NULL"),
            postgresql_where=db.text("bank_account_id IS NULL"),
        ),
    )

    def to_point(self):
        return BalancePoint(
            month=self.month_year,
            account_id=self.bank_account_id,
            balance=float(self.balance),
            interest_earned=float(self.interest_earned or 0.0),
            one_off_deposit=float(self.one_off_deposit or 0.0),
        )
