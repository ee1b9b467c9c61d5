from datetime import datetime
from ..extensions import db

ACCOUNT_TYPES = ("transactions", "expenses", "savings", "emergency", "fun")
CURRENCIES = ("AUD", "USD", "EUR", "GBP", "NZD")
DEFAULT_ACCOUNT_TYPE = "transactions"
DEFAULT_CURRENCY = "AUD"


class BankAccount(db.Model):
    __tablename__ = "bank_accounts"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    bank_name = db.Column(db.String(120))
    account_type = db.Column(db.String(20), nullable=False, default=DEFAULT_ACCOUNT_TYPE)
    account_number_last4 = db.Column(db.String(4))
    currency = db.Column(db.String(3), nullable=False, default=DEFAULT_CURRENCY)
    color = db.Column(db.String(20))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    balances = db.relationship("MonthlyBalance", back_populates="bank_account", lazy=True, cascade="all, delete")

    def __repr__(self):
        return f"<BankAccount {self.id} {self.name!r}>"
