from datetime import datetime
from ..extensions import db
from ..metrics import IncomePoint


class MonthlyIncome(db.Model):
    __tablename__ = "monthly_incomes"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    month_year = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "month_year", name="uq_income_user_month"),
    )

    def to_point(self):
        return IncomePoint(month=self.month_year, amount=float(self.amount))
