from .user import User
from .bank_account import BankAccount
from .monthly_balance import MonthlyBalance
from .monthly_income import MonthlyIncome

__all__ = ["User", "BankAccount", "MonthlyBalance", "MonthlyIncome"]
