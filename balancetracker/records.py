"""Owner-scoped reads and writes for accounts, balances and incomes.

Every mutation returns a result dict, ``{"success": True, ...}`` or
``{"error": message}``, and never raises for bad input or a store failure.
Checks run in a fixed order: signed in, input valid, then the store.
"""
import logging
import math
from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from .extensions import db
from .models import BankAccount, MonthlyBalance, MonthlyIncome
from .models.bank_account import ACCOUNT_TYPES, CURRENCIES, DEFAULT_ACCOUNT_TYPE, DEFAULT_CURRENCY

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MIGRATION_HINT = "Run `flask db upgrade` to apply pending migrations."
_MISSING_SCHEMA_MARKERS = (
    "no such table",
    "no such column",
    "has no column",
    "does not exist",
    "interest_earned",
    "one_off_deposit",
)
# balances first since they reference accounts
PURGE_ORDER = (MonthlyBalance, MonthlyIncome, BankAccount)

_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class ValidationError(ValueError):
    pass


class UnsupportedBackendError(RuntimeError):
    """The configured database has no native upsert we know how to build."""


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_month(raw) -> date:
    """Accept ``YYYY-MM`` or ``YYYY-MM-DD`` and return the 1st of that month."""
    raw = (raw or "").strip()
    if not raw:
        raise ValidationError("Month is required")
    try:
        if len(raw) == 7:
            parsed = datetime.strptime(raw, "%Y-%m").date()
        else:
            parsed = date.fromisoformat(raw)
    except ValueError:
        raise ValidationError("Invalid date format")
    return parsed.replace(day=1)


def parse_amount(raw, label, default=0.0) -> float:
    """Parse a finite, non-negative number; blank input gives ``default``."""
    if raw is None or str(raw).strip() == "":
        if default is None:
            raise ValidationError(f"{label} is required")
        return default
    try:
        value = float(str(raw).strip())
    except ValueError:
        raise ValidationError(f"{label} must be a valid number")
    if not math.isfinite(value) or value < 0:
        raise ValidationError(f"{label} must be a valid number")
    return value


def coerce_account_type(value):
    value = (value or "").strip()
    return value if value in ACCOUNT_TYPES else DEFAULT_ACCOUNT_TYPE


def coerce_currency(value):
    value = (value or "").strip()
    return value if value in CURRENCIES else DEFAULT_CURRENCY


def _text(form, key):
    return (form.get(key) or "").strip() or None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _login_error(user, action):
    if user is None or not getattr(user, "is_authenticated", False):
        return {"error": f"You must be logged in to {action}"}
    return None


def _store_error(exc, context):
    db.session.rollback()
    logger.exception("Error %s", context)
    message = str(getattr(exc, "orig", None) or exc) or "Database error"
    if any(marker in message.lower() for marker in _MISSING_SCHEMA_MARKERS):
        message = f"{message} {MIGRATION_HINT}"
    return {"error": message}


def _upsert(model, values, index_elements, index_where=None):
    """INSERT ... ON CONFLICT DO UPDATE on the given uniqueness tuple."""
    dialect = db.session.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise UnsupportedBackendError(f"Saving is not supported on the {dialect} database")
    stmt = insert(model).values(**values)
    updates = {
        key: stmt.excluded[key]
        for key in values
        if key not in index_elements
    }
    updates["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(
        index_elements=index_elements,
        index_where=index_where,
        set_=updates,
    )
    db.session.execute(stmt)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def list_bank_accounts(user, active_only=False):
    query = BankAccount.query.filter_by(user_id=user.id)
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(BankAccount.name).all()


def get_bank_account(user, account_id):
    return BankAccount.query.filter_by(id=account_id, user_id=user.id).first()


def list_balances(user, with_accounts=True):
    query = MonthlyBalance.query.filter_by(user_id=user.id)
    if with_accounts:
        query = query.options(joinedload(MonthlyBalance.bank_account))
    return query.order_by(MonthlyBalance.month_year.desc(), MonthlyBalance.id).all()


def get_balance(user, balance_id):
    return MonthlyBalance.query.filter_by(id=balance_id, user_id=user.id).first()


def list_incomes(user):
    return (
        MonthlyIncome.query.filter_by(user_id=user.id)
        .order_by(MonthlyIncome.month_year.desc())
        .all()
    )


def get_income(user, income_id):
    return MonthlyIncome.query.filter_by(id=income_id, user_id=user.id).first()


# ---------------------------------------------------------------------------
# Bank accounts
# ---------------------------------------------------------------------------

def _account_fields(form):
    last4 = _text(form, "account_number_last4")
    return {
        "name": _text(form, "name"),
        "bank_name": _text(form, "bank_name"),
        "account_type": coerce_account_type(form.get("account_type")),
        "account_number_last4": last4[-4:] if last4 else None,
        "currency": coerce_currency(form.get("currency")),
        "color": _text(form, "color"),
        "notes": _text(form, "notes"),
    }


def add_bank_account(user, form):
    error = _login_error(user, "add a bank account")
    if error:
        return error

    fields = _account_fields(form)
    if not fields["name"]:
        return {"error": "Account name and type are required"}

    account = BankAccount(user_id=user.id, is_active=True, **fields)
    try:
        db.session.add(account)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _store_error(exc, "adding bank account")
    logger.info("User %s added bank account %s", user.id, account.id)
    return {"success": True, "id": account.id}


def update_bank_account(user, account_id, form):
    error = _login_error(user, "update a bank account")
    if error:
        return error

    fields = _account_fields(form)
    if not fields["name"]:
        return {"error": "Account name is required"}
    fields["is_active"] = form.get("is_active") == "true"

    try:
        updated = (
            BankAccount.query.filter_by(id=account_id, user_id=user.id)
            .update(fields, synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        return _store_error(exc, "updating bank account")
    logger.info("User %s updated bank account %s (%d row(s))", user.id, account_id, updated)
    return {"success": True, "updated": updated}


def delete_bank_account(user, account_id):
    error = _login_error(user, "delete a bank account")
    if error:
        return error

    account = get_bank_account(user, account_id)
    if account is None:
        return {"success": True, "deleted": 0}
    try:
        # ORM delete so the account's balances go with it
        db.session.delete(account)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _store_error(exc, "deleting bank account")
    logger.info("User %s deleted bank account %s", user.id, account_id)
    return {"success": True, "deleted": 1}


# ---------------------------------------------------------------------------
# Monthly balances
# ---------------------------------------------------------------------------

def _parse_account_id(raw):
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("Invalid bank account selected")


def upsert_monthly_balance(user, form):
    """Insert or update the balance for (user, month, account-or-none)."""
    error = _login_error(user, "add a balance")
    if error:
        return error

    try:
        interest = parse_amount(form.get("interest_earned"), "Interest earned")
        one_off = parse_amount(form.get("one_off_deposit"), "One-off deposit")
        balance_raw = form.get("balance")
        if not (form.get("month_year") or "").strip() or balance_raw is None or not str(balance_raw).strip():
            raise ValidationError("Month and balance are required")
        balance = parse_amount(balance_raw, "Balance", default=None)
        month = parse_month(form.get("month_year"))
        account_id = _parse_account_id(form.get("bank_account_id"))
    except ValidationError as exc:
        return {"error": str(exc)}

    if account_id is not None and get_bank_account(user, account_id) is None:
        return {"error": "Invalid bank account selected"}

    values = {
        "user_id": user.id,
        "bank_account_id": account_id,
        "month_year": month,
        "balance": balance,
        "interest_earned": interest,
        "one_off_deposit": one_off,
        "notes": _text(form, "notes"),
    }
    if account_id is None:
        index_elements = ["user_id", "month_year"]
        index_where = MonthlyBalance.bank_account_id.is_(None)
    else:
        index_elements = ["user_id", "month_year", "bank_account_id"]
        index_where = MonthlyBalance.bank_account_id.isnot(None)

    try:
        _upsert(MonthlyBalance, values, index_elements, index_where)
        db.session.commit()
    except (SQLAlchemyError, UnsupportedBackendError) as exc:
        return _store_error(exc, "saving balance")
    logger.info("User %s saved balance for %s (account %s)", user.id, month, account_id)
    return {"success": True}


def delete_monthly_balance(user, balance_id):
    error = _login_error(user, "delete a balance")
    if error:
        return error
    try:
        deleted = (
            MonthlyBalance.query.filter_by(id=balance_id, user_id=user.id)
            .delete(synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        return _store_error(exc, "deleting balance")
    return {"success": True, "deleted": deleted}


# ---------------------------------------------------------------------------
# Monthly incomes
# ---------------------------------------------------------------------------

def upsert_monthly_income(user, form):
    error = _login_error(user, "add income")
    if error:
        return error

    try:
        month = parse_month(form.get("month_year"))
        amount = parse_amount(form.get("income_amount"), "Income amount")
    except ValidationError as exc:
        return {"error": str(exc)}

    values = {
        "user_id": user.id,
        "month_year": month,
        "amount": amount,
        "notes": _text(form, "income_notes"),
    }
    try:
        _upsert(MonthlyIncome, values, ["user_id", "month_year"])
        db.session.commit()
    except (SQLAlchemyError, UnsupportedBackendError) as exc:
        return _store_error(exc, "saving income")
    logger.info("User %s saved income for %s", user.id, month)
    return {"success": True}


def delete_monthly_income(user, income_id):
    error = _login_error(user, "delete income")
    if error:
        return error
    try:
        deleted = (
            MonthlyIncome.query.filter_by(id=income_id, user_id=user.id)
            .delete(synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        return _store_error(exc, "deleting income")
    return {"success": True, "deleted": deleted}


# ---------------------------------------------------------------------------
# Delete everything
# ---------------------------------------------------------------------------

def _purge(model, user_id):
    deleted = model.query.filter_by(user_id=user_id).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def delete_all_user_data(user):
    """Delete balances, then incomes, then accounts.

    Each step commits on its own. A failed step stops the rest and nothing
    already deleted comes back.
    """
    error = _login_error(user, "delete your data")
    if error:
        return error

    deleted = {}
    for model in PURGE_ORDER:
        try:
            deleted[model.__tablename__] = _purge(model, user.id)
        except SQLAlchemyError as exc:
            return _store_error(exc, f"deleting {model.__tablename__}")
    logger.warning("User %s deleted all data: %s", user.id, deleted)
    return {"success": True, "deleted": deleted}


# ---------------------------------------------------------------------------
# Account settings
# ---------------------------------------------------------------------------

def change_password(user, form):
    error = _login_error(user, "change your password")
    if error:
        return error

    current = form.get("current_password") or ""
    new = form.get("new_password") or ""
    if not user.check_password(current):
        return {"error": "Current password is incorrect"}
    if len(new) < MIN_PASSWORD_LENGTH:
        return {"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}
    try:
        user.set_password(new)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _store_error(exc, "changing password")
    logger.info("User %s changed password", user.id)
    return {"success": True}
