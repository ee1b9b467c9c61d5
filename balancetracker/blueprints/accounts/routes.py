from flask import Blueprint, render_template, request, redirect, url_for, flash, abort
from flask_login import login_required, current_user
from ... import records
from ...models.bank_account import ACCOUNT_TYPES, CURRENCIES

accounts_bp = Blueprint("accounts", __name__, url_prefix="/accounts")


def _render_form(account=None, form=None, status=200):
    return render_template(
        "accounts/form.html",
        account=account,
        form=form or {},
        account_types=ACCOUNT_TYPES,
        currencies=CURRENCIES,
    ), status


@accounts_bp.route("/")
@login_required
def list_accounts():
    accounts = records.list_bank_accounts(current_user)
    return render_template("accounts/list.html", accounts=accounts)


@accounts_bp.route("/create", methods=["GET", "POST"])
@login_required
def create_account():
    if request.method == "POST":
        result = records.add_bank_account(current_user, request.form)
        if result.get("error"):
            flash(result["error"], "danger")
            return _render_form(form=request.form, status=400)
        flash("Bank account added", "success")
        return redirect(url_for("accounts.list_accounts"))
    return _render_form()


@accounts_bp.route("/<int:account_id>/edit", methods=["GET", "POST"])
@login_required
def edit_account(account_id):
    account = records.get_bank_account(current_user, account_id)
    if account is None:
        abort(404)
    if request.method == "POST":
        result = records.update_bank_account(current_user, account_id, request.form)
        if result.get("error"):
            flash(result["error"], "danger")
            return _render_form(account=account, form=request.form, status=400)
        flash("Bank account updated", "success")
        return redirect(url_for("accounts.list_accounts"))
    form = {
        "name": account.name,
        "bank_name": account.bank_name or "",
        "account_type": account.account_type,
        "account_number_last4": account.account_number_last4 or "",
        "currency": account.currency,
        "color": account.color or "",
        "notes": account.notes or "",
        "is_active": "true" if account.is_active else "",
    }
    return _render_form(account=account, form=form)


@accounts_bp.route("/<int:account_id>/delete", methods=["POST"])
@login_required
def delete_account(account_id):
    result = records.delete_bank_account(current_user, account_id)
    if result.get("error"):
        flash(result["error"], "danger")
    else:
        flash("Bank account deleted", "info")
    return redirect(url_for("accounts.list_accounts"))
