from datetime import date
from flask import Blueprint, render_template, request, redirect, url_for, flash, abort
from flask_login import login_required, current_user
from ... import records

balances_bp = Blueprint("balances", __name__, url_prefix="/balances")


@balances_bp.route("/", methods=["GET", "POST"])
@login_required
def save_balance():
    if request.method == "POST":
        result = records.upsert_monthly_balance(current_user, request.form)
        if result.get("error"):
            flash(result["error"], "danger")
            return render_template(
                "balances/form.html",
                accounts=records.list_bank_accounts(current_user, active_only=True),
                form=request.form,
            ), 400
        flash("Balance saved", "success")
        return redirect(url_for("dashboard.index"))

    return render_template(
        "balances/form.html",
        accounts=records.list_bank_accounts(current_user, active_only=True),
        form={"month_year": request.args.get("month") or date.today().strftime("%Y-%m")},
    )


@balances_bp.route("/<int:balance_id>/edit")
@login_required
def edit_balance(balance_id):
    row = records.get_balance(current_user, balance_id)
    if row is None:
        abort(404)
    form = {
        "month_year": row.month_year.strftime("%Y-%m"),
        "bank_account_id": str(row.bank_account_id or ""),
        "balance": row.balance,
        "interest_earned": row.interest_earned,
        "one_off_deposit": row.one_off_deposit,
        "notes": row.notes or "",
    }
    return render_template(
        "balances/form.html",
        accounts=records.list_bank_accounts(current_user),
        form=form,
        balance=row,
    )


@balances_bp.route("/<int:balance_id>/delete", methods=["POST"])
@login_required
def delete_balance(balance_id):
    result = records.delete_monthly_balance(current_user, balance_id)
    if result.get("error"):
        flash(result["error"], "danger")
    else:
        flash("Balance deleted", "info")
    return redirect(url_for("dashboard.index"))
