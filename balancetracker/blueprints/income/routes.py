from datetime import date
from flask import Blueprint, render_template, request, redirect, url_for, flash, abort
from flask_login import login_required, current_user
from ... import records

income_bp = Blueprint("income", __name__, url_prefix="/income")


@income_bp.route("/", methods=["GET", "POST"])
@login_required
def save_income():
    if request.method == "POST":
        result = records.upsert_monthly_income(current_user, request.form)
        if result.get("error"):
            flash(result["error"], "danger")
            return render_template("income/form.html", form=request.form), 400
        flash("Income saved", "success")
        return redirect(url_for("dashboard.index"))
    return render_template(
        "income/form.html",
        form={"month_year": request.args.get("month") or date.today().strftime("%Y-%m")},
    )


@income_bp.route("/<int:income_id>/edit")
@login_required
def edit_income(income_id):
    row = records.get_income(current_user, income_id)
    if row is None:
        abort(404)
    form = {
        "month_year": row.month_year.strftime("%Y-%m"),
        "income_amount": row.amount,
        "income_notes": row.notes or "",
    }
    return render_template("income/form.html", form=form, income=row)


@income_bp.route("/<int:income_id>/delete", methods=["POST"])
@login_required
def delete_income(income_id):
    result = records.delete_monthly_income(current_user, income_id)
    if result.get("error"):
        flash(result["error"], "danger")
    else:
        flash("Income deleted", "info")
    return redirect(url_for("dashboard.index"))
