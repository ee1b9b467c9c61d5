from flask import Blueprint, render_template, request, redirect, url_for, flash
from flask_login import login_required, current_user
from ... import records

settings_bp = Blueprint("settings", __name__, url_prefix="/settings")

DELETE_ALL_CONFIRMATION = "DELETE"


@settings_bp.route("/")
@login_required
def index():
    return render_template(
        "settings/index.html",
        accounts=records.list_bank_accounts(current_user),
        confirmation=DELETE_ALL_CONFIRMATION,
    )


@settings_bp.route("/password", methods=["POST"])
@login_required
def change_password():
    result = records.change_password(current_user, request.form)
    if result.get("error"):
        flash(result["error"], "danger")
    else:
        flash("Password updated", "success")
    return redirect(url_for("settings.index"))


@settings_bp.route("/delete-all", methods=["POST"])
@login_required
def delete_all():
    if request.form.get("confirm") != DELETE_ALL_CONFIRMATION:
        flash(f"Type {DELETE_ALL_CONFIRMATION} to confirm", "warning")
        return redirect(url_for("settings.index"))
    result = records.delete_all_user_data(current_user)
    if result.get("error"):
        flash(result["error"], "danger")
        return redirect(url_for("settings.index"))
    flash("All your data has been deleted", "info")
    return redirect(url_for("dashboard.index"))
