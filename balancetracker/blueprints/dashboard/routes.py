from datetime import date
from flask import Blueprint, current_app, render_template, request, jsonify, send_file
from flask_login import login_required, current_user
from ... import records
from ...export import XLSX_MIMETYPE, build_workbook, export_filename, workbook_bytes
from ...metrics import build_dashboard


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/dashboard")


def _account_filter():
    return [int(a) for a in request.args.getlist("account") if a.isdigit()]


def _load(account_filter=None):
    balances = records.list_balances(current_user)
    incomes = records.list_incomes(current_user)
    view = build_dashboard(
        [b.to_point() for b in balances],
        [i.to_point() for i in incomes],
        account_filter,
    )
    return balances, incomes, view


def _jsonable(value):
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, "_asdict"):
        value = value._asdict()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dashboard_bp.route("/")
@login_required
def index():
    account_filter = _account_filter()
    balances, incomes, view = _load(account_filter)
    return render_template(
        "dashboard/index.html",
        view=view,
        balances=balances,
        incomes=incomes,
        accounts=records.list_bank_accounts(current_user, active_only=True),
        selected_accounts=account_filter,
    )


@dashboard_bp.route("/metrics.json")
@login_required
def metrics_json():
    _, _, view = _load(_account_filter())
    return jsonify(_jsonable(view))


@dashboard_bp.route("/export.xlsx")
@login_required
def export_xlsx():
    balances, incomes, view = _load()
    wb = build_workbook(balances, incomes, view["summary"])
    filename = export_filename(current_app.config["EXPORT_FILENAME_PREFIX"])
    return send_file(workbook_bytes(wb), download_name=filename, as_attachment=True,
                     mimetype=XLSX_MIMETYPE)
