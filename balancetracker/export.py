from datetime import date
from io import BytesIO

import openpyxl
from openpyxl.styles import Font

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
UNASSIGNED_ACCOUNT = "All / Unspecified"

SUMMARY_HEADERS = ["Month", "Total balance", "Income", "Spend", "Save", "Save %"]
BALANCE_HEADERS = ["Month", "Account", "Balance", "Interest", "One-off deposit", "Notes"]
INCOME_HEADERS = ["Month", "Amount", "Notes"]


def format_month(value):
    return value.strftime("%b %Y")


def export_filename(prefix, today=None):
    today = today or date.today()
    return f"{prefix}-{today.isoformat()}.xlsx"


def _sheet(wb, title, headers, first=False):
    ws = wb.active if first else wb.create_sheet(title)
    ws.title = title
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.freeze_panes = "A2"
    return ws


def _blank(value):
    return "" if value is None else value


def build_workbook(balances, incomes, summary_rows):
    """Three-sheet workbook: monthly summary, balances by account, income.

    ``balances`` and ``incomes`` are model rows, ``summary_rows`` the
    ``MonthSummary`` rows from :func:`balancetracker.metrics.monthly_summary`.
    """
    wb = openpyxl.Workbook()

    ws = _sheet(wb, "Summary by month", SUMMARY_HEADERS, first=True)
    for row in summary_rows:
        save_percent = f"{row.save_percent:.1f}%" if row.save_percent is not None else ""
        ws.append([
            format_month(row.month),
            row.balance,
            row.income,
            _blank(row.spend),
            _blank(row.savings),
            save_percent,
        ])

    ws = _sheet(wb, "Balances", BALANCE_HEADERS)
    for b in sorted(balances, key=lambda b: b.month_year, reverse=True):
        ws.append([
            format_month(b.month_year),
            b.bank_account.name if b.bank_account else UNASSIGNED_ACCOUNT,
            b.balance,
            b.interest_earned or 0,
            b.one_off_deposit or 0,
            b.notes or "",
        ])

    ws = _sheet(wb, "Income", INCOME_HEADERS)
    for i in sorted(incomes, key=lambda i: i.month_year, reverse=True):
        ws.append([format_month(i.month_year), i.amount, i.notes or ""])

    return wb


def workbook_bytes(wb):
    bio = BytesIO()
    wb.save(bio)
    bio.seek(0)
    return bio
