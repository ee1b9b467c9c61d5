"""Derived monthly figures: balance totals, savings, spend, averages and trends.

Everything in here is a pure function of the balance and income points handed
in. The dashboard rebuilds the whole view on every request, so there is no
caching and nothing to invalidate.

Savings for a month is the change in total balance since the previous month,
minus that month's one-off deposits and interest. Spend is whatever part of
the month's income was not saved. The oldest month on record (the opening
month) has nothing to compare against, so both figures are ``None`` there.
"""
from datetime import date
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

AVERAGE_WINDOWS = (3, 6, 12)
CHART_MONTHS = 12

TREND_UP = "up"
TREND_DOWN = "down"
TREND_FLAT = "flat"


class BalancePoint(NamedTuple):
    month: date
    account_id: Optional[int]
    balance: float
    interest_earned: float = 0.0
    one_off_deposit: float = 0.0


class IncomePoint(NamedTuple):
    month: date
    amount: float


class MonthSummary(NamedTuple):
    month: date
    balance: float
    income: float
    spend: Optional[float]
    savings: Optional[float]
    spend_percent: Optional[float]
    save_percent: Optional[float]
    is_opening_month: bool


def totals_by_month(rows: Iterable[BalancePoint], account_filter=None) -> Dict[date, float]:
    """Sum balances per month, optionally only for the given account ids.

    Months without a contributing row are left out rather than reported as 0.
    Rows without an account never match a non-empty filter.
    """
    selected = set(account_filter or ())
    totals: Dict[date, float] = {}
    for row in rows:
        if selected and row.account_id not in selected:
            continue
        totals[row.month] = totals.get(row.month, 0.0) + row.balance
    return totals


def sorted_months(mapping, order: str = "desc") -> List[date]:
    if order not in ("asc", "desc"):
        raise ValueError(f"order must be 'asc' or 'desc', not {order!r}")
    return sorted(mapping, reverse=(order == "desc"))


def _sum_field(rows, field):
    totals: Dict[date, float] = {}
    for row in rows:
        totals[row.month] = totals.get(row.month, 0.0) + getattr(row, field)
    return totals


def interest_by_month(rows: Iterable[BalancePoint]) -> Dict[date, float]:
    return _sum_field(rows, "interest_earned")


def one_off_by_month(rows: Iterable[BalancePoint]) -> Dict[date, float]:
    return _sum_field(rows, "one_off_deposit")


def income_by_month(incomes: Iterable[IncomePoint]) -> Dict[date, float]:
    result: Dict[date, float] = {}
    for income in incomes:
        result.setdefault(income.month, income.amount)
    return result


def percent_of_income(value: Optional[float], income: Optional[float]) -> Optional[float]:
    """``value`` as a percentage of ``income``; ``None`` unless income is positive."""
    if value is None or income is None or income <= 0:
        return None
    return value / income * 100


def monthly_summary(balances: Iterable[BalancePoint], incomes: Iterable[IncomePoint]) -> List[MonthSummary]:
    """One row per month that has a balance or an income, newest first."""
    balances = list(balances)
    totals = totals_by_month(balances)
    interest = interest_by_month(balances)
    one_off = one_off_by_month(balances)
    income = income_by_month(incomes)

    months = sorted(set(totals) | set(income), reverse=True)
    rows = []
    for index, month in enumerate(months):
        balance = totals.get(month, 0.0)
        month_income = income.get(month, 0.0)
        predecessor = months[index + 1] if index + 1 < len(months) else None
        if predecessor is None:
            savings = spend = None
        else:
            savings = (
                balance
                - totals.get(predecessor, 0.0)
                - one_off.get(month, 0.0)
                - interest.get(month, 0.0)
            )
            spend = month_income - savings
        rows.append(MonthSummary(
            month=month,
            balance=balance,
            income=month_income,
            spend=spend,
            savings=savings,
            spend_percent=percent_of_income(spend, month_income),
            save_percent=percent_of_income(savings, month_income),
            is_opening_month=predecessor is None,
        ))
    return rows


def rolling_average(values: Sequence[Optional[float]], window: int) -> Optional[float]:
    """Average of the newest ``window`` defined values (``values`` is newest first).

    Divides by however many values were actually available, so a 3 month
    average over two months of history is a 2 month average.
    """
    defined = [v for v in values if v is not None][:window]
    if not defined:
        return None
    return sum(defined) / len(defined)


def trend(values: Sequence[Optional[float]], window: int) -> Optional[str]:
    """Compare the newest ``window`` values with the ``window`` before them.

    Returns ``None`` when there are fewer than ``2 * window`` defined values.
    """
    defined = [v for v in values if v is not None]
    if len(defined) < 2 * window:
        return None
    recent = sum(defined[:window]) / window
    prior = sum(defined[window:2 * window]) / window
    if recent > prior:
        return TREND_UP
    if recent < prior:
        return TREND_DOWN
    return TREND_FLAT


def historical_average_savings(balances: Iterable[BalancePoint]) -> float:
    """Mean savings over every consecutive pair of months with balances."""
    balances = list(balances)
    totals = totals_by_month(balances)
    interest = interest_by_month(balances)
    one_off = one_off_by_month(balances)
    months = sorted_months(totals, "asc")
    if len(months) < 2:
        return 0.0
    deltas = [
        totals[curr] - totals[prev] - one_off.get(curr, 0.0) - interest.get(curr, 0.0)
        for prev, curr in zip(months, months[1:])
    ]
    return sum(deltas) / len(deltas)


def annual_projection(balances: Iterable[BalancePoint], incomes: Iterable[IncomePoint]) -> float:
    balances = list(balances)
    summary = monthly_summary(balances, incomes)
    average = rolling_average([row.savings for row in summary], 12)
    if average is not None:
        return average * 12
    return historical_average_savings(balances) * 12


def linear_trend(values: Sequence[Optional[float]]) -> List[Optional[float]]:
    """Least-squares line through the defined values, indexed by position."""
    points = [(x, y) for x, y in enumerate(values) if y is not None]
    if len(points) < 2:
        return [None] * len(values)
    n = len(points)
    sum_x = sum(x for x, _ in points)
    sum_y = sum(y for _, y in points)
    sum_xy = sum(x * y for x, y in points)
    sum_x2 = sum(x * x for x, _ in points)
    denominator = n * sum_x2 - sum_x * sum_x
    slope = (n * sum_xy - sum_x * sum_y) / denominator if denominator else 0.0
    intercept = sum_y / n - slope * (sum_x / n)
    return [slope * x + intercept if y is not None else None for x, y in enumerate(values)]


def balance_chart(balances: Iterable[BalancePoint], account_filter=None, limit: int = CHART_MONTHS):
    totals = totals_by_month(balances, account_filter)
    months = sorted_months(totals, "asc")[-limit:]
    return [{"month": month, "balance": totals[month]} for month in months]


def spend_save_chart(summary: Sequence[MonthSummary], limit: int = CHART_MONTHS):
    rows = sorted(
        (row for row in summary if row.spend is not None or row.savings is not None),
        key=lambda row: row.month,
    )
    # the oldest month of the window only anchors the line, it is not plotted
    rows = rows[-limit:][1:]
    spend_line = linear_trend([row.spend for row in rows])
    save_line = linear_trend([row.savings for row in rows])
    return [
        {
            "month": row.month,
            "spend": row.spend,
            "save": row.savings,
            "spend_trend": spend_line[i],
            "save_trend": save_line[i],
        }
        for i, row in enumerate(rows)
    ]


def build_dashboard(balances: Iterable[BalancePoint], incomes: Iterable[IncomePoint], account_filter=None):
    """Everything the dashboard shows, as one plain dict."""
    balances = list(balances)
    incomes = list(incomes)

    totals = totals_by_month(balances)
    months = sorted_months(totals, "desc")
    current_month = months[0] if months else None
    previous_month = months[1] if len(months) > 1 else None

    total_balance = totals[current_month] if current_month else 0.0
    balance_change = 0.0
    balance_change_percent = None
    if previous_month is not None:
        balance_change = total_balance - totals[previous_month]
        if totals[previous_month] != 0:
            balance_change_percent = balance_change / totals[previous_month] * 100

    summary = monthly_summary(balances, incomes)
    spend_values = [row.spend for row in summary]
    save_values = [row.savings for row in summary]

    averages = {
        "spend": {k: rolling_average(spend_values, k) for k in AVERAGE_WINDOWS},
        "save": {k: rolling_average(save_values, k) for k in AVERAGE_WINDOWS},
    }
    trends = {
        "spend": {k: trend(spend_values, k) for k in AVERAGE_WINDOWS},
        "save": {k: trend(save_values, k) for k in AVERAGE_WINDOWS},
    }

    return {
        "current_month": current_month,
        "previous_month": previous_month,
        "total_balance": total_balance,
        "balance_change": balance_change,
        "balance_change_percent": balance_change_percent,
        "highest_balance": max(totals.values()) if totals else 0.0,
        "annual_projection": annual_projection(balances, incomes),
        "summary": summary,
        "averages": averages,
        "trends": trends,
        "balance_chart": balance_chart(balances, account_filter),
        "spend_save_chart": spend_save_chart(summary),
    }
