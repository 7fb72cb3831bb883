"""Unit tests for the statistics helpers."""
from datetime import date, datetime

from dairyfarm.services import aggregation as agg
from dairyfarm.services.dates import date_range, rolling_range


def _series(values, start_day=1):
    return [
        {"date": f"2024-01-{start_day + i:02d}", "quantity": value}
        for i, value in enumerate(values)
    ]


def test_ratio_rounds_half_up_and_guards_zero():
    assert agg.ratio(1, 8) == 0.13
    assert agg.ratio(2.675, 1) == 2.68
    assert agg.ratio(10, 0) == 0


def test_total_is_exact():
    records = [{"quantity": 0.1}, {"quantity": 0.2}]
    assert agg.total(records) == 0.3
    assert agg.total([{"quantity": 2.5}, {"quantity": 2.5}]) == 5


def test_breakdown_by_key_uses_unknown_bucket():
    records = [
        {"session": "morning", "quantity": 10},
        {"session": "morning", "quantity": 5},
        {"quantity": 2},
    ]
    assert agg.breakdown_by_key(records, "session") == {
        "morning": {"count": 2, "quantity": 15},
        "Unknown": {"count": 1, "quantity": 2},
    }
    assert agg.count_by_key(records, "session") == {"morning": 2, "Unknown": 1}


def test_week_key_follows_iso_rule():
    # 2021-01-01 is a Friday and belongs to the last ISO week of 2020
    assert agg.week_key("2021-01-01") == "2020-W53"
    assert agg.week_key("2024-12-30") == "2025-W01"
    assert agg.month_key("2024-02-29") == "2024-02"
    assert agg.day_key("2024-02-29T18:30:00") == "2024-02-29"


def test_bucketing_and_period_summary():
    records = _series([10, 12, 11]) + [{"date": "2024-01-01", "quantity": 4}]
    daily = agg.daily_totals(records)
    assert daily == {"2024-01-01": 14, "2024-01-02": 12, "2024-01-03": 11}
    assert agg.monthly_totals(records) == {"2024-01": 37}
    assert agg.period_summary(daily) == {
        "averageDaily": 12.33,
        "maxDaily": 14,
        "minDaily": 11,
        "totalDays": 3,
    }
    assert agg.period_summary({}) == {"averageDaily": 0, "maxDaily": 0, "minDaily": 0, "totalDays": 0}


def test_production_stats_example():
    stats = agg.production_stats(_series([10, 12, 11]))
    assert stats == {
        "totalQuantity": 33,
        "totalRecords": 3,
        "averagePerDay": 11.0,
        "maxDaily": 12,
        "minDaily": 10,
        "totalDays": 3,
    }


def test_trend_increasing():
    assert agg.trend(_series([10, 11, 13, 15])) == {"direction": "increasing", "percentage": 33}


def test_trend_decreasing_and_stable():
    assert agg.trend(_series([20, 18, 10, 9]))["direction"] == "decreasing"
    assert agg.trend(_series([10, 10, 10, 10])) == {"direction": "stable", "percentage": 0}


def test_trend_edge_cases():
    assert agg.trend([]) == {"direction": "stable", "percentage": 0}
    assert agg.trend(_series([7])) == {"direction": "stable", "percentage": 0}
    assert agg.trend(_series([0, 0, 5, 9])) == {"direction": "stable", "percentage": 0}


def test_trend_sorts_by_date_first():
    records = list(reversed(_series([10, 11, 13, 15])))
    assert agg.trend(records)["direction"] == "increasing"


def test_top_n_is_stable_for_ties():
    rows = [{"name": "a", "total": 5}, {"name": "b", "total": 9}, {"name": "c", "total": 5}]
    assert [r["name"] for r in agg.top_n(rows, "total", 3)] == ["b", "a", "c"]
    assert [r["name"] for r in agg.top_n(rows, "total", 1)] == ["b"]


def test_change_percent():
    assert agg.change_percent(10, 15) == 50
    assert agg.change_percent(0, 4) == 100
    assert agg.change_percent(0, 0) == 0
    assert agg.change_percent(8, 6) == -25


def test_financial_rollup_example():
    sales = [{"date": "2024-01-05", "totalAmount": 9000}]
    inventory = [{"purchaseDate": "2024-01-02", "purchasePrice": 4500, "transportCost": 500}]
    health = [{"dateOfIllness": "2024-01-10", "cost": 1200}]
    result = agg.financial_rollup(sales, inventory, health)
    assert result["profitability"] == {
        "grossRevenue": 9000,
        "totalExpenses": 6200,
        "netProfit": 2800,
        "profitMargin": 31,
    }
    assert result["expenses"]["feedCosts"] == 5000
    assert result["breakdown"]["milkSalesByMonth"] == {"2024-01": 9000}


def test_feed_cost_breakdown_includes_transport():
    inventory = [
        {"purchaseDate": "2024-01-02", "purchasePrice": 4500, "transportCost": 500},
        {"purchaseDate": "2024-02-20", "purchasePrice": 1200.5},
    ]
    result = agg.financial_rollup([], inventory, [])
    by_month = result["breakdown"]["feedCostsByMonth"]
    assert by_month == {"2024-01": 5000, "2024-02": 1200.5}
    assert sum(by_month.values()) == result["expenses"]["feedCosts"]


def test_financial_rollup_without_revenue():
    result = agg.financial_rollup([], [{"purchasePrice": 100}], [])
    assert result["profitability"]["profitMargin"] == 0
    assert result["profitability"]["netProfit"] == -100


def test_health_summary():
    records = [
        {"isResolved": True, "cost": 100},
        {"isResolved": False, "cost": 250},
        {"isResolved": False, "cost": 50},
    ]
    assert agg.health_summary(records) == {
        "totalRecords": 3,
        "resolvedCases": 1,
        "unresolvedCases": 2,
        "totalCost": 400,
        "averageCostPerCase": 133.33,
        "resolutionRate": 33,
    }


def test_date_range_calendar_windows():
    today = date(2024, 2, 14)  # a Wednesday
    start, end = date_range("weekly", today)
    assert start.date() == date(2024, 2, 12)
    assert end.date() == date(2024, 2, 18)

    start, end = date_range("monthly", today)
    assert (start.date(), end.date()) == (date(2024, 2, 1), date(2024, 2, 29))

    start, end = date_range("yearly", today)
    assert (start.date(), end.date()) == (date(2024, 1, 1), date(2024, 12, 31))


def test_rolling_range_trails_now():
    now = datetime(2024, 3, 31, 12, 0)
    start, end = rolling_range("monthly", now)
    assert end == now
    assert start == datetime(2024, 2, 29, 12, 0)
