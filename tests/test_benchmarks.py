import pytest

from caip.narrative.benchmarks import (
    INSUFFICIENT_DATA,
    build_benchmark_positions,
    detect_outlier,
    forecast_values,
    linear_regression,
    network_statistics,
    percentile,
    rank_practices,
    trend,
    trend_change,
)


# -------------------------------------------------
# Percentile
# -------------------------------------------------

def test_percentile_counts_strictly_below():
    assert percentile(5, range(1, 11)) == 40
    assert percentile(1, range(1, 11)) == 0
    assert percentile(100, [1, 2, None, float("nan")]) == 100


def test_percentile_insufficient_input():
    assert percentile(None, [1, 2, 3]) is None
    assert percentile(5, []) is None
    assert percentile(5, None) is None


# -------------------------------------------------
# Trend
# -------------------------------------------------

@pytest.mark.parametrize(
    "current, label",
    [
        (120, "Increasing significantly"),
        (108, "Increasing"),
        (102, "Stable"),
        (92, "Decreasing"),
        (80, "Decreasing significantly"),
    ],
)
def test_trend_labels(current, label):
    assert trend(current, [100, 100]) == label


def test_trend_insufficient_and_zero_history():
    assert trend(5, [5]) == INSUFFICIENT_DATA
    assert trend(None, [1, 2]) == INSUFFICIENT_DATA
    assert trend(5, [0, 0]) == "Increasing (from zero)"
    assert trend(0, [0, 0]) == "Stable"
    assert trend_change(5, [0, 0]) is None


def test_trend_change_is_percentage():
    assert trend_change(108, [100, 100]) == pytest.approx(8.0)
    assert trend_change(108, [100]) is None


# -------------------------------------------------
# Network statistics
# -------------------------------------------------

def test_network_statistics_population_std():
    stats = network_statistics([2, 4, 4, 4, 5, 5, 7, 9, None])
    assert stats == {"mean": 5.0, "std_dev": 2.0, "min": 2.0, "max": 9.0, "count": 8}
    assert network_statistics([]) is None


def test_detect_outlier():
    stats = network_statistics([2, 4, 4, 4, 5, 5, 7, 9])

    high = detect_outlier(9, stats)
    assert high["is_outlier"] is True
    assert high["direction"] == "above"
    assert high["z_score"] == pytest.approx(2.0)

    low = detect_outlier(1, stats, threshold=2.5)
    assert low["is_outlier"] is False
    assert low["direction"] == "below"

    flat = detect_outlier(3, network_statistics([3, 3, 3]))
    assert flat["is_outlier"] is False
    assert detect_outlier(None, stats) is None


def test_rank_practices_competition_ranking():
    values = {"A": 10, "B": 20, "C": 20, "D": None, "E": 5}

    desc = rank_practices(values, "desc")
    assert [(r["practice"], r["rank"]) for r in desc] == [("B", 1), ("C", 1), ("A", 3), ("E", 4)]
    assert all(r["of"] == 4 for r in desc)

    asc = rank_practices(values, "asc")
    assert [(r["practice"], r["rank"]) for r in asc] == [("E", 1), ("A", 2), ("B", 3), ("C", 3)]

    with pytest.raises(ValueError):
        rank_practices(values, "sideways")


# -------------------------------------------------
# Regression + forecast
# -------------------------------------------------

def test_linear_regression():
    fit = linear_regression([1, 2, 3])
    assert fit["slope"] == pytest.approx(1.0)
    assert fit["intercept"] == pytest.approx(1.0)
    assert fit["r2"] == pytest.approx(1.0)

    assert linear_regression([5]) == {"slope": 0.0, "intercept": 5.0, "r2": 0.0}


def test_forecast_values():
    rising = forecast_values([10, 12, 14], periods=3)
    assert [f["value"] for f in rising["forecasts"]] == pytest.approx([16, 18, 20])
    assert [f["period_offset"] for f in rising["forecasts"]] == [1, 2, 3]
    assert rising["trend"] == "increasing"
    assert rising["monthly_change"] == pytest.approx(2.0)


def test_forecasts_never_negative():
    falling = forecast_values([10, 5, 0], periods=2)
    assert falling["trend"] == "decreasing"
    assert all(f["value"] >= 0 for f in falling["forecasts"])


def test_forecast_needs_three_points():
    assert forecast_values([1, 2])["trend"] == "insufficient_data"
    assert forecast_values([1, 2])["forecasts"] == []
    assert forecast_values([3, 3, 3])["trend"] == "stable"


# -------------------------------------------------
# Positions
# -------------------------------------------------

def test_build_benchmark_positions():
    positions = build_benchmark_positions(
        {"m": 5, "n": None},
        {"m": list(range(1, 11)), "n": [1, 2]},
        {"m": [4, 6]},
    )

    assert positions["m"] == {"value": 5, "percentile": 40, "trend": "Stable", "trend_change": 0.0}
    assert positions["n"] == {
        "value": None,
        "percentile": None,
        "trend": INSUFFICIENT_DATA,
        "trend_change": None,
    }
