from modules.regime_classifier import RegimeClassifier


def test_fewer_than_five_samples_keeps_previous_regime(ctx, fill_window):
    fill_window(ctx, "btc", [100, 110, 120, 130])

    regime = RegimeClassifier().classify(ctx, "btc")

    assert regime.condition == "RANGING"
    assert regime.volatility == "NORMAL"


def test_three_percent_rise_is_trending_up(ctx, fill_window):
    fill_window(ctx, "btc", [100.0, 100.5, 101.0, 102.0, 103.0], pct_change=0.5)

    regime = RegimeClassifier().classify(ctx, "btc")

    assert regime.condition == "TRENDING_UP"
    assert ctx.regimes["btc"] is regime


def test_fall_is_trending_down(ctx, fill_window):
    fill_window(ctx, "eth", [100.0, 99.0, 98.0, 97.5, 97.0])

    assert RegimeClassifier().classify(ctx, "eth").condition == "TRENDING_DOWN"


def test_small_move_is_ranging(ctx, fill_window):
    fill_window(ctx, "btc", [100.0, 100.5, 99.8, 100.2, 101.0])

    assert RegimeClassifier().classify(ctx, "btc").condition == "RANGING"


def test_only_last_five_samples_count(ctx, fill_window):
    fill_window(ctx, "btc", [50.0, 60.0, 100.0, 100.1, 100.2, 100.1, 100.0])

    assert RegimeClassifier().classify(ctx, "btc").condition == "RANGING"


def test_volatility_bands(ctx, fill_window):
    classifier = RegimeClassifier()
    cases = [(2.5, "EXTREME"), (-1.8, "HIGH"), (1.0, "NORMAL"), (0.3, "LOW"), (0.8, "LOW")]
    for pct, expected in cases:
        ctx.window("btc").clear()
        fill_window(ctx, "btc", [100.0] * 5, pct_change=pct)
        assert classifier.classify(ctx, "btc").volatility == expected, pct
