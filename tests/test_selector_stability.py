from scrapeops_mcp.selector_stability import StabilityMetrics, assess_selectors


def test_metrics_from_comparison_keeps_only_numbers() -> None:
    metrics = StabilityMetrics.from_comparison(
        {
            "stability_score": 0.9,
            "random_ratio": "n/a",
            "average_entropy": 3.1,
            "common_selectors": 40,
            "changing_selectors": True,
        },
        successful_requests=3,
        total_requests=3,
    )

    assert metrics.stability_score == 0.9
    assert metrics.random_ratio is None
    assert metrics.avg_entropy == 3.1
    assert metrics.common_selectors == 40
    # bool не считается числом.
    assert metrics.changing_selectors is None
    assert metrics.successful_requests == 3


def test_metrics_from_missing_comparison() -> None:
    assert StabilityMetrics.from_comparison(None) == StabilityMetrics()


def test_stable_summary_shows_percent_score() -> None:
    result = assess_selectors("stable", StabilityMetrics(stability_score=0.92))

    assert "stable (stability score: 92%)" in result.summary
    assert result.strategy()["approach"].startswith("Standard CSS selectors")
    assert any("class" in item.lower() for item in result.use)


def test_obfuscated_summary_and_no_class_selectors() -> None:
    result = assess_selectors("obfuscated", StabilityMetrics(avg_entropy=4.2, random_ratio=0.75))

    assert "(avg entropy: 4.20)" in result.summary
    assert "75% of selectors appear random." in result.summary
    assert "Do NOT rely on class names." in result.summary
    assert not any("class" in item.lower() for item in result.use)
    assert any("identify_data_sources" in r for r in result.recommendations)


def test_obfuscated_without_metrics_omits_numbers() -> None:
    result = assess_selectors("obfuscated", StabilityMetrics())

    assert result.summary.startswith("CSS selectors are obfuscated. Class names")


def test_dynamic_summary_cites_changing_selectors() -> None:
    result = assess_selectors("dynamic", StabilityMetrics(stability_score=0.5, changing_selectors=12))

    assert "partially dynamic (stability score: 50%)." in result.summary
    assert "12 selectors change between loads." in result.summary
    assert result.strategy()["approach"].startswith("Mixed strategy")


def test_unknown_label_cites_request_counts() -> None:
    for label in (None, "weird"):
        result = assess_selectors(label, StabilityMetrics(successful_requests=1, total_requests=3))

        assert "(1/3 requests succeeded)" in result.summary
        assert result.approach.startswith("Conservative")
        assert any("analyze_scraping_difficulty" in r for r in result.recommendations)
