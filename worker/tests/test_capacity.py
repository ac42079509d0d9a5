from installer_pipeline.etl.capacity import ConfidenceLevels, estimate_capacity
from installer_pipeline.models import Installer, PortfolioProject


def _installer(**kwargs):
    return Installer(name="Sunny Co", latitude=1.0, longitude=2.0, **kwargs)


def test_portfolio_evidence_is_summed():
    portfolio = [PortfolioProject(system_size_kw=5), PortfolioProject(system_size_kw=7), PortfolioProject()]

    estimate = estimate_capacity(_installer(), portfolio)

    assert estimate.total_kw == 12
    assert estimate.projects == 2
    assert estimate.average_system_size_kw == 6
    assert estimate.confidence == 0.8
    assert estimate.low_confidence is False


def test_heuristic_uses_reviews_and_years():
    estimate = estimate_capacity(_installer(total_reviews=20, years_in_business=4))

    # max(10, 20 // 2 + 4 * 5)
    assert estimate.projects == 30
    assert estimate.total_kw == 240
    assert estimate.confidence == 0.4
    assert estimate.low_confidence is True


def test_commercial_specialty_raises_average_size():
    estimate = estimate_capacity(_installer(total_reviews=0, years_in_business=1, specialties=["commercial_pv"]))

    assert estimate.projects == 10
    assert estimate.average_system_size_kw == 50
    assert estimate.total_kw == 500


def test_no_evidence_uses_floor_confidence():
    estimate = estimate_capacity(_installer())

    assert estimate.projects == 25
    assert estimate.total_kw == 200
    assert estimate.confidence == 0.3


def test_unsized_portfolio_counts_as_evidence_and_levels_are_configurable():
    levels = ConfidenceLevels(portfolio=0.9, heuristic=0.45, floor=0.1)

    estimate = estimate_capacity(_installer(), [PortfolioProject(title="Barn roof")], levels=levels)

    assert estimate.confidence == 0.45
