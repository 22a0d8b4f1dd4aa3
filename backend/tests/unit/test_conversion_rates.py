"""
Unit tests for the conversion rate calculator.
"""

import math

import pytest

from core.domain.growth import (
    AcquisitionMetrics,
    ConversionRates,
    calculate_conversion_rates,
    safe_rate,
)


class TestSafeRate:
    """Tests for safe_rate."""

    def test_zero_denominator_returns_zero(self):
        assert safe_rate(5, 0) == 0.0

    def test_zero_over_zero_returns_zero(self):
        assert safe_rate(0, 0) == 0.0

    def test_percentage(self):
        assert safe_rate(1, 4) == 25.0

    def test_rounds_to_four_decimals(self):
        assert safe_rate(1, 3) == 33.3333

    def test_custom_digits(self):
        assert safe_rate(2, 3, digits=2) == 66.67

    def test_non_finite_input_returns_zero(self):
        assert safe_rate(float("inf"), 1) == 0.0
        assert safe_rate(float("nan"), 1) == 0.0


class TestCalculateConversionRates:
    """Tests for calculate_conversion_rates."""

    def test_all_zero_metrics(self):
        rates = calculate_conversion_rates(AcquisitionMetrics())

        assert rates == ConversionRates(0.0, 0.0, 0.0, 0.0)

    def test_landing_page_funnel(self):
        metrics = AcquisitionMetrics(views=10, leads=2, payments=1, revenue=200.0)

        rates = calculate_conversion_rates(metrics)

        assert rates.views_to_leads == 20.0
        # No bookings on a landing page: both booking rates are zero
        assert rates.leads_to_bookings == 0.0
        assert rates.bookings_to_payments == 0.0
        assert rates.overall_conversion == 10.0

    def test_event_funnel(self):
        metrics = AcquisitionMetrics(leads=3, registrations=3, payments=2, revenue=300.0)

        rates = calculate_conversion_rates(metrics)

        assert rates.views_to_leads == 0.0
        assert rates.leads_to_bookings == 100.0
        assert rates.bookings_to_payments == 66.6667
        assert rates.overall_conversion == 0.0

    def test_bookings_combine_appointments_and_registrations(self):
        metrics = AcquisitionMetrics(leads=8, appointments=2, registrations=2, payments=1)

        rates = calculate_conversion_rates(metrics)

        assert metrics.bookings == 4
        assert rates.leads_to_bookings == 50.0
        assert rates.bookings_to_payments == 25.0

    @pytest.mark.parametrize(
        "metrics",
        [
            AcquisitionMetrics(views=0, leads=5, payments=5),
            AcquisitionMetrics(views=3, leads=0, payments=2),
            AcquisitionMetrics(views=0, leads=0, appointments=0, payments=7),
        ],
    )
    def test_never_nan_or_infinite(self, metrics):
        rates = calculate_conversion_rates(metrics)

        for value in (
            rates.views_to_leads,
            rates.leads_to_bookings,
            rates.bookings_to_payments,
            rates.overall_conversion,
        ):
            assert math.isfinite(value)


class TestAcquisitionMetrics:
    """Tests for the metrics snapshot."""

    def test_empty(self):
        assert AcquisitionMetrics().is_empty

    def test_revenue_alone_is_activity(self):
        assert not AcquisitionMetrics(revenue=50.0).is_empty

    def test_views_alone_is_activity(self):
        assert not AcquisitionMetrics(views=1).is_empty
