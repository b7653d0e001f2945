# tests/test_gst.py
import math

import pytest

from retail_billing.modules.billing.gst import (
    allocate_proportional_discount,
    calc_inclusive_line,
    clamp_gst_rate,
    is_inter_state,
    normalize_state,
    split_gst,
)


# -------------------------
# Inclusive line math
# -------------------------

def test_inclusive_118_at_18_percent_is_100_plus_18():
    line = calc_inclusive_line(118, 18)
    assert line.gross_amount == 118
    assert line.taxable_value == pytest.approx(100.0)
    assert line.gst_amount == pytest.approx(18.0)


def test_intra_state_split_is_half_cgst_half_sgst():
    s = split_gst(False, 18.0)
    assert (s.cgst, s.sgst, s.igst) == (9.0, 9.0, 0.0)
    assert s.total == pytest.approx(18.0)


def test_inter_state_split_is_all_igst():
    s = split_gst(True, 18.0)
    assert (s.cgst, s.sgst, s.igst) == (0.0, 0.0, 18.0)


@pytest.mark.parametrize("gross", [1.0, 99.99, 1234.56])
@pytest.mark.parametrize("rate", [0, 5, 12, 18, 28])
def test_taxable_plus_gst_equals_gross(gross, rate):
    line = calc_inclusive_line(gross, rate)
    assert line.taxable_value + line.gst_amount == pytest.approx(gross)
    assert line.taxable_value <= gross
    assert line.gst_amount >= 0


def test_zero_rate_has_no_tax():
    line = calc_inclusive_line(250, 0)
    assert line.taxable_value == 250
    assert line.gst_amount == 0


def test_negative_or_junk_gross_counts_as_zero():
    for gross in (-50, float("nan"), float("inf"), None, "abc"):
        line = calc_inclusive_line(gross, 18)
        assert (line.gross_amount, line.taxable_value, line.gst_amount) == (0.0, 0.0, 0.0)


def test_zero_or_negative_tax_splits_to_nothing():
    assert split_gst(False, 0).total == 0
    assert split_gst(True, -3).total == 0


# -------------------------
# Rate clamping
# -------------------------

@pytest.mark.parametrize(
    "raw, expected",
    [(18, 18.0), (150, 100.0), (-5, 0.0), (float("nan"), 0.0), (float("inf"), 0.0), ("abc", 0.0), (None, 0.0)],
)
def test_clamp_gst_rate(raw, expected):
    assert clamp_gst_rate(raw) == expected


def test_rate_above_100_is_clamped_in_line_math():
    line = calc_inclusive_line(200, 250)
    assert line.taxable_value == pytest.approx(100.0)
    assert line.gst_amount == pytest.approx(100.0)


# -------------------------
# Place of supply
# -------------------------

def test_normalize_state():
    assert normalize_state("  maharashtra ") == "MAHARASHTRA"
    assert normalize_state("") is None
    assert normalize_state(None) is None


def test_same_state_ignores_case_and_spaces():
    assert is_inter_state("Maharashtra", " MAHARASHTRA ") is False


def test_different_states_are_inter_state():
    assert is_inter_state("Maharashtra", "Karnataka") is True


def test_unknown_state_is_billed_intra_state():
    assert is_inter_state(None, "Karnataka") is False
    assert is_inter_state("Maharashtra", "") is False
    assert is_inter_state(None, None) is False


# -------------------------
# Proportional bill discount
# -------------------------

def test_discount_is_spread_by_line_gross():
    allocs = allocate_proportional_discount([100, 200, 300], 60)
    assert allocs == pytest.approx([10.0, 20.0, 30.0])
    assert sum(allocs) == pytest.approx(60.0, abs=1e-9)


@pytest.mark.parametrize(
    "gross, discount",
    [
        ([100, 200, 300], 60),
        ([118, 350, 105.5], 46.8),
        ([0.01, 0.01, 0.01], 0.02),
        ([999.99], 0.33),
        ([33.33, 33.33, 33.34, 0, 12.5], 17.77),
        ([1, 2, 3, 4, 5, 6, 7], 100),
        ([250, 0, 250], 499.99),
    ],
)
def test_allocations_always_sum_to_the_discount(gross, discount):
    allocs = allocate_proportional_discount(gross, discount)
    assert len(allocs) == len(gross)
    assert all(a >= 0 for a in allocs)
    assert sum(allocs) == pytest.approx(discount, abs=0.01)


def test_rounding_drift_lands_on_last_nonzero_line():
    allocs = allocate_proportional_discount([1, 1, 1, 0], 10)
    assert allocs[3] == 0.0
    assert sum(allocs) == pytest.approx(10.0, abs=1e-9)
    assert allocs[0] == pytest.approx(10 / 3)


def test_no_discount_or_no_gross_allocates_zero():
    assert allocate_proportional_discount([100, 200], 0) == [0.0, 0.0]
    assert allocate_proportional_discount([0, 0], 50) == [0.0, 0.0]
    assert allocate_proportional_discount([100, 200], -10) == [0.0, 0.0]
    assert allocate_proportional_discount([], 10) == []


def test_negative_line_gross_counts_as_zero():
    allocs = allocate_proportional_discount([-50, 100], 10)
    assert allocs == pytest.approx([0.0, 10.0])


def test_discount_larger_than_gross_is_still_proportional():
    allocs = allocate_proportional_discount([100, 100], 300)
    assert allocs == pytest.approx([150.0, 150.0])
    assert all(math.isfinite(a) for a in allocs)
