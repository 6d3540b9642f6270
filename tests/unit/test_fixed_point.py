import pytest

from src.lr_common.fixed_point import (
    BPS,
    WAD,
    bps_mul,
    compound_factor,
    format_wad,
    parse_wad,
    to_wad,
    wad_div,
    wad_exp,
    wad_ln,
    wad_mul,
    wad_pow_int,
)

YEAR = 31_536_000


class TestWadArithmetic:
    def test_mul_rounds_down(self) -> None:
        assert wad_mul(1, WAD - 1) == 0
        assert wad_mul(3 * WAD, WAD // 3) == WAD - 1

    def test_div_rounds_down(self) -> None:
        assert wad_div(WAD, 3 * WAD) == 333_333_333_333_333_333

    def test_div_by_zero(self) -> None:
        with pytest.raises(ZeroDivisionError):
            wad_div(WAD, 0)

    def test_bps_mul(self) -> None:
        assert bps_mul(to_wad(100), 2500) == to_wad(25)
        assert bps_mul(3, 3333) == 0
        assert BPS == 10_000

    def test_to_wad(self) -> None:
        assert to_wad(5) == 5 * 10**18


class TestParseWad:
    def test_simple_decimal(self) -> None:
        assert parse_wad("0.02") == 2 * 10**16

    def test_whole_and_fraction(self) -> None:
        assert parse_wad("1_000.5") == 1000 * WAD + WAD // 2

    def test_no_leading_digit(self) -> None:
        assert parse_wad(".5") == WAD // 2

    def test_truncates_beyond_18_places(self) -> None:
        assert parse_wad("0.0000000000000000019") == 1

    @pytest.mark.parametrize("text", ["", "-1", "abc", "1.2.3", "1e5", "."])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(ValueError):
            parse_wad(text)


class TestFormatWad:
    def test_thousands_separator(self) -> None:
        assert format_wad(parse_wad("1234.5")) == "1,234.500000"

    def test_places(self) -> None:
        assert format_wad(parse_wad("0.04125"), places=4) == "0.0412"

    def test_zero_places(self) -> None:
        assert format_wad(to_wad(1_000_000), places=0) == "1,000,000"

    def test_negative(self) -> None:
        assert format_wad(-WAD // 2, places=2) == "-0.50"


class TestSeries:
    def test_pow_int(self) -> None:
        assert wad_pow_int(2 * WAD, 10) == 1024 * WAD
        assert wad_pow_int(parse_wad("1.055"), 0) == WAD

    def test_pow_int_negative_exponent(self) -> None:
        with pytest.raises(ValueError):
            wad_pow_int(WAD, -1)

    def test_ln_of_one_is_zero(self) -> None:
        assert wad_ln(WAD, 24) == 0

    def test_ln_below_one_rejected(self) -> None:
        with pytest.raises(ValueError):
            wad_ln(WAD - 1, 24)

    def test_exp_of_zero_is_one(self) -> None:
        assert wad_exp(0, 24) == WAD

    def test_exp_ln_roundtrip_close(self) -> None:
        x = parse_wad("1.3")
        assert abs(wad_exp(wad_ln(x, 24), 24) - x) < 10**6


class TestCompoundFactor:
    def test_whole_year_is_exact(self) -> None:
        assert compound_factor(parse_wad("0.055"), YEAR, YEAR, 24) == parse_wad("1.055")

    def test_two_years_by_squaring(self) -> None:
        assert compound_factor(parse_wad("0.10"), 2 * YEAR, YEAR, 24) == parse_wad("1.21")

    def test_half_year_squares_to_full_year(self) -> None:
        half = compound_factor(parse_wad("0.055"), YEAR // 2, YEAR, 24)
        assert abs(wad_mul(half, half) - parse_wad("1.055")) < 10**6

    def test_zero_rate_or_elapsed(self) -> None:
        assert compound_factor(0, YEAR, YEAR, 24) == WAD
        assert compound_factor(parse_wad("0.05"), 0, YEAR, 24) == WAD

    def test_one_second_never_below_one(self) -> None:
        assert compound_factor(1, 1, YEAR, 24) >= WAD

    def test_negative_inputs_rejected(self) -> None:
        with pytest.raises(ValueError):
            compound_factor(-1, YEAR, YEAR, 24)
        with pytest.raises(ValueError):
            compound_factor(WAD, -1, YEAR, 24)

    def test_split_periods_compound_consistently(self) -> None:
        rate = parse_wad("0.30")
        whole = compound_factor(rate, 1000, YEAR, 24)
        split = wad_mul(
            compound_factor(rate, 400, YEAR, 24), compound_factor(rate, 600, YEAR, 24)
        )
        assert abs(whole - split) < 1_000
