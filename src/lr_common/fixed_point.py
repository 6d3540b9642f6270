"""Fixed-point integer arithmetic for the lending engine.

All amounts, prices, rates and indices are int scaled by WAD (1e18).
Risk ratios given in basis points stay in basis points. No float anywhere.
Every operation rounds toward zero.
"""

WAD: int = 10**18
BPS: int = 10_000


def wad_mul(a: int, b: int) -> int:
    """a * b / WAD, rounded down."""
    return a * b // WAD


def wad_div(a: int, b: int) -> int:
    """a * WAD / b, rounded down. Raises ZeroDivisionError on b == 0."""
    if b == 0:
        raise ZeroDivisionError("wad_div by zero")
    return a * WAD // b


def bps_mul(value: int, bps: int) -> int:
    """value * bps / 10000, rounded down."""
    return value * bps // BPS


def to_wad(units: int) -> int:
    """Whole units -> WAD: to_wad(5) == 5e18."""
    return units * WAD


def parse_wad(text: str) -> int:
    """Parse a non-negative decimal string exactly into WAD: '0.02' -> 2e16.

    Digits beyond 18 decimal places are truncated.
    """
    raw = text.strip().replace("_", "")
    if not raw or raw.startswith("-"):
        raise ValueError(f"Expected a non-negative decimal string, got {text!r}")
    whole, _, frac = raw.partition(".")
    if not (whole or frac) or not (whole or "0").isdigit() or (frac and not frac.isdigit()):
        raise ValueError(f"Invalid decimal string: {text!r}")
    frac = (frac + "0" * 18)[:18]
    return int(whole or "0") * WAD + int(frac)


def format_wad(value: int, places: int = 6) -> str:
    """WAD -> display string with thousands separators: 1234.5e18 -> '1,234.500000'."""
    sign = "-" if value < 0 else ""
    value = abs(value)
    whole, frac = divmod(value, WAD)
    frac_digits = f"{frac:018d}"[:places]
    if places == 0:
        return f"{sign}{whole:,}"
    return f"{sign}{whole:,}.{frac_digits}"


def wad_pow_int(base: int, exponent: int) -> int:
    """base^exponent for a WAD base and a non-negative integer exponent (by squaring)."""
    if exponent < 0:
        raise ValueError("exponent must be non-negative")
    result = WAD
    while exponent:
        if exponent & 1:
            result = wad_mul(result, base)
        base = wad_mul(base, base)
        exponent >>= 1
    return result


def wad_ln(x: int, terms: int) -> int:
    """Natural log of x >= WAD via ln(x) = 2 * atanh((x-1)/(x+1)).

    The series converges for every positive x. For x <= 2 (z <= 1/3) the
    truncation error after `terms` terms is below 2 * z^(2*terms+1).
    """
    if x < WAD:
        raise ValueError("wad_ln is only defined here for x >= 1.0")
    z = (x - WAD) * WAD // (x + WAD)
    z_sq = wad_mul(z, z)
    term = z
    total = 0
    for k in range(terms):
        if term == 0:
            break
        total += term // (2 * k + 1)
        term = wad_mul(term, z_sq)
    return 2 * total


def wad_exp(x: int, terms: int) -> int:
    """e^x for x >= 0 via the Taylor series, truncated after `terms` terms."""
    if x < 0:
        raise ValueError("wad_exp is only defined here for x >= 0")
    total = WAD
    term = WAD
    for k in range(1, terms + 1):
        term = term * x // (WAD * k)
        if term == 0:
            break
        total += term
    return total


def compound_factor(rate: int, elapsed: int, seconds_per_year: int, terms: int) -> int:
    """(1 + rate) ^ (elapsed / seconds_per_year), WAD in and out.

    Whole years use exact exponentiation by squaring; the fractional year
    uses exp(f * ln(1 + rate)). The result is always >= WAD for rate >= 0.
    Maximum error: series truncation (below 1 wei for rate <= 100% APR and
    terms >= 24) plus `terms` wei of rounding.
    """
    if rate < 0 or elapsed < 0:
        raise ValueError("rate and elapsed must be non-negative")
    if elapsed == 0 or rate == 0:
        return WAD
    whole_years, remainder = divmod(elapsed, seconds_per_year)
    base = WAD + rate
    factor = wad_pow_int(base, whole_years)
    if remainder:
        year_fraction = remainder * WAD // seconds_per_year
        factor = wad_mul(factor, wad_exp(wad_mul(year_fraction, wad_ln(base, terms)), terms))
    return factor
