"""Decimal helpers shared by the signal modules."""

from decimal import Decimal, localcontext


def quantize(value: Decimal, exp: Decimal, rounding: str | None = None) -> Decimal:
    """Quantize ``value`` to the exponent of ``exp`` at any magnitude.

    ``Decimal.quantize`` fails with InvalidOperation once the result needs
    more digits than the context precision (28), e.g. a ratio of 1E+24
    quantized to 6 places. Precision is raised locally to fit.
    """
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() - exp.adjusted() + 2)
        if rounding is None:
            return value.quantize(exp)
        return value.quantize(exp, rounding=rounding)
