from .bits import bit_mask, check_width, fit_width, to_signed
from .distribution import ProbabilityDistribution
from .record_format import NumberFormat, format_value, iter_tokens, parse_token, write_records

__all__ = [
    "bit_mask", "check_width", "fit_width", "to_signed",
    "ProbabilityDistribution",
    "NumberFormat", "format_value", "iter_tokens", "parse_token", "write_records",
]
