"""Token budget estimation.

Token counts here are a linear approximation of four characters per token,
not a real tokenizer. The ratio is conservative for source code and is the
accepted estimate for limit checks and chunk planning.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from .models import BudgetExceeded, IndexedFile, TokenBudgetResult

# 75% of an 800k context window, leaving headroom for estimate variance.
TOKEN_LIMIT = 600_000

CHARS_PER_TOKEN = 4


def estimate_tokens(char_count: int) -> int:
    """Estimate tokens for a character (or byte) count, rounding up."""
    return -(-char_count // CHARS_PER_TOKEN)


def estimate_budget(
    files: Iterable[IndexedFile],
    limit: int = TOKEN_LIMIT,
) -> TokenBudgetResult:
    """Estimate the token cost of a file set and compare it to a limit.

    Args:
        files: Indexed files with sizes.
        limit: Token limit to check against.

    Returns:
        TokenBudgetResult; ``exceeds_limit`` is True only when the estimate
        is strictly greater than the limit.
    """
    total_bytes = sum(file.size_bytes for file in files)
    return TokenBudgetResult(
        total_bytes=total_bytes,
        estimated_tokens=estimate_tokens(total_bytes),
        limit=limit,
    )


def _round_half_up(value: Decimal, places: str = "1") -> Decimal:
    return value.quantize(Decimal(places), rounding=ROUND_HALF_UP)


def format_token_count(tokens: int) -> str:
    """Format a token count for display.

    Examples:
        >>> format_token_count(500)
        '500'
        >>> format_token_count(50_000)
        '50k'
        >>> format_token_count(1_500_000)
        '1.5M'
    """
    if tokens >= 1_000_000:
        millions = _round_half_up(Decimal(tokens) / 1_000_000, "0.1")
        if millions == millions.to_integral_value():
            return f"{int(millions)}M"
        return f"{millions}M"

    if tokens >= 1_000:
        return f"{int(_round_half_up(Decimal(tokens) / 1_000))}k"

    return str(tokens)


def oversized_message(result: TokenBudgetResult) -> str:
    """Build the human-readable message for an oversized repository."""
    tokens = format_token_count(result.estimated_tokens)
    limit = format_token_count(result.limit)
    return f"Repository too large: {tokens} tokens exceeds {limit} limit"


def budget_failure(result: TokenBudgetResult) -> BudgetExceeded | None:
    """Convert an over-limit budget result into a structured failure.

    Args:
        result: Budget result from estimate_budget.

    Returns:
        BudgetExceeded if the result is over its limit, otherwise None.
    """
    if not result.exceeds_limit:
        return None
    return BudgetExceeded(
        total_bytes=result.total_bytes,
        estimated_tokens=result.estimated_tokens,
        limit=result.limit,
        message=oversized_message(result),
    )
