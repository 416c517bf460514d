from src.perp_common.errors import MaxMarketSizeExceededError
from src.perp_market.domain.models import Market


def check_max_market_size(market: Market, old_size: int, new_size: int) -> None:
    """Raise when the trade grows its side's open interest past max_market_size.

    Trades that shrink a side that is already over the cap are allowed.
    """
    size = market.size - abs(old_size) + abs(new_size)
    skew = market.skew - old_size + new_size
    max_size = market.config.max_market_size
    if new_size > 0:
        long_oi = (size + skew) // 2
        if long_oi > max_size and long_oi > market.long_open_interest:
            raise MaxMarketSizeExceededError(long_oi, max_size)
    elif new_size < 0:
        short_oi = (size - skew) // 2
        if short_oi > max_size and short_oi > market.short_open_interest:
            raise MaxMarketSizeExceededError(short_oi, max_size)
