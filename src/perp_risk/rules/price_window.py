from src.perp_common.errors import InvalidPriceError
from src.perp_market.domain.collaborators import PriceUpdate
from src.perp_market.domain.models import GlobalMarketConfig


def check_price_update(
    update: PriceUpdate, commitment_time: int, cfg: GlobalMarketConfig
) -> None:
    """Price must be positive and published inside the window after commitment.

    commitment + pyth_publish_time_min <= publish_time <= commitment + pyth_publish_time_max
    """
    earliest = commitment_time + cfg.pyth_publish_time_min
    latest = commitment_time + cfg.pyth_publish_time_max
    if update.price <= 0 or not (earliest <= update.publish_time <= latest):
        raise InvalidPriceError(update.price, update.publish_time)
