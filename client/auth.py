"""
CLOB authentication for live trading.
"""

import logging

from py_clob_client.client import ClobClient
from py_clob_client.clob_types import ApiCreds

from config import Config

logger = logging.getLogger(__name__)


class MissingCredentials(Exception):
    """Raised when live trading is requested without a wallet configured."""
    pass


def build_clob_client(cfg: Config) -> ClobClient:
    """
    Trading-ready ClobClient signing with the wallet key on behalf of the
    proxy (funder) address, with L2 API credentials attached.
    """
    if not cfg.has_wallet:
        raise MissingCredentials("PRIVATE_KEY and POLYMARKET_PROFILE_ADDRESS are required for live trading")

    client = ClobClient(
        cfg.clob_host,
        key=cfg.private_key,
        chain_id=cfg.chain_id,
        signature_type=cfg.signature_type,
        funder=cfg.polymarket_profile_address,
    )
    # Creates on first use, derives afterwards
    creds: ApiCreds = client.create_or_derive_api_creds()
    client.set_api_creds(creds)
    logger.debug("CLOB API credentials ready for %s...", cfg.polymarket_profile_address[:10])
    return client
