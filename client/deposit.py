"""
Deposit capability: move USDC from the signing wallet to the Polymarket proxy
wallet with a plain ERC-20 transfer on Polygon.

Never raises. Every failure (RPC down, insufficient wallet funds, reverted
transaction) comes back as DepositResult(success=False).
"""

from __future__ import annotations

import logging
import math

from eth_account import Account
from web3 import Web3

from scanner.models import DepositResult

logger = logging.getLogger(__name__)

USDC_DECIMALS = 6
_TRANSFER_GAS = 100_000
_GAS_PRICE_MULTIPLIER = 1.5
_RECEIPT_TIMEOUT_SEC = 120

ERC20_ABI = [
    {
        "constant": False,
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
]


def to_base_units(amount: float) -> int:
    """USDC amount -> 6-decimal integer units, rounded up to the next unit."""
    return int(math.ceil(round(amount * (10 ** USDC_DECIMALS), 6)))


class Web3Depositor:
    """Satisfies the Depositor protocol."""

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        proxy_address: str,
        usdc_address: str,
        chain_id: int = 137,
        w3: Web3 | None = None,
    ):
        self._w3 = w3 or Web3(Web3.HTTPProvider(rpc_url))
        self._account = Account.from_key(private_key)
        self._proxy = Web3.to_checksum_address(proxy_address)
        self._chain_id = chain_id
        self._usdc = self._w3.eth.contract(address=Web3.to_checksum_address(usdc_address), abi=ERC20_ABI)

    @property
    def wallet_address(self) -> str:
        return self._account.address

    def wallet_balance(self) -> float:
        """USDC held by the signing wallet (not yet deposited)."""
        raw = self._usdc.functions.balanceOf(self._account.address).call()
        return raw / (10 ** USDC_DECIMALS)

    def deposit(self, amount: float) -> DepositResult:
        if amount <= 0:
            return DepositResult(success=False, amount=amount, error=f"invalid deposit amount {amount}")

        units = to_base_units(amount)
        logger.info("Depositing $%.2f USDC %s... -> %s...", amount, self._account.address[:10], self._proxy[:10])
        try:
            available = self.wallet_balance()
            if to_base_units(available) < units:
                return DepositResult(
                    success=False, amount=amount, error=f"wallet holds ${available:.2f}, need ${amount:.2f}",
                )

            txn = self._usdc.functions.transfer(self._proxy, units).build_transaction({
                "from": self._account.address,
                "nonce": self._w3.eth.get_transaction_count(self._account.address),
                "gas": _TRANSFER_GAS,
                "gasPrice": int(self._w3.eth.gas_price * _GAS_PRICE_MULTIPLIER),
                "chainId": self._chain_id,
            })
            signed = self._account.sign_transaction(txn)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=_RECEIPT_TIMEOUT_SEC)
        except Exception as e:
            logger.error("Deposit failed: %s", e)
            return DepositResult(success=False, amount=amount, error=str(e))

        tx_hex = tx_hash.hex()
        if receipt.status != 1:
            logger.error("Deposit tx reverted: %s", tx_hex)
            return DepositResult(success=False, amount=amount, transaction_hash=tx_hex, error="transaction reverted")

        logger.info("Deposit confirmed: $%.2f tx %s...", amount, tx_hex[:16])
        return DepositResult(success=True, amount=amount, transaction_hash=tx_hex)
