"""
Points contract client.
Builds, signs and submits award(user, amount, actionId) transactions from the
service account and waits for their receipts.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
import structlog

from xp_minting.core.config import AwardConfig
from xp_minting.core.exceptions import ConfigurationError
from xp_minting.services.awards.core.action_id import action_id_bytes


logger = structlog.get_logger(__name__)


POINTS_ABI = [
    {
        "type": "function",
        "name": "totalOf",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"type": "uint256"}],
        "stateMutability": "view"
    },
    {
        "type": "function",
        "name": "award",
        "inputs": [
            {"name": "user", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "actionId", "type": "bytes32"}
        ],
        "outputs": [],
        "stateMutability": "nonpayable"
    },
    {
        "type": "event",
        "name": "Awarded",
        "inputs": [
            {"name": "user", "type": "address", "indexed": True},
            {"name": "amount", "type": "uint256", "indexed": False},
            {"name": "actionId", "type": "bytes32", "indexed": False}
        ]
    }
]


@dataclass(frozen=True)
class PreparedAward:
    """A signed award transaction that has not been broadcast yet."""
    raw_transaction: bytes
    nonce: int
    sender: str


@dataclass(frozen=True)
class LedgerReceipt:
    """Mined transaction receipt."""
    tx_hash: str
    status: int
    block_number: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class PointsLedgerClient:
    """
    Async web3 client for the Points contract.

    A single instance owns the service signing key; callers must not run
    submissions concurrently from the same account.
    """

    def __init__(self, config: AwardConfig, w3: Optional[AsyncWeb3] = None):
        self.config = config
        self.logger = logger.bind(service="points_ledger_client")
        self.w3 = w3
        self.account: Optional[LocalAccount] = None
        self.contract = None
        self._chain_id: Optional[int] = config.chain_id

    async def initialize(self):
        """Create the provider, signer (when a key is configured) and contract handle."""
        if self.contract is not None:
            return

        if not self.config.points_address or not Web3.is_address(self.config.points_address):
            raise ConfigurationError(
                "POINTS_ADDRESS not configured or invalid",
                {"points_address": self.config.points_address}
            )

        if self.w3 is None:
            self.w3 = AsyncWeb3(
                AsyncWeb3.AsyncHTTPProvider(
                    self.config.rpc_url,
                    request_kwargs={"timeout": aiohttp.ClientTimeout(total=self.config.submission_timeout)}
                )
            )

        if self.config.private_key:
            self.account = Account.from_key(self.config.private_key)
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(self.config.points_address),
            abi=POINTS_ABI
        )

        self.logger.info(
            "Points ledger client initialized",
            signer=self.account.address if self.account else None,
            points_address=self.config.points_address,
            rpc_url=self.config.rpc_url
        )

    def _require_signer(self):
        if self.account is None:
            raise ConfigurationError("AWARD_PRIVATE_KEY not configured")

    async def _chain(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self.w3.eth.chain_id
        return self._chain_id

    async def _fee_params(self) -> Dict[str, int]:
        """EIP-1559 fee fields with headroom over the current base fee."""
        latest_block = await self.w3.eth.get_block("latest")
        base_fee = latest_block.get("baseFeePerGas")
        if base_fee is None:
            return {"gasPrice": await self.w3.eth.gas_price}
        priority_fee = await self.w3.eth.max_priority_fee
        return {
            "maxPriorityFeePerGas": priority_fee,
            "maxFeePerGas": base_fee * 2 + priority_fee,
        }

    def _award_call(self, address: str, amount: int, action_id: str):
        return self.contract.functions.award(
            Web3.to_checksum_address(address),
            amount,
            action_id_bytes(action_id)
        )

    async def build_award_transaction(self, address: str, amount: int, action_id: str) -> PreparedAward:
        """
        Build and sign award(). Gas estimation runs the call against the
        current state, so a consumed action id is rejected here.
        """
        await self.initialize()
        self._require_signer()

        nonce = await self.w3.eth.get_transaction_count(self.account.address, "pending")
        tx_params: Dict[str, Any] = {
            "from": self.account.address,
            "nonce": nonce,
            "chainId": await self._chain(),
        }
        tx_params.update(await self._fee_params())

        tx = await self._award_call(address, amount, action_id).build_transaction(tx_params)
        signed = self.account.sign_transaction(tx)
        raw = getattr(signed, "raw_transaction", None) or signed.rawTransaction

        return PreparedAward(raw_transaction=bytes(raw), nonce=nonce, sender=self.account.address)

    async def send_transaction(self, prepared: PreparedAward) -> str:
        """Broadcast a signed transaction and return its hash."""
        tx_hash = await self.w3.eth.send_raw_transaction(prepared.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> LedgerReceipt:
        """Block until the transaction is mined (raises web3 TimeExhausted on timeout)."""
        receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        return LedgerReceipt(
            tx_hash=tx_hash,
            status=int(receipt["status"]),
            block_number=receipt.get("blockNumber")
        )

    async def replay_award(self, address: str, amount: int, action_id: str, block_number: Optional[int]) -> None:
        """
        Re-run a reverted award as eth_call at its block to surface the
        revert reason. Raises the contract error; returns None if the call
        would not revert.
        """
        await self.initialize()
        self._require_signer()
        block = block_number if block_number is not None else "latest"
        await self._award_call(address, amount, action_id).call(
            {"from": self.account.address},
            block_identifier=block
        )

    async def total_of(self, address: str) -> int:
        """Read a subject's on-ledger total."""
        await self.initialize()
        return await self.contract.functions.totalOf(Web3.to_checksum_address(address)).call()
