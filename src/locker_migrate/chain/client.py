"""Blocking JSON-RPC client for reading contracts and sending transactions."""

import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests
from loguru import logger
from pydantic import BaseModel
from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound, Web3Exception

from ..config.config import ChainConfig
from .exceptions import (
    ChainConnectionError,
    ContractReadError,
    LockerMigrationError,
    ReadTimeoutError,
    TransactionError,
)

MAX_UINT256 = 2**256 - 1


class TransactionReceipt(BaseModel):
    """The parts of a mined transaction receipt the migration cares about."""

    tx_hash: str
    block_number: int
    gas_used: int
    status: int
    contract_address: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == 1

    @classmethod
    def from_web3(cls, receipt: Any) -> 'TransactionReceipt':
        """Build from a web3 ``TxReceipt`` mapping."""
        return cls(
            tx_hash=Web3.to_hex(receipt['transactionHash']),
            block_number=receipt['blockNumber'],
            gas_used=receipt['gasUsed'],
            status=receipt['status'],
            contract_address=receipt.get('contractAddress'),
        )


class ChainClient:
    """Chain client with a single signing identity.

    Every call blocks until it returns. Transactions are signed locally and
    take nonces from a local counter, so one client must be the only sender
    for its account while a run is in progress.
    """

    def __init__(self, config: ChainConfig, web3: Optional[Web3] = None):
        """Initialize chain client.

        Args:
            config: Chain configuration
            web3: Pre-built Web3 instance (tests inject one)
        """
        self.config = config
        self.web3 = web3 or Web3(
            Web3.HTTPProvider(
                config.rpc_url, request_kwargs={'timeout': config.request_timeout}
            )
        )
        self.account = (
            self.web3.eth.account.from_key(config.private_key)
            if config.private_key
            else None
        )
        self._nonce: Optional[int] = None
        self._chain_id: Optional[int] = None
        self.logger = logger.bind(component='ChainClient')

        self.logger.info(f'Initialized chain client for {config.rpc_url}')

    @property
    def address(self) -> str:
        """Address of the signing identity."""
        if self.account is None:
            raise LockerMigrationError(
                'No private key configured; set DEPLOYER_PRIVATE_KEY'
            )
        return self.account.address

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self._with_retries(
                lambda: self.web3.eth.chain_id, 'chain id'
            )
        return self._chain_id

    def test_connection(self) -> bool:
        """Test connection to the RPC endpoint.

        Returns:
            True if the node answers, False otherwise
        """
        try:
            return bool(self.web3.is_connected())
        except Exception as e:
            self.logger.error(f'Connection test failed: {e}')
            return False

    def ensure_connected(self) -> None:
        """Raise if the RPC endpoint cannot be reached."""
        if not self.test_connection():
            raise ChainConnectionError(
                f'Cannot connect to {self.config.rpc_url}',
                details={'rpc_url': self.config.rpc_url},
            )

    def has_code(self, address: str) -> bool:
        """Whether a contract is deployed at the address."""
        code = self._with_retries(
            lambda: self.web3.eth.get_code(Web3.to_checksum_address(address)),
            f'code at {address}',
        )
        return len(code) > 0

    def latest_timestamp(self) -> int:
        """Timestamp of the latest block."""
        block = self._with_retries(
            lambda: self.web3.eth.get_block('latest'), 'latest block'
        )
        return int(block['timestamp'])

    def contract(self, address: str, abi: List[Dict[str, Any]]):
        """Bind an ABI to an address."""
        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def encode_call(
        self, abi: List[Dict[str, Any]], function_name: str, args: Sequence[Any]
    ) -> str:
        """ABI-encode a function call, e.g. an initializer for a proxy."""
        return self.web3.eth.contract(abi=abi).encode_abi(function_name, args=list(args))

    def call(self, function: Any, description: str) -> Any:
        """Run a view call.

        Args:
            function: Bound contract function (``contract.functions.x(...)``)
            description: Human-readable name used in logs and errors

        Returns:
            Decoded return value

        Raises:
            ContractReadError: If the call reverts or returns garbage
            ReadTimeoutError: If it keeps timing out
        """
        return self._with_retries(function.call, description)

    def _with_retries(self, func: Callable[[], Any], description: str) -> Any:
        attempts = self.config.read_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return func()
            except requests.exceptions.Timeout as e:
                if attempt == attempts:
                    raise ReadTimeoutError(
                        f'{description} timed out after {attempts} attempts',
                        attempts=attempts,
                    ) from e
                self.logger.warning(
                    f'{description} timed out (attempt {attempt}/{attempts}), '
                    f'retrying in {self.config.retry_backoff}s'
                )
                time.sleep(self.config.retry_backoff)
            except (Web3Exception, ValueError) as e:
                raise ContractReadError(f'{description} failed: {e}') from e

    def send_transaction(
        self,
        function: Any,
        description: str,
        on_sent: Optional[Callable[[str], None]] = None,
    ) -> TransactionReceipt:
        """Sign and send a transaction, then wait for its receipt.

        Args:
            function: Bound contract function or constructor
            description: Human-readable name used in logs and errors
            on_sent: Called with the hex transaction hash after the node
                accepts the transaction and before the receipt wait

        Returns:
            Confirmed receipt

        Raises:
            TransactionError: If sending fails, the transaction reverts, or no
                receipt arrives within ``receipt_timeout``
        """
        try:
            nonce = self._next_nonce()
            tx = function.build_transaction(
                {'from': self.address, 'nonce': nonce, 'chainId': self.chain_id}
            )
            signed = self.account.sign_transaction(tx)
            tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        except (
            LockerMigrationError,
            Web3Exception,
            ValueError,
            requests.exceptions.RequestException,
        ) as e:
            # Nonce and chain id reads fail as LockerMigrationError
            raise TransactionError(f'{description}: could not send: {e}') from e

        # The node accepted this nonce
        self._nonce = nonce + 1
        hex_hash = Web3.to_hex(tx_hash)
        self.logger.debug(f'{description}: sent {hex_hash} (nonce {nonce})')

        if on_sent is not None:
            on_sent(hex_hash)
        return self.wait_for_receipt(hex_hash, description)

    def wait_for_receipt(self, tx_hash: str, description: str) -> TransactionReceipt:
        """Block until a transaction is mined or the receipt timeout expires."""
        try:
            raw = self.web3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.config.receipt_timeout,
                poll_latency=self.config.poll_interval,
            )
        except TimeExhausted as e:
            raise TransactionError(
                f'{description}: not confirmed within '
                f'{self.config.receipt_timeout}s',
                tx_hash=tx_hash,
            ) from e
        except (Web3Exception, requests.exceptions.RequestException) as e:
            raise TransactionError(
                f'{description}: lost contact while waiting for {tx_hash}: {e}',
                tx_hash=tx_hash,
            ) from e

        receipt = TransactionReceipt.from_web3(raw)
        if not receipt.success:
            raise TransactionError(
                f'{description}: transaction {tx_hash} reverted',
                tx_hash=tx_hash,
                receipt=receipt,
            )

        self.logger.debug(
            f'{description}: confirmed in block {receipt.block_number} '
            f'(gas used {receipt.gas_used})'
        )
        return receipt

    def get_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        """Look up a receipt without waiting.

        Returns:
            The receipt, or None while the transaction is pending or unknown
        """

        def fetch():
            try:
                return self.web3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return None

        raw = self._with_retries(fetch, f'receipt of {tx_hash}')
        return TransactionReceipt.from_web3(raw) if raw is not None else None

    def deploy(
        self,
        abi: List[Dict[str, Any]],
        bytecode: str,
        args: Sequence[Any],
        description: str,
    ) -> TransactionReceipt:
        """Deploy a contract and return the receipt holding its address."""
        factory = self.web3.eth.contract(abi=abi, bytecode=bytecode)
        receipt = self.send_transaction(factory.constructor(*args), description)
        if not receipt.contract_address:
            raise TransactionError(
                f'{description}: receipt has no contract address',
                tx_hash=receipt.tx_hash,
                receipt=receipt,
            )
        return receipt

    def _next_nonce(self) -> int:
        if self._nonce is None:
            self._nonce = self._with_retries(
                lambda: self.web3.eth.get_transaction_count(self.address, 'pending'),
                'transaction count',
            )
        return self._nonce
