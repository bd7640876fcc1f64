"""Solana JSON-RPC reader for the launch program.

Every public method turns a transport fault (timeout, HTTP error, 429,
JSON-RPC error, malformed response) into ``None`` / ``[]`` after logging
the cause. Callers never see an exception from the network.
"""

import base64
import binascii
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from loguru import logger
from solders.pubkey import Pubkey

from src.chain.constants import USER_POSITION_USER_OFFSET
from src.chain.decoder import (
    LAUNCH_ACCOUNT_SIZE,
    USER_POSITION_ACCOUNT_SIZE,
    classify_account,
    decode_config,
    decode_launch,
    decode_user_position,
)
from src.chain.layout import DecodeError
from src.chain.models import AccountChange, Launch, LogNotification, ProtocolConfig, UserPosition
from src.chain.pda import derive_config_address, derive_launch_address, derive_user_position_address
from src.chain.rate_limiter import RateLimiter
from src.chain.subscriptions import ProgramSubscription


class RpcError(Exception):
    """Transport or JSON-RPC level failure. Never escapes ChainReader."""

    def __init__(self, method: str, reason: str) -> None:
        super().__init__(f"{method}: {reason}")
        self.method = method
        self.reason = reason


def _account_bytes(value: dict[str, Any]) -> bytes:
    """Decode the ``data`` field of an account value (base64 encoding)."""
    data = value.get("data")
    if isinstance(data, list):
        data = data[0] if data else ""
    if not isinstance(data, str):
        raise ValueError("account data is not a base64 string")
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"bad base64 account data: {e}") from e


class ChainReader:
    """Async read-only view of the launch program over JSON-RPC + websockets."""

    def __init__(
        self,
        rpc_url: str,
        program_id: str,
        ws_url: str = "",
        *,
        commitment: str = "confirmed",
        max_rps: float = 10.0,
        timeout: float = 15.0,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._ws_url = ws_url
        self._program_id = str(program_id)
        self._commitment = commitment
        self._client = httpx.AsyncClient(timeout=timeout)
        self._rate_limiter = rate_limiter or RateLimiter(max_rps)
        self._request_id = 0

    @property
    def program_id(self) -> str:
        return self._program_id

    async def _call(self, method: str, params: list[Any]) -> Any:
        """One JSON-RPC request. Returns ``result`` or raises RpcError."""
        await self._rate_limiter.acquire()
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        try:
            resp = await self._client.post(self._rpc_url, json=payload)
        except httpx.TimeoutException as e:
            raise RpcError(method, f"timeout ({type(e).__name__})") from e
        except httpx.HTTPError as e:
            raise RpcError(method, f"transport error: {e}") from e

        if resp.status_code == 429:
            raise RpcError(method, "rate limited (HTTP 429)")
        if resp.status_code != 200:
            raise RpcError(method, f"HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise RpcError(method, f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise RpcError(method, "malformed response")
        if data.get("error"):
            err = data["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            raise RpcError(method, f"rpc error: {message}")
        if "result" not in data:
            raise RpcError(method, "missing result")
        return data["result"]

    async def get_account_data(self, address: str) -> bytes | None:
        """Raw account bytes, or None if missing or unreachable."""
        try:
            result = await self._call(
                "getAccountInfo",
                [address, {"encoding": "base64", "commitment": self._commitment}],
            )
            value = result.get("value") if isinstance(result, dict) else None
            if not value:
                return None
            return _account_bytes(value)
        except RpcError as e:
            logger.warning(f"[CHAIN] getAccountInfo failed for {address[:12]}: {e.reason}")
        except ValueError as e:
            logger.warning(f"[CHAIN] Malformed account {address[:12]}: {e}")
        return None

    async def _program_accounts(self, filters: list[dict[str, Any]]) -> list[tuple[str, bytes]] | None:
        """(address, data) pairs matching filters, or None on transport failure."""
        try:
            result = await self._call(
                "getProgramAccounts",
                [
                    self._program_id,
                    {"encoding": "base64", "commitment": self._commitment, "filters": filters},
                ],
            )
        except RpcError as e:
            logger.warning(f"[CHAIN] getProgramAccounts failed: {e.reason}")
            return None
        if not isinstance(result, list):
            logger.warning("[CHAIN] getProgramAccounts returned a non-list result")
            return None

        accounts: list[tuple[str, bytes]] = []
        for item in result:
            try:
                accounts.append((item["pubkey"], _account_bytes(item["account"])))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"[CHAIN] Skipping malformed program account: {e}")
        return accounts

    # --- Config ---

    async def get_config(self) -> ProtocolConfig | None:
        address = str(derive_config_address(self._program_id)[0])
        data = await self.get_account_data(address)
        if data is None:
            return None
        try:
            return decode_config(address, data)
        except DecodeError as e:
            logger.warning(f"[CHAIN] Config account undecodable: {e}")
            return None

    # --- Launches ---

    async def get_launch(self, address: str) -> Launch | None:
        data = await self.get_account_data(address)
        if data is None:
            return None
        try:
            return decode_launch(address, data)
        except DecodeError as e:
            logger.warning(f"[CHAIN] Launch {address[:12]} undecodable: {e}")
            return None

    async def get_launch_by_mint(self, mint: str) -> Launch | None:
        address = str(derive_launch_address(mint, self._program_id)[0])
        return await self.get_launch(address)

    async def fetch_all_launches(self) -> list[Launch] | None:
        """Every Launch account, or None when the RPC call itself failed.

        Distinguishes "no launches" from "could not ask", which the indexer
        uses to avoid replacing a good cache with an empty list.
        """
        accounts = await self._program_accounts([{"dataSize": LAUNCH_ACCOUNT_SIZE}])
        if accounts is None:
            return None
        launches: list[Launch] = []
        for address, data in accounts:
            try:
                launches.append(decode_launch(address, data))
            except DecodeError as e:
                logger.debug(f"[CHAIN] Skipping launch {address[:12]}: {e}")
        return launches

    async def get_all_launches(self) -> list[Launch]:
        return await self.fetch_all_launches() or []

    # --- User positions ---

    async def get_user_position(self, launch: str, user: str) -> UserPosition | None:
        address = str(derive_user_position_address(launch, user, self._program_id)[0])
        data = await self.get_account_data(address)
        if data is None:
            return None
        try:
            return decode_user_position(address, data)
        except DecodeError as e:
            logger.warning(f"[CHAIN] Position {address[:12]} undecodable: {e}")
            return None

    async def get_user_positions(self, user: str) -> list[UserPosition]:
        try:
            user_key = str(Pubkey.from_string(str(user)))
        except ValueError:
            logger.debug(f"[CHAIN] Not a valid pubkey: {user!r}")
            return []
        accounts = await self._program_accounts([
            {"dataSize": USER_POSITION_ACCOUNT_SIZE},
            {"memcmp": {"offset": USER_POSITION_USER_OFFSET, "bytes": user_key}},
        ])
        positions: list[UserPosition] = []
        for address, data in accounts or []:
            try:
                positions.append(decode_user_position(address, data))
            except DecodeError as e:
                logger.debug(f"[CHAIN] Skipping position {address[:12]}: {e}")
        return positions

    # --- Transactions ---

    async def get_block_time(self, slot: int) -> int | None:
        try:
            result = await self._call("getBlockTime", [slot])
        except RpcError as e:
            logger.debug(f"[CHAIN] getBlockTime({slot}) failed: {e.reason}")
            return None
        return result if isinstance(result, int) else None

    async def get_recent_transactions(self, address: str, limit: int = 50) -> list[LogNotification]:
        """Log batches of the latest successful transactions touching ``address``."""
        try:
            signatures = await self._call(
                "getSignaturesForAddress",
                [address, {"limit": limit, "commitment": self._commitment}],
            )
        except RpcError as e:
            logger.warning(f"[CHAIN] getSignaturesForAddress failed for {address[:12]}: {e.reason}")
            return []
        if not isinstance(signatures, list):
            return []

        transactions: list[LogNotification] = []
        for entry in signatures:
            if not isinstance(entry, dict) or entry.get("err") is not None:
                continue
            signature = entry.get("signature")
            if not signature:
                continue
            try:
                tx = await self._call(
                    "getTransaction",
                    [
                        signature,
                        {
                            "encoding": "json",
                            "commitment": self._commitment,
                            "maxSupportedTransactionVersion": 0,
                        },
                    ],
                )
            except RpcError as e:
                logger.debug(f"[CHAIN] getTransaction failed for {signature[:16]}: {e.reason}")
                continue
            if not isinstance(tx, dict):
                continue
            meta = tx.get("meta") or {}
            if meta.get("err") is not None:
                continue
            transactions.append(LogNotification(
                signature=signature,
                slot=tx.get("slot") or entry.get("slot") or 0,
                logs=meta.get("logMessages") or [],
                block_time=tx.get("blockTime") or entry.get("blockTime"),
            ))
        return transactions

    # --- Subscriptions ---

    def watch_logs(
        self, callback: Callable[[LogNotification], Awaitable[None]]
    ) -> ProgramSubscription:
        """Subscribe to transaction logs mentioning the program."""

        async def _on_logs(result: dict[str, Any]) -> None:
            value = result.get("value") or {}
            if not value.get("signature"):
                return
            context = result.get("context") or {}
            await callback(LogNotification(
                signature=value["signature"],
                slot=context.get("slot", 0),
                err=value.get("err"),
                logs=value.get("logs") or [],
            ))

        return ProgramSubscription(
            self._ws_url,
            "logsSubscribe",
            [{"mentions": [self._program_id]}, {"commitment": self._commitment}],
            _on_logs,
        ).start()

    def watch_account(
        self, callback: Callable[[AccountChange], Awaitable[None]]
    ) -> ProgramSubscription:
        """Subscribe to changes of any account owned by the program."""

        async def _on_account(result: dict[str, Any]) -> None:
            value = result.get("value") or {}
            address = value.get("pubkey")
            account = value.get("account")
            if not address or not isinstance(account, dict):
                return
            slot = (result.get("context") or {}).get("slot", 0)
            try:
                data = _account_bytes(account)
            except ValueError as e:
                logger.debug(f"[WS] Bad account payload for {address[:12]}: {e}")
                return

            kind = classify_account(data)
            change = AccountChange(address=address, slot=slot, kind=kind)
            try:
                if kind == "launch":
                    change.launch = decode_launch(address, data)
                elif kind == "user_position":
                    change.position = decode_user_position(address, data)
            except DecodeError as e:
                logger.debug(f"[WS] Undecodable {kind} update {address[:12]}: {e}")
                change.kind = "unknown"
            await callback(change)

        return ProgramSubscription(
            self._ws_url,
            "programSubscribe",
            [self._program_id, {"encoding": "base64", "commitment": self._commitment}],
            _on_account,
        ).start()

    async def close(self) -> None:
        await self._client.aclose()
