"""
Operator CLI for the Ainimo save record.

Usage:
    # Show envelope metadata (never the plaintext)
    python -m Ainimo_Save.cli inspect

    # Decrypt + validate with the configured secret, print the parameters
    AINIMO_STORAGE_SECRET=s3cret python -m Ainimo_Save.cli verify

    # Delete the record
    python -m Ainimo_Save.cli clear

    # End-to-end save/reload walkthrough (in-memory unless --redis)
    python -m Ainimo_Save.cli demo --secret s3cret
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import Optional

from Ainimo_Save.save_shared import config, errors
from Ainimo_Save.save_shared.codec import decode_state, parameters_to_dict
from Ainimo_Save.save_shared.payload import (
    decode_payload,
    looks_like_envelope,
    looks_like_plaintext_state,
)
from Ainimo_Save.save_shared.sealing import StateSealer
from Ainimo_Save.save_shared.types import (
    CryptoConfig,
    GameParameters,
    GameState,
    Message,
    load_secret,
    now_ms,
)
from Ainimo_Save.save_shared.validator import validate_state
from Ainimo_Save.save_db.connection import close_client, create_storage_client
from Ainimo_Save.save_db.storage import MemoryStorage, RedisStorage, SaveStorage
from Ainimo_Save.session.controller import PersistenceController


# ─── ANSI Display Helpers ───

class Display:
    """Terminal formatting with ANSI colors."""

    RESET   = "\033[0m"
    BOLD    = "\033[1m"
    DIM     = "\033[2m"

    RED     = "\033[91m"
    GREEN   = "\033[92m"
    YELLOW  = "\033[93m"
    BLUE    = "\033[94m"
    CYAN    = "\033[96m"

    @classmethod
    def header(cls, title: str) -> None:
        line = "═" * 60
        print(f"\n{cls.CYAN}{cls.BOLD}{line}")
        print(f"  {title}")
        print(f"{line}{cls.RESET}\n")

    @classmethod
    def arrow(cls, msg: str) -> None:
        print(f"  {cls.BLUE}→{cls.RESET} {msg}")

    @classmethod
    def success(cls, msg: str) -> None:
        print(f"  {cls.GREEN}✓{cls.RESET} {msg}")

    @classmethod
    def failure(cls, msg: str) -> None:
        print(f"  {cls.RED}✗{cls.RESET} {msg}")

    @classmethod
    def stat_row(cls, label: str, value, width: int = 20) -> None:
        print(f"  {label:<{width}} {cls.BOLD}{value}{cls.RESET}")


D = Display  # shorthand


def _crypto_config(args) -> CryptoConfig:
    cfg = CryptoConfig.from_env()
    if args.iterations is not None:
        cfg = replace(cfg, key_derivation_iterations=args.iterations)
    return cfg


# ─── Commands ───

async def cmd_inspect(storage: SaveStorage, args) -> int:
    raw = await storage.get(args.key)
    if raw is None:
        D.arrow(f"No record under {args.key!r}")
        return 1

    if looks_like_plaintext_state(raw):
        D.arrow("Unencrypted game state record")
        D.stat_row("size", f"{len(raw)} chars")
        return 0

    if not looks_like_envelope(raw):
        D.failure("Record is neither an envelope nor a game state")
        return 2

    try:
        payload = decode_payload(raw)
    except errors.FormatError as e:
        D.failure(str(e))
        return 2

    D.stat_row("version", payload.version)
    D.stat_row("iv", f"{len(payload.iv)} bytes")
    D.stat_row("salt", f"{len(payload.salt)} bytes")
    D.stat_row("ciphertext", f"{len(payload.ciphertext)} bytes")
    D.stat_row("hmac", payload.hmac.hex()[:16] + "…")
    return 0


async def cmd_verify(storage: SaveStorage, args) -> int:
    raw = await storage.get(args.key)
    if raw is None:
        D.arrow(f"No record under {args.key!r}")
        return 1

    try:
        sealer = StateSealer(_crypto_config(args), args.secret or load_secret())
        plaintext = await asyncio.to_thread(sealer.open, raw)
        state = validate_state(decode_state(plaintext))
    except errors.PersistenceError as e:
        D.failure(f"{type(e).__name__}: {e}")
        return 2

    D.success("Record verified")
    for name, value in parameters_to_dict(state.parameters).items():
        D.stat_row(name, value)
    D.stat_row("messages", len(state.messages))
    return 0


async def cmd_clear(storage: SaveStorage, args) -> int:
    try:
        await storage.delete(args.key)
    except errors.StorageError as e:
        D.failure(str(e))
        return 2
    D.success(f"Cleared {args.key!r}")
    return 0


def _demo_state(created_at: int) -> GameState:
    return GameState(
        parameters=GameParameters(
            level=1, xp=0, intelligence=5, memory=5, friendliness=5, energy=80, mood=50,
        ),
        messages=[],
        created_at=created_at,
        last_action_time=created_at,
    )


async def cmd_demo(storage: SaveStorage, args) -> int:
    secret = args.secret or load_secret()
    cfg = replace(_crypto_config(args), enabled=True)
    delay = 0.05

    D.header("Phase 1: fresh session, three quick actions")
    controller = PersistenceController(storage, cfg, secret, storage_key=args.key, save_delay=delay)
    result = await controller.load()
    D.arrow(f"load → {result.source.value}")

    state = _demo_state(now_ms())
    for i, text in enumerate(["hello", "let's study", "good night"], start=1):
        state.messages.append(Message(id=f"m{i}", speaker="user", text=text, timestamp=now_ms()))
        state.parameters.xp += 5
        state.last_action_time = now_ms()
        controller.notify_state_changed(state)

    await asyncio.sleep(delay * 2)
    await controller.flush()
    await controller.close()
    D.stat_row("saves written", controller.stats.saves_completed)
    D.stat_row("saves coalesced", controller.stats.saves_coalesced)

    D.header("Phase 2: reload with the same secret")
    reloaded = PersistenceController(storage, cfg, secret, storage_key=args.key)
    result = await reloaded.load()
    if result.state == state:
        D.success(f"load → {result.source.value}, state identical")
    else:
        D.failure(f"load → {result.source.value}, state differs")
        return 2

    D.header("Phase 3: reload with a wrong secret")
    intruder = PersistenceController(storage, cfg, secret + "-wrong", storage_key=args.key)
    result = await intruder.load()
    D.arrow(f"load → {result.source.value} ({type(result.error).__name__})")
    return 0


COMMANDS = {
    "inspect": cmd_inspect,
    "verify": cmd_verify,
    "clear": cmd_clear,
    "demo": cmd_demo,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ainimo-save",
        description="Inspect and manage the encrypted Ainimo save record",
    )
    parser.add_argument("command", choices=sorted(COMMANDS))
    parser.add_argument("--key", default=config.STORAGE_KEY, help="storage key of the record")
    parser.add_argument("--secret", default=None, help=f"storage secret (default: ${config.ENV_STORAGE_SECRET})")
    parser.add_argument("--iterations", type=int, default=None, help="PBKDF2 iteration override")
    parser.add_argument("--redis", action="store_true", help="demo: use Redis instead of memory")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


async def run(args, storage: Optional[SaveStorage] = None) -> int:
    if args.command == "demo" and not (args.secret or load_secret()):
        D.failure(f"demo needs --secret or ${config.ENV_STORAGE_SECRET}")
        return 2

    if storage is not None:
        return await COMMANDS[args.command](storage, args)

    if args.command == "demo" and not args.redis:
        return await COMMANDS[args.command](MemoryStorage(), args)

    try:
        client = await create_storage_client()
    except errors.StorageUnavailableError as e:
        D.failure(str(e))
        return 2
    try:
        return await COMMANDS[args.command](RedisStorage(client), args)
    finally:
        await close_client(client)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
