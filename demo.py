#!/usr/bin/env python3
"""
Ainimo Save Runner: preflight checks, test suite, save/reload walkthrough.

Usage:
    python demo.py              Preflight, then the save/reload walkthrough
    python demo.py --check      Only run preflight checks
    python demo.py --tests      Run the test suite
    python demo.py --redis      Walk through against Redis instead of memory

Requires:
    AINIMO_STORAGE_SECRET set (or --secret) for the walkthrough
    Redis at AINIMO_REDIS_HOST:AINIMO_REDIS_PORT only for --redis
"""

import sys
import argparse
import subprocess
import socket

# ─── ANSI helpers ───

RESET  = "\033[0m"
BOLD   = "\033[1m"
DIM    = "\033[2m"
RED    = "\033[91m"
GREEN  = "\033[92m"
YELLOW = "\033[93m"
CYAN   = "\033[96m"

def ok(msg):   print(f"  {GREEN}✓{RESET} {msg}")
def fail(msg): print(f"  {RED}✗{RESET} {msg}")
def info(msg): print(f"  {CYAN}→{RESET} {msg}")
def warn(msg): print(f"  {YELLOW}!{RESET} {msg}")


# ─── Preflight checks ───

def check_port(host, port, label):
    """Check if a TCP port is accepting connections."""
    try:
        with socket.create_connection((host, port), timeout=2):
            ok(f"{label} is reachable at {host}:{port}")
            return True
    except OSError:
        warn(f"{label} is not reachable at {host}:{port}")
        return False


def check_import(module, label):
    try:
        __import__(module)
        ok(f"{label} importable")
        return True
    except ImportError as e:
        fail(f"{label} import failed: {e}")
        return False


def preflight(need_redis=False):
    """Run all preflight checks. Returns True if everything required passes."""
    print(f"\n{CYAN}{BOLD}  Preflight Checks{RESET}")
    print(f"  {'─' * 40}\n")

    results = []

    info("Checking Python packages…")
    results.append(check_import("redis", "redis-py"))
    results.append(check_import("nacl", "pynacl"))
    results.append(check_import("cryptography", "cryptography"))
    results.append(check_import("pydantic", "pydantic"))

    print()

    info("Checking Ainimo_Save package…")
    results.append(check_import("Ainimo_Save.save_shared.sealing", "StateSealer"))
    results.append(check_import("Ainimo_Save.save_db.storage", "RedisStorage"))
    results.append(check_import("Ainimo_Save.session.controller", "PersistenceController"))

    print()

    from Ainimo_Save.save_shared import config
    from Ainimo_Save.save_shared.types import CryptoConfig, load_secret

    info("Checking storage…")
    redis_up = check_port(config.REDIS_HOST, config.REDIS_PORT, "Redis")
    if need_redis:
        results.append(redis_up)
    elif not redis_up:
        info(f"{DIM}walkthrough will use in-memory storage{RESET}")

    crypto = CryptoConfig.from_env()
    info(f"Encryption: {BOLD}{'on' if crypto.enabled else 'off'}{RESET}, "
         f"PBKDF2 iterations: {BOLD}{crypto.key_derivation_iterations:,}{RESET}")
    if load_secret() is None:
        warn(f"${config.ENV_STORAGE_SECRET} is not set")

    print()
    all_ok = all(results)
    if all_ok:
        ok(f"{BOLD}All preflight checks passed{RESET}")
    else:
        fail(f"{BOLD}Some checks failed, fix the issues above first{RESET}")

    print()
    return all_ok


# ─── Test runner ───

def run_tests():
    print(f"\n{CYAN}{BOLD}  Running Test Suite{RESET}")
    print(f"  {'─' * 40}\n")

    result = subprocess.run([sys.executable, "-m", "pytest", "Ainimo_Save", "-v", "--tb=short"])
    if result.returncode == 0:
        ok("all passed")
        return True
    fail(f"some tests failed (exit code {result.returncode})")
    return False


# ─── Walkthrough ───

def run_demo(secret=None, use_redis=False):
    from Ainimo_Save.cli import main as cli_main
    argv = ["demo"]
    if secret:
        argv += ["--secret", secret]
    if use_redis:
        argv.append("--redis")
    return cli_main(argv)


# ─── Entry point ───

def parse_args():
    parser = argparse.ArgumentParser(description="Ainimo Save Runner")
    parser.add_argument("--check", action="store_true", help="Only run preflight checks")
    parser.add_argument("--tests", action="store_true", help="Run the test suite")
    parser.add_argument("--redis", action="store_true", help="Use Redis for the walkthrough")
    parser.add_argument("--secret", default=None, help="Storage secret for the walkthrough")
    return parser.parse_args()


def main():
    args = parse_args()

    print(f"""
{CYAN}{BOLD}    ┌─────────────────────────────────────────────┐
    │   Ainimo: encrypted save runner               │
    └─────────────────────────────────────────────┘{RESET}
    """)

    if args.check:
        sys.exit(0 if preflight(args.redis) else 1)

    if args.tests:
        sys.exit(0 if run_tests() else 1)

    if not preflight(args.redis):
        sys.exit(1)
    sys.exit(run_demo(args.secret, args.redis))


if __name__ == "__main__":
    main()
