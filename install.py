#!/usr/bin/env python3
"""Bootstrap a support-relay checkout.

Usage:
    python install.py          # Runtime install
    python install.py --dev    # Editable install with pytest and httpx
"""

import os
import platform
import shutil
import subprocess
import sys

MIN_PYTHON = (3, 11)
PROJECT_DIR = os.path.dirname(os.path.abspath(__file__))
REQUIRED_SECRETS = ("OPENAI_API_KEY", "TELEGRAM_BOT_TOKEN", "TELEGRAM_ADMIN_ID")


def venv_tool(venv_dir: str, name: str) -> str:
    bin_dir = "Scripts" if platform.system() == "Windows" else "bin"
    return os.path.join(venv_dir, bin_dir, name)


def copy_if_missing(src: str, dst: str) -> None:
    src_path = os.path.join(PROJECT_DIR, src)
    dst_path = os.path.join(PROJECT_DIR, dst)
    if os.path.exists(dst_path):
        print(f"  {dst} kept as is")
    elif os.path.exists(src_path):
        shutil.copy(src_path, dst_path)
        print(f"  {dst} created from {src}")


def missing_secrets(env_path: str) -> list[str]:
    """Names from REQUIRED_SECRETS that have no value in the .env file."""
    if not os.path.exists(env_path):
        return list(REQUIRED_SECRETS)
    values = {}
    with open(env_path, encoding="utf-8") as f:
        for line in f:
            name, sep, value = line.strip().partition("=")
            if sep and not name.startswith("#"):
                values[name.strip()] = value.strip()
    return [name for name in REQUIRED_SECRETS if not values.get(name)]


def main() -> None:
    if sys.version_info < MIN_PYTHON:
        sys.exit(
            f"support-relay needs Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]} or newer "
            f"(found {sys.version_info.major}.{sys.version_info.minor})."
        )

    dev = "--dev" in sys.argv
    venv_dir = os.path.join(PROJECT_DIR, ".venv")

    print("[1/4] Virtual environment")
    if os.path.isdir(venv_dir):
        print("  .venv found")
    else:
        subprocess.check_call([sys.executable, "-m", "venv", venv_dir])
        print("  .venv created")

    pip = venv_tool(venv_dir, "pip")
    target = ["-e", ".[dev]"] if dev else ["."]
    print(f"[2/4] Installing support-relay ({'editable, with test tools' if dev else 'runtime'})")
    subprocess.check_call([pip, "install", "--upgrade", "pip"])
    subprocess.check_call([pip, "install", *target], cwd=PROJECT_DIR)

    print("[3/4] SQLite data directory")
    os.makedirs(os.path.join(PROJECT_DIR, "data"), exist_ok=True)
    print("  data/ ready (messages, patterns, analytics and admin sessions live here)")

    print("[4/4] Configuration")
    copy_if_missing("config.example.yaml", "config.yaml")
    copy_if_missing(".env.example", ".env")

    activate = r".\.venv\Scripts\activate" if platform.system() == "Windows" else "source .venv/bin/activate"
    missing = missing_secrets(os.path.join(PROJECT_DIR, ".env"))

    print()
    print("support-relay is installed.")
    if missing:
        print("Fill in these values in .env before starting:")
        for name in missing:
            print(f"  {name}")
    print(f"Then run `{activate}` and:")
    print("  support-relay config-check   # validate config.yaml and .env")
    print("  support-relay start          # HTTP API on server.port, Telegram console if enabled")
    if dev:
        print("  pytest                       # run the test suite")


if __name__ == "__main__":
    main()
