"""
Dev bootstrap script — create a client and API key for local development.

Usage:
    python -m scripts.bootstrap_dev [daily_limit]

This will:
  1. Create a new client named "Dev Client"
  2. Mint an API key with the given daily limit (default 1000)
  3. Print the raw key ONCE (it is never stored)

The raw key is shown exactly once — copy it immediately.
"""

import asyncio
import sys

# Ensure the project root is on the path
sys.path.insert(0, ".")

from keygate.core.database import async_session_factory, engine
from keygate.services import registry


async def main(daily_limit: int) -> None:
    async with async_session_factory() as session:
        client = await registry.create_client(session, "Dev Client", "dev@localhost")
        identity, raw_key = await registry.provision_key(session, client.id, daily_limit)

    # ── Print results ───────────────────────────────────────
    print()
    print("=" * 60)
    print("  Dev Bootstrap Complete")
    print("=" * 60)
    print()
    print(f"  Client:      {client.name}")
    print(f"  Client ID:   {client.id}")
    print(f"  Key ID:      {identity.api_key_id}")
    print(f"  Daily limit: {identity.daily_limit}")
    print()
    print(f"  API Key:     {raw_key}")
    print()
    print("  ⚠  Copy this key now — it will NEVER be shown again.")
    print("=" * 60)
    print()

    await engine.dispose()


if __name__ == "__main__":
    limit = int(sys.argv[1]) if len(sys.argv) > 1 else 1000
    asyncio.run(main(limit))
