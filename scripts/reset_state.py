"""Reset all marketplace state in Redis (useful for testing)."""

import argparse
import asyncio

from tiffin.state.manager import StateManager
from tiffin.state.repository import Database


async def reset_all_state(force: bool = False) -> None:
    """Clear all data from Redis."""
    if not force:
        print("\n⚠️  WARNING: This will delete ALL marketplace data from Redis!")
        response = input("Are you sure? (yes/no): ")

        if response.lower() != "yes":
            print("Cancelled.")
            return

    state_manager = StateManager()
    await state_manager.connect()
    db = Database(state_manager)

    for name, table in db.tables().items():
        print(f"  {name}: {await table.count()} rows")

    print("\nResetting state...")
    await state_manager.flush()
    await state_manager.disconnect()

    print("✓ All state cleared from Redis\n")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--yes", action="store_true", help="skip the confirmation prompt")
    args = parser.parse_args()
    asyncio.run(reset_all_state(force=args.yes))
