"""Create the relay schema and optionally clear the current signaling session."""
from __future__ import annotations

import argparse
import asyncio

from signal_relay.db.session import SessionLocal, create_schema, engine
from signal_relay.repositories import messages as messages_repo
from signal_relay.repositories import peers as peers_repo
from signal_relay.services import retention


async def clear_session() -> tuple[int, int]:
	"""Delete every peer and message, as a host join would."""

	async with SessionLocal() as session:
		async with session.begin():
			cleared_messages = await messages_repo.delete_all(session)
			cleared_peers = await peers_repo.delete_all(session)
	return cleared_peers, cleared_messages


async def sweep() -> retention.SweepResult:
	async with SessionLocal() as session:
		return await retention.sweep(session)


async def main(args: argparse.Namespace) -> None:
	await create_schema(drop_existing=args.drop)
	print("Database schema ensured.")

	if args.reset:
		peers, messages = await clear_session()
		print(f"Cleared {peers} peers and {messages} messages.")
	if args.sweep:
		result = await sweep()
		print(f"Swept {result.messages_deleted} messages and {result.peers_deleted} peers.")

	await engine.dispose()


def parse_args() -> argparse.Namespace:
	parser = argparse.ArgumentParser(description=__doc__)
	parser.add_argument("--drop", action="store_true", help="drop existing tables before creating them")
	parser.add_argument("--reset", action="store_true", help="delete every peer and message")
	parser.add_argument("--sweep", action="store_true", help="run the retention sweep once")
	return parser.parse_args()


if __name__ == "__main__":
	asyncio.run(main(parse_args()))
