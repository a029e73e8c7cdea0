import asyncio
import json
import sys

import websockets


async def main(url: str = "ws://localhost:3000/ws"):
    # Two participants in the same conversation
    async with websockets.connect(url) as alice, websockets.connect(url) as bob:
        for ws, user_id, name in ((alice, "u1", "Alice"), (bob, "u2", "Bob")):
            await ws.send(json.dumps({"event": "authenticate", "data": {"userId": user_id, "name": name}}))
            print(f"Auth: {await ws.recv()}")

            await ws.send(json.dumps({"event": "join_room", "data": {"roomId": "room_u1_u2"}}))
            print(f"History: {await ws.recv()}")

        await alice.send(json.dumps({
            "event": "send_message",
            "data": {"roomId": "room_u1_u2", "text": "Hello from Python!", "correlationId": "smoke-1"},
        }))

        # Both sides receive the broadcast
        print(f"Alice received: {await alice.recv()}")
        print(f"Bob received: {await bob.recv()}")


asyncio.run(main(*sys.argv[1:]))
