#!/usr/bin/env python3
"""
CameraConnect Command Line Client

    cameraconnect session
    cameraconnect send --room ROOM FILE [FILE ...]
    cameraconnect receive --room ROOM --out DIR [--lobby] [--count N]

Either command signals through the WebSocket relay (--relay-url) or,
with --signaling-url, through the HTTP polling endpoint.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from .negotiation import NegotiationController, NegotiationState
from .peer import DEFAULT_ICE_SERVERS, create_peer_connection
from .polling_client import PollingSignalingClient
from .relay_client import RelaySignalingClient
from .schemas import CAMERA, LOBBY, VIEWER
from .session import generate_session_id
from .transfer import DEFAULT_CHUNK_SIZE, FileReceiver, FileSender, ReceivedFile

logger = logging.getLogger(__name__)

FLUSH_GRACE = 1.0  # seconds to let the channel drain before closing


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cameraconnect",
        description="Send photos and files straight to a paired peer.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("session", help="print a new session id")

    for name, help_text in (
        ("send", "connect as the camera and send files"),
        ("receive", "connect as the viewer and save received files"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--room", required=True, help="shared session id")
        sub.add_argument(
            "--relay-url",
            default=os.environ.get("RELAY_URL", "ws://localhost:3001"),
        )
        sub.add_argument(
            "--signaling-url",
            default=os.environ.get("SIGNALING_URL"),
            help="use HTTP polling against this base URL instead of the relay",
        )
        sub.add_argument(
            "--ice-server",
            action="append",
            dest="ice_servers",
            help="STUN/TURN url, may be repeated",
        )

    send = subparsers.choices["send"]
    send.add_argument("files", nargs="+")
    send.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)

    receive = subparsers.choices["receive"]
    receive.add_argument("--out", default=".", help="directory for received files")
    receive.add_argument(
        "--lobby",
        action="store_true",
        help="wait in the lobby until a camera shows up",
    )
    receive.add_argument(
        "--count",
        type=int,
        default=None,
        help="exit after this many files",
    )
    return parser


def make_signaling(args, role: str):
    if args.signaling_url:
        return PollingSignalingClient(args.signaling_url, args.room, role)
    return RelaySignalingClient(args.relay_url, args.room, role)


def make_peer_factory(args):
    ice_servers = args.ice_servers or list(DEFAULT_ICE_SERVERS)
    return lambda: create_peer_connection(ice_servers)


def log_state(state: NegotiationState):
    logger.info(f"Status: {state.value}")


async def send_files(
    controller: NegotiationController,
    opened: asyncio.Event,
    paths: List[str],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """
    Send each file on whatever data channel the controller holds when
    that file starts. A reconnect between files replaces the channel.

    Returns:
        Number of files that failed
    """
    failures = 0
    for path in paths:
        await opened.wait()
        sender = FileSender(
            controller.channel,
            chunk_size=chunk_size,
            on_progress=lambda p: logger.debug(f"Sent {p * 100:.1f}%"),
        )
        if not await sender.send_file(path):
            failures += 1
    return failures


async def run_send(args) -> int:
    signaling = make_signaling(args, CAMERA)
    opened = asyncio.Event()

    def on_channel(channel):
        opened.clear()
        channel.on("open", opened.set)
        if getattr(channel, "readyState", None) == "open":
            opened.set()

    controller = NegotiationController(
        signaling,
        initiator=True,
        peer_factory=make_peer_factory(args),
        on_channel=on_channel,
        on_state_change=log_state,
    )

    await signaling.connect()
    listener = asyncio.create_task(signaling.handle_messages())
    try:
        await controller.start(offer=bool(args.signaling_url))
        failures = await send_files(controller, opened, args.files, args.chunk_size)

        while getattr(controller.channel, "bufferedAmount", 0) > 0:
            await asyncio.sleep(0.1)
        await asyncio.sleep(FLUSH_GRACE)
        return 1 if failures else 0
    finally:
        await controller.close()
        await signaling.close()
        listener.cancel()


async def run_receive(args) -> int:
    role = LOBBY if args.lobby else VIEWER
    signaling = make_signaling(args, role)
    received: List[ReceivedFile] = []
    done = asyncio.Event()
    os.makedirs(args.out, exist_ok=True)

    def on_file(file: ReceivedFile):
        file.save(args.out)
        received.append(file)
        if args.count is not None and len(received) >= args.count:
            done.set()

    def on_channel(channel):
        FileReceiver(
            on_file,
            on_progress=lambda p: logger.info(f"Receiving {p * 100:.1f}%"),
        ).attach(channel)

    controller = NegotiationController(
        signaling,
        initiator=False,
        peer_factory=make_peer_factory(args),
        on_channel=on_channel,
        on_state_change=log_state,
    )

    await signaling.connect()
    listener = asyncio.create_task(signaling.handle_messages())
    try:
        await controller.start()
        await done.wait()
        return 0
    finally:
        await controller.close()
        await signaling.close()
        listener.cancel()


def main(argv: Optional[List[str]] = None):
    """Main entry point for the command line client."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "session":
        print(generate_session_id())
        return

    if args.command == "receive" and args.lobby and args.signaling_url:
        parser.error("--lobby needs the WebSocket relay")

    runner = run_send if args.command == "send" else run_receive
    try:
        sys.exit(asyncio.run(runner(args)))
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)
    except ConnectionError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
