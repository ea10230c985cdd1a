"""
Shared test doubles.

Stand-ins for aiortc peer connections and data channels, and for the
signaling client seen by the negotiation controller.
"""

import inspect

import pytest
from aiortc import RTCSessionDescription


class FakeEmitter:
    """Minimal pyee-style emitter."""

    def __init__(self):
        self._handlers = {}

    def on(self, event, handler=None):
        if handler is None:
            def decorator(f):
                self._handlers.setdefault(event, []).append(f)
                return f
            return decorator
        self._handlers.setdefault(event, []).append(handler)
        return handler

    async def emit(self, event, *args):
        for handler in list(self._handlers.get(event, [])):
            result = handler(*args)
            if inspect.isawaitable(result):
                await result


class FakeChannel(FakeEmitter):
    def __init__(self, label="photo"):
        super().__init__()
        self.label = label
        self.readyState = "open"
        self.bufferedAmount = 0
        self.sent = []

    def send(self, data):
        self.sent.append(data)


class FakeTrack:
    def __init__(self, kind="video", name="camera-1"):
        self.kind = kind
        self.name = name


class FakeSender:
    def __init__(self, track):
        self.track = track

    def replaceTrack(self, track):
        self.track = track


class FakePeerConnection(FakeEmitter):
    """Peer connection with just enough signaling-state bookkeeping."""

    def __init__(self, fail_on=()):
        super().__init__()
        self.fail_on = set(fail_on)
        self.signalingState = "stable"
        self.connectionState = "new"
        self.localDescription = None
        self.remoteDescription = None
        self.candidates = []
        self.channels = []
        self.senders = []
        self.closed = False

    def _check(self, operation):
        if operation in self.fail_on:
            raise ValueError(f"{operation} failed")

    async def createOffer(self):
        self._check("createOffer")
        return RTCSessionDescription(sdp="v=0 offer", type="offer")

    async def createAnswer(self):
        self._check("createAnswer")
        return RTCSessionDescription(sdp="v=0 answer", type="answer")

    async def setLocalDescription(self, description):
        self._check("setLocalDescription")
        self.localDescription = description
        self.signalingState = (
            "have-local-offer" if description.type == "offer" else "stable"
        )

    async def setRemoteDescription(self, description):
        self._check("setRemoteDescription")
        self.remoteDescription = description
        self.signalingState = (
            "have-remote-offer" if description.type == "offer" else "stable"
        )

    async def addIceCandidate(self, candidate):
        self._check("addIceCandidate")
        self.candidates.append(candidate)

    def createDataChannel(self, label):
        channel = FakeChannel(label)
        self.channels.append(channel)
        return channel

    def getSenders(self):
        return list(self.senders)

    def addTrack(self, track):
        sender = FakeSender(track)
        self.senders.append(sender)
        return sender

    async def close(self):
        self.closed = True
        self.connectionState = "closed"
        await self.emit("connectionstatechange")

    async def set_connection_state(self, state):
        self.connectionState = state
        await self.emit("connectionstatechange")


class FakeSignaling:
    """Records what the controller sends instead of reaching a relay."""

    def __init__(self, role="camera"):
        self.role = role
        self.sent = []
        self.handler = None
        self.reconnect_requests = 0

    def set_message_handler(self, handler):
        self.handler = handler

    async def send_offer(self, description, target_id=None):
        self.sent.append(("offer", description, target_id))

    async def send_answer(self, description, target_id=None):
        self.sent.append(("answer", description, target_id))

    async def send_candidate(self, candidate, target_id=None):
        self.sent.append(("candidate", candidate, target_id))

    async def request_reconnect(self):
        self.reconnect_requests += 1

    def sent_types(self):
        return [entry[0] for entry in self.sent]


class PeerFactory:
    """Builds FakePeerConnections and remembers them."""

    def __init__(self, fail_on=()):
        self.fail_on = fail_on
        self.created = []

    def __call__(self):
        pc = FakePeerConnection(self.fail_on)
        self.created.append(pc)
        return pc

    @property
    def latest(self):
        return self.created[-1]


@pytest.fixture
def fake_signaling():
    return FakeSignaling()


@pytest.fixture
def peer_factory():
    return PeerFactory()
