"""PeerConnectionManager 상태 머신 테스트 (fake RTCPeerConnection 사용)."""

import pytest

from conftest import FakePeerConnection
from modules.shared import IceCandidatePayload, SignalingMessage
from modules.webrtc import PeerConnectionManager, PeerState, RemoteViewRegistry
from modules.webrtc.peer_manager import candidate_from_payload
from modules.webrtc.tracks import outgoing_tracks

HOST_CANDIDATE = {
    "candidate": "candidate:1 1 UDP 2130706431 192.168.1.5 50000 typ host",
    "sdpMid": "0",
    "sdpMLineIndex": 0,
}


class Outbox:
    def __init__(self):
        self.sent = []

    async def __call__(self, to, type, data):
        self.sent.append((to, type, data))

    def types(self, to=None):
        return [t for (dest, t, _) in self.sent if to is None or dest == to]


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def views():
    return RemoteViewRegistry()


@pytest.fixture
def manager(outbox, media, views):
    return PeerConnectionManager(outbox, media, pc_factory=FakePeerConnection, views=views)


def message(type, sender, data=None):
    return SignalingMessage(type=type, sender=sender, data=data)


async def test_call_sends_offer_with_current_tracks(manager, outbox):
    await manager.call("B")

    assert manager.state("B") == PeerState.OFFER_SENT
    assert outbox.sent == [("B", "offer", {"sdp": "v=0 fake-offer", "type": "offer"})]
    pc = manager.sessions["B"].pc
    assert sorted(t.kind for t in outgoing_tracks(pc)) == ["audio", "video"]


async def test_call_existing_peer_is_noop(manager, outbox):
    await manager.call("B")
    await manager.call("B")

    assert outbox.types() == ["offer"]


async def test_offer_sent_stays_without_answer(manager):
    """answer를 받지 못하면 OfferSent에 머문다."""
    await manager.call("B")
    pc = manager.sessions["B"].pc

    await pc.set_connection_state("connecting")
    await pc.set_connection_state("connected")
    await manager.handle_message(message("ice-candidate", "B", HOST_CANDIDATE))

    assert manager.state("B") == PeerState.OFFER_SENT


async def test_answer_moves_offer_sent_to_connected(manager):
    await manager.call("B")

    await manager.handle_message(message("answer", "B", {"sdp": "v=0 remote", "type": "answer"}))

    assert manager.state("B") == PeerState.CONNECTED
    assert manager.sessions["B"].pc.remoteDescription.sdp == "v=0 remote"


async def test_answer_from_unknown_peer_is_ignored(manager):
    await manager.handle_message(message("answer", "X", {"sdp": "v=0", "type": "answer"}))

    assert manager.state("X") == PeerState.IDLE
    assert manager.peers() == []


async def test_offer_creates_session_and_answers(manager, outbox):
    await manager.handle_message(message("offer", "C", {"sdp": "v=0 remote-offer", "type": "offer"}))

    assert manager.state("C") == PeerState.ANSWERING
    assert outbox.sent == [("C", "answer", {"sdp": "v=0 fake-answer", "type": "answer"})]
    pc = manager.sessions["C"].pc
    assert pc.remoteDescription.type == "offer"
    assert len(outgoing_tracks(pc)) == 2

    await pc.set_connection_state("connected")
    assert manager.state("C") == PeerState.CONNECTED


async def test_candidate_before_connection_is_discarded(manager):
    await manager.handle_message(message("ice-candidate", "D", HOST_CANDIDATE))

    assert manager.state("D") == PeerState.IDLE
    assert "D" not in manager.sessions


async def test_candidate_is_added_to_existing_connection(manager):
    await manager.call("B")

    await manager.handle_message(message("ice-candidate", "B", HOST_CANDIDATE))
    await manager.handle_message(message("ice-candidate", "B", {"candidate": "candidate:garbage"}))

    (candidate,) = manager.sessions["B"].pc.candidates
    assert candidate.ip == "192.168.1.5"
    assert candidate.port == 50000
    assert candidate.sdpMid == "0"


async def test_local_candidates_are_sent(manager, outbox):
    await manager.call("B")
    pc = manager.sessions["B"].pc
    candidate = candidate_from_payload(IceCandidatePayload(**HOST_CANDIDATE))

    await pc.emit("icecandidate", candidate)

    to, type, data = outbox.sent[-1]
    assert (to, type) == ("B", "ice-candidate")
    assert data["candidate"].startswith("candidate:1 1 ")
    assert data["sdpMLineIndex"] == 0


async def test_peer_disconnected_closes_session(manager, views):
    await manager.call("B")
    pc = manager.sessions["B"].pc
    sent_tracks = outgoing_tracks(pc)

    await manager.handle_message(message("peer-disconnected", "B"))

    assert manager.state("B") == PeerState.IDLE
    assert pc.closed
    assert all(t.readyState == "ended" for t in sent_tracks)
    assert "B" not in views


@pytest.mark.parametrize("terminal", ["disconnected", "failed", "closed"])
async def test_transport_failure_closes_session(manager, terminal):
    await manager.call("B")
    pc = manager.sessions["B"].pc

    await pc.set_connection_state(terminal)

    assert "B" not in manager.sessions
    assert pc.closed


async def test_closed_peer_starts_fresh(manager, outbox):
    await manager.call("B")
    await manager.close("B")

    await manager.handle_message(message("peer-connected", "B"))

    assert manager.state("B") == PeerState.OFFER_SENT
    assert outbox.types("B") == ["offer", "offer"]


async def test_unknown_message_type_is_ignored(manager, outbox):
    await manager.handle_message(message("chat", "B", {"text": "hi"}))

    assert manager.peers() == []
    assert outbox.sent == []


async def test_close_all(manager):
    await manager.call("B")
    await manager.call("C")
    connections = manager.connections()

    await manager.close_all()

    assert manager.peers() == []
    assert all(pc.closed for pc in connections)


async def test_notified_side_yields_on_offer_collision(manager, outbox):
    """peer-connected로 offer를 보낸 쪽은 상대 offer가 오면 새 연결로 answer한다."""
    await manager.handle_message(message("peer-connected", "B"))
    first_pc = manager.sessions["B"].pc

    await manager.handle_message(message("offer", "B", {"sdp": "v=0 remote-offer", "type": "offer"}))

    second_pc = manager.sessions["B"].pc
    assert first_pc.closed
    assert second_pc is not first_pc
    assert manager.state("B") == PeerState.ANSWERING
    assert second_pc.remoteDescription.sdp == "v=0 remote-offer"
    assert len(outgoing_tracks(second_pc)) == 2
    assert outbox.types("B") == ["offer", "answer"]

    # 철회된 offer에 대한 answer는 무시
    await manager.handle_message(message("answer", "B", {"sdp": "v=0 late", "type": "answer"}))
    assert manager.state("B") == PeerState.ANSWERING
    assert second_pc.remoteDescription.sdp == "v=0 remote-offer"


async def test_joining_side_keeps_its_offer_on_collision(manager, outbox):
    await manager.call("B")
    pc = manager.sessions["B"].pc

    await manager.handle_message(message("offer", "B", {"sdp": "v=0 remote-offer", "type": "offer"}))

    assert manager.sessions["B"].pc is pc
    assert manager.state("B") == PeerState.OFFER_SENT
    assert outbox.types("B") == ["offer"]

    await manager.handle_message(message("answer", "B", {"sdp": "v=0 remote-answer", "type": "answer"}))
    assert manager.state("B") == PeerState.CONNECTED
