"""CallSession 통합 테스트.

두 클라이언트가 같은 릴레이(ASGI 앱)를 통해 offer/answer를 교환하고,
한쪽이 퇴장하면 다른 쪽의 상태 머신이 정리되는지 확인합니다.
"""

import asyncio
import logging

import httpx
import pytest

from conftest import FakeMediaDevices, FakePeerConnection
from modules.client import CallSession, SignalingClient, SignalingError
from modules.webrtc import MediaSourceManager, PeerState
from modules.webrtc.media import DeviceAccessError
from modules.webrtc.tracks import outgoing_tracks


async def wait_until(predicate, timeout=3.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        assert asyncio.get_running_loop().time() < deadline, "timed out"
        await asyncio.sleep(0.01)


@pytest.fixture
async def make_session(asgi_transport):
    sessions = []

    def factory(peer_id, devices=None, pc_factory=FakePeerConnection):
        client = SignalingClient("http://relay", peer_id=peer_id, transport=asgi_transport)
        session = CallSession(
            client,
            media=MediaSourceManager(devices=devices or FakeMediaDevices()),
            poll_interval=0.01,
            pc_factory=pc_factory,
        )
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        await session.leave()
        await session.client.aclose()


async def test_two_peers_negotiate_through_relay(make_session, relay):
    alice = make_session("alice")
    bob = make_session("bob")

    await alice.join("room-1")
    await bob.join("room-1")

    # bob은 기존 참가자 alice에게, alice는 peer-connected 알림을 받고 bob에게 offer를 보냄.
    # 충돌 시 알림을 받은 alice가 자기 offer를 철회하고 bob의 offer에 answer함
    assert bob.peers.state("alice") == PeerState.OFFER_SENT
    await wait_until(lambda: bob.peers.state("alice") == PeerState.CONNECTED)
    assert alice.peers.state("bob") == PeerState.ANSWERING

    alice_pc = alice.peers.sessions["bob"].pc
    assert alice_pc.remoteDescription.type == "offer"
    assert len(outgoing_tracks(alice_pc)) == 2

    await bob.leave()
    await wait_until(lambda: "bob" not in alice.peers.sessions)
    assert relay.registry.get_room_peers("room-1") == ["alice"]
    assert bob.media.current is None
    assert not bob.poll_loop.running


async def test_join_validates_room_id(make_session):
    session = make_session("alice")

    with pytest.raises(ValueError):
        await session.join("   ")
    assert session.room_id is None


async def test_device_failure_aborts_join(make_session, relay):
    session = make_session("alice", devices=FakeMediaDevices(fail_camera=True))

    with pytest.raises(DeviceAccessError):
        await session.join("room-1")

    assert session.room_id is None
    assert relay.registry.rooms == {}


async def test_relay_join_failure_releases_media():
    def reject(request):
        return httpx.Response(500, json={"error": "boom"})

    client = SignalingClient("http://relay", peer_id="alice", transport=httpx.MockTransport(reject))
    session = CallSession(client, media=MediaSourceManager(devices=FakeMediaDevices()), pc_factory=FakePeerConnection)

    with pytest.raises(SignalingError):
        await session.join("room-1")

    assert session.media.local is None
    assert not session.poll_loop.running
    await client.aclose()


async def test_screen_share_propagates_to_connected_peers(make_session):
    alice = make_session("alice")
    bob = make_session("bob")
    await alice.join("room-1")
    await bob.join("room-1")
    await wait_until(lambda: bob.peers.state("alice") == PeerState.CONNECTED)

    assert await alice.toggle_screen_share() is True
    alice_pc = alice.peers.sessions["bob"].pc
    assert [t.kind for t in outgoing_tracks(alice_pc)] == ["video"]

    assert await alice.toggle_screen_share() is False
    assert sorted(t.kind for t in outgoing_tracks(alice_pc)) == ["audio", "video"]


async def test_leave_twice_is_safe(make_session):
    session = make_session("alice")
    await session.join("room-1")

    await session.leave()
    await session.leave()

    assert session.room_id is None


async def test_two_peers_connect_with_aiortc_transport(make_session, caplog):
    """실제 aiortc RTCPeerConnection으로도 offer 충돌 없이 협상이 끝난다."""
    caplog.set_level(logging.INFO)
    alice = make_session("alice", pc_factory=None)
    bob = make_session("bob", pc_factory=None)

    await alice.join("room-1")
    await bob.join("room-1")

    # ICE 성공 여부는 실행 환경의 네트워크 인터페이스에 달려 있으므로 시그널링 완료까지만 확인
    await wait_until(lambda: any("피어 alice answer 적용" in r.getMessage() for r in caplog.records), timeout=10.0)

    handler_errors = [
        r for r in caplog.records
        if r.name == "modules.client.poll_loop" and r.levelno >= logging.ERROR
    ]
    assert handler_errors == []


async def test_leave_removes_peer_queue_from_relay(make_session, relay):
    session = make_session("alice")
    await session.join("room-1")
    await asyncio.sleep(0.05)

    await session.leave()
    await asyncio.sleep(0.05)

    assert "alice" not in relay.store.queues
    assert relay.registry.rooms == {}


async def test_screen_share_toggle_before_join_is_ignored(make_session):
    devices = FakeMediaDevices()
    session = make_session("alice", devices=devices)

    assert await session.toggle_screen_share() is False
    assert devices.screen_requests == []

    await session.join("room-1")
    assert session.media.current is session.media.local
    assert await session.toggle_screen_share() is True
