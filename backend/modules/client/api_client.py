"""시그널링 릴레이 HTTP 클라이언트.

릴레이의 join/send/leave/poll 엔드포인트를 httpx.AsyncClient로 호출합니다.
"""

import logging
import random
import time
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from ..shared.dto import SignalingMessage
from ..webrtc.config import client_config

logger = logging.getLogger(__name__)


class SignalingError(Exception):
    """릴레이 요청 실패 (네트워크 오류 또는 4xx/5xx 응답)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def generate_peer_id() -> str:
    """``<epoch-millis>-<0..999999>`` 형식의 피어 ID를 생성합니다."""
    return f"{int(time.time() * 1000)}-{random.randint(0, 999999)}"


class SignalingClient:
    """릴레이 API 클라이언트.

    Attributes:
        peer_id (str): 이 클라이언트의 피어 ID
        base_url (str): 릴레이 서버 주소

    Examples:
        >>> async with SignalingClient("http://localhost:8000") as client:
        ...     existing = await client.join("room-1")
        ...     messages = await client.poll()
    """

    def __init__(
        self,
        base_url: str = client_config.SIGNALING_URL,
        peer_id: Optional[str] = None,
        timeout: float = client_config.REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.peer_id = peer_id or generate_peer_id()
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "SignalingClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise SignalingError(f"{method} {path} 실패: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("error")
            except ValueError:
                detail = response.text
            raise SignalingError(f"{method} {path} -> {response.status_code}: {detail}", response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise SignalingError(f"{method} {path} 응답 파싱 실패: {e}") from e

    async def _request_object(self, method: str, path: str, **kwargs) -> dict:
        data = await self._request(method, path, **kwargs)
        if not isinstance(data, dict):
            raise SignalingError(f"{method} {path} 응답이 JSON 객체가 아님: {type(data).__name__}")
        return data

    async def join(self, room_id: str) -> List[str]:
        """룸에 입장하고 기존 참가자 ID 목록을 반환합니다."""
        data = await self._request_object("POST", "/join", json={"roomId": room_id, "peerId": self.peer_id})
        existing_peers = list(data.get("existingPeers") or [])
        logger.info(f"룸 '{room_id}' 입장: 기존 참가자 {len(existing_peers)}명")
        return existing_peers

    async def send(self, to: str, type: str, data: Any = None) -> None:
        await self._request(
            "POST", "/send",
            json={"to": to, "type": type, "data": data, "from": self.peer_id},
        )
        logger.debug(f"메시지 전송: {type} -> {to}")

    async def leave(self, room_id: str) -> None:
        await self._request("POST", "/leave", json={"roomId": room_id, "peerId": self.peer_id})
        logger.info(f"룸 '{room_id}' 퇴장")

    async def poll(self) -> List[SignalingMessage]:
        """대기 중인 메시지를 가져옵니다. 서버 쪽 큐는 비워집니다."""
        data = await self._request_object("GET", "/poll", params={"peerId": self.peer_id})
        try:
            return [SignalingMessage.model_validate(m) for m in data.get("messages") or []]
        except ValidationError as e:
            raise SignalingError(f"잘못된 메시지 형식: {e}") from e

    async def ice_servers(self) -> List[dict]:
        """릴레이가 제공하는 ICE 서버 목록."""
        return await self._request("GET", "/api/ice-servers")
