"""Lightweight shared DTOs for signaling between relay and clients.

릴레이는 payload를 해석하지 않으므로 `SignalingMessage.data`는 그대로 전달되고,
타입별 스키마 검증은 수신 측(클라이언트)에서 `payload()`로 수행합니다.
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class MessageType(str, Enum):
    """시스템이 생성하는 시그널링 메시지 타입."""

    PEER_CONNECTED = "peer-connected"
    PEER_DISCONNECTED = "peer-disconnected"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"


class SessionDescriptionPayload(BaseModel):
    """offer/answer 세션 디스크립션."""

    sdp: str
    type: str


class IceCandidatePayload(BaseModel):
    """브라우저 RTCIceCandidate.toJSON() 형식의 ICE candidate."""

    candidate: str
    sdpMid: Optional[str] = None
    sdpMLineIndex: Optional[int] = None


PAYLOAD_SCHEMAS = {
    MessageType.OFFER.value: SessionDescriptionPayload,
    MessageType.ANSWER.value: SessionDescriptionPayload,
    MessageType.ICE_CANDIDATE.value: IceCandidatePayload,
}


class SignalingMessage(BaseModel):
    """피어 큐에 쌓이는 시그널링 메시지 `{type, from, data}`.

    Attributes:
        type: 메시지 타입 (알 수 없는 타입도 그대로 보관/전달)
        sender: 보낸 피어 ID (JSON 키는 ``from``)
        data: 타입별 payload. 알림 메시지는 None
    """

    model_config = ConfigDict(populate_by_name=True)

    type: str
    sender: str = Field(alias="from")
    data: Any = None

    def payload(self) -> Union[SessionDescriptionPayload, IceCandidatePayload, Any]:
        """타입에 맞는 스키마로 검증된 payload를 반환합니다.

        알 수 없는 타입이나 스키마가 없는 타입은 원본 data를 그대로 반환합니다.

        Raises:
            pydantic.ValidationError: 알려진 타입의 data가 스키마와 맞지 않을 때
        """
        schema = PAYLOAD_SCHEMAS.get(self.type)
        if schema is None:
            return self.data
        return schema.model_validate(self.data)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


# 요청 바디 모델: 필드 존재 여부는 릴레이가 검증하므로 모두 Optional
class JoinRequest(BaseModel):
    roomId: Optional[str] = None
    peerId: Optional[str] = None


class LeaveRequest(BaseModel):
    roomId: Optional[str] = None
    peerId: Optional[str] = None


class SendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: Optional[str] = None
    type: Optional[str] = None
    data: Any = None
    sender: Optional[str] = Field(default=None, alias="from")
