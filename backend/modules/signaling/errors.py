"""시그널링 프로토콜 예외."""


class InvalidRequest(ValueError):
    """필수 필드가 누락된 join/send/leave/poll 요청.

    HTTP 계층에서 400 ``{"error": message}`` 응답으로 변환됩니다.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
