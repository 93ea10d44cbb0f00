# tripboard/core/errors.py
"""
서비스 계층에서 사용하는 도메인 예외 모음.

각 예외는 라우트에서 그대로 JSON 응답으로 변환될 수 있도록
error_code 와 HTTP status 를 함께 가집니다.
"""


class TripboardError(Exception):
    """모든 도메인 예외의 기반 클래스"""
    error_code = "TRIPBOARD_ERROR"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error_code": self.error_code, "message": self.message}


class Unauthorized(TripboardError):
    """허용 목록(allow-list)에 없는 이메일로 로그인한 경우. 세션은 즉시 종료됩니다."""
    error_code = "UNAUTHORIZED_EMAIL"
    status_code = 403


class NotFound(TripboardError):
    error_code = "NOT_FOUND"
    status_code = 404


class WriteError(TripboardError):
    """Firestore 가 생성/수정/삭제 요청을 거부한 경우"""
    error_code = "WRITE_FAILED"
    status_code = 500


class SubscriptionError(TripboardError):
    """실시간 구독을 맺지 못했거나 구독이 끊어진 경우"""
    error_code = "SUBSCRIPTION_FAILED"
    status_code = 503


class DirectionsError(TripboardError):
    """경로/소요 시간 조회 실패 (예: 찾을 수 없는 장소명)"""
    error_code = "DIRECTIONS_FAILED"
    status_code = 502
