# tripboard/api/streaming.py
"""
Firestore 실시간 구독을 Server-Sent Events(SSE) 응답으로 연결하는 헬퍼.

Watch 스레드의 콜백은 큐에 이벤트를 넣기만 하고, 응답 generator 가 큐에서 꺼내
'event: snapshot' / 'event: error' 프레임을 내보냅니다. 클라이언트 연결이 끊기면
generator 가 닫히면서 구독을 해제합니다.

스트림은 요청 토큰의 로그인 세션을 따라갑니다. heartbeat 마다 허용 목록을 다시 확인하고,
세션이 종료되면 구독을 해제한 뒤 'session_end' 프레임을 보내고 스트림을 닫습니다.
"""
import json
import logging
import queue
from typing import Any, Callable, Hashable, Iterator, Optional, Tuple

from flask import Response, current_app, stream_with_context
from flask_jwt_extended import get_jwt, get_jwt_identity

from tripboard.api.auth.services import IdentityGate, SessionState
from tripboard.core.errors import SubscriptionError, Unauthorized
from tripboard.services.subscription import Subscription, SubscriptionSlot

# open_subscription(on_snapshot, on_error) -> Subscription
SubscriptionOpener = Callable[[Callable[[Any], None], Callable[[SubscriptionError], None]], Subscription]

SESSION_END_EVENT = 'session_end'


def format_sse(event: str, data: Any) -> str:
    payload = json.dumps(data, ensure_ascii=False, default=str)
    return f"event: {event}\ndata: {payload}\n\n"


def request_session() -> Tuple[IdentityGate, str]:
    """현재 요청 토큰의 세션. 세션이 종료되면 이 토큰을 무효화합니다."""
    auth_service = current_app.services['auth']
    token = get_jwt()
    uid = get_jwt_identity()
    gate = IdentityGate(auth_service, on_session_end=lambda: auth_service.revoke_tokens(token))
    gate.hold_session(uid)
    return gate, uid


def event_stream(slot: SubscriptionSlot, events: "queue.Queue[Tuple[str, Any]]",
                 heartbeat_seconds: float,
                 check_session: Optional[Callable[[], None]] = None,
                 on_close: Optional[Callable[[], None]] = None) -> Iterator[str]:
    """
    큐에 쌓인 이벤트를 SSE 프레임으로 내보냅니다.
    heartbeat_seconds 동안 이벤트가 없으면 세션을 다시 확인하고, 끊어진 리스너를 다시 연결한 뒤
    주석 프레임을 보냅니다. 'session_end' 이벤트를 보낸 뒤에는 스트림을 끝냅니다.
    """
    try:
        while True:
            try:
                event, data = events.get(timeout=heartbeat_seconds)
            except queue.Empty:
                if check_session is not None:
                    check_session()
                subscription = slot.subscription
                if subscription is not None:
                    subscription.ensure_alive()
                yield ": heartbeat\n\n"
                continue
            yield format_sse(event, data)
            if event == SESSION_END_EVENT:
                return
    finally:
        slot.clear()
        if on_close is not None:
            on_close()


def stream_snapshots(key: Hashable,
                     open_subscription: SubscriptionOpener,
                     serialize: Callable[[Any], Any],
                     heartbeat_seconds: float = 15.0,
                     session: Optional[Tuple[IdentityGate, str]] = None) -> Response:
    """
    구독을 즉시 연결한 뒤 SSE 응답을 반환합니다.
    연결 자체가 실패하면 SubscriptionError 가 그대로 전파되어 라우트에서 JSON 오류로 응답합니다.
    """
    events: "queue.Queue[Tuple[str, Any]]" = queue.Queue()
    slot = SubscriptionSlot()

    def on_snapshot(payload):
        events.put(('snapshot', serialize(payload)))

    def on_error(error: SubscriptionError):
        logging.warning(f"실시간 스트림 오류 전달: {error.message}")
        events.put(('error', error.to_dict()))

    check_session = None
    stop_listening = None
    if session is not None:
        gate, uid = session

        def on_session_change(state: SessionState):
            if state.profile is None:
                slot.clear()
                events.put((SESSION_END_EVENT, Unauthorized("세션이 종료되었습니다. 다시 로그인해주세요.").to_dict()))

        def check_session():
            try:
                gate.hold_session(uid)
            except Unauthorized as e:
                # 구독 해제와 종료 프레임은 세션 상태 리스너가 처리합니다.
                logging.info(f"스트림 세션 종료 (uid: {uid}): {e.message}")

        stop_listening = gate.state.subscribe(on_session_change)

    try:
        slot.switch(key, lambda _key: open_subscription(on_snapshot, on_error))
    except SubscriptionError:
        if stop_listening is not None:
            stop_listening()
        raise

    return Response(
        stream_with_context(event_stream(slot, events, heartbeat_seconds, check_session, stop_listening)),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )
