# tripboard/services/subscription.py
"""
Firestore 실시간 리스너(on_snapshot)를 감싸는 구독 객체.

- dispose() 는 여러 번 호출해도 안전하며, 호출 이후에는 콜백이 절대 실행되지 않습니다.
- 리스너 연결 실패 시 지수 백오프로 재시도하고, 끝내 실패하면 SubscriptionError 를 던집니다.
- SubscriptionSlot 은 키(user_id, trip_id)당 하나의 구독만 유지하며,
  키가 바뀌면 이전 구독을 먼저 해제한 뒤 새 구독을 엽니다.
"""
import logging
import threading
import time
from typing import Any, Callable, Hashable, List, Optional

from tripboard.core.errors import SubscriptionError

# open_watch(callback) -> watch 객체 (unsubscribe() 와 is_active 를 가짐)
WatchOpener = Callable[[Callable], Any]


class Subscription:
    """Firestore Watch 하나에 대한 취소 가능한 구독"""

    def __init__(self,
                 open_watch: WatchOpener,
                 on_snapshot: Callable[[List[Any]], None],
                 on_error: Optional[Callable[[SubscriptionError], None]] = None,
                 name: str = "subscription",
                 max_retries: int = 5,
                 backoff_seconds: float = 0.5,
                 max_backoff_seconds: float = 30.0,
                 sleep: Callable[[float], None] = time.sleep):
        self._open_watch = open_watch
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self.name = name
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self._sleep = sleep

        self._lock = threading.RLock()
        self._watch = None
        self._disposed = False

    # --- 수명 주기 ---

    def start(self) -> "Subscription":
        """리스너를 연결합니다. 재시도가 모두 실패하면 SubscriptionError 를 던집니다."""
        watch = self._open_with_retry()
        with self._lock:
            if self._disposed:
                # 연결 도중 dispose 된 경우 방금 연 리스너를 바로 닫습니다.
                self._close_watch(watch)
                return self
            self._watch = watch
        logging.info(f"[{self.name}] 실시간 구독 시작")
        return self

    def dispose(self):
        """구독을 해제합니다. 멱등(idempotent)입니다."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            watch, self._watch = self._watch, None
        if watch is not None:
            self._close_watch(watch)
        logging.info(f"[{self.name}] 실시간 구독 해제")

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def is_active(self) -> bool:
        with self._lock:
            if self._disposed or self._watch is None:
                return False
            return bool(getattr(self._watch, 'is_active', True))

    def ensure_alive(self) -> bool:
        """
        리스너가 끊어졌다면 on_error 로 알리고 백오프 재연결을 시도합니다.
        마지막으로 전달된 스냅샷 상태는 건드리지 않습니다.
        재연결 후(또는 원래) 살아 있으면 True 를 반환합니다.
        """
        with self._lock:
            if self._disposed:
                return False
            watch = self._watch
        if watch is not None and getattr(watch, 'is_active', True):
            return True

        self._report(SubscriptionError(f"[{self.name}] 실시간 구독이 끊어졌습니다."))
        try:
            self._reopen(watch)
        except SubscriptionError as e:
            self._report(e)
            return False
        return True

    # --- 내부 구현 ---

    def _deliver(self, docs, changes=None, read_time=None):
        """
        Watch 스레드에서 호출되는 콜백. dispose 이후에는 무시합니다.
        콜백은 락을 잡은 채 실행되므로 dispose() 가 반환된 뒤에는 어떤 콜백도 실행되지 않습니다.
        """
        snapshot = list(docs)
        with self._lock:
            if self._disposed:
                return
            try:
                self._on_snapshot(snapshot)
            except Exception as e:
                logging.error(f"[{self.name}] 스냅샷 처리 중 오류: {e}", exc_info=True)
                self._report(SubscriptionError(f"[{self.name}] 스냅샷 처리 실패: {e}"))

    def _reopen(self, old_watch):
        if old_watch is not None:
            self._close_watch(old_watch)
        watch = self._open_with_retry()
        with self._lock:
            if self._disposed:
                self._close_watch(watch)
                return
            self._watch = watch
        logging.info(f"[{self.name}] 실시간 구독 재연결 완료")

    def _open_with_retry(self):
        last_error = None
        for attempt in range(self.max_retries + 1):
            if self._disposed:
                return None
            try:
                return self._open_watch(self._deliver)
            except Exception as e:
                last_error = e
                if attempt >= self.max_retries:
                    break
                delay = min(self.backoff_seconds * (2 ** attempt), self.max_backoff_seconds)
                logging.warning(f"[{self.name}] 구독 연결 실패 ({attempt + 1}/{self.max_retries + 1}), {delay}s 후 재시도: {e}")
                self._sleep(delay)

        logging.error(f"[{self.name}] 구독 연결 재시도 초과: {last_error}")
        raise SubscriptionError(f"[{self.name}] 실시간 구독을 연결할 수 없습니다: {last_error}")

    def _close_watch(self, watch):
        if watch is None:
            return
        try:
            watch.unsubscribe()
        except Exception as e:
            logging.warning(f"[{self.name}] 리스너 해제 중 오류 (무시됨): {e}")

    def _report(self, error: SubscriptionError):
        if self._on_error is None or self._disposed:
            return
        try:
            self._on_error(error)
        except Exception as e:
            logging.error(f"[{self.name}] on_error 콜백 실행 실패: {e}", exc_info=True)


class SubscriptionSlot:
    """
    하나의 키에 대해 최대 하나의 구독을 유지하는 슬롯.
    SSE 스트림이 자기 구독을 담아 두고, 세션 종료나 연결 종료 시 clear() 로 해제합니다.
    키(trip_id 등)가 바뀌면 이전 구독을 먼저 해제해 중복 구독을 막습니다.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._key: Optional[Hashable] = None
        self._subscription: Optional[Subscription] = None

    @property
    def key(self) -> Optional[Hashable]:
        return self._key

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    def switch(self, key: Hashable, factory: Callable[[Hashable], Subscription]) -> Subscription:
        """키가 같으면 기존 구독을 유지하고, 다르면 이전 구독을 해제한 뒤 새로 엽니다."""
        with self._lock:
            current = self._subscription
            if current is not None and self._key == key and not current.disposed:
                return current
            self._subscription = None
            self._key = None
            if current is not None:
                current.dispose()
            subscription = factory(key)
            self._key = key
            self._subscription = subscription
            return subscription

    def clear(self):
        with self._lock:
            current, self._subscription = self._subscription, None
            self._key = None
        if current is not None:
            current.dispose()


def subscription_options(config) -> dict:
    """Flask config 에서 Subscription 재시도 옵션을 읽어옵니다."""
    return {
        'max_retries': int(config.get('SUBSCRIPTION_MAX_RETRIES', 5)),
        'backoff_seconds': float(config.get('SUBSCRIPTION_BACKOFF_SECONDS', 0.5)),
        'max_backoff_seconds': float(config.get('SUBSCRIPTION_MAX_BACKOFF_SECONDS', 30)),
    }
