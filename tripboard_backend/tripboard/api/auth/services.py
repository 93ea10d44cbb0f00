# tripboard/api/auth/services.py
import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Optional

from firebase_admin import firestore
from flask import Flask

from tripboard.core.errors import Unauthorized
from tripboard.models.user import UserProfile
from tripboard.services.google_auth_service import IdentityClaims
from tripboard.utils.datetime_utils import DateTimeUtils


class SessionStatus(Enum):
    LOADING = "loading"
    RESOLVED = "resolved"


class SessionState:
    """
    로그인 세션 상태. 'loading' 으로 시작해서 최초 확인이 끝나면
    프로필(로그인) 또는 None(비로그인)으로 'resolved' 됩니다.
    전역 변수 대신 이 객체의 snapshot()/subscribe() 로만 상태를 읽습니다.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._status = SessionStatus.LOADING
        self._profile: Optional[UserProfile] = None
        self._listeners: List[Callable[["SessionState"], None]] = []

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_loading(self) -> bool:
        return self._status is SessionStatus.LOADING

    @property
    def profile(self) -> Optional[UserProfile]:
        return self._profile

    def snapshot(self) -> dict:
        return {
            'status': self._status.value,
            'user': self._profile.to_dict() if self._profile else None,
        }

    def resolve(self, profile: Optional[UserProfile]):
        with self._lock:
            self._status = SessionStatus.RESOLVED
            self._profile = profile
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(self)
            except Exception as e:
                logging.error(f"세션 상태 리스너 실행 실패: {e}", exc_info=True)

    def subscribe(self, listener: Callable[["SessionState"], None]) -> Callable[[], None]:
        """상태 변경 리스너를 등록하고, 해제 함수(여러 번 호출해도 안전)를 반환합니다."""
        with self._lock:
            self._listeners.append(listener)

        def dispose():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return dispose


class AuthService:
    """사용자 프로필 동기화, 이메일 허용 목록, 토큰 무효화 목록을 관리합니다."""

    def __init__(self, db=None, allowed_emails: Iterable[str] = ()):
        self.db = db
        self.users_ref = None
        self.revoked_tokens_ref = None
        self.allowed_emails = frozenset(e.strip().lower() for e in allowed_emails)
        self.app: Optional[Flask] = None
        if db is not None:
            self._bind(db)

    def init_app(self, app: Flask):
        """앱 초기화 과정에서 호출되어 DB 연결 및 허용 목록을 설정합니다."""
        if self.db is None:
            self._bind(firestore.client())
        self.allowed_emails = frozenset(app.config.get('ALLOWED_EMAILS') or ())
        self.app = app
        if not self.allowed_emails:
            logging.warning("ALLOWED_EMAILS 가 비어 있어 모든 로그인이 거부됩니다.")

    def _bind(self, db):
        self.db = db
        self.users_ref = db.collection('users')
        self.revoked_tokens_ref = db.collection('revoked_tokens')

    def is_email_allowed(self, email: Optional[str]) -> bool:
        if not email:
            return False
        return email.strip().lower() in self.allowed_emails

    def get_user_profile(self, uid: str) -> Optional[UserProfile]:
        doc = self.users_ref.document(uid).get()
        if not doc.exists:
            return None
        return UserProfile.from_dict(doc.to_dict())

    def sync_user_profile(self, claims: IdentityClaims) -> UserProfile:
        """
        로그인할 때마다 users/{uid} 문서를 upsert 합니다.
        - 문서가 없으면 전체 프로필을 저장
        - 있으면 last_login 만 merge (표시 이름/사진은 덮어쓰지 않음)
        """
        login_at = DateTimeUtils.now()
        user_ref = self.users_ref.document(claims.subject_id)
        snapshot = user_ref.get()

        if not snapshot.exists:
            profile = UserProfile(
                uid=claims.subject_id,
                email=claims.email,
                display_name=claims.display_name,
                photo_url=claims.avatar_url,
                last_login=login_at,
            )
            user_ref.set(DateTimeUtils.for_firestore(profile.to_dict()), merge=True)
            logging.info(f"신규 사용자 프로필 생성 (uid: {claims.subject_id})")
            return profile

        user_ref.set(DateTimeUtils.for_firestore({'last_login': login_at}), merge=True)
        profile = UserProfile.from_dict(snapshot.to_dict())
        profile.last_login = login_at
        return profile

    # --- Blocklist 관련 로직 ---
    def add_token_to_blocklist(self, jti: str, expires: datetime):
        """전달받은 토큰의 jti를 만료 시간과 함께 Firestore에 저장합니다."""
        try:
            token_data = DateTimeUtils.for_firestore({
                'revoked_at': DateTimeUtils.now(),
                'expires_at': expires
            })
            self.revoked_tokens_ref.document(jti).set(token_data)
        except Exception as e:
            logging.error(f"Blocklist 토큰 추가 실패 (jti: {jti}): {e}", exc_info=True)
            raise

    def is_token_revoked(self, jwt_payload: dict) -> bool:
        """jti를 이용해 해당 토큰이 무효화 목록에 있는지 확인합니다."""
        jti = jwt_payload.get('jti')
        if not jti:
            return False
        return self.revoked_tokens_ref.document(jti).get().exists

    def revoke_tokens(self, *decoded_tokens: dict):
        """디코딩된 JWT payload 들을 모두 무효화 목록에 추가합니다."""
        for payload in decoded_tokens:
            if not payload:
                continue
            expires = datetime.fromtimestamp(payload['exp'], tz=timezone.utc)
            self.add_token_to_blocklist(payload['jti'], expires)
        logging.info(f"토큰 {len([p for p in decoded_tokens if p])}개 무효화 완료")


class IdentityGate:
    """
    로그인 진입점. Google 로그인 결과(또는 세션 복원)를 허용 목록과 대조하고,
    허용된 경우에만 프로필을 동기화한 뒤 세션을 resolved(profile) 로 만듭니다.
    """

    def __init__(self, auth_service: AuthService, state: Optional[SessionState] = None,
                 on_session_end: Optional[Callable[[], None]] = None):
        self.auth_service = auth_service
        self.state = state or SessionState()
        self._on_session_end = on_session_end

    def authenticate(self, claims: IdentityClaims) -> UserProfile:
        """
        로그인 이벤트 처리. 허용되지 않은 이메일이면 세션을 즉시 종료하고 Unauthorized 를 던집니다.
        """
        if claims.email and not self.auth_service.is_email_allowed(claims.email):
            logging.warning(f"Blocking Access: {claims.email}")
            self._terminate()
            raise Unauthorized("이 계정은 로그인 권한이 없습니다. (Unauthorized Email)")
        if not claims.email:
            logging.warning(f"이메일 정보가 없는 로그인 시도 (sub: {claims.subject_id})")
            self._terminate()
            raise Unauthorized("이메일 정보를 확인할 수 없는 계정입니다.")

        try:
            profile = self.auth_service.sync_user_profile(claims)
        except Exception as e:
            # 프로필 동기화 실패는 로그인 자체를 막지 않습니다.
            logging.error(f"사용자 프로필 동기화 실패 (uid: {claims.subject_id}): {e}", exc_info=True)
            profile = UserProfile(
                uid=claims.subject_id,
                email=claims.email,
                display_name=claims.display_name,
                photo_url=claims.avatar_url,
                last_login=DateTimeUtils.now(),
            )

        self.state.resolve(profile)
        return profile

    def restore_session(self, uid: Optional[str]) -> Optional[UserProfile]:
        """
        토큰에 담긴 uid 로 세션을 복원합니다. 허용 목록 검사는 매번 다시 수행합니다.
        """
        if not uid:
            self.state.resolve(None)
            return None

        profile = self.auth_service.get_user_profile(uid)
        if profile is None:
            self.state.resolve(None)
            return None

        claims = IdentityClaims(
            subject_id=profile.uid,
            email=profile.email,
            display_name=profile.display_name,
            avatar_url=profile.photo_url,
        )
        return self.authenticate(claims)

    def hold_session(self, uid: Optional[str]) -> Optional[UserProfile]:
        """
        이미 발급된 토큰의 주인을 요청마다 다시 확인합니다.
        저장된 프로필의 이메일이 허용 목록에서 빠졌으면 세션을 종료하고 Unauthorized 를 던집니다.
        프로필이 없으면(동기화 실패 등) 토큰 발급 시점의 검사를 따르고 상태는 바꾸지 않습니다.
        """
        profile = self.auth_service.get_user_profile(uid) if uid else None
        if profile is None:
            return None
        if not self.auth_service.is_email_allowed(profile.email):
            logging.warning(f"Blocking Access: {profile.email} (uid: {uid})")
            self._terminate()
            raise Unauthorized("이 계정은 더 이상 접근 권한이 없습니다. (Unauthorized Email)")
        self.state.resolve(profile)
        return profile

    def current_session(self) -> Optional[UserProfile]:
        """세션 확인이 끝나지 않았으면(loading) None 을 반환합니다."""
        if self.state.is_loading:
            return None
        return self.state.profile

    def end_session(self):
        """세션을 종료합니다. 종료 처리(토큰 무효화 등)의 실패는 호출자에게 전파됩니다."""
        try:
            if self._on_session_end is not None:
                self._on_session_end()
        finally:
            self.state.resolve(None)

    def _terminate(self):
        # 허용되지 않은 로그인 차단 시에는 Unauthorized 를 우선 전달합니다.
        try:
            self.end_session()
        except Exception as e:
            logging.error(f"차단된 세션 종료 처리 실패: {e}", exc_info=True)
