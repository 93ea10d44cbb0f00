# tripboard/core/config.py

import os # 'os' 모듈: 환경 변수를 읽기 위해 사용합니다.


def _split_emails(raw):
    """콤마로 구분된 이메일 문자열을 소문자 tuple로 변환합니다."""
    if not raw:
        return ()
    return tuple(email.strip().lower() for email in raw.split(',') if email.strip())


class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # JWT 토큰 서명 키. 로그인 세션 토큰의 위변조를 방지합니다.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')
    # Google OAuth 인증에 필요한 클라이언트 시크릿 파일 경로
    GOOGLE_CLIENT_SECRETS_PATH = os.getenv('GOOGLE_CLIENT_SECRETS_PATH')

    # 로그인을 허용할 이메일 목록 (예: "a@gmail.com,b@gmail.com")
    ALLOWED_EMAILS = _split_emails(os.getenv('ALLOWED_EMAILS'))

    # Google Directions / Maps Embed API 키
    GOOGLE_MAPS_API_KEY = os.getenv('GOOGLE_MAPS_API_KEY', '')
    DIRECTIONS_TIMEOUT_SECONDS = float(os.getenv('DIRECTIONS_TIMEOUT_SECONDS', 10))

    # 실시간 구독(on_snapshot) 재연결 정책
    SUBSCRIPTION_MAX_RETRIES = int(os.getenv('SUBSCRIPTION_MAX_RETRIES', 5))
    SUBSCRIPTION_BACKOFF_SECONDS = float(os.getenv('SUBSCRIPTION_BACKOFF_SECONDS', 0.5))
    SUBSCRIPTION_MAX_BACKOFF_SECONDS = float(os.getenv('SUBSCRIPTION_MAX_BACKOFF_SECONDS', 30))

    # SSE 스트림에서 연결 유지를 위해 보내는 heartbeat 간격
    STREAM_HEARTBEAT_SECONDS = float(os.getenv('STREAM_HEARTBEAT_SECONDS', 15))


class DevelopmentConfig(Config):
    """개발 환경을 위한 설정 클래스입니다."""
    DEBUG = True
    # 개발용 Firebase 프로젝트의 서비스 계정 키 파일 경로
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH')


class TestingConfig(Config):
    """테스트 환경을 위한 설정 클래스입니다."""
    TESTING = True
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('TEST_FIREBASE_CREDENTIALS_PATH')
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'tripboard-test-secret')
    ALLOWED_EMAILS = ('traveler@example.com', 'companion@example.com')
    GOOGLE_CLIENT_SECRETS_PATH = os.getenv('GOOGLE_CLIENT_SECRETS_PATH', 'client_secret_test.json')
    # 테스트에서는 재시도 대기 시간을 두지 않습니다.
    SUBSCRIPTION_BACKOFF_SECONDS = 0
    SUBSCRIPTION_MAX_BACKOFF_SECONDS = 0
    STREAM_HEARTBEAT_SECONDS = 0.05


# FLASK_ENV 값에 따라 create_app에서 적절한 설정 클래스를 선택합니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig
)
