# tripboard/services/google_auth_service.py

import logging
from dataclasses import dataclass
from typing import Optional

import requests
from google_auth_oauthlib.flow import Flow


@dataclass
class IdentityClaims:
    """Google 로그인 결과로 얻은 사용자 식별 정보"""
    subject_id: str
    email: Optional[str]
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    @classmethod
    def from_userinfo(cls, user_info: dict) -> "IdentityClaims":
        subject_id = user_info.get('sub')
        if not subject_id:
            raise ValueError("Google user info must contain 'sub'.")
        return cls(
            subject_id=subject_id,
            email=user_info.get('email'),
            display_name=user_info.get('name'),
            avatar_url=user_info.get('picture'),
        )


class GoogleAuthService:
    """실제 Google OAuth 2.0 통신을 담당하는 서비스 클래스입니다."""
    _user_info_url = "https://www.googleapis.com/oauth2/v3/userinfo"
    _scopes = [
        "https://www.googleapis.com/auth/userinfo.profile",
        "https://www.googleapis.com/auth/userinfo.email",
        "openid"
    ]

    @staticmethod
    def exchange_code_for_user_info(auth_code: str, client_secrets_path: str,
                                    redirect_uri: str = "postmessage") -> IdentityClaims:
        """
        인증 코드를 Access Token 으로 교환하고, 이를 사용해 사용자 정보를 가져옵니다.
        (웹 클라이언트의 popup 로그인 코드는 redirect_uri 'postmessage' 로 교환합니다.)
        """
        try:
            flow = Flow.from_client_secrets_file(client_secrets_path, scopes=GoogleAuthService._scopes)
            flow.redirect_uri = redirect_uri
            flow.fetch_token(code=auth_code)
            credentials = flow.credentials
            return GoogleAuthService.get_user_info(credentials.token)

        except Exception as e:
            logging.error(f"Google OAuth failed: {e}", exc_info=True)
            raise

    @staticmethod
    def get_user_info(access_token: str) -> IdentityClaims:
        """Access Token 으로 userinfo 엔드포인트를 호출합니다."""
        response = requests.get(
            GoogleAuthService._user_info_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=10
        )
        response.raise_for_status()
        return IdentityClaims.from_userinfo(response.json())
