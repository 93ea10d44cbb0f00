# tripboard/api/auth/routes.py

import logging
import jwt
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt_identity,
    get_jwt,
)
from marshmallow import ValidationError

from tripboard.api.auth.schemas import (
    SocialLoginSchema,
    LogoutRequestSchema,
    SessionResponseSchema,
    UserProfileSchema,
)
from tripboard.api.auth.services import IdentityGate
from tripboard.core.errors import Unauthorized

auth_bp = Blueprint('auth_bp', __name__)


def _auth_service():
    return current_app.services['auth']


@auth_bp.route('/social', methods=['POST'])
def social_login():
    """Google 로그인. 허용 목록에 있는 이메일만 토큰을 발급받습니다."""
    try:
        validated_data = SocialLoginSchema().load(request.get_json() or {})
        client_secrets_path = current_app.config['GOOGLE_CLIENT_SECRETS_PATH']
        if not client_secrets_path:
            raise ValueError("GOOGLE_CLIENT_SECRETS_PATH is not configured.")

        google_auth = current_app.services['google_auth']
        try:
            claims = google_auth.exchange_code_for_user_info(
                auth_code=validated_data['auth_code'],
                client_secrets_path=client_secrets_path,
                redirect_uri=validated_data['redirect_uri'],
            )
        except Exception:
            return jsonify({"error_code": "INVALID_AUTH_CODE", "message": "유효하지 않은 인증 코드이거나 사용자 정보 조회에 실패했습니다."}), 401

        gate = IdentityGate(_auth_service())
        profile = gate.authenticate(claims)

        return jsonify({
            "access_token": create_access_token(identity=profile.uid),
            "refresh_token": create_refresh_token(identity=profile.uid),
            "user": UserProfileSchema().dump(profile),
        }), 200
    except ValidationError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": e.messages}), 400
    except Unauthorized as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logging.error(f"소셜 로그인 중 예외 발생: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부 오류가 발생했습니다."}), 500


@auth_bp.route('/session', methods=['GET'])
@jwt_required()
def restore_session():
    """
    앱 로드 시 세션 복원. 토큰의 uid 로 프로필을 읽고 허용 목록을 다시 확인합니다.
    허용되지 않은 계정이면 현재 토큰을 무효화하고 403 을 반환합니다.
    """
    auth_service = _auth_service()
    current_token = get_jwt()
    gate = IdentityGate(auth_service, on_session_end=lambda: auth_service.revoke_tokens(current_token))
    try:
        gate.restore_session(get_jwt_identity())
    except Unauthorized as e:
        return jsonify(e.to_dict()), e.status_code

    if gate.current_session() is None:
        return jsonify({"error_code": "SESSION_NOT_FOUND", "message": "로그인 정보가 없습니다."}), 401
    return jsonify(SessionResponseSchema().dump(gate.state.snapshot())), 200


@auth_bp.route('/token/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh_token():
    """유효한 Refresh Token으로 새로운 Access Token을 발급합니다."""
    current_user_id = get_jwt_identity()
    return jsonify(access_token=create_access_token(identity=current_user_id)), 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """로그아웃. 전달받은 Access/Refresh 토큰을 무효화 목록에 추가합니다."""
    try:
        data = LogoutRequestSchema().load(request.get_json() or {})
        secret_key = current_app.config['JWT_SECRET_KEY']
        algorithm = current_app.config.get('JWT_ALGORITHM', 'HS256')

        # 만료된 토큰도 무효화할 수 있도록 만료 검증은 끕니다.
        decoded_access = jwt.decode(data['access_token'], secret_key, algorithms=[algorithm], options={"verify_exp": False})
        decoded_refresh = jwt.decode(data['refresh_token'], secret_key, algorithms=[algorithm], options={"verify_exp": False})

        auth_service = _auth_service()
        gate = IdentityGate(auth_service, on_session_end=lambda: auth_service.revoke_tokens(decoded_access, decoded_refresh))
        gate.end_session()

        return jsonify({"message": "로그아웃 되었습니다."}), 200

    except ValidationError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": e.messages}), 400
    except jwt.PyJWTError as e:
        logging.error(f"JWT 해독 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "INVALID_TOKEN", "message": "유효하지 않은 토큰입니다."}), 422
    except Exception as e:
        logging.error(f"로그아웃 처리 중 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "LOGOUT_FAILED", "message": "로그아웃 처리 중 오류가 발생했습니다."}), 500
