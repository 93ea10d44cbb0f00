# tripboard/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import logging
from flask import Flask, g, jsonify
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
import firebase_admin
from firebase_admin import credentials, firestore

# - 설정
from tripboard.core.config import config_by_name
from tripboard.core.errors import TripboardError, Unauthorized

# - API 블루프린트
from tripboard.api.auth.routes import auth_bp
from tripboard.api.trips.routes import trips_bp
from tripboard.api.activities.routes import activities_bp
from tripboard.api.directions.routes import directions_bp

# - 서비스 모듈
from tripboard.api.auth.services import AuthService, IdentityGate
from tripboard.api.trips.services import TripService
from tripboard.api.activities.services import ActivityService
from tripboard.services.directions_service import DirectionsService
from tripboard.services.google_auth_service import GoogleAuthService
from tripboard.services.subscription import subscription_options


def create_app(config_name=None, db=None, services=None):
    """
    Flask 애플리케이션 팩토리 함수.
    테스트에서는 db(Firestore 클라이언트 대체 객체)와 services(일부 서비스 교체)를 주입할 수 있습니다.
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. 확장 기능 및 외부 서비스 초기화
    # =====================================================================================
    jwt = JWTManager(app)

    if db is None:
        if not firebase_admin._apps:
            cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
            if not cred_path or not os.path.exists(cred_path):
                raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred)
        db = firestore.client()

    # =====================================================================================
    # 5. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    app.services = {}
    retry_options = subscription_options(app.config)

    # 5-1. 외부 API 연동 서비스
    app.services['google_auth'] = GoogleAuthService()
    directions_instance = DirectionsService()
    directions_instance.init_app(app)
    app.services['directions'] = directions_instance

    # 5-2. Firestore 도메인 서비스
    auth_instance = AuthService(db=db)
    auth_instance.init_app(app)
    app.services['auth'] = auth_instance
    app.services['trips'] = TripService(db=db, subscription_options=retry_options)
    app.services['activities'] = ActivityService(db=db, subscription_options=retry_options)

    # 5-3. 테스트 등에서 주입한 서비스로 교체
    app.services.update(services or {})
    logging.info(f"Services initialized: {sorted(app.services.keys())}")

    # =====================================================================================
    # 6. JWT 토큰 검사 설정
    # =====================================================================================
    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        """
        로그아웃된 토큰인지, 토큰 주인이 허용 목록에서 빠졌는지 확인합니다.
        빠진 계정이면 제시된 토큰(Access/Refresh)을 무효화하고 세션을 종료합니다.
        """
        auth_service = app.services['auth']
        if auth_service.is_token_revoked(jwt_payload):
            return True
        gate = IdentityGate(auth_service, on_session_end=lambda: auth_service.revoke_tokens(jwt_payload))
        try:
            gate.hold_session(jwt_payload.get(app.config['JWT_IDENTITY_CLAIM']))
        except Unauthorized as e:
            g.session_denial = e
            return True
        return False

    @jwt.revoked_token_loader
    def revoked_token_callback(jwt_header, jwt_payload):
        denial = g.pop('session_denial', None)
        if denial is not None:
            return jsonify(denial.to_dict()), denial.status_code
        return jsonify({"error_code": "TOKEN_REVOKED", "message": "로그아웃된 토큰입니다. 다시 로그인해주세요."}), 401

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({"error_code": "TOKEN_EXPIRED", "message": "토큰이 만료되었습니다."}), 401

    @jwt.unauthorized_loader
    def missing_token_callback(reason):
        return jsonify({"error_code": "AUTHORIZATION_REQUIRED", "message": reason}), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(reason):
        return jsonify({"error_code": "INVALID_TOKEN", "message": reason}), 422

    # =====================================================================================
    # 7. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(trips_bp, url_prefix='/api/trips')
    app.register_blueprint(activities_bp, url_prefix='/api/trips/<string:trip_id>/activities')
    app.register_blueprint(directions_bp, url_prefix='/api/directions')

    # =====================================================================================
    # 8. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(TripboardError)
    def handle_domain_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        # 404/405 등 HTTP 예외는 Flask 기본 응답을 그대로 사용합니다.
        if isinstance(err, HTTPException):
            return err
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 9. 로깅 및 앱 반환
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
