# tripboard/api/auth/schemas.py
from marshmallow import Schema, fields, validate


class SocialLoginSchema(Schema):
    """소셜 로그인 요청의 유효성을 검사하는 스키마"""
    # 현재는 'google' 만 허용합니다.
    provider = fields.Str(required=True, validate=validate.OneOf(['google']))
    auth_code = fields.Str(
        required=True,
        metadata={"description": "Google OAuth 2.0 인증 코드"}
    )
    redirect_uri = fields.Str(load_default="postmessage")


class LogoutRequestSchema(Schema):
    """로그아웃 요청의 유효성을 검사하는 스키마"""
    access_token = fields.Str(required=True)
    refresh_token = fields.Str(required=True)


class UserProfileSchema(Schema):
    uid = fields.Str(dump_only=True)
    email = fields.Email(dump_only=True)
    display_name = fields.Str(allow_none=True)
    photo_url = fields.Str(allow_none=True)
    last_login = fields.DateTime(allow_none=True)


class SessionResponseSchema(Schema):
    """GET /api/auth/session 응답. status 는 'loading' 또는 'resolved' 입니다."""
    status = fields.Str(required=True)
    user = fields.Nested(UserProfileSchema, allow_none=True)
