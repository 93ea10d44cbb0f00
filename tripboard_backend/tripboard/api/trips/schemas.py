# tripboard/api/trips/schemas.py
from marshmallow import Schema, fields, validate, post_load

from tripboard.models.trip import CoverColor, FlightInfo, NewTrip
from tripboard.utils.datetime_utils import DateTimeUtils

UTC_OFFSET_PATTERN = r'^[+-]\d{1,2}:?\d{2}$'
_offset_validator = validate.Regexp(UTC_OFFSET_PATTERN, error="UTC offset 은 '+09:00' 형식이어야 합니다.")
_cover_color_validator = validate.OneOf([c.value for c in CoverColor])


class FlightInfoSchema(Schema):
    """항공편 입력/응답 스키마. 시각은 offset 이 포함된 ISO 문자열로 받습니다."""
    airline = fields.Str(required=True, validate=validate.Length(min=1, max=50))
    flight_number = fields.Str(required=True, validate=validate.Length(min=1, max=20))
    departure_time = fields.DateTime(required=True)
    arrival_time = fields.DateTime(required=True)
    departure_airport = fields.Str(required=True)
    arrival_airport = fields.Str(required=True)
    departure_timezone = fields.Str(allow_none=True, validate=_offset_validator)
    arrival_timezone = fields.Str(allow_none=True, validate=_offset_validator)

    @post_load
    def make_flight(self, data, **kwargs):
        data['departure_time'] = DateTimeUtils.to_utc(data['departure_time'])
        data['arrival_time'] = DateTimeUtils.to_utc(data['arrival_time'])
        return FlightInfo(**data)


class TripCreateSchema(Schema):
    """POST /api/trips/ 요청 스키마. 시작일 <= 종료일 검사는 하지 않습니다."""
    title = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    destination = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    start_date = fields.Date(required=True, format="%Y-%m-%d")
    end_date = fields.Date(required=True, format="%Y-%m-%d")
    outbound_flight = fields.Nested(FlightInfoSchema, allow_none=True)
    return_flight = fields.Nested(FlightInfoSchema, allow_none=True)
    cover_color = fields.Str(allow_none=True, validate=_cover_color_validator)
    cover_image = fields.URL(allow_none=True)

    @post_load
    def make_trip(self, data, **kwargs):
        if data.get('cover_color'):
            data['cover_color'] = CoverColor(data['cover_color'])
        return NewTrip(**data)


class TripUpdateSchema(Schema):
    """
    PATCH /api/trips/<trip_id> 요청 스키마 (부분 업데이트).
    키가 없으면 변경 없음, null 이면 삭제입니다. 필수 필드는 null 을 허용하지 않습니다.
    """
    title = fields.Str(validate=validate.Length(min=1, max=100))
    destination = fields.Str(validate=validate.Length(min=1, max=100))
    start_date = fields.Date(format="%Y-%m-%d")
    end_date = fields.Date(format="%Y-%m-%d")
    outbound_flight = fields.Nested(FlightInfoSchema, allow_none=True)
    return_flight = fields.Nested(FlightInfoSchema, allow_none=True)
    cover_color = fields.Str(allow_none=True, validate=_cover_color_validator)
    cover_image = fields.URL(allow_none=True)

    @post_load
    def convert_cover_color(self, data, **kwargs):
        if data.get('cover_color'):
            data['cover_color'] = CoverColor(data['cover_color'])
        return data


class TripResponseSchema(Schema):
    id = fields.Str(dump_only=True)
    title = fields.Str()
    destination = fields.Str()
    start_date = fields.Date()
    end_date = fields.Date()
    created_by = fields.Str()
    members = fields.List(fields.Str())
    created_at = fields.DateTime(allow_none=True)
    outbound_flight = fields.Nested(FlightInfoSchema, allow_none=True)
    return_flight = fields.Nested(FlightInfoSchema, allow_none=True)
    # 값이 없거나 알 수 없는 색상이면 기본 색상(blue)으로 응답합니다.
    cover_color = fields.Function(lambda trip: trip.cover.value)
    cover_image = fields.Str(allow_none=True)
