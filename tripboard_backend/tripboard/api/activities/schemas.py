# tripboard/api/activities/schemas.py
from marshmallow import Schema, fields, validate, post_load, post_dump

from tripboard.models.activity import (
    Activity,
    ActivityType,
    ChecklistItem,
    TransitMode,
    TransitRoutingPreference,
    TravelMode,
    details_from_dict,
    new_checklist_item_id,
)
from tripboard.utils.datetime_utils import DateTimeUtils

_type_validator = validate.OneOf([t.value for t in ActivityType])
_travel_mode_validator = validate.OneOf([m.value for m in TravelMode])
_transit_mode_validator = validate.OneOf([m.value for m in TransitMode])
_routing_validator = validate.OneOf([p.value for p in TransitRoutingPreference])


class ChecklistItemSchema(Schema):
    id = fields.Str(load_default=new_checklist_item_id)
    text = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    completed = fields.Bool(load_default=False)

    @post_load
    def make_item(self, data, **kwargs):
        return ChecklistItem(**data)


class ChecklistTextSchema(Schema):
    """체크리스트 항목 추가/수정 요청"""
    text = fields.Str(required=True, validate=validate.Length(min=1, max=200))


class ActivityCreateSchema(Schema):
    """
    POST /api/trips/<trip_id>/activities 요청 스키마.
    교통(transport) 유형은 출발지/도착지와 이동 수단을, 그 외 유형은 location 을 사용합니다.
    """
    title = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    type = fields.Str(required=True, validate=_type_validator)
    start_time = fields.DateTime(required=True)
    end_time = fields.DateTime(allow_none=True)
    notes = fields.Str(allow_none=True)
    checklist = fields.List(fields.Nested(ChecklistItemSchema), allow_none=True)
    # PlaceDetails
    location = fields.Str(allow_none=True)
    # TransportDetails
    departure_location = fields.Str(allow_none=True)
    arrival_location = fields.Str(allow_none=True)
    travel_mode = fields.Str(allow_none=True, validate=_travel_mode_validator)
    transit_modes = fields.List(fields.Str(validate=_transit_mode_validator), allow_none=True)
    transit_routing_preference = fields.Str(allow_none=True, validate=_routing_validator)
    estimated_duration = fields.Int(allow_none=True, validate=validate.Range(min=0))

    @post_load
    def make_activity(self, data, **kwargs):
        activity_type = ActivityType(data['type'])
        end_time = data.get('end_time')
        return Activity(
            id='',
            trip_id='',
            title=data['title'],
            type=activity_type,
            start_time=DateTimeUtils.to_utc(data['start_time']),
            details=details_from_dict(activity_type, data),
            end_time=DateTimeUtils.to_utc(end_time) if end_time else None,
            notes=data.get('notes') or None,
            checklist=data.get('checklist'),
        )


class ActivityUpdateSchema(Schema):
    """
    PATCH 요청 스키마 (부분 업데이트). 키가 없으면 변경 없음, null 이면 필드 삭제.
    title/type/start_time/travel_mode 는 null 을 허용하지 않습니다.
    유형을 바꿔도 이전 유형의 상세 필드는 자동으로 지워지지 않습니다.
    """
    title = fields.Str(validate=validate.Length(min=1, max=100))
    type = fields.Str(validate=_type_validator)
    start_time = fields.DateTime()
    end_time = fields.DateTime(allow_none=True)
    notes = fields.Str(allow_none=True)
    checklist = fields.List(fields.Nested(ChecklistItemSchema), allow_none=True)
    location = fields.Str(allow_none=True)
    departure_location = fields.Str(allow_none=True)
    arrival_location = fields.Str(allow_none=True)
    travel_mode = fields.Str(validate=_travel_mode_validator)
    transit_modes = fields.List(fields.Str(validate=_transit_mode_validator), allow_none=True)
    transit_routing_preference = fields.Str(allow_none=True, validate=_routing_validator)
    estimated_duration = fields.Int(allow_none=True, validate=validate.Range(min=0))

    @post_load
    def normalize_times(self, data, **kwargs):
        for key in ('start_time', 'end_time'):
            if data.get(key) is not None:
                data[key] = DateTimeUtils.to_utc(data[key])
        return data


class ActivityResponseSchema(Schema):
    """활동 응답. 상세 정보(details)는 저장 형태와 같이 평탄하게 펼쳐서 내려줍니다."""
    id = fields.Str(dump_only=True)
    trip_id = fields.Str()
    title = fields.Str()
    type = fields.Function(lambda activity: activity.type.value)
    start_time = fields.DateTime()
    end_time = fields.DateTime(allow_none=True)
    notes = fields.Str(allow_none=True)
    checklist = fields.List(fields.Nested(ChecklistItemSchema), allow_none=True)
    details = fields.Function(lambda activity: activity.details.to_dict())

    @post_dump
    def flatten_details(self, data, **kwargs):
        data.update(data.pop('details', None) or {})
        return data
