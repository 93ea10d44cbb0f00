# tripboard/api/directions/schemas.py
from marshmallow import Schema, fields, validate, post_load

from tripboard.models.activity import TransitMode, TransitRoutingPreference, TravelMode
from tripboard.services.directions_service import TransitPreferences


class RouteRequestSchema(Schema):
    """소요 시간 조회 및 경로 지도 요청 공통 스키마"""
    origin = fields.Str(required=True, validate=validate.Length(min=1))
    destination = fields.Str(required=True, validate=validate.Length(min=1))
    travel_mode = fields.Str(load_default=TravelMode.TRANSIT.value,
                             validate=validate.OneOf([m.value for m in TravelMode]))
    transit_modes = fields.List(fields.Str(validate=validate.OneOf([m.value for m in TransitMode])),
                                load_default=list)
    transit_routing_preference = fields.Str(allow_none=True,
                                            validate=validate.OneOf([p.value for p in TransitRoutingPreference]))

    @post_load
    def to_route_args(self, data, **kwargs):
        preference = data.get('transit_routing_preference')
        return {
            'origin': data['origin'],
            'destination': data['destination'],
            'mode': TravelMode(data['travel_mode']),
            'transit_preferences': TransitPreferences(
                modes=[TransitMode(m) for m in data['transit_modes']],
                routing_preference=TransitRoutingPreference(preference) if preference else None,
            ),
        }


class PlaceRequestSchema(Schema):
    location = fields.Str(required=True, validate=validate.Length(min=1))


class TravelDurationSchema(Schema):
    duration_minutes = fields.Int()
    duration_text = fields.Str()
    distance_text = fields.Str()


class MapSurfaceSchema(Schema):
    kind = fields.Str()
    embed_url = fields.Str()
