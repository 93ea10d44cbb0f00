# tripboard/api/directions/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError

from tripboard.core.errors import DirectionsError
from .schemas import (
    MapSurfaceSchema,
    PlaceRequestSchema,
    RouteRequestSchema,
    TravelDurationSchema,
)

directions_bp = Blueprint('directions_bp', __name__)


def _directions_service():
    return current_app.services['directions']


@directions_bp.route('/duration', methods=['POST'])
@jwt_required()
def resolve_duration():
    """
    출발지~도착지 예상 소요 시간 조회.
    실패해도 활동 저장은 가능하므로 클라이언트는 estimated_duration 없이 저장하면 됩니다.
    """
    try:
        route_args = RouteRequestSchema().load(request.get_json() or {})
        duration = _directions_service().resolve_travel_duration(**route_args)
        return jsonify(TravelDurationSchema().dump(duration)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except DirectionsError as e:
        return jsonify(e.to_dict()), e.status_code


@directions_bp.route('/route', methods=['POST'])
@jwt_required()
def render_route():
    try:
        route_args = RouteRequestSchema().load(request.get_json() or {})
        surface = _directions_service().render_route(**route_args)
        return jsonify(MapSurfaceSchema().dump(surface)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except DirectionsError as e:
        return jsonify(e.to_dict()), e.status_code


@directions_bp.route('/place', methods=['POST'])
@jwt_required()
def render_place():
    try:
        data = PlaceRequestSchema().load(request.get_json() or {})
        surface = _directions_service().render_place(data['location'])
        return jsonify(MapSurfaceSchema().dump(surface)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except DirectionsError as e:
        logging.warning(f"장소 지도 생성 실패: {e.message}")
        return jsonify(e.to_dict()), e.status_code
