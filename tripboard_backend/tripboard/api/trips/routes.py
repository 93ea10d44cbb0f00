# tripboard/api/trips/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app, Response
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from tripboard.api.streaming import request_session, stream_snapshots
from tripboard.core.errors import TripboardError
from tripboard.models.trip import FlightLeg, TripUpdate
from tripboard.utils.datetime_utils import DateTimeUtils
from tripboard.utils.trip_view import trip_overview
from .schemas import (
    FlightInfoSchema,
    TripCreateSchema,
    TripResponseSchema,
    TripUpdateSchema,
)

trips_bp = Blueprint('trips_bp', __name__)


def _trip_service():
    return current_app.services['trips']


def _heartbeat_seconds() -> float:
    return float(current_app.config.get('STREAM_HEARTBEAT_SECONDS', 15))


def _parse_leg(leg: str) -> FlightLeg:
    try:
        return FlightLeg(leg)
    except ValueError:
        raise ValidationError({"leg": [f"'{leg}' 는 올바른 항공편 구간이 아닙니다. (outbound | return)"]})


@trips_bp.route('/', methods=['GET'])
@jwt_required()
def list_trips():
    """내가 멤버로 포함된 여행 목록 (시작일 오름차순)"""
    user_id = get_jwt_identity()
    try:
        trips = _trip_service().list_trips(user_id)
        return jsonify(TripResponseSchema(many=True).dump(trips)), 200
    except Exception as e:
        logging.error(f"List trips API error (user: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "FETCH_FAILED", "message": "여행 목록 조회 중 오류가 발생했습니다."}), 500


@trips_bp.route('/stream', methods=['GET'])
@jwt_required()
def stream_trips():
    """여행 목록 실시간 스트림(SSE). 변경될 때마다 전체 목록을 'snapshot' 이벤트로 보냅니다."""
    user_id = get_jwt_identity()
    trip_service = _trip_service()
    try:
        return stream_snapshots(
            ('trips', user_id),
            lambda on_snapshot, on_error: trip_service.subscribe_trips(user_id, on_snapshot, on_error),
            TripResponseSchema(many=True).dump,
            _heartbeat_seconds(),
            session=request_session(),
        )
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@trips_bp.route('/', methods=['POST'])
@jwt_required()
def create_trip():
    """여행 생성. 생성자가 유일한 멤버가 됩니다."""
    user_id = get_jwt_identity()
    trip_service = _trip_service()
    try:
        new_trip = TripCreateSchema().load(request.get_json() or {})
        trip_id = trip_service.create_trip(new_trip, user_id)
        return jsonify(TripResponseSchema().dump(trip_service.get_trip(trip_id))), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@trips_bp.route('/<string:trip_id>', methods=['GET'])
@jwt_required()
def get_trip(trip_id: str):
    try:
        trip = _trip_service().get_trip(trip_id)
        return jsonify(TripResponseSchema().dump(trip)), 200
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@trips_bp.route('/<string:trip_id>', methods=['PATCH'])
@jwt_required()
def update_trip(trip_id: str):
    """
    여행 부분 수정. 본문에 없는 필드는 그대로 두고, null 로 보낸 필드는 삭제합니다.
    (예: {"outbound_flight": null} -> 출발 항공편 삭제)
    """
    trip_service = _trip_service()
    try:
        data = TripUpdateSchema().load(request.get_json() or {})
        update = TripUpdate.from_patch(data)
        trip_service.update_trip(trip_id, update)
        return jsonify(TripResponseSchema().dump(trip_service.get_trip(trip_id))), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "message": str(e)}), 400
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@trips_bp.route('/<string:trip_id>', methods=['DELETE'])
@jwt_required()
def delete_trip(trip_id: str):
    """여행 문서만 삭제합니다. 활동 하위 컬렉션은 함께 삭제되지 않습니다."""
    try:
        _trip_service().delete_trip(trip_id)
        return Response(status=204)
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@trips_bp.route('/<string:trip_id>/stream', methods=['GET'])
@jwt_required()
def stream_trip(trip_id: str):
    """여행 한 건 실시간 스트림(SSE). 문서가 삭제되면 null 스냅샷을 보냅니다."""
    trip_service = _trip_service()
    schema = TripResponseSchema()
    try:
        return stream_snapshots(
            ('trip', trip_id),
            lambda on_snapshot, on_error: trip_service.subscribe_trip(trip_id, on_snapshot, on_error),
            lambda trip: schema.dump(trip) if trip is not None else None,
            _heartbeat_seconds(),
            session=request_session(),
        )
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@trips_bp.route('/<string:trip_id>/flights/<string:leg>', methods=['PUT'])
@jwt_required()
def set_flight(trip_id: str, leg: str):
    """출발(outbound)/귀국(return) 항공편 등록 및 교체"""
    trip_service = _trip_service()
    try:
        flight_leg = _parse_leg(leg)
        flight = FlightInfoSchema().load(request.get_json() or {})
        trip_service.set_flight(trip_id, flight_leg, flight)
        return jsonify(TripResponseSchema().dump(trip_service.get_trip(trip_id))), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@trips_bp.route('/<string:trip_id>/flights/<string:leg>', methods=['DELETE'])
@jwt_required()
def clear_flight(trip_id: str, leg: str):
    trip_service = _trip_service()
    try:
        trip_service.clear_flight(trip_id, _parse_leg(leg))
        return jsonify(TripResponseSchema().dump(trip_service.get_trip(trip_id))), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@trips_bp.route('/<string:trip_id>/overview', methods=['GET'])
@jwt_required()
def get_trip_overview(trip_id: str):
    """
    여행 상세 화면용 파생 값 (여행 일수, 상태, 항공편 카운트다운, 일자별 활동).
    ?utc_offset=+09:00 을 주면 해당 offset 기준 달력 날짜로 계산합니다.
    """
    utc_offset = request.args.get('utc_offset') or None
    try:
        if utc_offset:
            DateTimeUtils.parse_utc_offset(utc_offset)
        trip = _trip_service().get_trip(trip_id)
        activities = current_app.services['activities'].list_activities(trip_id)
        return jsonify(trip_overview(trip, activities, DateTimeUtils.now(), utc_offset)), 200
    except ValueError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "message": str(e)}), 400
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code
