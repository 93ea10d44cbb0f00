# tripboard/api/activities/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app, Response
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError

from tripboard.api.streaming import request_session, stream_snapshots
from tripboard.core.errors import TripboardError
from tripboard.models.activity import ActivityUpdate
from .schemas import (
    ActivityCreateSchema,
    ActivityResponseSchema,
    ActivityUpdateSchema,
    ChecklistItemSchema,
    ChecklistTextSchema,
)

# url_prefix='/api/trips/<trip_id>/activities'
activities_bp = Blueprint('activities_bp', __name__)


def _activity_service():
    return current_app.services['activities']


def _checklist_response(items):
    return jsonify({"checklist": ChecklistItemSchema(many=True).dump(items)}), 200


@activities_bp.route('/', methods=['GET'])
@jwt_required()
def list_activities(trip_id: str):
    """여행의 활동 목록 (시작 시각 오름차순)"""
    try:
        activities = _activity_service().list_activities(trip_id)
        return jsonify(ActivityResponseSchema(many=True).dump(activities)), 200
    except Exception as e:
        logging.error(f"List activities API error (trip: {trip_id}): {e}", exc_info=True)
        return jsonify({"error_code": "FETCH_FAILED", "message": "활동 목록 조회 중 오류가 발생했습니다."}), 500


@activities_bp.route('/stream', methods=['GET'])
@jwt_required()
def stream_activities(trip_id: str):
    """활동 목록 실시간 스트림(SSE)"""
    activity_service = _activity_service()
    try:
        return stream_snapshots(
            ('activities', trip_id),
            lambda on_snapshot, on_error: activity_service.subscribe_activities(trip_id, on_snapshot, on_error),
            ActivityResponseSchema(many=True).dump,
            float(current_app.config.get('STREAM_HEARTBEAT_SECONDS', 15)),
            session=request_session(),
        )
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@activities_bp.route('/', methods=['POST'])
@jwt_required()
def add_activity(trip_id: str):
    activity_service = _activity_service()
    try:
        activity = ActivityCreateSchema().load(request.get_json() or {})
        activity_id = activity_service.add_activity(trip_id, activity)
        return jsonify(ActivityResponseSchema().dump(activity_service.get_activity(trip_id, activity_id))), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@activities_bp.route('/<string:activity_id>', methods=['GET'])
@jwt_required()
def get_activity(trip_id: str, activity_id: str):
    try:
        activity = _activity_service().get_activity(trip_id, activity_id)
        return jsonify(ActivityResponseSchema().dump(activity)), 200
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@activities_bp.route('/<string:activity_id>', methods=['PATCH'])
@jwt_required()
def update_activity(trip_id: str, activity_id: str):
    """활동 부분 수정. null 로 보낸 선택 필드는 문서에서 삭제됩니다."""
    activity_service = _activity_service()
    try:
        data = ActivityUpdateSchema().load(request.get_json() or {})
        activity_service.update_activity(trip_id, activity_id, ActivityUpdate.from_patch(data))
        return jsonify(ActivityResponseSchema().dump(activity_service.get_activity(trip_id, activity_id))), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "message": str(e)}), 400
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@activities_bp.route('/<string:activity_id>', methods=['DELETE'])
@jwt_required()
def delete_activity(trip_id: str, activity_id: str):
    try:
        _activity_service().delete_activity(trip_id, activity_id)
        return Response(status=204)
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


# --- 체크리스트 ---

@activities_bp.route('/<string:activity_id>/checklist', methods=['POST'])
@jwt_required()
def add_checklist_item(trip_id: str, activity_id: str):
    try:
        data = ChecklistTextSchema().load(request.get_json() or {})
        items = _activity_service().add_checklist_item(trip_id, activity_id, data['text'])
        return _checklist_response(items)
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "message": str(e)}), 400
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@activities_bp.route('/<string:activity_id>/checklist/<string:item_id>/toggle', methods=['POST'])
@jwt_required()
def toggle_checklist_item(trip_id: str, activity_id: str, item_id: str):
    try:
        items = _activity_service().toggle_checklist_item(trip_id, activity_id, item_id)
        return _checklist_response(items)
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@activities_bp.route('/<string:activity_id>/checklist/<string:item_id>', methods=['PATCH'])
@jwt_required()
def edit_checklist_item(trip_id: str, activity_id: str, item_id: str):
    try:
        data = ChecklistTextSchema().load(request.get_json() or {})
        items = _activity_service().edit_checklist_item(trip_id, activity_id, item_id, data['text'])
        return _checklist_response(items)
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "message": str(e)}), 400
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code


@activities_bp.route('/<string:activity_id>/checklist/<string:item_id>', methods=['DELETE'])
@jwt_required()
def remove_checklist_item(trip_id: str, activity_id: str, item_id: str):
    try:
        items = _activity_service().remove_checklist_item(trip_id, activity_id, item_id)
        return _checklist_response(items)
    except TripboardError as e:
        return jsonify(e.to_dict()), e.status_code
