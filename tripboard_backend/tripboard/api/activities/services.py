# tripboard/api/activities/services.py
import logging
from dataclasses import replace
from typing import Callable, List, Optional

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from tripboard.core.errors import NotFound, SubscriptionError, WriteError
from tripboard.models.activity import (
    Activity,
    ActivityUpdate,
    ChecklistItem,
    add_checklist_item,
    edit_checklist_item,
    remove_checklist_item,
    toggle_checklist_item,
)
from tripboard.models.fields import Set
from tripboard.services.subscription import Subscription
from tripboard.utils.datetime_utils import DateTimeUtils


class ActivityService:
    """
    'trips/{trip_id}/activities' 하위 컬렉션을 담당하는 서비스.
    부모 여행 문서가 먼저 로드되었다고 가정하지 않습니다.
    """

    def __init__(self, db=None, subscription_options: Optional[dict] = None):
        self.db = db or firestore.client()
        self.subscription_options = subscription_options or {}
        logging.info("ActivityService initialized.")

    def _activities_ref(self, trip_id: str):
        return self.db.collection('trips').document(trip_id).collection('activities')

    def _to_activity(self, doc) -> Optional[Activity]:
        try:
            return Activity.from_dict(doc.id, DateTimeUtils.from_firestore(doc.to_dict()))
        except (KeyError, ValueError) as e:
            logging.warning(f"잘못된 활동 문서는 건너뜁니다 (activity_id: {doc.id}): {e}")
            return None

    def _ordered_query(self, trip_id: str):
        return self._activities_ref(trip_id).order_by('start_time', direction=firestore.Query.ASCENDING)

    # --- 조회 ---

    def list_activities(self, trip_id: str) -> List[Activity]:
        activities = [self._to_activity(doc) for doc in self._ordered_query(trip_id).stream()]
        return [a for a in activities if a is not None]

    def get_activity(self, trip_id: str, activity_id: str) -> Activity:
        doc = self._activities_ref(trip_id).document(activity_id).get()
        if not doc.exists:
            raise NotFound("해당 ID의 활동을 찾을 수 없습니다.")
        activity = self._to_activity(doc)
        if activity is None:
            raise NotFound("활동 정보를 읽을 수 없습니다.")
        return activity

    def subscribe_activities(self, trip_id: str, callback: Callable[[List[Activity]], None],
                             on_error: Optional[Callable[[SubscriptionError], None]] = None) -> Subscription:
        """여행의 활동 목록을 시작 시각 오름차순(저장소 정렬)으로 구독합니다."""
        query = self._ordered_query(trip_id)

        def handle(docs):
            activities = [self._to_activity(doc) for doc in docs if doc.exists]
            callback([a for a in activities if a is not None])

        return Subscription(
            open_watch=query.on_snapshot,
            on_snapshot=handle,
            on_error=on_error,
            name=f"activities:{trip_id}",
            **self.subscription_options
        ).start()

    # --- 쓰기 ---

    def add_activity(self, trip_id: str, activity: Activity) -> str:
        """활동을 추가하고 문서 ID 를 반환합니다. 값이 없는 선택 필드는 저장하지 않습니다."""
        data = replace(activity, trip_id=trip_id).to_dict()
        try:
            _, doc_ref = self._activities_ref(trip_id).add(data)
        except Exception as e:
            logging.error(f"Error adding activity to trip {trip_id}: {e}", exc_info=True)
            raise WriteError("활동을 저장하지 못했습니다.") from e
        logging.info(f"Activity {doc_ref.id} added to trip {trip_id}")
        return doc_ref.id

    def update_activity(self, trip_id: str, activity_id: str, update: ActivityUpdate):
        payload = update.to_firestore()
        if not payload:
            return
        try:
            self._activities_ref(trip_id).document(activity_id).update(payload)
        except google_exceptions.NotFound as e:
            raise NotFound("해당 ID의 활동을 찾을 수 없습니다.") from e
        except Exception as e:
            logging.error(f"Error updating activity {activity_id} (trip {trip_id}): {e}", exc_info=True)
            raise WriteError("활동을 수정하지 못했습니다.") from e
        logging.info(f"Activity {activity_id} updated with fields: {list(payload.keys())}")

    def delete_activity(self, trip_id: str, activity_id: str):
        try:
            self._activities_ref(trip_id).document(activity_id).delete()
        except Exception as e:
            logging.error(f"Error deleting activity {activity_id} (trip {trip_id}): {e}", exc_info=True)
            raise WriteError("활동을 삭제하지 못했습니다.") from e
        logging.info(f"Activity {activity_id} deleted from trip {trip_id}")

    # --- 체크리스트 ---
    # 항목 단위 patch 는 지원하지 않습니다. 항상 현재 목록을 읽고, 다시 계산한 전체 목록을 씁니다.
    # 두 클라이언트가 동시에 수정하면 나중에 쓴 쪽이 목록 전체를 덮어씁니다.

    def _rewrite_checklist(self, trip_id: str, activity_id: str,
                           mutate: Callable[[List[ChecklistItem]], List[ChecklistItem]]) -> List[ChecklistItem]:
        activity = self.get_activity(trip_id, activity_id)
        try:
            items = mutate(activity.checklist or [])
        except KeyError as e:
            raise NotFound(f"체크리스트 항목을 찾을 수 없습니다: {e.args[0]}") from e
        self.update_activity(trip_id, activity_id, ActivityUpdate(checklist=Set(items)))
        return items

    def add_checklist_item(self, trip_id: str, activity_id: str, text: str) -> List[ChecklistItem]:
        return self._rewrite_checklist(trip_id, activity_id, lambda items: add_checklist_item(items, text))

    def toggle_checklist_item(self, trip_id: str, activity_id: str, item_id: str) -> List[ChecklistItem]:
        return self._rewrite_checklist(trip_id, activity_id, lambda items: toggle_checklist_item(items, item_id))

    def edit_checklist_item(self, trip_id: str, activity_id: str, item_id: str, text: str) -> List[ChecklistItem]:
        return self._rewrite_checklist(trip_id, activity_id, lambda items: edit_checklist_item(items, item_id, text))

    def remove_checklist_item(self, trip_id: str, activity_id: str, item_id: str) -> List[ChecklistItem]:
        return self._rewrite_checklist(trip_id, activity_id, lambda items: remove_checklist_item(items, item_id))
