# tripboard/api/trips/services.py
import logging
from typing import Callable, List, Optional

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from tripboard.core.errors import NotFound, SubscriptionError, WriteError
from tripboard.models.fields import CLEAR, Set
from tripboard.models.trip import FlightInfo, FlightLeg, NewTrip, Trip, TripUpdate
from tripboard.services.subscription import Subscription
from tripboard.utils.datetime_utils import DateTimeUtils

TRIPS_COLLECTION = 'trips'


class TripService:
    """
    'trips' 컬렉션의 생성/수정/삭제와 실시간 구독을 담당하는 서비스.
    화면 표시는 쓰기 결과가 아니라 항상 구독 스트림을 기준으로 합니다.
    """

    def __init__(self, db=None, subscription_options: Optional[dict] = None):
        self.db = db or firestore.client()
        self.trips_ref = self.db.collection(TRIPS_COLLECTION)
        self.subscription_options = subscription_options or {}
        logging.info("TripService initialized.")

    # --- 조회 ---

    def _to_trip(self, doc) -> Optional[Trip]:
        try:
            return Trip.from_dict(doc.id, DateTimeUtils.from_firestore(doc.to_dict()))
        except (KeyError, ValueError) as e:
            logging.warning(f"잘못된 여행 문서는 건너뜁니다 (trip_id: {doc.id}): {e}")
            return None

    def _members_query(self, user_id: str):
        return self.trips_ref.where('members', 'array_contains', user_id)

    @staticmethod
    def _sorted(trips: List[Trip]) -> List[Trip]:
        # 저장소 정렬을 신뢰하지 않고 시작일 기준으로 클라이언트에서 정렬합니다.
        return sorted(trips, key=lambda trip: trip.start_date)

    def list_trips(self, user_id: str) -> List[Trip]:
        """사용자가 멤버로 포함된 여행 목록을 한 번 조회합니다."""
        trips = [self._to_trip(doc) for doc in self._members_query(user_id).stream()]
        return self._sorted([t for t in trips if t is not None])

    def get_trip(self, trip_id: str) -> Trip:
        doc = self.trips_ref.document(trip_id).get()
        if not doc.exists:
            raise NotFound("해당 ID의 여행을 찾을 수 없습니다.")
        trip = self._to_trip(doc)
        if trip is None:
            raise NotFound("여행 정보를 읽을 수 없습니다.")
        return trip

    # --- 실시간 구독 ---

    def subscribe_trips(self, user_id: str, callback: Callable[[List[Trip]], None],
                        on_error: Optional[Callable[[SubscriptionError], None]] = None) -> Subscription:
        """
        사용자가 멤버인 여행 목록을 구독합니다. 변경이 있을 때마다 전체 목록이
        시작일 오름차순으로 callback 에 전달됩니다.
        """
        query = self._members_query(user_id)

        def handle(docs):
            trips = [self._to_trip(doc) for doc in docs if doc.exists]
            callback(self._sorted([t for t in trips if t is not None]))

        return Subscription(
            open_watch=query.on_snapshot,
            on_snapshot=handle,
            on_error=on_error,
            name=f"trips:{user_id}",
            **self.subscription_options
        ).start()

    def subscribe_trip(self, trip_id: str, callback: Callable[[Optional[Trip]], None],
                       on_error: Optional[Callable[[SubscriptionError], None]] = None) -> Subscription:
        """여행 문서 하나를 구독합니다. 문서가 없거나 삭제되면 None 이 전달됩니다."""
        doc_ref = self.trips_ref.document(trip_id)

        def handle(docs):
            doc = docs[0] if docs else None
            callback(self._to_trip(doc) if doc is not None and doc.exists else None)

        return Subscription(
            open_watch=doc_ref.on_snapshot,
            on_snapshot=handle,
            on_error=on_error,
            name=f"trip:{trip_id}",
            **self.subscription_options
        ).start()

    # --- 쓰기 ---

    def create_trip(self, new_trip: NewTrip, user_id: str) -> str:
        """여행을 생성하고 문서 ID 를 반환합니다. 생성자가 유일한 멤버가 됩니다."""
        data = new_trip.to_dict()
        data.update({
            'created_by': user_id,
            'members': [user_id],
            'created_at': DateTimeUtils.now(),
        })
        try:
            _, doc_ref = self.trips_ref.add(DateTimeUtils.for_firestore(data))
        except Exception as e:
            logging.error(f"Error creating trip (user: {user_id}): {e}", exc_info=True)
            raise WriteError("여행을 생성하지 못했습니다.") from e

        logging.info(f"Trip created: {doc_ref.id} by {user_id}")
        return doc_ref.id

    def update_trip(self, trip_id: str, update: TripUpdate):
        """
        전달된 필드만 merge 합니다. CLEAR 필드는 문서에서 삭제되고
        UNCHANGED 필드는 전송하지 않습니다.
        """
        payload = update.to_firestore()
        if not payload:
            return
        try:
            self.trips_ref.document(trip_id).update(payload)
        except google_exceptions.NotFound as e:
            raise NotFound("해당 ID의 여행을 찾을 수 없습니다.") from e
        except Exception as e:
            logging.error(f"Error updating trip {trip_id}: {e}", exc_info=True)
            raise WriteError("여행 정보를 수정하지 못했습니다.") from e
        logging.info(f"Trip {trip_id} updated with fields: {list(payload.keys())}")

    def set_flight(self, trip_id: str, leg: FlightLeg, flight: FlightInfo):
        self.update_trip(trip_id, TripUpdate(**{leg.field_name: Set(flight)}))

    def clear_flight(self, trip_id: str, leg: FlightLeg):
        self.update_trip(trip_id, TripUpdate(**{leg.field_name: CLEAR}))

    def delete_trip(self, trip_id: str):
        """
        여행 문서만 삭제합니다. 하위 activities 컬렉션은 그대로 남습니다.
        """
        try:
            self.trips_ref.document(trip_id).delete()
        except Exception as e:
            logging.error(f"Error deleting trip {trip_id}: {e}", exc_info=True)
            raise WriteError("여행을 삭제하지 못했습니다.") from e
        logging.info(f"Trip {trip_id} deleted (activities sub-collection is kept).")
