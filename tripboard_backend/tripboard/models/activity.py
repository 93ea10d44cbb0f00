# tripboard/models/activity.py
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Union

from tripboard.models.fields import FieldUpdate, UpdateFields, UNCHANGED
from tripboard.utils.datetime_utils import DateTimeUtils


class ActivityType(Enum):
    SIGHTSEEING = "sightseeing"
    FOOD = "food"
    TRANSPORT = "transport"
    LODGING = "lodging"
    SHOPPING = "shopping"
    OTHER = "other"


class TravelMode(Enum):
    TRANSIT = "TRANSIT"
    DRIVING = "DRIVING"
    WALKING = "WALKING"
    BICYCLING = "BICYCLING"


class TransitMode(Enum):
    SUBWAY = "SUBWAY"
    BUS = "BUS"
    TRAIN = "TRAIN"
    TRAM = "TRAM"
    RAIL = "RAIL"


class TransitRoutingPreference(Enum):
    LESS_WALKING = "LESS_WALKING"
    FEWER_TRANSFERS = "FEWER_TRANSFERS"


@dataclass(frozen=True)
class ChecklistItem:
    """음식/쇼핑 활동의 세부 항목 (예: 살 물건 목록)"""
    id: str
    text: str
    completed: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChecklistItem":
        return cls(id=data['id'], text=data.get('text', ''), completed=bool(data.get('completed', False)))

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'text': self.text, 'completed': self.completed}


@dataclass
class PlaceDetails:
    """교통 이외 유형의 활동이 가지는 단일 장소 정보"""
    location: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'location': self.location} if self.location else {}


@dataclass
class TransportDetails:
    """교통(transport) 활동의 출발/도착지 및 경로 옵션"""
    departure_location: Optional[str] = None
    arrival_location: Optional[str] = None
    travel_mode: TravelMode = TravelMode.TRANSIT
    transit_modes: List[TransitMode] = field(default_factory=list)
    transit_routing_preference: Optional[TransitRoutingPreference] = None
    estimated_duration: Optional[int] = None  # 분 단위

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'travel_mode': self.travel_mode.value}
        if self.departure_location:
            data['departure_location'] = self.departure_location
        if self.arrival_location:
            data['arrival_location'] = self.arrival_location
        if self.transit_modes:
            data['transit_modes'] = [mode.value for mode in self.transit_modes]
        if self.transit_routing_preference:
            data['transit_routing_preference'] = self.transit_routing_preference.value
        if self.estimated_duration is not None:
            data['estimated_duration'] = self.estimated_duration
        return data

    @property
    def has_route(self) -> bool:
        return bool(self.departure_location and self.arrival_location)


ActivityDetails = Union[PlaceDetails, TransportDetails]


def details_from_dict(activity_type: ActivityType, data: Dict[str, Any]) -> ActivityDetails:
    """활동 유형에 따라 Firestore 의 평탄한(flat) 필드를 알맞은 상세 정보 객체로 변환합니다."""
    if activity_type is not ActivityType.TRANSPORT:
        return PlaceDetails(location=data.get('location'))

    travel_mode = TravelMode.TRANSIT
    if data.get('travel_mode'):
        try:
            travel_mode = TravelMode(data['travel_mode'])
        except ValueError:
            logging.warning(f"알 수 없는 travel_mode '{data['travel_mode']}', TRANSIT 으로 대체합니다.")

    transit_modes = []
    for raw in data.get('transit_modes') or []:
        try:
            transit_modes.append(TransitMode(raw))
        except ValueError:
            logging.warning(f"알 수 없는 transit mode '{raw}' 는 무시합니다.")

    preference = data.get('transit_routing_preference')
    estimated = data.get('estimated_duration')
    return TransportDetails(
        departure_location=data.get('departure_location'),
        arrival_location=data.get('arrival_location'),
        travel_mode=travel_mode,
        transit_modes=transit_modes,
        transit_routing_preference=TransitRoutingPreference(preference) if preference else None,
        estimated_duration=int(estimated) if estimated is not None else None,
    )


@dataclass
class Activity:
    """
    Firestore 'trips/{trip_id}/activities' 하위 컬렉션 문서 구조.
    유형별 선택 필드는 details(PlaceDetails | TransportDetails)로 구분합니다.
    """
    id: str
    trip_id: str
    title: str
    type: ActivityType
    start_time: datetime
    details: ActivityDetails = field(default_factory=PlaceDetails)
    end_time: Optional[datetime] = None
    notes: Optional[str] = None
    checklist: Optional[List[ChecklistItem]] = None

    @classmethod
    def from_dict(cls, activity_id: str, data: Dict[str, Any]) -> "Activity":
        try:
            activity_type = ActivityType(data.get('type', 'other'))
        except ValueError:
            logging.warning(f"Invalid activity type '{data.get('type')}' for activity {activity_id}. Defaulting to OTHER.")
            activity_type = ActivityType.OTHER

        end_time = data.get('end_time')
        checklist = data.get('checklist')
        return cls(
            id=activity_id,
            trip_id=data.get('trip_id', ''),
            title=data.get('title', ''),
            type=activity_type,
            start_time=DateTimeUtils.to_utc(data['start_time']),
            details=details_from_dict(activity_type, data),
            end_time=DateTimeUtils.to_utc(end_time) if end_time else None,
            notes=data.get('notes'),
            checklist=[ChecklistItem.from_dict(item) for item in checklist] if checklist is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Firestore 저장용 dict. 값이 없는 선택 필드는 None 으로 쓰지 않고 생략합니다.
        """
        data: Dict[str, Any] = {
            'trip_id': self.trip_id,
            'title': self.title,
            'type': self.type.value,
            'start_time': self.start_time,
        }
        data.update(self.details.to_dict())
        if self.end_time is not None:
            data['end_time'] = self.end_time
        if self.notes:
            data['notes'] = self.notes
        if self.checklist is not None:
            data['checklist'] = [item.to_dict() for item in self.checklist]
        return DateTimeUtils.for_firestore(data)


@dataclass
class ActivityUpdate(UpdateFields):
    """활동 부분 업데이트. 필드 이름은 Firestore 의 평탄한 필드와 같습니다."""
    REQUIRED_FIELDS = frozenset({'title', 'type', 'start_time'})

    title: FieldUpdate = UNCHANGED
    type: FieldUpdate = UNCHANGED
    start_time: FieldUpdate = UNCHANGED
    end_time: FieldUpdate = UNCHANGED
    notes: FieldUpdate = UNCHANGED
    location: FieldUpdate = UNCHANGED
    departure_location: FieldUpdate = UNCHANGED
    arrival_location: FieldUpdate = UNCHANGED
    travel_mode: FieldUpdate = UNCHANGED
    transit_modes: FieldUpdate = UNCHANGED
    transit_routing_preference: FieldUpdate = UNCHANGED
    estimated_duration: FieldUpdate = UNCHANGED
    checklist: FieldUpdate = UNCHANGED


# --- 체크리스트 순수 함수 ---
# 체크리스트는 항상 전체 목록 단위로 다시 계산해서 저장합니다.

def new_checklist_item_id() -> str:
    return str(uuid.uuid4())


def add_checklist_item(items: Optional[List[ChecklistItem]], text: str) -> List[ChecklistItem]:
    text = (text or '').strip()
    if not text:
        raise ValueError("체크리스트 항목 내용이 비어 있습니다.")
    return list(items or []) + [ChecklistItem(id=new_checklist_item_id(), text=text, completed=False)]


def toggle_checklist_item(items: Optional[List[ChecklistItem]], item_id: str) -> List[ChecklistItem]:
    _require_item(items, item_id)
    return [replace(item, completed=not item.completed) if item.id == item_id else item for item in items]


def edit_checklist_item(items: Optional[List[ChecklistItem]], item_id: str, text: str) -> List[ChecklistItem]:
    _require_item(items, item_id)
    text = (text or '').strip()
    if not text:
        raise ValueError("체크리스트 항목 내용이 비어 있습니다.")
    return [replace(item, text=text) if item.id == item_id else item for item in items]


def remove_checklist_item(items: Optional[List[ChecklistItem]], item_id: str) -> List[ChecklistItem]:
    _require_item(items, item_id)
    return [item for item in items if item.id != item_id]


def _require_item(items: Optional[List[ChecklistItem]], item_id: str):
    if not any(item.id == item_id for item in items or []):
        raise KeyError(item_id)
