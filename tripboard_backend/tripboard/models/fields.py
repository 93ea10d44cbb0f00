# tripboard/models/fields.py
"""
부분 업데이트(PATCH)용 필드 상태 표현.

각 선택 필드는 다음 셋 중 하나의 상태를 가집니다.
- UNCHANGED : 요청에 포함되지 않음. Firestore 로 전송하지 않습니다.
- CLEAR     : 명시적으로 null 을 보냄. 문서에서 필드를 삭제합니다 (예: 항공편 삭제).
- Set(v)    : 새 값으로 덮어씁니다.
"""
from dataclasses import dataclass, fields as dataclass_fields
from enum import Enum
from typing import Any, Dict, Generic, TypeVar, Union

from firebase_admin import firestore

from tripboard.utils.datetime_utils import DateTimeUtils

T = TypeVar('T')


class _Unchanged:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "UNCHANGED"

    def __bool__(self):
        return False


class _Clear:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "CLEAR"


UNCHANGED = _Unchanged()
CLEAR = _Clear()


@dataclass(frozen=True)
class Set(Generic[T]):
    value: T


FieldUpdate = Union[_Unchanged, _Clear, Set]


def field_update_from_patch(data: Dict[str, Any], key: str) -> FieldUpdate:
    """PATCH 본문에서 키 존재 여부와 null 여부로 필드 상태를 결정합니다."""
    if key not in data:
        return UNCHANGED
    if data[key] is None:
        return CLEAR
    return Set(data[key])


def encode_value(value: Any) -> Any:
    """모델 객체/Enum/date 를 Firestore 에 저장 가능한 값으로 변환합니다."""
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return DateTimeUtils.for_firestore(value)


class UpdateFields:
    """
    UNCHANGED/CLEAR/Set 필드들로 구성된 업데이트 dataclass 의 공통 기능.
    하위 클래스는 dataclass 로 선언하고 REQUIRED_FIELDS 에 삭제 불가 필드를 둡니다.
    """
    REQUIRED_FIELDS = frozenset()

    @classmethod
    def from_patch(cls, data: Dict[str, Any]):
        kwargs = {f.name: field_update_from_patch(data, f.name) for f in dataclass_fields(cls)}
        update = cls(**kwargs)
        update.validate()
        return update

    def validate(self):
        for name in self.REQUIRED_FIELDS:
            if getattr(self, name) is CLEAR:
                raise ValueError(f"'{name}' 필드는 삭제할 수 없습니다.")

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is UNCHANGED for f in dataclass_fields(self))

    def to_firestore(self) -> Dict[str, Any]:
        """
        Firestore update() 에 전달할 dict 를 만듭니다.
        UNCHANGED 는 제외하고, CLEAR 는 DELETE_FIELD 로 변환합니다.
        """
        self.validate()
        payload = {}
        for f in dataclass_fields(self):
            state = getattr(self, f.name)
            if state is UNCHANGED:
                continue
            if state is CLEAR:
                payload[f.name] = firestore.DELETE_FIELD
            else:
                payload[f.name] = encode_value(state.value)
        return payload
