# tripboard/utils/datetime_utils.py
"""
여행 일정 전반에서 일관된 시간/날짜 처리를 위한 유틸리티 모듈

원칙:
1. 서버에서 다루는 모든 시각(instant)은 UTC timezone-aware datetime
2. 여행 시작/종료일처럼 시각이 없는 값은 date 로 다루고,
   Firestore 에는 자정(00:00 UTC) Timestamp 로 저장
3. 항공편 현지 시각은 "+09:00" 같은 UTC offset 문자열만으로 계산하며
   서버/사용자의 로컬 timezone 에 영향을 받지 않음
"""

import logging
import re
from datetime import datetime, date, timezone, time, timedelta
from typing import Any, Iterator, Optional
from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

_OFFSET_PATTERN = re.compile(r'^([+-]?)(\d{1,2}):?(\d{2})$')


class DateTimeUtils:
    """시간/날짜 처리를 위한 중앙화된 유틸리티 클래스"""

    @staticmethod
    def now() -> datetime:
        """현재 시간을 UTC timezone-aware datetime으로 반환"""
        return datetime.now(timezone.utc)

    @staticmethod
    def parse_iso_datetime(iso_string: str) -> datetime:
        """
        ISO 포맷 문자열을 UTC datetime 객체로 파싱

        지원 포맷:
        - 2025-03-20T10:30:00Z
        - 2025-03-20T10:30:00+09:00
        - 2025-03-20T10:30:00.123456Z
        - 2025-03-20T10:30:00 (UTC 로 간주)
        """
        try:
            if not iso_string:
                raise ValueError("빈 문자열은 파싱할 수 없습니다")

            if iso_string.endswith('Z'):
                iso_string = iso_string[:-1] + '+00:00'

            dt = dateutil_parser.isoparse(iso_string)

            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)

            return dt.astimezone(timezone.utc)

        except Exception as e:
            logger.error(f"ISO datetime 파싱 실패: {iso_string} - {e}")
            raise ValueError(f"잘못된 ISO 날짜 형식입니다: {iso_string}")

    @staticmethod
    def parse_date_string(date_string: str) -> date:
        """'2025-03-20', '2025/03/20' 등의 날짜 문자열을 date 로 파싱"""
        try:
            if not date_string:
                raise ValueError("빈 문자열은 파싱할 수 없습니다")
            return dateutil_parser.parse(date_string).date()
        except Exception as e:
            logger.error(f"날짜 문자열 파싱 실패: {date_string} - {e}")
            raise ValueError(f"잘못된 날짜 형식입니다: {date_string}")

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        """datetime 객체를 'Z' 접미사가 붙은 UTC ISO 문자열로 변환"""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        else:
            dt = dt.astimezone(timezone.utc)
        return dt.isoformat().replace('+00:00', 'Z')

    @staticmethod
    def to_date(value: Any) -> date:
        """
        Firestore 에서 읽은 날짜 필드를 date 로 정규화합니다.
        여행 날짜는 자정 UTC Timestamp 로 저장되므로 UTC 기준 날짜를 취합니다.
        """
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.date()
            return value.astimezone(timezone.utc).date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            return DateTimeUtils.parse_date_string(value)
        raise ValueError(f"date 로 변환할 수 없는 값입니다: {value!r}")

    @staticmethod
    def to_utc(value: Any) -> datetime:
        """Firestore Timestamp / datetime / ISO 문자열을 UTC datetime 으로 정규화"""
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc)
        if isinstance(value, str):
            return DateTimeUtils.parse_iso_datetime(value)
        raise ValueError(f"datetime 으로 변환할 수 없는 값입니다: {value!r}")

    @staticmethod
    def for_firestore(obj: Any) -> Any:
        """
        Firestore 저장을 위해 객체의 날짜/시간 필드를 변환

        변환 규칙:
        - date -> datetime (00:00:00 UTC)
        - timezone-naive datetime -> timezone-aware datetime (UTC)
        - dict/list 내부 재귀적 변환
        - 그 외 값(DELETE_FIELD 등 sentinel 포함)은 그대로 둠
        """
        if isinstance(obj, datetime):
            if obj.tzinfo is None:
                return obj.replace(tzinfo=timezone.utc)
            return obj.astimezone(timezone.utc)

        if isinstance(obj, date):
            return datetime.combine(obj, time.min).replace(tzinfo=timezone.utc)

        if isinstance(obj, dict):
            return {k: DateTimeUtils.for_firestore(v) for k, v in obj.items()}

        if isinstance(obj, list):
            return [DateTimeUtils.for_firestore(item) for item in obj]

        return obj

    @staticmethod
    def from_firestore(obj: Any) -> Any:
        """
        Firestore 에서 읽은 데이터의 datetime 필드를 UTC aware datetime 으로 변환
        (DatetimeWithNanoseconds 도 datetime 의 하위 클래스입니다)
        """
        if isinstance(obj, datetime):
            if obj.tzinfo is None:
                return obj.replace(tzinfo=timezone.utc)
            return obj.astimezone(timezone.utc)

        if isinstance(obj, dict):
            return {k: DateTimeUtils.from_firestore(v) for k, v in obj.items()}

        if isinstance(obj, list):
            return [DateTimeUtils.from_firestore(item) for item in obj]

        return obj

    @staticmethod
    def parse_utc_offset(offset: Optional[str]) -> Optional[int]:
        """
        "+09:00", "-05:30", "+0800" 형식의 UTC offset 을 분 단위 정수로 변환합니다.
        부호가 없으면 양수로 봅니다. (쿼리 문자열의 '+' 는 공백으로 디코딩됩니다)
        값이 비어 있으면 None 을 반환합니다.
        """
        if not offset:
            return None
        match = _OFFSET_PATTERN.match(offset.strip())
        if not match:
            raise ValueError(f"잘못된 UTC offset 형식입니다: {offset}")
        sign, hours, minutes = match.groups()
        total = int(hours) * 60 + int(minutes)
        return -total if sign == '-' else total

    @staticmethod
    def shift_by_offset(instant: datetime, offset: Optional[str]) -> datetime:
        """
        절대 시각에 offset(분)을 더한 결과를 UTC 로 표기된 datetime 으로 반환합니다.
        반환값의 hour/minute/date 필드가 곧 현지 표시 시각입니다.
        offset 이 없으면 UTC 시각을 그대로 사용합니다.
        """
        instant = DateTimeUtils.to_utc(instant)
        minutes = DateTimeUtils.parse_utc_offset(offset)
        if minutes is None:
            return instant
        return instant + timedelta(minutes=minutes)

    @staticmethod
    def date_range(start: date, end: date) -> Iterator[date]:
        """start 부터 end 까지(양 끝 포함) 하루씩 순회합니다. start > end 이면 비어 있습니다."""
        current = start
        while current <= end:
            yield current
            current += timedelta(days=1)
