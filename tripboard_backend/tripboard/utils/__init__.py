# tripboard/utils/__init__.py
"""
유틸리티 모듈 패키지

시간/날짜 변환(datetime_utils)과 화면 표시용 파생 값(trip_view) 계산 함수들을 포함합니다.
"""

from .datetime_utils import DateTimeUtils

__all__ = ['DateTimeUtils']
