# tripboard/services/directions_service.py

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlencode

import requests
from flask import Flask

from tripboard.core.errors import DirectionsError
from tripboard.models.activity import TravelMode, TransitMode, TransitRoutingPreference


@dataclass
class TransitPreferences:
    """대중교통(TRANSIT) 경로 검색 시 전달하는 선호 옵션"""
    modes: List[TransitMode] = field(default_factory=list)
    routing_preference: Optional[TransitRoutingPreference] = None


@dataclass
class TravelDuration:
    duration_minutes: int
    duration_text: str
    distance_text: str


@dataclass
class MapSurface:
    """지도 화면을 그리기 위한 정보. 클라이언트는 embed_url 을 iframe 으로 띄웁니다."""
    kind: str  # 'route' | 'place'
    embed_url: str


class DirectionsService:
    """
    Google Directions / Maps Embed API 와의 통신을 담당하는 서비스 클래스입니다.
    소요 시간 조회 실패는 DirectionsError 로 알리며, 활동 저장 자체를 막지는 않습니다.
    """
    _directions_url = "https://maps.googleapis.com/maps/api/directions/json"
    _embed_base_url = "https://www.google.com/maps/embed/v1"

    def __init__(self, api_key: str = "", timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def init_app(self, app: Flask):
        """Flask 앱 설정에서 API 키와 타임아웃을 읽어옵니다."""
        self.api_key = app.config.get('GOOGLE_MAPS_API_KEY', '')
        self.timeout = app.config.get('DIRECTIONS_TIMEOUT_SECONDS', 10.0)
        if not self.api_key:
            logging.warning("DirectionsService: GOOGLE_MAPS_API_KEY 가 설정되지 않아 경로 조회가 실패합니다.")

    def resolve_travel_duration(self, origin: str, destination: str,
                                mode: TravelMode = TravelMode.TRANSIT,
                                transit_preferences: Optional[TransitPreferences] = None) -> TravelDuration:
        """출발지와 도착지 사이의 예상 소요 시간을 조회합니다."""
        if not origin or not destination:
            raise DirectionsError("출발지와 도착지를 모두 입력해야 합니다.")
        if not self.api_key:
            raise DirectionsError("GOOGLE_MAPS_API_KEY 가 설정되지 않았습니다.")

        params = {
            'origin': origin,
            'destination': destination,
            'mode': mode.value.lower(),
            'key': self.api_key,
        }
        params.update(self._transit_params(mode, transit_preferences))

        try:
            response = self.session.get(self._directions_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logging.error(f"Directions API 요청 실패 ({origin} -> {destination}): {e}", exc_info=True)
            raise DirectionsError("경로 정보를 가져오지 못했습니다. 잠시 후 다시 시도해주세요.") from e

        status = payload.get('status')
        if status != 'OK' or not payload.get('routes'):
            logging.warning(f"Directions 조회 결과 없음: status={status}, {origin} -> {destination}")
            raise DirectionsError(f"예상 시간을 가져올 수 없습니다. 장소 이름을 확인해주세요. (status: {status})")

        legs = payload['routes'][0].get('legs') or []
        if not legs:
            logging.warning(f"Directions 응답에 구간(legs) 정보가 없음: {origin} -> {destination}")
            raise DirectionsError("예상 시간을 가져올 수 없습니다. 장소 이름을 확인해주세요. (status: NO_LEGS)")
        leg = legs[0]
        duration = leg.get('duration') or {}
        distance = leg.get('distance') or {}
        return TravelDuration(
            duration_minutes=round((duration.get('value') or 0) / 60),
            duration_text=duration.get('text', ''),
            distance_text=distance.get('text', ''),
        )

    def render_route(self, origin: str, destination: str,
                     mode: TravelMode = TravelMode.TRANSIT,
                     transit_preferences: Optional[TransitPreferences] = None) -> MapSurface:
        """출발지~도착지 경로 지도(Embed API directions 모드)를 만듭니다."""
        if not origin or not destination:
            raise DirectionsError("출발지와 도착지를 모두 입력해야 합니다.")
        params = {
            'key': self.api_key,
            'origin': origin,
            'destination': destination,
            'mode': mode.value.lower(),
        }
        return MapSurface(kind='route', embed_url=f"{self._embed_base_url}/directions?{urlencode(params)}")

    def render_place(self, location: str) -> MapSurface:
        """단일 장소 지도(Embed API place 모드)를 만듭니다."""
        if not location:
            raise DirectionsError("표시할 장소 정보가 없습니다.")
        params = {'key': self.api_key, 'q': location}
        return MapSurface(kind='place', embed_url=f"{self._embed_base_url}/place?{urlencode(params)}")

    @staticmethod
    def _transit_params(mode: TravelMode, preferences: Optional[TransitPreferences]) -> dict:
        # 대중교통 옵션은 TRANSIT 모드에서만 의미가 있습니다.
        if mode is not TravelMode.TRANSIT or preferences is None:
            return {}
        params = {}
        if preferences.modes:
            params['transit_mode'] = '|'.join(m.value.lower() for m in preferences.modes)
        if preferences.routing_preference:
            params['transit_routing_preference'] = preferences.routing_preference.value.lower()
        return params
