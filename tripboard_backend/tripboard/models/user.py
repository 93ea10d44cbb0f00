# tripboard/models/user.py
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any

from tripboard.utils.datetime_utils import DateTimeUtils


@dataclass
class UserProfile:
    """
    Firestore 'users' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    문서 ID 는 Google 계정의 subject id(uid) 입니다.
    """
    uid: str
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    last_login: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        last_login = data.get('last_login')
        return cls(
            uid=data['uid'],
            email=data.get('email'),
            display_name=data.get('display_name'),
            photo_url=data.get('photo_url'),
            last_login=DateTimeUtils.to_utc(last_login) if last_login else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        # 값이 없는 필드는 저장하지 않습니다.
        return {key: value for key, value in asdict(self).items() if value is not None}
