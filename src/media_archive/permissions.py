import logging
from typing import Iterable, Optional

from media_archive.exceptions import PermissionDenied

logger = logging.getLogger(__name__)

LEVEL_DEFAULT = 1
LEVEL_TRUSTED = 2
LEVEL_ADMIN = 3
LEVEL_OWNER = 4
LEVEL_OPERATOR = 5

LEVEL_NAMES = {
    LEVEL_DEFAULT: "member",
    LEVEL_TRUSTED: "trusted member",
    LEVEL_ADMIN: "admin",
    LEVEL_OWNER: "owner",
    LEVEL_OPERATOR: "operator",
}

# Порядок важен: побеждает старшая роль
ROLE_LEVELS = (
    ("owner", LEVEL_OWNER),
    ("admin", LEVEL_ADMIN),
    ("trusted", LEVEL_TRUSTED),
)


class PermissionGate:
    """
    Отображает атрибуты участника в уровень доверия 1..5 и авторизует мутации.

    Уровень 5 (оператор) из ролей не выводится: его подтверждает внешняя
    проверка личности и передаёт сюда флагом ``elevated``.
    """

    def __init__(self, threshold: int = LEVEL_ADMIN):
        if not LEVEL_DEFAULT <= threshold <= LEVEL_OPERATOR:
            raise ValueError(f"Permission threshold must be within 1..5, got {threshold}")
        self.threshold = threshold

    @staticmethod
    def resolve_level(roles: Optional[Iterable[str]], is_direct: bool, elevated: bool = False) -> int:
        if elevated:
            return LEVEL_OPERATOR
        if is_direct or roles is None:
            return LEVEL_DEFAULT
        role_set = set(roles)
        for role, level in ROLE_LEVELS:
            if role in role_set:
                return level
        return LEVEL_DEFAULT

    def authorize(self, level: int) -> bool:
        return level >= self.threshold

    def require(self, level: int, action: str) -> None:
        if not self.authorize(level):
            logger.info(f"Denied '{action}': level {level} < {self.threshold}")
            raise PermissionDenied(action, self.threshold, level, self.threshold_name)

    @property
    def threshold_name(self) -> str:
        return LEVEL_NAMES[self.threshold]
