import logging
from pathlib import Path

from pydantic import ValidationError

from .schemas import ThemePreference

logger = logging.getLogger(__name__)


class ThemeStore:
    """Dark-mode flag persisted as a small JSON file between sessions."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> ThemePreference:
        if not self.path.exists():
            return ThemePreference()
        try:
            return ThemePreference.model_validate_json(self.path.read_text(encoding='utf-8'))
        except ValidationError as exc:
            logger.warning(f"Ignoring unreadable theme preference at {self.path}: {exc}")
            return ThemePreference()

    def save(self, preference: ThemePreference) -> ThemePreference:
        self.path.write_text(preference.model_dump_json(), encoding='utf-8')
        return preference

    def toggle(self) -> ThemePreference:
        preference = ThemePreference(dark_mode=not self.load().dark_mode)
        logger.info(f"Dark mode toggled: {preference.dark_mode}")
        return self.save(preference)
