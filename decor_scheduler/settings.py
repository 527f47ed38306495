import os
from dataclasses import dataclass
from datetime import datetime

from dateutil import tz

WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

@dataclass
class Settings:
    database_url: str
    jwt_secret: str
    timezone: str
    week_start: int  # 0 = monday ... 6 = sunday
    dashboard_upcoming_days: int
    feed_upcoming_days: int
    max_occurrences: int
    feed_refresh_seconds: int
    reminder_interval_minutes: int
    store_timeout_seconds: float
    whatsapp_access_token: str
    whatsapp_phone_number_id: str
    log_level: str

    def now(self) -> datetime:
        # business-local wall clock; all date arithmetic is done on this calendar
        return datetime.now(tz.gettz(self.timezone))

def _weekday(s: str) -> int:
    s = s.strip().lower()
    if s.isdigit():
        return int(s) % 7
    if s not in WEEKDAYS:
        raise ValueError(f"WEEK_START inválido: {s!r}")
    return WEEKDAYS.index(s)

def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv('DATABASE_URL', 'sqlite:///./agenda.db'),
        jwt_secret=os.getenv('JWT_SECRET', 'change-me'),
        timezone=os.getenv('TIMEZONE', 'America/Sao_Paulo'),
        week_start=_weekday(os.getenv('WEEK_START', 'sunday')),
        dashboard_upcoming_days=int(os.getenv('DASHBOARD_UPCOMING_DAYS', '3')),
        feed_upcoming_days=int(os.getenv('FEED_UPCOMING_DAYS', '7')),
        max_occurrences=int(os.getenv('MAX_OCCURRENCES', '366')),
        feed_refresh_seconds=int(os.getenv('FEED_REFRESH_SECONDS', '60')),
        reminder_interval_minutes=int(os.getenv('REMINDER_INTERVAL_MINUTES', '60')),
        store_timeout_seconds=float(os.getenv('STORE_TIMEOUT_SECONDS', '10')),
        whatsapp_access_token=os.getenv('WHATSAPP_ACCESS_TOKEN', ''),
        whatsapp_phone_number_id=os.getenv('WHATSAPP_PHONE_NUMBER_ID', ''),
        log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
    )
