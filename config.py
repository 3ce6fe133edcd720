from pathlib import Path
from dotenv import load_dotenv
import os

load_dotenv()

BASE_DIR = Path(__file__).parent

# Data directory (gitignored)
DATA_DIR = BASE_DIR / "data"
DATA_DIR.mkdir(exist_ok=True)

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR}/nyct.db")
# Wipe-and-reload the static tables into DATABASE_URL after every schedule sync
PERSIST_SCHEDULE: bool = os.getenv("PERSIST_SCHEDULE", "false").lower() in ("1", "true", "yes")

# GTFS Static
GTFS_STATIC_URL: str = os.getenv(
    "GTFS_STATIC_URL", "https://rrgtfsfeeds.s3.amazonaws.com/gtfs_supplemented.zip"
)
GTFS_REFRESH_SECONDS: int = int(os.getenv("GTFS_REFRESH_SECONDS", "3600"))
GTFS_STATIC_TIMEOUT_SECONDS: float = float(os.getenv("GTFS_STATIC_TIMEOUT_SECONDS", "60"))

# GTFS-Realtime
_DEFAULT_FEED_URLS = ",".join(
    "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2F" + name
    for name in ("gtfs-ace", "gtfs-bdfm", "gtfs-g", "gtfs-jz", "gtfs-nqrw", "gtfs-l", "gtfs", "gtfs-si")
)
GTFS_RT_FEED_URLS: list[str] = [
    url.strip() for url in os.getenv("GTFS_RT_FEED_URLS", _DEFAULT_FEED_URLS).split(",") if url.strip()
]
GTFS_RT_API_KEY: str = os.getenv("GTFS_RT_API_KEY", "")  # appended as ?key= on each RT request
GTFS_RT_POLL_SECONDS: int = int(os.getenv("GTFS_RT_POLL_SECONDS", "10"))
GTFS_RT_TIMEOUT_SECONDS: float = float(os.getenv("GTFS_RT_TIMEOUT_SECONDS", "15"))

# Departure board
TIMEZONE: str = os.getenv("TIMEZONE", "America/New_York")
MAX_UPCOMING_DEPARTURES: int = int(os.getenv("MAX_UPCOMING_DEPARTURES", "3"))
SCHEDULE_HORIZON_HOURS: int = int(os.getenv("SCHEDULE_HORIZON_HOURS", "12"))

# API
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))
CORS_ORIGINS: list[str] = [
    origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
]
