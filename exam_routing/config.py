"""Configuration management for examination routing."""

import os
from pathlib import Path
from dotenv import load_dotenv

# Project paths
PACKAGE_DIR = Path(__file__).parent  # exam_routing/
PROJECT_ROOT = PACKAGE_DIR.parent
DATA_DIR = PACKAGE_DIR / "data"
DEFAULT_CATALOG_FILE = DATA_DIR / "hazard_rules.json"

# Load environment variables from .env file
env_path = PROJECT_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)
else:
    # Fall back to template for defaults
    template_path = PROJECT_ROOT / ".env.template"
    if template_path.exists():
        load_dotenv(template_path)


class Config:
    """Application configuration."""

    # Route sheet store
    ROUTE_DB_PATH: str = os.getenv("ROUTE_DB_PATH", "~/.exam_routing/route_sheets.db")

    # Hazard rule catalog (JSON rows); packaged catalog when unset
    CATALOG_PATH: str | None = os.getenv("CATALOG_PATH")

    # Last exam older than this many years -> preliminary exam
    PRELIMINARY_EXAM_YEARS: int = int(os.getenv("PRELIMINARY_EXAM_YEARS", "2"))

    # Characters captured on each side of a point reference
    CONTEXT_WINDOW_CHARS: int = int(os.getenv("CONTEXT_WINDOW_CHARS", "50"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def get_catalog_path(cls) -> Path:
        """Get the catalog file to load."""
        if cls.CATALOG_PATH:
            return Path(os.path.expanduser(cls.CATALOG_PATH))
        return DEFAULT_CATALOG_FILE


# Commission chair, examines the whole roster
CHAIRMAN_SPECIALTY = "Профпатолог"

# Mandatory tests for every employee
BASELINE_RESEARCH: list[str] = [
    "ОАК (Общий анализ крови)",
    "ОАМ (Общий анализ мочи)",
    "ЭКГ (Электрокардиография)",
    "Флюорография",
]

# Canonical doctor names as they appear in the regulation table.
# Longer names first so containment matching prefers the most specific one.
DOCTOR_MARKERS: list[str] = [
    "Психиатр (медицинский психолог)",
    "Оториноларинголог",
    "Дерматовенеролог",
    "Невропатолог",
    "Отоларинголог",
    "Профпатолог",
    "Офтальмолог",
    "Эндокринолог",
    "Рентгенолог",
    "Стоматолог",
    "Аллерголог",
    "Гематолог",
    "Гинеколог",
    "Кардиолог",
    "Терапевт",
    "Невролог",
    "Психиатр",
    "Нарколог",
    "Онколог",
    "Уролог",
    "Хирург",
]

# Words ignored when generating rule keywords from titles
KEYWORD_STOP_WORDS: set[str] = {
    "и", "или", "а", "в", "на", "с", "со", "над", "под", "из", "для", "по", "при", "от", "до",
    "их", "его", "ее", "производства", "соединения", "другие", "другое", "иные", "прочие",
    "работы", "профессии", "факторы", "вредные", "опасные",
}

MAX_GENERATED_KEYWORDS = 6

CATEGORY_LABELS: dict[str, str] = {
    "chemical": "Химические вещества",
    "physical": "Физические факторы",
    "biological": "Биологические факторы",
    "profession": "Профессии и работы",
    "other": "Прочие факторы",
}


config = Config()
