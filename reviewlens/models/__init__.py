"""SQLAlchemy models; importing the package registers every table on ``Base.metadata``."""

from .action import Action, SynthesisCache  # noqa: F401
from .embedding import EmbeddingRecord  # noqa: F401
from .insight import ThemeMetric, ThemeTrend  # noqa: F401
from .manifest import Manifest  # noqa: F401
from .review import Review  # noqa: F401
from .theme import Theme  # noqa: F401

__all__ = [
    "Action",
    "EmbeddingRecord",
    "Manifest",
    "Review",
    "SynthesisCache",
    "Theme",
    "ThemeMetric",
    "ThemeTrend",
]
