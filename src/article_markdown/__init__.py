"""Convert simplified article HTML into Markdown with local image assets."""

__version__ = "0.1.0"

from .config import AppConfig, load_config
from .core import ConversionService
from .extract import article_from_html
from .models import Article, BatchConversionResult, ConversionOptions, ConversionResult
from .transducer import convert_article

__all__ = [
    "__version__",
    "AppConfig",
    "load_config",
    "Article",
    "article_from_html",
    "convert_article",
    "BatchConversionResult",
    "ConversionOptions",
    "ConversionService",
    "ConversionResult",
]
