"""Extract install, build and test commands from README documents."""

from .config import PipelineConfig, load_config
from .models import Category, Command, CommandInfo, LanguageContext, PipelineResult
from .pipeline import AnalyzerPipeline, analyze_text

__version__ = "0.1.0"

__all__ = [
    "AnalyzerPipeline",
    "Category",
    "Command",
    "CommandInfo",
    "LanguageContext",
    "PipelineConfig",
    "PipelineResult",
    "analyze_text",
    "load_config",
]
