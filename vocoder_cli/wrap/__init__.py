from .adapters import FrameworkAdapter, ReactAdapter, react_adapter
from .analyzer import StringAnalyzer, analyze
from .classifier import classify_string, is_translatable_var_name
from .extractor import StringExtractor, extract
from .transformer import StringTransformer, transform
from .types import (
	ClassificationMetadata,
	ClassificationResult,
	Confidence,
	Context,
	ExtractedString,
	ParseError,
	Strategy,
	TransformResult,
	WrapCandidate,
	WrapError,
	filter_by_confidence,
)

__all__ = [
	"FrameworkAdapter",
	"ReactAdapter",
	"react_adapter",
	"StringAnalyzer",
	"analyze",
	"classify_string",
	"is_translatable_var_name",
	"StringExtractor",
	"extract",
	"StringTransformer",
	"transform",
	"ClassificationMetadata",
	"ClassificationResult",
	"Confidence",
	"Context",
	"ExtractedString",
	"ParseError",
	"Strategy",
	"TransformResult",
	"WrapCandidate",
	"WrapError",
	"filter_by_confidence",
]
