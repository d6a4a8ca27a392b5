"""
PII Redaction Utility for OTA channel connectors
Uses Microsoft Presidio to detect and anonymize guest data before it reaches log sinks
"""

import logging
import re
from functools import lru_cache
from typing import Any, Dict, List, Optional

from presidio_analyzer import (
    AnalyzerEngine,
    EntityRecognizer,
    Pattern,
    PatternRecognizer,
    RecognizerRegistry,
    RecognizerResult as AnalyzerResult,
)
from presidio_anonymizer import AnonymizerEngine
from presidio_anonymizer.entities import OperatorConfig, RecognizerResult

logger = logging.getLogger(__name__)

# Record attributes owned by the logging module; never rewritten
_STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class PrefixedValueRecognizer(EntityRecognizer):
    """
    Flags the value that follows a keyword ("room 425", "loyalty id GX12345678")

    Only the value span is reported, so the keyword stays readable after
    anonymization. The pattern's second group is the value.
    """

    def __init__(self, supported_entity: str, pattern: str, score: float = 0.9):
        self.pattern = re.compile(pattern, re.IGNORECASE)
        self.score = score
        super().__init__(
            supported_entities=[supported_entity],
            name=f"{supported_entity.title().replace('_', '')}Recognizer",
        )

    def load(self) -> None:
        pass

    def analyze(self, text: str, entities: List[str], nlp_artifacts=None) -> List[AnalyzerResult]:
        entity = self.supported_entities[0]
        return [
            AnalyzerResult(
                entity_type=entity, start=match.start(2), end=match.end(2), score=self.score
            )
            for match in self.pattern.finditer(text)
        ]


def _pattern_recognizer(entity: str, regex: str, score: float = 0.9) -> PatternRecognizer:
    return PatternRecognizer(
        supported_entity=entity,
        patterns=[Pattern(name=entity.lower(), regex=regex, score=score)],
    )


class PIIRedactor:
    """
    PII Redactor for guest data carried by partner payloads

    Detects and redacts:
    - Email addresses
    - Phone numbers (international or 10-digit)
    - Payment card numbers
    - Passport numbers
    - Room numbers and guest/loyalty IDs

    Detection runs Presidio recognizers from a registry; pass an
    `AnalyzerEngine` to add its NLP-backed entities (names, locations).
    """

    EMAIL_PATTERN = r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"
    CREDIT_CARD_PATTERN = r"\b(?:\d[ -]?){12,18}\d\b"
    INTERNATIONAL_PHONE_PATTERN = r"(?<![\w+])\+\d[\d\s().-]{6,}\d"
    LOCAL_PHONE_PATTERN = r"\b\d{10}\b"
    PASSPORT_PATTERN = r"\b(passport\s*(?:no\.?|number|#)?\s*[:#]?\s*)((?=[A-Z]*\d)[A-Z0-9]{6,9})\b"
    ROOM_NUMBER_PATTERN = r"\b(room|suite|rm)\s*#?\s*(\d{1,4}[A-Za-z]?)\b"
    GUEST_ID_PATTERN = (
        r"\b(guest|member|loyalty)\s*((?:id)?\s*#?\s*(?=[A-Z]*\d)[A-Z0-9]{8,16})\b"
    )

    DEFAULT_SENSITIVE_KEYS = [
        "email",
        "phone",
        "mobile",
        "password",
        "credit_card",
        "card_number",
        "cvv",
        "passport",
        "id_number",
        "api_key",
        "secret",
        "token",
        "authorization",
        "signature",
    ]

    def __init__(
        self,
        custom_redact_char: str = "*",
        enable_custom_patterns: bool = True,
        sensitive_keys: Optional[List[str]] = None,
        analyzer: Optional[AnalyzerEngine] = None,
        language: str = "en",
    ):
        """
        Initialize PII Redactor

        Args:
            custom_redact_char: Character used to mask sensitive dict values
            enable_custom_patterns: Enable room number and guest ID detection
            sensitive_keys: Extra dict keys whose values are always masked
            analyzer: Optional Presidio analyzer for NLP-backed entities
            language: Language passed to the analyzer
        """
        self.redact_char = custom_redact_char
        self.enable_custom = enable_custom_patterns
        self.sensitive_keys = set(self.DEFAULT_SENSITIVE_KEYS + (sensitive_keys or []))
        self.analyzer = analyzer
        self.language = language
        self.registry = self._build_registry()
        self.anonymizer = AnonymizerEngine()

    def _build_registry(self) -> RecognizerRegistry:
        registry = RecognizerRegistry()
        registry.add_recognizer(_pattern_recognizer("EMAIL", self.EMAIL_PATTERN))
        registry.add_recognizer(_pattern_recognizer("CREDIT_CARD", self.CREDIT_CARD_PATTERN))
        registry.add_recognizer(
            PatternRecognizer(
                supported_entity="PHONE",
                patterns=[
                    Pattern(name="international", regex=self.INTERNATIONAL_PHONE_PATTERN, score=0.9),
                    Pattern(name="local", regex=self.LOCAL_PHONE_PATTERN, score=0.6),
                ],
            )
        )
        registry.add_recognizer(PrefixedValueRecognizer("PASSPORT", self.PASSPORT_PATTERN))
        if self.enable_custom:
            registry.add_recognizer(
                PrefixedValueRecognizer("ROOM_NUMBER", self.ROOM_NUMBER_PATTERN)
            )
            registry.add_recognizer(PrefixedValueRecognizer("GUEST_ID", self.GUEST_ID_PATTERN))
        return registry

    def add_recognizer(self, recognizer: EntityRecognizer):
        """Register an extra recognizer; its entity type becomes the placeholder"""
        self.registry.add_recognizer(recognizer)
        self.redact_text.cache_clear()

    def analyze(self, text: str) -> List[AnalyzerResult]:
        results: List[AnalyzerResult] = []
        for recognizer in self.registry.recognizers:
            results.extend(
                recognizer.analyze(
                    text=text, entities=recognizer.supported_entities, nlp_artifacts=None
                )
                or []
            )
        if self.analyzer is not None:
            results.extend(self.analyzer.analyze(text=text, language=self.language))
        return results

    @lru_cache(maxsize=1000)
    def redact_text(self, text: str) -> str:
        """
        Redact PII from text

        Args:
            text: Text to redact

        Returns:
            Redacted text with PII replaced by <ENTITY_TYPE> placeholders
        """
        if not text:
            return text

        results = [
            RecognizerResult(
                entity_type=result.entity_type,
                start=result.start,
                end=result.end,
                score=result.score,
            )
            for result in self.analyze(text)
        ]
        if not results:
            return text

        return self.anonymizer.anonymize(
            text=text,
            analyzer_results=results,
            operators={"DEFAULT": OperatorConfig("replace")},
        ).text

    def is_sensitive_key(self, key: str) -> bool:
        lowered = str(key).lower()
        return any(s in lowered for s in self.sensitive_keys)

    def redact_value(self, key: str, value: Any) -> Any:
        if value is None:
            return None
        if self.is_sensitive_key(key):
            if isinstance(value, str):
                return self.redact_char * len(value)
            return f"<REDACTED_{str(key).upper()}>"

        if isinstance(value, dict):
            return self.redact_dict(value)
        if isinstance(value, (list, tuple)):
            return [self.redact_value(key, item) for item in value]
        if isinstance(value, str):
            return self.redact_text(value)
        return value

    def redact_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Redact PII from dictionary values, masking sensitive keys outright"""
        return {k: self.redact_value(k, v) for k, v in data.items()}

    def redact_log_record(self, record: logging.LogRecord) -> logging.LogRecord:
        """Redact the message, its args and any structured extras"""
        record.msg = self.redact_text(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = self.redact_dict(record.args)
            else:
                record.args = tuple(self.redact_text(str(arg)) for arg in record.args)

        for key, value in list(record.__dict__.items()):
            if key in _STANDARD_RECORD_ATTRS:
                continue
            setattr(record, key, self.redact_value(key, value))

        return record


class PIIRedactorFilter(logging.Filter):
    """
    Logging filter that automatically redacts PII from all log messages

    Usage:
        logger = logging.getLogger(__name__)
        logger.addFilter(PIIRedactorFilter())
    """

    def __init__(self, redactor: Optional[PIIRedactor] = None):
        super().__init__()
        self.redactor = redactor or get_default_redactor()

    def filter(self, record: logging.LogRecord) -> bool:
        self.redactor.redact_log_record(record)
        return True


# Singleton instance for convenience
_default_redactor = None


def get_default_redactor() -> PIIRedactor:
    """Get or create the default PII redactor instance"""
    global _default_redactor
    if _default_redactor is None:
        _default_redactor = PIIRedactor()
    return _default_redactor


def redact_pii(text: str) -> str:
    """Convenience function to redact PII from text"""
    return get_default_redactor().redact_text(text)


def setup_logging_redaction(logger: Optional[logging.Logger] = None):
    """
    Set up PII redaction for logging

    Args:
        logger: Logger to configure (None for root logger)
    """
    target_logger = logger or logging.getLogger()

    for existing in target_logger.filters:
        if isinstance(existing, PIIRedactorFilter):
            return

    target_logger.addFilter(PIIRedactorFilter())

    for handler in target_logger.handlers:
        handler.addFilter(PIIRedactorFilter())
