"""Line decoder turning JSON-lines text into validated samples."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union
from pydantic import BaseModel, Field, StrictFloat, StrictInt, ValidationError, field_validator
import logging

from tunnelscope.series import MetricKind, Sample
from tunnelscope.self_metrics import SelfMetrics

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 120


class EmptyInputError(ValueError):
    """Raised when no valid sample survives decoding."""

    def __init__(self, skipped: int = 0):
        self.skipped = skipped
        message = "No valid metrics found in file"
        if skipped:
            message += f" ({skipped} malformed line{'s' if skipped != 1 else ''} skipped)"
        super().__init__(message)


class SampleRecord(BaseModel):
    """Wire format of one input line."""
    timestamp: datetime
    name: str = Field(min_length=1)
    type: MetricKind
    # Booleans and numeric strings are rejected, not coerced
    value: Union[StrictInt, StrictFloat]
    labels: Dict[str, str] = Field(default_factory=dict)

    @field_validator('timestamp', mode='before')
    @classmethod
    def require_timestamp_string(cls, v: Any) -> Any:
        if not isinstance(v, str):
            raise ValueError("timestamp must be an ISO 8601 string")
        return v

    @field_validator('timestamp')
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so all points compare."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_sample(self) -> Sample:
        return Sample(
            timestamp=self.timestamp,
            name=self.name,
            kind=self.type,
            value=float(self.value),
            labels=dict(self.labels),
        )


@dataclass(frozen=True)
class MalformedLine:
    """A skipped input line and why it was rejected."""
    line_number: int
    reason: str
    excerpt: str


@dataclass
class DecodeResult:
    """Samples decoded from text plus the lines that were dropped."""
    samples: List[Sample] = field(default_factory=list)
    skipped: List[MalformedLine] = field(default_factory=list)


def _describe_error(error: ValidationError) -> str:
    """Condense a pydantic error into one short line."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    if location:
        return f"{location}: {first['msg']}"
    return first["msg"]


def decode_line(line: str) -> Sample:
    """Decode one JSON line, raising ValidationError when it is malformed."""
    return SampleRecord.model_validate_json(line).to_sample()


def decode_lines(
    lines: Iterable[Union[str, bytes]],
    self_metrics: Optional[SelfMetrics] = None
) -> DecodeResult:
    """
    Decode an iterable of lines.

    Lines may be ``str`` or raw ``bytes``; bytes are decoded as UTF-8 one
    line at a time so a corrupt line is skipped instead of aborting the
    whole input. Empty and whitespace-only lines are ignored. Lines that
    fail to decode are recorded in ``DecodeResult.skipped`` and decoding
    continues.

    Raises:
        EmptyInputError: no line produced a valid sample
    """
    result = DecodeResult()

    def skip(line_number: int, reason: str, excerpt: str):
        logger.warning(f"Skipping malformed line {line_number}: {reason} ({excerpt!r})")
        result.skipped.append(MalformedLine(line_number, reason, excerpt))
        if self_metrics:
            self_metrics.record_malformed()

    for line_number, raw in enumerate(lines, start=1):
        if isinstance(raw, bytes):
            try:
                raw = raw.decode('utf-8')
            except UnicodeDecodeError as e:
                excerpt = raw.strip()[:EXCERPT_LENGTH].decode('utf-8', errors='replace')
                skip(line_number, f"invalid UTF-8 at byte {e.start}", excerpt)
                continue

        line = raw.strip()
        if not line:
            continue

        try:
            sample = decode_line(line)
        except ValidationError as e:
            skip(line_number, _describe_error(e), line[:EXCERPT_LENGTH])
            continue

        result.samples.append(sample)

    if self_metrics:
        self_metrics.record_decoded(len(result.samples))

    if not result.samples:
        raise EmptyInputError(skipped=len(result.skipped))

    if result.skipped:
        logger.info(
            f"Decoded {len(result.samples)} samples, "
            f"skipped {len(result.skipped)} malformed lines"
        )

    return result


def decode_text(text: str, self_metrics: Optional[SelfMetrics] = None) -> DecodeResult:
    """
    Decode raw JSON-lines text.

    Only ``\\n`` separates records, matching how files are read; other
    Unicode line breaks inside a line stay part of it.
    """
    return decode_lines(text.split("\n"), self_metrics=self_metrics)
