"""Value objects passed between the OCR collaborator and the extraction engine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, Optional, Tuple

from .exceptions import UnknownFieldError

FIELD_NAMES = ('date', 'payee', 'amount', 'usage')


@dataclass(frozen=True)
class BoundingBox:
    """Location of a text fragment on the receipt image."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def union(self, other: 'BoundingBox') -> 'BoundingBox':
        """Smallest box covering both boxes."""
        x = min(self.x, other.x)
        y = min(self.y, other.y)
        return BoundingBox(
            x=x,
            y=y,
            width=max(self.right, other.right) - x,
            height=max(self.bottom, other.bottom) - y,
        )

    def to_dict(self) -> Dict[str, float]:
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['BoundingBox']:
        if not data:
            return None
        return cls(
            x=float(data.get('x', 0)),
            y=float(data.get('y', 0)),
            width=float(data.get('width', 0)),
            height=float(data.get('height', 0)),
        )


@dataclass(frozen=True)
class OCRResult:
    """A single recognized text fragment with its alternate readings."""
    text: str
    confidence: float
    bbox: Optional[BoundingBox] = None
    candidates: Tuple[str, ...] = ()

    def readings(self) -> Iterator[Tuple[int, str]]:
        """
        Yield (rank, text) for the primary text and each distinct alternate reading.

        Rank 0 is the primary text; alternates are numbered from 1 in the order
        the OCR engine supplied them.
        """
        seen = set()
        rank = 0
        for reading in (self.text, *self.candidates):
            if reading is None or reading in seen:
                continue
            seen.add(reading)
            yield rank, reading
            rank += 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OCRResult':
        text = data.get('text', '') or ''
        candidates = data.get('candidates') or [text]
        return cls(
            text=text,
            confidence=float(data.get('confidence', 0.0)),
            bbox=BoundingBox.from_dict(data.get('bbox')),
            candidates=tuple(candidates),
        )


@dataclass(frozen=True)
class FieldResult:
    """Extraction outcome for one receipt field. An empty value means not found."""
    value: str = ""
    confidence: float = 0.0
    candidates: Tuple[str, ...] = ()
    bbox: Optional[BoundingBox] = None

    @classmethod
    def empty(cls) -> 'FieldResult':
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.value

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'value': self.value,
            'confidence': round(self.confidence, 4),
            'candidates': list(self.candidates),
        }
        if self.bbox is not None:
            result['bbox'] = self.bbox.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldResult':
        return cls(
            value=data.get('value', '') or '',
            confidence=float(data.get('confidence', 0.0)),
            candidates=tuple(data.get('candidates') or ()),
            bbox=BoundingBox.from_dict(data.get('bbox')),
        )


@dataclass(frozen=True)
class ReceiptMetadata:
    processed_at: datetime
    image_hash: str = ""


@dataclass(frozen=True)
class ReceiptData:
    """The four extracted receipt fields plus processing metadata."""
    date: FieldResult
    payee: FieldResult
    amount: FieldResult
    usage: FieldResult
    metadata: ReceiptMetadata = field(default_factory=lambda: ReceiptMetadata(processed_at=datetime.now()))

    def get_field(self, name: str) -> FieldResult:
        """Look up a field by selector name."""
        if name not in FIELD_NAMES:
            raise UnknownFieldError(name)
        return getattr(self, name)

    def confidence_scores(self) -> Dict[str, float]:
        return {name: self.get_field(name).confidence for name in FIELD_NAMES}

    def to_dict(self) -> Dict[str, Any]:
        result = {name: self.get_field(name).to_dict() for name in FIELD_NAMES}
        result['metadata'] = {
            'processedAt': self.metadata.processed_at.isoformat(),
            'imageHash': self.metadata.image_hash,
        }
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReceiptData':
        metadata = data.get('metadata') or {}
        processed_at = metadata.get('processedAt')
        return cls(
            date=FieldResult.from_dict(data.get('date') or {}),
            payee=FieldResult.from_dict(data.get('payee') or {}),
            amount=FieldResult.from_dict(data.get('amount') or {}),
            usage=FieldResult.from_dict(data.get('usage') or {}),
            metadata=ReceiptMetadata(
                processed_at=datetime.fromisoformat(processed_at) if processed_at else datetime.now(),
                image_hash=metadata.get('imageHash', '') or '',
            ),
        )
