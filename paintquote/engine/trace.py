from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class TraceKind(str, Enum):
    STEP = "STEP"
    WARNING = "WARNING"
    META = "META"


_CODE_RE = re.compile(r"^[A-Z][A-Z0-9_]{2,63}$")  # e.g. LABOR_ITEM, TAX, TIER_FALLBACK


def _validate_code(code: str) -> str:
    if not isinstance(code, str):
        raise TypeError("trace code must be str")
    code = code.strip()
    if not _CODE_RE.match(code):
        raise ValueError(f"invalid trace code '{code}'. Expected UPPER_SNAKE (3-64 chars)")
    return code


def _plain(value: Any) -> Any:
    # Decimals as strings so the trace is JSON-safe and exact
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class TraceEntry:
    seq: int
    kind: TraceKind
    code: str
    data: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"seq": self.seq, "kind": self.kind.value, "code": self.code, "data": dict(self.data)}


@dataclass
class CalculationTrace:
    """
    Opt-in record of every arithmetic step of one calculation.
    Disabled traces accept writes and keep nothing, so call sites never branch.
    """

    enabled: bool = False
    _entries: List[TraceEntry] = field(default_factory=list)
    _seq: int = 0

    @property
    def entries(self) -> List[TraceEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def step(self, code: str, **data: Any) -> None:
        self._append(TraceKind.STEP, code, data)

    def warning(self, code: str, **data: Any) -> None:
        self._append(TraceKind.WARNING, code, data)

    def meta(self, code: str, **data: Any) -> None:
        self._append(TraceKind.META, code, data)

    def _append(self, kind: TraceKind, code: str, data: Dict[str, Any]) -> None:
        c = _validate_code(code)
        if not self.enabled:
            return
        self._seq += 1
        self._entries.append(TraceEntry(seq=self._seq, kind=kind, code=c, data=_plain(data)))

    def export(self) -> Optional[List[Dict[str, Any]]]:
        """None when disabled, so results without a trace stay comparable."""
        if not self.enabled:
            return None
        return [e.as_dict() for e in sorted(self._entries, key=lambda e: e.seq)]
