from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from ..probes.base import ProbeSpec


class Status(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    WARN = "WARN"
    SKIP = "SKIP"


class Severity(str, Enum):
    FAIL = "FAIL"
    WARN = "WARN"

    @classmethod
    def parse(cls, value: "Severity | str") -> "Severity":
        if isinstance(value, Severity):
            return value
        text = str(value).strip().upper() or "FAIL"
        try:
            return cls(text)
        except ValueError as exc:
            raise ValueError(f"invalid severity `{value}`: expected FAIL or WARN") from exc

    @property
    def status(self) -> Status:
        return Status(self.value)


@dataclass(frozen=True)
class Predicate:
    kind: str
    args: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", str(self.kind).strip())
        object.__setattr__(self, "args", dict(self.args))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Predicate":
        return cls(kind=str(raw.get("kind", "")), args={str(k): v for k, v in raw.items() if k != "kind"})

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, **self.args}


@dataclass(frozen=True)
class Expectation:
    id: str
    description: str
    probe: ProbeSpec
    predicate: Predicate
    severity_on_failure: Severity = Severity.FAIL
    depends_on: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    remediation: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id).strip())
        object.__setattr__(self, "description", str(self.description).strip() or self.id)
        object.__setattr__(self, "severity_on_failure", Severity.parse(self.severity_on_failure))
        object.__setattr__(self, "depends_on", tuple(str(dep).strip() for dep in self.depends_on))
        object.__setattr__(self, "tags", tuple(sorted({str(tag).strip() for tag in self.tags if str(tag).strip()})))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Expectation":
        return cls(
            id=str(raw.get("id", "")),
            description=str(raw.get("description", "") or ""),
            probe=ProbeSpec.from_mapping(raw.get("probe", {}) or {}),
            predicate=Predicate.from_mapping(raw.get("predicate", {}) or {}),
            severity_on_failure=Severity.parse(raw.get("severity", "FAIL")),
            depends_on=tuple(raw.get("depends_on", ()) or ()),
            tags=tuple(raw.get("tags", ()) or ()),
            remediation=str(raw.get("remediation", "") or ""),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "probe": self.probe.as_dict(),
            "predicate": self.predicate.as_dict(),
            "severity": self.severity_on_failure.value,
            "depends_on": list(self.depends_on),
            "tags": list(self.tags),
            "remediation": self.remediation,
        }


@dataclass(frozen=True)
class Outcome:
    expectation_id: str
    description: str
    status: Status
    message: str
    remediation: str = ""
    evidence: Any = None
    severity_on_failure: Severity = Severity.FAIL
    duration_ms: int = 0
    attempts: int = 0
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", Status(self.status))
        object.__setattr__(self, "severity_on_failure", Severity.parse(self.severity_on_failure))
        object.__setattr__(self, "duration_ms", max(0, int(self.duration_ms)))

    @property
    def failed(self) -> bool:
        return self.status is Status.FAIL

    def to_dict(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "id": self.expectation_id,
            "description": self.description,
            "status": self.status.value,
            "message": self.message,
            "severity_on_failure": self.severity_on_failure.value,
            "duration_ms": self.duration_ms,
            "attempts": self.attempts,
            "tags": list(self.tags),
        }
        if self.remediation:
            row["remediation"] = self.remediation
        if self.evidence is not None:
            row["evidence"] = self.evidence
        return row

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> "Outcome":
        return cls(
            expectation_id=str(row["id"]),
            description=str(row.get("description", "")),
            status=Status(str(row["status"])),
            message=str(row.get("message", "")),
            remediation=str(row.get("remediation", "") or ""),
            evidence=row.get("evidence"),
            severity_on_failure=Severity.parse(row.get("severity_on_failure", "FAIL")),
            duration_ms=int(row.get("duration_ms", 0) or 0),
            attempts=int(row.get("attempts", 0) or 0),
            tags=tuple(str(tag) for tag in row.get("tags", ()) or ()),
        )


__all__ = ["Expectation", "Outcome", "Predicate", "Severity", "Status"]
