from dataclasses import dataclass
from typing import Any

CURRENTLY_EMPLOYED = "NA"


@dataclass(frozen=True)
class WorkHistoryEntry:
    """Self-reported employment, e.g. years="2018-2021"."""

    company_name: str
    years: str = ""


@dataclass(frozen=True)
class DualEmploymentResult:
    """One establishment from the provider's employment history."""

    establishment_name: str
    date_of_joining: str
    date_of_exit: str
    overlapping: str
    member_id: str
    name: str
    father_or_husband_name: str

    @property
    def currently_employed(self) -> bool:
        return self.date_of_exit == CURRENTLY_EMPLOYED

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "DualEmploymentResult":
        def text(key: str) -> str:
            value = row.get(key)
            return "" if value is None else str(value)

        return cls(
            establishment_name=text("Establishment Name"),
            date_of_joining=text("Doj"),
            date_of_exit=text("DateOfExitEpf"),
            overlapping=text("Overlapping"),
            member_id=text("MemberId"),
            name=text("name"),
            father_or_husband_name=text("fatherOrHusbandName"),
        )
