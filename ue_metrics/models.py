"""UE record model and the classification result types."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any


class SyncState(str, Enum):
    IN_SYNC = "in-sync"
    OUT_OF_SYNC = "out-of-sync"


class FragmentKind(IntEnum):
    """Recognised line shapes, numbered in match priority order."""

    BASIC = 1        # UE RNTI .. CU-UE-ID .. PH .. PCMAX .. RSRP
    CQI = 2          # CQI / DL rank indicator
    UL_RI = 3        # UL rank indicator
    DL_PHY = 4       # dlsch errors, PUCCH DTX, DL BLER, DL MCS
    UL_PHY = 5       # ulsch errors, ULSCH DTX, UL BLER, UL MCS, NPRB, SNR (terminates)


@dataclass
class UERecord:
    rnti: str
    timestamp: datetime = field(default_factory=datetime.now)
    ue_id: int = 0
    state: SyncState | None = None
    ph: int = 0             # power headroom (dB)
    pcmax: int = 0          # max UL transmit power (dBm)
    rsrp: int = 0           # average RSRP (dBm)
    cqi: int = 0
    dl_ri: int = 0
    ul_ri: int = 0
    dlsch_errors: int = 0
    pucch_dtx: int = 0
    dl_bler: float = 0.0
    dl_mcs: int = 0
    ulsch_errors: int = 0
    ulsch_dtx: int = 0
    ul_bler: float = 0.0
    ul_mcs: int = 0
    nprb: int = 0
    snr: float = 0.0

    def apply(self, values: dict[str, Any]) -> None:
        """Overwrite the given fields in place."""
        for name, value in values.items():
            setattr(self, name, value)


CSV_COLUMNS = [
    "timestamp", "rnti", "ue_id", "state", "ph", "pcmax", "rsrp", "cqi",
    "dl_ri", "ul_ri", "dlsch_errors", "pucch_dtx", "dl_bler", "dl_mcs",
    "ulsch_errors", "ulsch_dtx", "ul_bler", "ul_mcs", "nprb", "snr",
]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def record_to_row(record: UERecord) -> list[str]:
    """Serialize a record in CSV column order."""
    row = []
    for name in CSV_COLUMNS:
        value = getattr(record, name)
        if name == "timestamp":
            row.append(value.strftime(TIMESTAMP_FORMAT))
        elif name == "state":
            row.append(value.value if value is not None else "")
        else:
            row.append(str(value))
    return row


@dataclass(frozen=True)
class Fragment:
    """A successfully classified line: which kind, for which UE, and the parsed values."""

    kind: FragmentKind
    rnti: str
    values: dict[str, Any]

    @property
    def terminates(self) -> bool:
        return self.kind is FragmentKind.UL_PHY


@dataclass(frozen=True)
class ParseFailure:
    """A line that matched a fragment shape but carried an unparseable field."""

    line: str
    kind: FragmentKind
    reason: str
