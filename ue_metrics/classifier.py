"""Line classifier for gNB MAC scheduler UE dumps.

Example frame dump:

    [NR_MAC]   Frame.Slot 128.0
    UE RNTI 928c CU-UE-ID 1 in-sync PH 45 dB PCMAX 21 dBm, average RSRP -83 (17 meas)
    UE 928c: CQI 13, RI 2, PMI (0,0)
    UE 928c: UL-RI 1, TPMI 0
    UE 928c: dlsch_rounds 681/10/1/0, dlsch_errors 0, pucch0_DTX 9, BLER 0.02678 MCS (1) 22
    UE 928c: ulsch_rounds 1136/77/0/0, ulsch_errors 0, ulsch_DTX 0, BLER 0.07390 MCS (1) 6 (Qm 4 deltaMCS 0 dB) NPRB 106  SNR 17.5 dB
    UE 928c: MAC:    TX         344885 RX        2627890 bytes

Patterns are tried in FragmentKind order; the first match wins. Numeric
slots capture any token so that a bad value surfaces as a ParseFailure
instead of the line silently falling through.
"""

import re
from typing import Callable

from ue_metrics.models import Fragment, FragmentKind, ParseFailure, SyncState

# Numeric slot: anything up to whitespace or a comma.
_NUM = r"([^\s,]+)"

_PATTERNS: list[tuple[FragmentKind, re.Pattern, list[tuple[str, Callable]]]] = [
    (
        FragmentKind.BASIC,
        re.compile(
            rf"UE RNTI (\w+) CU-UE-ID {_NUM} (\S+) PH {_NUM} dB "
            rf"PCMAX {_NUM} dBm, average RSRP {_NUM}"
        ),
        [("ue_id", int), ("state", SyncState), ("ph", int), ("pcmax", int), ("rsrp", int)],
    ),
    (
        FragmentKind.CQI,
        re.compile(rf"UE (\w+): CQI {_NUM}, RI {_NUM}"),
        [("cqi", int), ("dl_ri", int)],
    ),
    (
        FragmentKind.UL_RI,
        re.compile(rf"UE (\w+): UL-RI {_NUM}"),
        [("ul_ri", int)],
    ),
    (
        FragmentKind.DL_PHY,
        re.compile(
            rf"UE (\w+):.*\bdlsch_errors {_NUM}, pucch0_DTX {_NUM}, BLER {_NUM} "
            rf"MCS (?:\(\d+\) )?{_NUM}"
        ),
        [("dlsch_errors", int), ("pucch_dtx", int), ("dl_bler", float), ("dl_mcs", int)],
    ),
    (
        FragmentKind.UL_PHY,
        re.compile(
            rf"UE (\w+):.*\bulsch_errors {_NUM}, ulsch_DTX {_NUM}, BLER {_NUM} "
            rf"MCS \(1\) {_NUM} .*NPRB {_NUM}\s+SNR {_NUM}"
        ),
        [
            ("ulsch_errors", int), ("ulsch_dtx", int), ("ul_bler", float),
            ("ul_mcs", int), ("nprb", int), ("snr", float),
        ],
    ),
]


_INT_RE = re.compile(r"-?[0-9]+")
_DECIMAL_RE = re.compile(r"-?[0-9]+(?:\.[0-9]+)?")


def _convert(converter: Callable, raw: str):
    # int() and float() also take "4_5", non-ASCII digits, "nan" and "1e3"
    if converter is int and not _INT_RE.fullmatch(raw):
        raise ValueError(f"not an integer: {raw!r}")
    if converter is float and not _DECIMAL_RE.fullmatch(raw):
        raise ValueError(f"not a decimal number: {raw!r}")
    return converter(raw)


def classify(line: str) -> Fragment | ParseFailure | None:
    """Classify one raw log line.

    Returns a Fragment on success, a ParseFailure when a recognised line
    carries an unparseable field, or None when no shape matches.
    """
    for kind, pattern, slots in _PATTERNS:
        m = pattern.search(line)
        if not m:
            continue
        rnti = m.group(1)
        values = {}
        for (name, converter), raw in zip(slots, m.groups()[1:]):
            try:
                values[name] = _convert(converter, raw)
            except ValueError as e:
                return ParseFailure(line=line, kind=kind, reason=f"{name}: {e}")
        return Fragment(kind=kind, rnti=rnti, values=values)
    return None
