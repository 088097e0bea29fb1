import pytest

BASIC = "UE RNTI 928c CU-UE-ID 1 in-sync PH 45 dB PCMAX 21 dBm, average RSRP -83 (17 meas)"
CQI = "UE 928c: CQI 13, RI 2, PMI (0,0)"
UL_RI = "UE 928c: UL-RI 1, TPMI 0"
DL_PHY = "UE 928c: dlsch_rounds 681/10/1/0, dlsch_errors 0, pucch0_DTX 9, BLER 0.02678 MCS (1) 22"
UL_PHY = ("UE 928c: ulsch_rounds 1136/77/0/0, ulsch_errors 0, ulsch_DTX 0, BLER 0.07390 "
          "MCS (1) 6 (Qm 4 deltaMCS 0 dB) NPRB 106  SNR 17.5 dB")


def frame_lines(rnti: str = "928c") -> list[str]:
    """One complete frame dump for *rnti*, as the gNB prints it."""
    return [
        "[NR_MAC]   Frame.Slot 128.0",
        BASIC.replace("928c", rnti),
        CQI.replace("928c", rnti),
        UL_RI.replace("928c", rnti),
        DL_PHY.replace("928c", rnti),
        UL_PHY.replace("928c", rnti),
        f"UE {rnti}: MAC:    TX         344885 RX        2627890 bytes",
        f"UE {rnti}: LCID 1: TX            369 RX           1074 bytes",
    ]


@pytest.fixture
def frame():
    return frame_lines()


@pytest.fixture
def fixed_clock():
    from datetime import datetime

    return lambda: datetime(2024, 3, 1, 12, 30, 45)
