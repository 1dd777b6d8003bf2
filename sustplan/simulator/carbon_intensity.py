"""
Grid Carbon Intensity (mock)
============================
Static grid carbon intensity profiles (gCO₂/kWh) per execution region, and the
time windows a job can be scheduled into.

No live data: this replaces what WattTime or Electricity Maps would provide.
Each region has a base load, a daily swing driven by renewables, and a noise
level. The planner never knows the exact start hour, so the "highest
plausible" intensity of a region is base + amplitude + 2σ. Deferred windows
are planned into the cleaner part of the daily cycle.

All numbers are Assumptions unless marked Known.
"""

from dataclasses import dataclass

import pandas as pd

from sustplan.shared.models import REGIONS


# ── Region carbon profiles ────────────────────────────────────────────
# base_intensity: annual average gCO₂/kWh (Known, national grid averages, rounded)
# amplitude: daily swing due to renewables / demand (Assumption)
# noise_std: hour-to-hour variation (Assumption)

REGION_PROFILES = {
    "US": {"base_intensity": 370, "amplitude": 80,  "noise_std": 30, "source": "EPA eGRID 2022 — US average"},
    "CA": {"base_intensity": 120, "amplitude": 30,  "noise_std": 15, "source": "Canada NIR 2023"},
    "BR": {"base_intensity": 100, "amplitude": 25,  "noise_std": 15, "source": "ONS Brazil 2023"},
    "GB": {"base_intensity": 210, "amplitude": 70,  "noise_std": 35, "source": "NESO carbon intensity 2023"},
    "NO": {"base_intensity": 30,  "amplitude": 8,   "noise_std": 5,  "source": "Statnett 2023"},
    "DE": {"base_intensity": 380, "amplitude": 120, "noise_std": 45, "source": "UBA 2023"},
    "FR": {"base_intensity": 60,  "amplitude": 20,  "noise_std": 10, "source": "RTE eco2mix 2023"},
    "IE": {"base_intensity": 300, "amplitude": 100, "noise_std": 50, "source": "EirGrid 2023"},
    "NL": {"base_intensity": 330, "amplitude": 90,  "noise_std": 40, "source": "CBS 2023"},
    "SE": {"base_intensity": 30,  "amplitude": 10,  "noise_std": 5,  "source": "Swedish Energy Agency 2023"},
    "FI": {"base_intensity": 80,  "amplitude": 25,  "noise_std": 10, "source": "Fingrid 2023"},
    "PL": {"base_intensity": 700, "amplitude": 60,  "noise_std": 40, "source": "KOBiZE 2023"},
    "ES": {"base_intensity": 150, "amplitude": 60,  "noise_std": 25, "source": "REE 2023"},
    "IT": {"base_intensity": 320, "amplitude": 70,  "noise_std": 30, "source": "ISPRA 2023"},
    "IN": {"base_intensity": 700, "amplitude": 50,  "noise_std": 40, "source": "CEA India 2022"},
    "JP": {"base_intensity": 460, "amplitude": 60,  "noise_std": 30, "source": "METI 2022"},
    "SG": {"base_intensity": 410, "amplitude": 20,  "noise_std": 15, "source": "EMA Singapore 2022"},
    "AU": {"base_intensity": 520, "amplitude": 110, "noise_std": 45, "source": "AEMO NEM 2023"},
}

MIN_INTENSITY = 5          # gCO₂/kWh floor, same clamp as the hourly model
NOISE_SIGMAS = 2           # ceilings sit 2σ above the modeled curve


@dataclass(frozen=True)
class TimeWindow:
    """
    A schedulable window.

    swing: position on the daily cycle, +1.0 = dirtiest hour, -1.0 = cleanest.
    delay_hours: how long after the plan date the window opens.
    """
    label: str
    delay_hours: float
    swing: float

    @property
    def deferred(self) -> bool:
        return self.delay_hours > 0


# Immediate start can land on any hour, so it is priced at the peak.
IMMEDIATE_WINDOW = TimeWindow("Immediate window", 0.0, 1.0)

DEFERRED_WINDOWS = (
    TimeWindow("Next low-carbon window (+12h)", 12.0, -0.5),
    TimeWindow("Overnight off-peak window (+24h)", 24.0, -1.0),
)


def windows_for(batchable_shiftable: bool) -> list[TimeWindow]:
    """Immediate window first, then the deferred windows for shiftable jobs."""
    if batchable_shiftable:
        return [IMMEDIATE_WINDOW, *DEFERRED_WINDOWS]
    return [IMMEDIATE_WINDOW]


def window_rank(window: TimeWindow) -> int:
    """0 for the immediate window, then catalog order of the deferred windows."""
    if window == IMMEDIATE_WINDOW:
        return 0
    return DEFERRED_WINDOWS.index(window) + 1


def window_intensity(region: str, window: TimeWindow) -> float:
    """
    Intensity ceiling (gCO₂/kWh) for running in `region` during `window`.

    Raises KeyError for a region missing from REGION_PROFILES; the region
    catalog and this table are kept in sync (checked by tests).
    """
    profile = REGION_PROFILES[region]
    intensity = (profile["base_intensity"]
                 + profile["amplitude"] * window.swing
                 + NOISE_SIGMAS * profile["noise_std"])
    return float(max(MIN_INTENSITY, intensity))


def max_plausible_intensity(region: str) -> float:
    """Highest plausible intensity for the region over any start hour."""
    return window_intensity(region, IMMEDIATE_WINDOW)


def intensity_table(regions=None) -> pd.DataFrame:
    """
    Intensity ceilings per region and window, for methodology reports.

    Returns:
        DataFrame with columns: [region, region_name, window, delay_hours, intensity_gco2_kwh, source]
    """
    if regions is None:
        regions = sorted(REGION_PROFILES)
    rows = []
    for region in regions:
        for window in (IMMEDIATE_WINDOW, *DEFERRED_WINDOWS):
            rows.append({
                "region": region,
                "region_name": REGIONS[region]["name"],
                "window": window.label,
                "delay_hours": window.delay_hours,
                "intensity_gco2_kwh": round(window_intensity(region, window), 1),
                "source": REGION_PROFILES[region]["source"],
            })
    return pd.DataFrame(rows)
