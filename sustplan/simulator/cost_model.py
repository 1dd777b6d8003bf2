"""
Cloud Cost Model (mock)
=======================
Provider catalog: where each provider runs, what it charges, how efficient
its facilities are.

In a real system this would query provider pricing APIs. Here rates are
expressed per kWh of provisioned draw so a job's price scales with its power
ceiling and runtime, then adjusted by region and accelerator class.

All prices are Assumptions (rough on-demand list prices, 2024).
"""

from typing import Optional

from sustplan.shared.models import GpuClass


# ── Provider catalog ──────────────────────────────────────────────────
# rate_usd_per_kwh: base price per kWh of provisioned draw (Assumption)
# pue: facility Power Usage Effectiveness (Assumption, from sustainability reports)
# time_factor: runtime relative to the reference hardware, <= 1.0 (Assumption)
# regions: where the provider offers compute in this catalog

PROVIDERS = {
    "AWS": {
        "rate_usd_per_kwh": 3.10, "pue": 1.15, "time_factor": 0.95,
        "regions": ["US", "CA", "BR", "GB", "DE", "FR", "IE", "SE", "ES", "IT", "IN", "JP", "SG", "AU"],
    },
    "Azure": {
        "rate_usd_per_kwh": 3.20, "pue": 1.18, "time_factor": 0.97,
        "regions": ["US", "CA", "BR", "GB", "NO", "DE", "FR", "IE", "NL", "SE", "PL", "IT", "ES", "IN", "JP", "SG", "AU"],
    },
    "GCP": {
        "rate_usd_per_kwh": 2.90, "pue": 1.10, "time_factor": 0.93,
        "regions": ["US", "CA", "BR", "GB", "DE", "FR", "NL", "FI", "PL", "IT", "ES", "IN", "JP", "SG", "AU"],
    },
    "OVHcloud": {
        "rate_usd_per_kwh": 2.20, "pue": 1.26, "time_factor": 1.00,
        "regions": ["US", "CA", "GB", "DE", "FR", "PL", "SG", "AU"],
    },
}

# Power ceilings are quoted at the least efficient facility in the catalog.
WORST_PUE = max(p["pue"] for p in PROVIDERS.values())

# Regional price adjustment relative to the US (Assumption)
REGION_PRICE_MULTIPLIER = {
    "US": 1.00, "CA": 1.05, "BR": 1.45, "GB": 1.12, "NO": 1.18,
    "DE": 1.10, "FR": 1.08, "IE": 1.07, "NL": 1.09, "SE": 1.06,
    "FI": 1.04, "PL": 1.02, "ES": 1.05, "IT": 1.09,
    "IN": 0.92, "JP": 1.20, "SG": 1.18, "AU": 1.22,
}

# Accelerator capacity is priced well above its energy share (Assumption)
GPU_PRICE_MULTIPLIER = {
    GpuClass.NONE: 1.0,
    GpuClass.T4: 2.0,
    GpuClass.L4: 2.6,
    GpuClass.A10: 3.2,
    GpuClass.A100: 6.0,
    GpuClass.H100: 8.5,
}


def provider_rate(provider: str, region: str) -> float:
    """USD per kWh of provisioned draw for `provider` in `region`."""
    return PROVIDERS[provider]["rate_usd_per_kwh"] * REGION_PRICE_MULTIPLIER[region]


def providers_in_region(region: str, allowed: Optional[list] = None) -> list[str]:
    """
    Providers offering compute in `region`, sorted by name.

    allowed: optional allow-list of provider names (case-insensitive);
             None means every catalog provider.
    """
    allowed_keys = None
    if allowed is not None:
        allowed_keys = {a.strip().lower() for a in allowed}
    names = []
    for name, info in PROVIDERS.items():
        if region not in info["regions"]:
            continue
        if allowed_keys is not None and name.lower() not in allowed_keys:
            continue
        names.append(name)
    return sorted(names)


def eligible_offers(regions: list[str], allowed: Optional[list] = None) -> list[tuple[str, str]]:
    """Every (provider, region) pair available across `regions`, sorted."""
    offers = []
    for region in regions:
        for provider in providers_in_region(region, allowed):
            offers.append((provider, region))
    return sorted(offers)


def compute_job_cost(
    energy_kwh: float,
    provider: str,
    region: str,
    gpu_class: GpuClass,
    pricing_buffer: float = 1.0,
) -> float:
    """
    Price `energy_kwh` of provisioned draw on `provider` in `region`.

    Returns: cost in USD
    """
    return energy_kwh * provider_rate(provider, region) * GPU_PRICE_MULTIPLIER[gpu_class] * pricing_buffer
