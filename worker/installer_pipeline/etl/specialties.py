"""Specialty vocabulary and the keyword classifier used on installer websites."""

from typing import Dict, FrozenSet, Tuple

from installer_pipeline.models import Specialty

SPECIALTIES: Tuple[Specialty, ...] = (
    Specialty("battery_backup", "Battery Backup & Storage"),
    Specialty("ev_charger", "EV Charger Installation"),
    Specialty("tile_roof", "Tile Roof Installation"),
    Specialty("metal_roof", "Metal Roof Installation"),
    Specialty("ground_mount", "Ground Mount Systems"),
    Specialty("off_grid", "Off-Grid Systems"),
    Specialty("microinverters", "Microinverters"),
    Specialty("commercial_pv", "Commercial Solar"),
    Specialty("residential_pv", "Residential Solar"),
    Specialty("roofing", "Roofing Services"),
    Specialty("storage_only", "Storage Systems Only"),
    Specialty("solar_maintenance", "Solar Maintenance & Repair"),
    Specialty("energy_audit", "Energy Audits"),
    Specialty("financing", "Solar Financing"),
    Specialty("permits", "Permit Services"),
    Specialty("monitoring", "System Monitoring"),
)

SPECIALTY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "battery_backup": (
        "battery", "storage", "powerwall", "enphase iq battery", "solaredge home battery",
        "backup power", "energy storage", "tesla powerwall", "battery backup", "home battery",
    ),
    "ev_charger": (
        "ev charger", "evse", "level 2", "nema 14-50", "wall connector", "electric vehicle",
        "ev charging", "tesla charger", "chargepoint", "ev installation",
    ),
    "tile_roof": (
        "tile roof", "clay tile", "concrete tile", "spanish tile", "tile installation",
        "tile roofing", "roof tile",
    ),
    "metal_roof": (
        "metal roof", "standing seam", "corrugated metal", "steel roof", "aluminum roof",
        "metal roofing",
    ),
    "ground_mount": (
        "ground mount", "ground mounted", "field installation", "ground array",
        "pole mount", "ballasted system", "carport", "canopy",
    ),
    "off_grid": (
        "off grid", "off-grid", "remote power", "cabin solar", "hybrid inverter",
        "standalone system", "battery system", "grid-tie with battery",
    ),
    "microinverters": (
        "microinverter", "micro inverter", "enphase", "iq8", "iq7", "module level",
        "mlpe", "power optimizer",
    ),
    "commercial_pv": (
        "commercial", "business", "industrial", "c&i", "warehouse", "office building",
        "retail", "manufacturing", "agricultural",
    ),
    "residential_pv": (
        "residential", "home", "house", "homeowner", "rooftop", "family",
    ),
    "roofing": (
        "roofing", "re-roof", "roof replacement", "shingle", "comp roof", "asphalt",
        "roof repair", "roofing contractor",
    ),
    "storage_only": (
        "battery only", "storage only", "retrofit battery", "add battery",
        "existing solar",
    ),
    "solar_maintenance": (
        "maintenance", "repair", "cleaning", "service", "troubleshooting",
        "system monitoring", "performance optimization",
    ),
    "energy_audit": (
        "energy audit", "efficiency audit", "home energy assessment", "energy evaluation",
    ),
    "financing": (
        "financing", "solar loans", "lease", "ppa", "power purchase agreement",
        "solar financing", "payment plans", "zero down",
    ),
    "permits": (
        "permits", "permitting", "interconnection", "utility coordination",
        "ahj approval", "inspection",
    ),
    "monitoring": (
        "monitoring", "production monitoring", "system monitoring", "remote monitoring",
        "performance tracking", "enphase enlighten", "solaredge monitoring",
    ),
}


def classify(text: str) -> FrozenSet[str]:
    """Return the specialty slugs with at least one keyword present in ``text``."""

    lowered = (text or "").lower()
    if not lowered:
        return frozenset()
    return frozenset(
        slug
        for slug, keywords in SPECIALTY_KEYWORDS.items()
        if any(keyword in lowered for keyword in keywords)
    )


def keywords_for(slug: str) -> Tuple[str, ...]:
    return SPECIALTY_KEYWORDS.get(slug, ())
