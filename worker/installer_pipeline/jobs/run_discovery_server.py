"""HTTP entrypoint that triggers installer discovery and enrichment runs."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from installer_pipeline.core.config import get_settings
from installer_pipeline.core.db import PostgresInstallerStore
from installer_pipeline.core.errors import ConfigurationError, UpstreamServiceError
from installer_pipeline.core.rate_limiter import get_rate_limiter
from installer_pipeline.jobs.run_discovery import enrich_installer, run_discovery

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & store ----------
app = Flask(__name__)
_store = PostgresInstallerStore()

_TRUE_VALUES = {"1", "true", "yes"}

# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, no database round trip."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": settings.worker_port,
                "discovery_radius_meters": settings.discovery_radius_meters,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


def _optional_float(payload: Dict[str, Any], key: str) -> Optional[float]:
    raw = payload.get(key)
    if raw is None or raw == "":
        return None
    return float(raw)


def _as_bool(raw: Any, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in _TRUE_VALUES


@app.post("/discover")
def discover() -> Any:
    """
    Run a discovery pass.
    JSON fields: lat + lon, or location; optional radiusMeters (<= 50000) and enrich (bool).
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    try:
        lat = _optional_float(payload, "lat")
        lon = _optional_float(payload, "lon")
        radius_raw = payload.get("radiusMeters")
        radius = int(radius_raw) if radius_raw not in (None, "") else None
    except (TypeError, ValueError):
        return jsonify({"error": "lat, lon and radiusMeters must be numeric"}), 400

    location = payload.get("location")
    enrich = _as_bool(payload.get("enrich"), True)

    try:
        result = run_discovery(
            _store,
            lat=lat,
            lon=lon,
            location=str(location).strip() if location else None,
            radius_meters=radius,
            enrich=enrich,
            limiter=get_rate_limiter(),
        )
    except ConfigurationError as exc:
        return jsonify({"error": str(exc)}), 400
    except UpstreamServiceError as exc:
        logger.error("Discovery failed: %s", exc)
        return jsonify({"error": "Failed to discover installers", "details": str(exc)}), 502

    return jsonify({"success": True, **result.to_dict()}), 200


@app.post("/enrich/<installer_id>")
def enrich(installer_id: str) -> Any:
    """Re-scan a single installer's website and replace its specialties."""

    installer = _store.get_installer(installer_id)
    if installer is None:
        return jsonify({"error": "Installer not found"}), 404
    if not installer.website:
        return jsonify({"error": "No website URL available for this installer"}), 400

    result = enrich_installer(_store, installer, limiter=get_rate_limiter())
    if not result.success:
        return jsonify({"success": False, "error": result.error, "installer": installer.to_dict()}), 200

    return (
        jsonify(
            {
                "success": True,
                "installer": installer.to_dict(),
                "enrichment": {
                    "specialtiesFound": len(result.specialties),
                    "specialties": result.specialties,
                    "scannedAt": result.scanned_at.isoformat(),
                },
            }
        ),
        200,
    )


def main() -> None:
    """Bind on $PORT when the platform injects one, else the configured worker port."""
    env_port = os.getenv("PORT")
    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
