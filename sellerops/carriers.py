# sellerops/carriers.py
# Shipping partners: name cleanup, public tracking links, live Delhivery polling

from __future__ import annotations

import logging
import re
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from sellerops import config
from sellerops.errors import CarrierTrackingError
from sellerops.status_vocab import EntityType

_logger = logging.getLogger(__name__)

DELHIVERY = "DELHIVERY"
SHADOWFAX = "SHADOWFAX"
XPRESSBEES = "XPRESSBEES"
BLUEDART = "BLUEDART"
DTDC = "DTDC"
ECOM = "ECOM"
FEDEX = "FEDEX"

# substring -> partner, checked in this order ("ECOM EXPRESS" contains XPRESS)
_PARTNER_KEYS = [
    ("DELHIVERY", DELHIVERY),
    ("SHADOWFAX", SHADOWFAX),
    ("ECOM", ECOM),
    ("XPRESS", XPRESSBEES),
    ("BLUEDART", BLUEDART),
    ("DTDC", DTDC),
    ("FEDEX", FEDEX),
]

_TRACKING_URLS = {
    DELHIVERY: "https://www.delhivery.com/track/package/{awb}",
    SHADOWFAX: "https://shadowfax.in/track/{awb}",
    XPRESSBEES: "https://www.xpressbees.com/track/{awb}",
    BLUEDART: "https://www.bluedart.com/tracking?awb={awb}",
    DTDC: "https://www.dtdc.in/tracking/tracking_results.asp?cnno={awb}",
    ECOM: "https://ecomexpress.in/tracking/?awb={awb}",
}


def normalize_carrier(name) -> str:
    """'Delhivery Surface', 'delhivery-express' -> 'DELHIVERY'. Unknown -> ''."""
    s = re.sub(r"[^A-Z]", "", str(name or "").upper())
    if not s:
        return ""
    for key, partner in _PARTNER_KEYS:
        if key in s:
            return partner
    return ""


def tracking_url(carrier, awb) -> str:
    awb = str(awb or "").strip()
    if not awb:
        return ""
    tpl = _TRACKING_URLS.get(normalize_carrier(carrier))
    if not tpl:
        return ""
    return tpl.format(awb=urllib.parse.quote(awb, safe=""))


# -----------------------------------------------------------------------------
# Carrier status -> our status text (what the sync job stores)
# -----------------------------------------------------------------------------
def carrier_status_to_our_status(entity_type, carrier_status) -> str:
    s = str(carrier_status or "").lower()
    et = EntityType.parse(entity_type)

    # "out for delivery" also contains "deliver", so it is tested first
    if et is EntityType.RETURN:
        if "out for" in s or "transit" in s or "received" in s:
            return "IN_TRANSIT"
        if "deliver" in s:
            return "RETURN_DELIVERED"
        if "pickup" in s:
            return "pickup_scheduled"
        if "cancel" in s:
            return "rejected"
        return "initiated"

    if "out for" in s:
        return "Out for Delivery"
    if "deliver" in s:
        return "Delivered"
    if "transit" in s or "received" in s:
        return "Shipped"
    if "cancel" in s:
        return "Cancelled"
    return "Shipped"


# -----------------------------------------------------------------------------
# Delhivery payload parsing
# -----------------------------------------------------------------------------
@dataclass
class TrackingScan:
    timestamp: str = ""
    location: str = ""
    status: str = ""
    description: str = ""


@dataclass
class TrackingResult:
    awb: str
    status: str
    location: str = ""
    scans: list[TrackingScan] = field(default_factory=list)

    def to_tracking_data(self) -> dict:
        """The `trackingData` object stored on an order / return."""
        return {
            "awb": self.awb,
            "status": self.status,
            "currentLocation": self.location,
            "trackingHistory": [s.__dict__.copy() for s in self.scans],
        }


def _first(d: dict, *keys) -> Any:
    for k in keys:
        v = d.get(k)
        if v not in (None, "", []):
            return v
    return None


def _shipments(payload: Any) -> list[dict]:
    if isinstance(payload, list):
        return [p for p in payload if isinstance(p, dict)]
    if not isinstance(payload, dict):
        return []
    for key in ("ShipmentData", "shipmentData", "shipments", "packages", "data"):
        v = payload.get(key)
        if isinstance(v, list):
            return [p for p in v if isinstance(p, dict)]
    return []


def _parse_scans(shipment: dict) -> list[TrackingScan]:
    scans = []
    for raw in shipment.get("Scans") or shipment.get("Scan") or []:
        if not isinstance(raw, dict):
            continue
        d = raw.get("ScanDetail") if isinstance(raw.get("ScanDetail"), dict) else raw
        scans.append(
            TrackingScan(
                timestamp=str(_first(d, "ScanDateTime", "Scan_Date", "scanDate", "timestamp") or ""),
                location=str(_first(d, "ScannedLocation", "Scan_Location", "scanLocation", "location") or ""),
                status=str(_first(d, "Scan", "Status", "status", "scanStatus") or ""),
                description=str(_first(d, "Instructions", "Remarks", "remarks", "description") or ""),
            )
        )
    return scans


def parse_delhivery_payload(payload: Any) -> dict[str, TrackingResult]:
    """Delhivery packages/json response -> {awb: TrackingResult}. Unknown shapes -> {}."""
    if isinstance(payload, dict) and payload.get("Error"):
        _logger.warning("Delhivery error payload: %s", payload.get("Error"))
        return {}
    if isinstance(payload, dict) and "Data does not exists" in str(payload.get("rmk") or ""):
        return {}

    out: dict[str, TrackingResult] = {}
    for entry in _shipments(payload):
        s = entry.get("Shipment") or entry.get("shipment") or entry
        if not isinstance(s, dict):
            continue

        awb = str(_first(s, "AWB", "Awb", "Waybill", "waybill", "awbNumber") or "").strip()
        status_obj = s.get("Status")
        if isinstance(status_obj, dict):
            status = _first(status_obj, "Status", "status") or ""
            location = _first(status_obj, "StatusLocation") or ""
        else:
            status = status_obj or _first(s, "status", "CurrentStatus", "currentStatus") or ""
            location = _first(s, "Current_Status_Location", "currentLocation", "location") or ""

        if not awb:
            continue
        out[awb] = TrackingResult(awb=awb, status=str(status), location=str(location), scans=_parse_scans(s))
    return out


# -----------------------------------------------------------------------------
# Live client
# -----------------------------------------------------------------------------
def build_session(retries: int = 3, backoff: float = 0.7) -> requests.Session:
    s = requests.Session()
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=backoff,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset(["GET"]),
        respect_retry_after_header=True,
        raise_on_status=False,
    )
    s.mount("https://", HTTPAdapter(max_retries=retry))
    s.mount("http://", HTTPAdapter(max_retries=retry))
    s.headers.update({"Accept": "application/json"})
    return s


class DelhiveryTracker:
    """
    Polls Delhivery's tracking API.

    Credentials come from `token_provider` (called per request so a rotated key
    is picked up); nothing is read from globals here.
    """

    carrier = DELHIVERY

    def __init__(
        self,
        token_provider: Callable[[], str] = config.delhivery_token,
        base_url: str = config.DELHIVERY_BASE_URL,
        timeout: float = config.TRACKING_TIMEOUT,
        batch_size: int = config.TRACKING_BATCH_SIZE,
        session: Optional[requests.Session] = None,
    ):
        self.token_provider = token_provider
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.batch_size = max(1, int(batch_size))
        self.session = session or build_session()

    @property
    def enabled(self) -> bool:
        return bool((self.token_provider() or "").strip())

    def _fetch(self, awbs: list[str]) -> dict[str, TrackingResult]:
        url = f"{self.base_url}/api/v1/packages/json/"
        params = {"waybill": ",".join(awbs), "token": self.token_provider()}
        try:
            r = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise CarrierTrackingError(f"Delhivery request failed: {e}", carrier=self.carrier) from e

        _logger.debug("[Delhivery] GET %s waybills=%d -> %s", url, len(awbs), r.status_code)
        if r.status_code >= 400:
            raise CarrierTrackingError(
                f"Delhivery returned HTTP {r.status_code}",
                carrier=self.carrier,
                status_code=r.status_code,
            )
        try:
            payload = r.json()
        except ValueError as e:
            raise CarrierTrackingError("Delhivery returned a non-JSON body", carrier=self.carrier) from e
        return parse_delhivery_payload(payload)

    def track_many(self, awbs: Iterable[str]) -> dict[str, TrackingResult]:
        if not self.enabled:
            _logger.warning("Delhivery tracking disabled: no API key configured")
            return {}

        unique = list(dict.fromkeys(str(a).strip() for a in awbs if str(a or "").strip()))
        results: dict[str, TrackingResult] = {}
        for start in range(0, len(unique), self.batch_size):
            chunk = unique[start : start + self.batch_size]
            results.update(self._fetch(chunk))
        _logger.info("Delhivery tracked %d/%d waybills", len(results), len(unique))
        return results

    def track(self, awb: str) -> Optional[TrackingResult]:
        return self.track_many([awb]).get(str(awb).strip())
