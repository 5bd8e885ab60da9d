"""HTTP client for the local device service.

The device service runs beside the POS terminal and reports the device id
the backend uses to find the kassa, plus host network details.
"""

import logging
from dataclasses import dataclass, field

import httpx
from django.conf import settings

from .exceptions import SystemServiceError, SystemServiceUnavailable

logger = logging.getLogger(__name__)


@dataclass
class NetworkInterface:
    """One network interface reported by the device service."""

    name: str
    ip_address: str
    mac_address: str
    is_up: bool
    is_loopback: bool


@dataclass
class SystemInfo:
    """Host details reported by the device service."""

    hostname: str
    ip_addresses: list[NetworkInterface]
    mac_addresses: list[str] = field(default_factory=list)
    os_info: dict = field(default_factory=dict)
    working_dir: str = ""
    timestamp: str = ""

    @property
    def primary_mac_address(self) -> str | None:
        """MAC of the first interface that is up and not loopback."""
        for iface in self.ip_addresses:
            if iface.is_up and not iface.is_loopback and iface.mac_address:
                return iface.mac_address
        return self.mac_addresses[0] if self.mac_addresses else None


def _get_client() -> httpx.Client:
    """Get a configured httpx client."""
    return httpx.Client(
        base_url=settings.POS_SYSTEM_SERVICE_URL,
        timeout=settings.POS_SYSTEM_SERVICE_TIMEOUT,
        headers={"Accept": "application/json"},
    )


def check_health() -> bool:
    """Check if the device service answers.

    Returns:
        True if service is healthy, False otherwise.
    """
    try:
        with _get_client() as client:
            response = client.get("/api/system/info")
            if response.status_code == 200:
                data = response.json()
                return bool(data.get("success"))
            return False
    except (httpx.RequestError, ValueError) as e:
        logger.warning("Device service health check failed: %s", e)
        return False


def get_device_id() -> str | None:
    """Read this terminal's device id.

    Returns:
        The configured device id, or None when the service is down or the
        device has not been configured.
    """
    try:
        with _get_client() as client:
            response = client.get("/api/system/info")
            data = response.json()
    except (httpx.RequestError, ValueError) as e:
        logger.error("Error getting device ID: %s", e)
        return None

    if not isinstance(data, dict) or not data.get("success"):
        return None
    device_config = (data.get("data") or {}).get("deviceConfig") or {}
    return device_config.get("deviceId") or None


def get_system_info() -> SystemInfo:
    """Get host and network details from the device service.

    Raises:
        SystemServiceError: Service answered with an error or malformed data
        SystemServiceUnavailable: Service is not running or timed out
    """
    url = settings.POS_SYSTEM_SERVICE_URL
    try:
        with _get_client() as client:
            response = client.get("/system-info")
    except httpx.TimeoutException as e:
        logger.error("Device service timed out: %s", e)
        raise SystemServiceUnavailable(
            f"System service request timed out. Please ensure the service is running on {url}.",
            status=408,
        ) from e
    except httpx.RequestError as e:
        logger.error("Device service unavailable: %s", e)
        raise SystemServiceUnavailable(
            f"Cannot connect to system service. Please ensure the service is running on {url}.",
        ) from e

    if response.status_code != 200:
        raise SystemServiceError(
            f"System service returned {response.status_code}: {response.reason_phrase}",
            status=response.status_code,
        )

    try:
        body = response.json()
    except ValueError as e:
        raise SystemServiceError("Invalid response format from system service.", status=502) from e

    if not isinstance(body, dict) or not body.get("success") or not body.get("data"):
        raise SystemServiceError("Invalid response from system service")

    data = body["data"]
    if not isinstance(data.get("ipAddresses"), list):
        raise SystemServiceError("Invalid system info data: missing ipAddresses")

    return SystemInfo(
        hostname=data.get("hostname", ""),
        ip_addresses=[
            NetworkInterface(
                name=iface.get("name", ""),
                ip_address=iface.get("ipAddress", ""),
                mac_address=iface.get("macAddress", ""),
                is_up=bool(iface.get("isUp")),
                is_loopback=bool(iface.get("isLoopback")),
            )
            for iface in data["ipAddresses"]
        ],
        mac_addresses=list(data.get("macAddresses") or []),
        os_info=data.get("osInfo") or {},
        working_dir=data.get("workingDir", ""),
        timestamp=data.get("timestamp", ""),
    )
