from __future__ import annotations

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)

GATEWAY_SERVICE_TYPES = ("_owhttpd._tcp.local.", "_owserver._tcp.local.")


async def discover_gateways(timeout: float = 3.0) -> list[dict[str, Any]]:
    """Browse mDNS for 1-Wire gateways announcing themselves.

    Returns a list of dicts: {name, service, ip, port, hostname, url}.
    Gracefully returns [] if zeroconf is not installed.
    """
    try:
        from zeroconf import ServiceStateChange
        from zeroconf.asyncio import AsyncServiceBrowser, AsyncZeroconf
    except ImportError:
        logger.warning("zeroconf library not installed, mDNS discovery unavailable")
        return []

    found: set[tuple[str, str]] = set()
    zc = AsyncZeroconf()

    def on_state_change(
        zeroconf: Any, service_type: str, name: str, state_change: ServiceStateChange
    ) -> None:
        if state_change is ServiceStateChange.Added:
            found.add((service_type, name))

    browser = AsyncServiceBrowser(
        zc.zeroconf, list(GATEWAY_SERVICE_TYPES), handlers=[on_state_change]
    )

    await asyncio.sleep(timeout)

    gateways: list[dict[str, Any]] = []
    for service_type, name in sorted(found):
        info = await zc.zeroconf.async_get_service_info(service_type, name)
        if info is None:
            continue
        addresses = info.parsed_addresses()
        ip = addresses[0] if addresses else None
        gateways.append({
            "name": name,
            "service": service_type,
            "ip": ip,
            "port": info.port,
            "hostname": info.server,
            # only the HTTP flavour is reachable by OwHttpGateway
            "url": f"http://{ip}:{info.port}" if ip and service_type.startswith("_owhttpd") else None,
        })

    await browser.async_cancel()
    await zc.async_close()

    logger.info("mDNS discovery found %d gateway(s)", len(gateways))
    return gateways
