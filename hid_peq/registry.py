"""Device discovery and connection registry"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import hid

from .base import REPORT_ID_FIIO, REPORT_ID_DEFAULT, DeviceNotFoundError, Protocol
from .protocols import SUPPORTED_VENDOR_IDS, resolve
from .transport import HidTransport

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """Finds PEQ-capable HID devices and opens transports to them"""

    def __init__(self, vendor_ids: Optional[Iterable[int]] = None,
                 read_timeout_ms: int = HidTransport.READ_TIMEOUT_MS):
        """Initialize registry

        Args:
            vendor_ids: USB vendor IDs to accept (defaults to every mapped vendor)
            read_timeout_ms: hidapi read timeout used by opened transports
        """
        self.vendor_ids = list(vendor_ids) if vendor_ids is not None else list(SUPPORTED_VENDOR_IDS)
        self.read_timeout_ms = read_timeout_ms
        self.discovered_devices: List[Dict[str, Any]] = []

    def discover_devices(self) -> List[Dict[str, Any]]:
        """Discover connected devices from the vendor filter list

        Returns:
            List of device info dicts with keys:
                - id: Device index for selection
                - vendor_id, product_id: USB identifiers
                - product_string, manufacturer_string, serial_number
                - path: HID device path
                - protocol: Protocol the vendor ID resolves to
        """
        self.discovered_devices = []

        matched = [d for d in hid.enumerate() if d['vendor_id'] in self.vendor_ids]
        for d in matched:
            logger.debug("Found device: %s (VID 0x%04X)", d.get('product_string'), d['vendor_id'])

        # Stable ordering by product string then path
        matched.sort(key=lambda d: (d.get('product_string') or '', str(d['path'])))

        for device_dict in matched:
            self.discovered_devices.append({
                'id': len(self.discovered_devices),
                'vendor_id': device_dict['vendor_id'],
                'product_id': device_dict['product_id'],
                'product_string': device_dict.get('product_string') or 'Unknown',
                'manufacturer_string': device_dict.get('manufacturer_string') or '',
                'serial_number': device_dict.get('serial_number') or '',
                'path': device_dict['path'],
                'protocol': resolve(device_dict['vendor_id']),
                '_device_dict': device_dict,
            })

        return self.discovered_devices

    def select_device(self, device_id: Optional[int] = None) -> Dict[str, Any]:
        """Select a device from discovered devices

        Args:
            device_id: Device index (0-based), or None to auto-select if only one device

        Raises:
            DeviceNotFoundError: If nothing was discovered
            ValueError: If device_id is invalid or several devices match without a selection
        """
        if not self.discovered_devices:
            raise DeviceNotFoundError("No PEQ devices found. Connect a device and try again.")

        if device_id is None:
            if len(self.discovered_devices) == 1:
                return self.discovered_devices[0]
            device_list = "\n".join(
                f"  {d['id']}: {d['product_string']} ({d['protocol'].value})"
                for d in self.discovered_devices
            )
            raise ValueError(f"Multiple devices found. Specify device_id:\n{device_list}")

        if device_id < 0 or device_id >= len(self.discovered_devices):
            raise ValueError(
                f"Invalid device_id {device_id}. "
                f"Valid range: 0-{len(self.discovered_devices) - 1}"
            )

        return self.discovered_devices[device_id]

    def open_device(self, device_id: Optional[int] = None):
        """Open a transport to the selected device

        Returns:
            (device_info, HidTransport) with the transport already open
        """
        device_info = self.select_device(device_id)
        report_id = REPORT_ID_FIIO if device_info['protocol'] is Protocol.FIIO else REPORT_ID_DEFAULT
        transport = HidTransport(
            device_info['_device_dict'],
            input_report_id=report_id,
            read_timeout_ms=self.read_timeout_ms,
        )
        transport.open()
        return device_info, transport
