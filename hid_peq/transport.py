"""hidapi transport: one open HID device, raw report I/O"""

import logging
import threading
from typing import Callable, Optional

import hid

from .base import (
    REPORT_ID_DEFAULT,
    DeviceCommunicationError,
    DeviceNotConnectedError,
)

logger = logging.getLogger(__name__)

InputHandler = Callable[[bytes], None]


class HidTransport:
    """Sends output reports and delivers input reports from a reader thread"""

    READ_SIZE = 64
    READ_TIMEOUT_MS = 100

    def __init__(self, device_dict: dict, input_report_id: int = REPORT_ID_DEFAULT,
                 read_timeout_ms: int = READ_TIMEOUT_MS):
        self.device_dict = device_dict
        self.input_report_id = input_report_id
        self.read_timeout_ms = read_timeout_ms
        self.hid_device: Optional[hid.device] = None
        self._handler: Optional[InputHandler] = None
        self._stop = threading.Event()
        self._reader: Optional[threading.Thread] = None
        self._write_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self.hid_device is not None

    def open(self) -> None:
        """Open the device path and start listening for input reports"""
        if self.hid_device:
            return

        device = hid.device()
        try:
            device.open_path(self.device_dict['path'])
        except (OSError, IOError) as e:
            raise DeviceCommunicationError(
                f"Could not open {self.device_dict.get('product_string', 'device')}: {e}"
            ) from e
        device.set_nonblocking(False)
        self.hid_device = device

        self._stop.clear()
        self._reader = threading.Thread(target=self._read_loop, name="hid-peq-reader", daemon=True)
        self._reader.start()

        logger.info("Opened %s (VID: 0x%04X, PID: 0x%04X)",
                    self.device_dict.get('product_string', 'Unknown'),
                    self.device_dict['vendor_id'], self.device_dict.get('product_id', 0))

    def on_input_report(self, handler: Optional[InputHandler]) -> None:
        self._handler = handler

    def send_report(self, report_id: int, payload: bytes) -> None:
        """Write one output report

        Raises:
            DeviceNotConnectedError: If the transport is closed
            DeviceCommunicationError: If hidapi rejects the write
        """
        with self._write_lock:
            device = self.hid_device
            if not device:
                raise DeviceNotConnectedError("Device not connected")
            try:
                written = device.write([report_id] + list(payload))
            except (OSError, IOError, ValueError) as e:
                raise DeviceCommunicationError(f"HID write failed: {e}") from e

            if written is not None and written < 0:
                raise DeviceCommunicationError(f"HID write failed: {device.error()}")

        logger.debug("sent [%02X] %s", report_id, ' '.join(f'{b:02X}' for b in payload[:40]))

    def close(self) -> None:
        """Stop the reader and close the device"""
        self._stop.set()
        reader, self._reader = self._reader, None
        if reader and reader is not threading.current_thread():
            reader.join(timeout=(self.read_timeout_ms / 1000.0) + 1.0)

        # Never close the native handle under an in-flight write
        with self._write_lock:
            device, self.hid_device = self.hid_device, None
        if device:
            device.close()
            logger.info("Closed %s", self.device_dict.get('product_string', 'device'))

    def _read_loop(self) -> None:
        while not self._stop.is_set():
            device = self.hid_device
            if device is None:
                break
            try:
                raw = device.read(self.READ_SIZE, self.read_timeout_ms)
            except (OSError, IOError, ValueError) as e:
                if not self._stop.is_set():
                    logger.error("HID read failed: %s", e)
                break

            if not raw:
                continue

            # hidapi keeps the report ID in front of numbered reports
            data = bytes(raw[1:]) if raw[0] == self.input_report_id else bytes(raw)
            logger.debug("recv %s", ' '.join(f'{b:02X}' for b in data[:40]))

            handler = self._handler
            if handler is None:
                continue
            try:
                handler(data)
            except Exception:
                logger.exception("Input report handler failed")
