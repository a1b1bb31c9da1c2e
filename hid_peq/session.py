"""Device session: the live handle, EQ state and paced packet sequencing"""

import logging
import threading
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from .base import (
    DEFAULT_FREQS,
    DEFAULT_Q,
    NUM_BANDS,
    Band,
    BandReport,
    BandUpdate,
    DeviceCommunicationError,
    DeviceHandle,
    DeviceNotConnectedError,
    EqState,
    FilterType,
    GainReport,
    InboundEvent,
    ProtocolCodec,
    ProtocolDecodeError,
    RawPacket,
    SetEnabled,
    VersionReport,
)
from .config import Settings
from .protocols import codec_for, resolve

logger = logging.getLogger(__name__)

Listener = Callable[[InboundEvent], None]


class _Cancelled(Exception):
    """Session was closed while an operation was in progress"""


class PEQSession:
    """Owns at most one device and the EQ state synced to it

    Inbound reports arrive on the transport's reader thread and are merged
    into single band slots under the session lock.
    """

    def __init__(self, settings: Optional[Settings] = None, eq_state: Optional[EqState] = None):
        self.settings = settings or Settings()
        self.eq_state = eq_state or EqState.default()
        self.global_gain = 0
        self.firmware_version: Optional[str] = None
        self.handle: Optional[DeviceHandle] = None
        self.codec: Optional[ProtocolCodec] = None
        self._transport = None
        self._lock = threading.RLock()
        # Held across the closed check and the write so close() cannot land in between
        self._send_lock = threading.RLock()
        self._closed = threading.Event()
        self._closed.set()
        self._listeners: List[Listener] = []

    @property
    def is_connected(self) -> bool:
        return self.handle is not None

    # --- Connection ---

    def attach(self, transport, device_info: Dict[str, Any]) -> DeviceHandle:
        """Take ownership of an open transport

        A previously attached device is closed first.

        Args:
            transport: Object with send_report(report_id, payload),
                on_input_report(handler) and close()
            device_info: Dict with vendor_id, product_id, product_string, path
        """
        if self.handle is not None:
            self.close()

        vendor_id = device_info['vendor_id']
        protocol = resolve(vendor_id)
        handle = DeviceHandle(
            vendor_id=vendor_id,
            product_id=device_info.get('product_id', 0),
            product_name=device_info.get('product_string') or 'Unknown',
            path=device_info.get('path', b''),
            protocol=protocol,
        )

        with self._lock:
            self._transport = transport
            self.codec = codec_for(protocol)
            self.handle = handle
            self.firmware_version = None
        self._closed.clear()
        transport.on_input_report(self.handle_input_report)

        logger.info("Connected to %s (VID: 0x%04X) using %s protocol",
                    handle.product_name, vendor_id, protocol.value)
        return handle

    def close(self) -> None:
        """Release the device; pending pauses return at once and nothing more is sent"""
        self._closed.set()
        with self._send_lock:
            with self._lock:
                transport, self._transport = self._transport, None
                handle, self.handle = self.handle, None
                self.codec = None
            if transport is not None:
                transport.on_input_report(None)
                transport.close()
        if handle is not None:
            logger.info("Disconnected from %s", handle.product_name)

    def subscribe(self, listener: Listener) -> None:
        """Call `listener` with every inbound event after it is applied"""
        self._listeners.append(listener)

    # --- Local state edits ---

    def update_band(self, index: int, update: BandUpdate) -> Band:
        with self._lock:
            return self.eq_state.apply(index, update)

    def toggle_band(self, index: int, enabled: bool) -> Band:
        band = self.update_band(index, SetEnabled(enabled))
        logger.info("Band %d %s", index + 1, "enabled" if enabled else "bypassed")
        return band

    def load_state(self, eq_state: EqState, global_gain: int = 0) -> None:
        """Copy an imported state into the session, slot by slot"""
        with self._lock:
            for band in eq_state:
                self.eq_state.bands[band.index] = replace(band)
            self.global_gain = global_gain

    def snapshot(self):
        """Consistent copy of (eq_state, global_gain)"""
        with self._lock:
            return self.eq_state.copy(), self.global_gain

    # --- Device operations ---

    def sync(self) -> bool:
        """Write global gain, then every band in index order, then commit

        Every packet except the commit is followed by the write pause,
        the global gain packet included.

        Returns:
            True if every packet was sent, False if a transport error or
            close() stopped the sync (the state is left intact for retry)
        """
        codec = self._require_codec()
        logger.info("Syncing via protocol: %s...", codec.protocol.value)

        def _sync():
            with self._lock:
                gain_packet = codec.encode_global_gain(self.global_gain)
            self._send(gain_packet)
            self._pause(self.settings.write_delay)

            for index in range(NUM_BANDS):
                with self._lock:
                    packets = codec.band_packets(self.eq_state[index])
                for packet in packets:
                    self._send(packet)
                    self._pause(self.settings.write_delay)

            for packet in codec.commit_packets():
                self._send(packet)

        if self._run("Sync", _sync):
            logger.info("Sync complete.")
            return True
        return False

    def set_global_gain(self, gain: int) -> bool:
        """Store the global gain and send it if a device is attached"""
        with self._lock:
            self.global_gain = gain
            codec = self.codec
        if codec is None:
            return False
        return self._run("Set global gain", lambda: self._send(codec.encode_global_gain(gain)))

    def save_to_flash(self) -> bool:
        codec = self._require_codec()
        if self._run("Save to flash", lambda: self._send(codec.encode_save())):
            logger.info("Saved to flash.")
            return True
        return False

    def request_read(self) -> bool:
        """Ask the device for version, global gain and every band

        Answers arrive through handle_input_report.

        Raises:
            UnsupportedOperationError: If the protocol has no read commands
        """
        codec = self._require_codec()
        info_requests, band_requests = codec.read_requests()
        logger.info("Reading device configuration...")

        def _read():
            for packet in info_requests:
                self._send(packet)
                self._pause(self.settings.read_delay)
            for packet in band_requests:
                self._send(packet)
                self._pause(self.settings.band_read_delay)

        if self._run("Read", _read):
            logger.info("Configuration requested.")
            return True
        return False

    def reset_to_defaults(self) -> bool:
        """Reset every band to its default in place, zero the global gain, then sync"""
        logger.info("Resetting to factory defaults...")
        with self._lock:
            for index, freq in enumerate(DEFAULT_FREQS):
                self.eq_state.bands[index] = Band(index=index, freq=freq, q=DEFAULT_Q)
            self.global_gain = 0
        if not self.is_connected:
            return False
        return self.sync()

    # --- Inbound ---

    def handle_input_report(self, report: bytes) -> None:
        codec = self.codec
        if codec is None:
            return

        try:
            event = codec.decode_inbound(report)
        except ProtocolDecodeError as e:
            logger.debug("Dropped input report: %s", e)
            return
        if event is None:
            return

        with self._lock:
            if isinstance(event, VersionReport):
                self.firmware_version = event.version
                logger.info("Firmware version: %s", event.version)
            elif isinstance(event, GainReport):
                self.global_gain = event.gain
            elif isinstance(event, BandReport):
                band = self.eq_state[event.index]
                band.freq = event.freq
                band.q = event.q
                band.gain = event.gain
                band.type = FilterType(event.type)
                # Firmware keeps no enable flag
                band.enabled = True

        for listener in list(self._listeners):
            listener(event)

    # --- Private helpers ---

    def _require_codec(self) -> ProtocolCodec:
        codec = self.codec
        if codec is None:
            raise DeviceNotConnectedError("Device not connected")
        return codec

    def _run(self, name: str, operation: Callable[[], None]) -> bool:
        try:
            operation()
        except (DeviceCommunicationError, DeviceNotConnectedError) as e:
            logger.error("%s failed: %s", name, e)
            return False
        except _Cancelled:
            logger.info("%s cancelled: device closed", name)
            return False
        return True

    def _send(self, packet: RawPacket) -> None:
        logger.debug("TX [%02X] %s", packet.report_id, packet.hex())
        with self._send_lock:
            transport = self._transport
            if self._closed.is_set() or transport is None:
                raise _Cancelled()
            try:
                transport.send_report(packet.report_id, packet.payload)
            except DeviceNotConnectedError:
                if self._closed.is_set():
                    raise _Cancelled() from None
                raise

    def _pause(self, seconds: float) -> None:
        if self._closed.wait(seconds):
            raise _Cancelled()
