"""
Test Configuration File

Provides a recording stand-in for the HID transport and sessions wired to it.
"""

import sys
from pathlib import Path

import pytest

# Make the project root importable without installing
root_path = Path(__file__).parent.parent
if str(root_path) not in sys.path:
    sys.path.insert(0, str(root_path))

from hid_peq.base import DeviceCommunicationError, DeviceNotConnectedError
from hid_peq.config import Settings
from hid_peq.session import PEQSession


class FakeTransport:
    """Records every report instead of writing to hardware"""

    def __init__(self, fail_after=None, on_send=None, before_send=None):
        self.sent = []
        self.handler = None
        self.closed = False
        self.fail_after = fail_after
        self.on_send = on_send
        self.before_send = before_send

    def send_report(self, report_id, payload):
        if self.before_send:
            self.before_send(self)
        if self.closed:
            raise DeviceNotConnectedError("Device not connected")
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise DeviceCommunicationError("device unplugged")
        self.sent.append((report_id, bytes(payload)))
        if self.on_send:
            self.on_send(self)

    def on_input_report(self, handler):
        self.handler = handler

    def close(self):
        self.closed = True

    def payloads(self):
        return [payload for _, payload in self.sent]


def device_info(vendor_id, name="Test DAC"):
    return {
        'vendor_id': vendor_id,
        'product_id': 0x0001,
        'product_string': name,
        'path': b'/dev/hidraw-test',
    }


@pytest.fixture
def make_session():
    """Factory: session attached to a FakeTransport for the given vendor ID"""

    def _make(vendor_id=0x0661, settings=None, **transport_kwargs):
        session = PEQSession(settings=settings or Settings.no_delay())
        transport = FakeTransport(**transport_kwargs)
        session.attach(transport, device_info(vendor_id))
        return session, transport

    return _make


@pytest.fixture
def savitech_peq_report():
    """Build a Savitech PEQ read response as delivered after report-ID stripping"""

    def _build(index, freq, q_raw, gain_raw, type_code):
        report = bytearray(63)
        report[0] = 0x80
        report[1] = 0x09
        report[4] = index
        report[27:29] = freq.to_bytes(2, 'little')
        report[29:31] = q_raw.to_bytes(2, 'little')
        report[31:33] = (gain_raw & 0xFFFF).to_bytes(2, 'little')
        report[33] = type_code
        return bytes(report)

    return _build
