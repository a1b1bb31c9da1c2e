"""HID protocol codecs and vendor ID dispatch"""

from typing import Dict

from ..base import Protocol, ProtocolCodec
from .fiio import FiioCodec
from .moondrop import MoondropCodec
from .savitech import SavitechCodec

# Vendor IDs
VID_SAVITECH = 0x0661           # JCally, generic Savitech
VID_SAVITECH_OFFICIAL = 0x262A  # Fosi, iBasso, FiiO (older)
VID_COMTRUE = 0x2FC6            # Moondrop, Tanchjim (Comtrue CT7601)
VID_FIIO = 0x2972               # FiiO (JA11, KA17, ...)

VENDOR_PROTOCOLS: Dict[int, Protocol] = {
    VID_SAVITECH: Protocol.SAVITECH,
    VID_SAVITECH_OFFICIAL: Protocol.SAVITECH,
    VID_COMTRUE: Protocol.MOONDROP,
    VID_FIIO: Protocol.FIIO,
}

SUPPORTED_VENDOR_IDS = list(VENDOR_PROTOCOLS)

_CODECS: Dict[Protocol, ProtocolCodec] = {
    Protocol.SAVITECH: SavitechCodec(),
    Protocol.MOONDROP: MoondropCodec(),
    Protocol.FIIO: FiioCodec(),
}


def resolve(vendor_id: int) -> Protocol:
    """Map a USB vendor ID to its protocol family

    Unknown vendors fall back to SAVITECH, which most devices in this
    family implement.
    """
    return VENDOR_PROTOCOLS.get(vendor_id, Protocol.SAVITECH)


def codec_for(protocol: Protocol) -> ProtocolCodec:
    return _CODECS[Protocol(protocol)]


__all__ = [
    'FiioCodec',
    'MoondropCodec',
    'SavitechCodec',
    'SUPPORTED_VENDOR_IDS',
    'VENDOR_PROTOCOLS',
    'codec_for',
    'resolve',
]
