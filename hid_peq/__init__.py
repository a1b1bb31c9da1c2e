"""PEQ device protocol layer

Drives the parametric EQ of Savitech, Moondrop/Comtrue and FiiO USB DACs
over HID: vendor ID dispatch, per-family packet codecs and the Q30 biquad
coefficient engines the firmwares expect.
"""

from .base import (
    NUM_BANDS,
    Band,
    BandUpdate,
    DeviceCommunicationError,
    DeviceError,
    DeviceHandle,
    DeviceNotConnectedError,
    DeviceNotFoundError,
    ConfigurationError,
    EqState,
    FilterType,
    ProfileValidationError,
    Protocol,
    ProtocolCodec,
    ProtocolDecodeError,
    RawPacket,
    SetEnabled,
    SetFilterType,
    SetFrequency,
    SetGain,
    SetQ,
    UnsupportedOperationError,
)
from .config import Settings, load_settings
from .protocols import codec_for, resolve
from .session import PEQSession

__all__ = [
    'NUM_BANDS',
    'Band',
    'BandUpdate',
    'ConfigurationError',
    'DeviceCommunicationError',
    'DeviceError',
    'DeviceHandle',
    'DeviceNotConnectedError',
    'DeviceNotFoundError',
    'EqState',
    'FilterType',
    'PEQSession',
    'ProfileValidationError',
    'Protocol',
    'ProtocolCodec',
    'ProtocolDecodeError',
    'RawPacket',
    'SetEnabled',
    'SetFilterType',
    'SetFrequency',
    'SetGain',
    'SetQ',
    'Settings',
    'UnsupportedOperationError',
    'codec_for',
    'load_settings',
    'resolve',
]
