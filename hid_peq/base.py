"""Base classes and data structures for PEQ protocol codecs"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterator, List, Optional, Tuple, Union


# Protocol constants shared by every family
NUM_BANDS = 8
PACKET_SIZE = 63
REPORT_ID_DEFAULT = 0x4B  # 75
REPORT_ID_FIIO = 0x07

DEFAULT_FREQS = [40, 100, 250, 500, 1000, 3000, 8000, 16000]
DEFAULT_LABELS = [
    "Sub-Bass",
    "Bass",
    "Low-Mids",
    "Mids",
    "Mids",
    "High-Mids",
    "Presence",
    "Air",
]
DEFAULT_Q = 0.75


# Custom exception hierarchy

class DeviceError(Exception):
    """Base exception for PEQ device errors"""


class DeviceNotConnectedError(DeviceError):
    """Device is not connected"""


class DeviceNotFoundError(DeviceError):
    """Device not found during discovery"""


class DeviceCommunicationError(DeviceError):
    """HID report could not be sent or received"""


class ProtocolDecodeError(DeviceError):
    """Inbound report is too short or refers to a band that does not exist"""


class ConfigurationError(DeviceError):
    """Caller asked for something the layer cannot do"""


class UnsupportedOperationError(ConfigurationError):
    """Operation is not part of the device's protocol"""


class ProfileValidationError(ConfigurationError):
    """EQ state or profile validation failed"""


class Protocol(Enum):
    SAVITECH = "SAVITECH"
    MOONDROP = "MOONDROP"
    FIIO = "FIIO"


class FilterType(Enum):
    """Filter shapes, valued by their profile names"""
    PEAK = "PK"
    LOW_SHELF = "LSQ"
    HIGH_SHELF = "HSQ"


# Tagged band updates

@dataclass(frozen=True)
class SetFrequency:
    freq: int


@dataclass(frozen=True)
class SetGain:
    gain: float


@dataclass(frozen=True)
class SetQ:
    q: float


@dataclass(frozen=True)
class SetFilterType:
    type: FilterType


@dataclass(frozen=True)
class SetEnabled:
    enabled: bool


BandUpdate = Union[SetFrequency, SetGain, SetQ, SetFilterType, SetEnabled]


@dataclass
class Band:
    """One parametric filter stage, mapped to hardware slot `index`"""
    index: int
    freq: int  # Frequency in Hz
    gain: float = 0.0  # Gain in dB, kept while the band is bypassed
    q: float = DEFAULT_Q
    type: FilterType = FilterType.PEAK
    enabled: bool = True

    @property
    def effective_gain(self) -> float:
        """Gain actually written to the device (0 when bypassed)"""
        return self.gain if self.enabled else 0.0

    def apply(self, update: BandUpdate) -> None:
        """Apply a tagged update to the matching field"""
        if isinstance(update, SetFrequency):
            self.freq = int(update.freq)
        elif isinstance(update, SetGain):
            self.gain = float(update.gain)
        elif isinstance(update, SetQ):
            self.q = float(update.q)
        elif isinstance(update, SetFilterType):
            self.type = FilterType(update.type)
        elif isinstance(update, SetEnabled):
            self.enabled = bool(update.enabled)
        else:
            raise ConfigurationError(f"Unknown band update: {update!r}")


@dataclass
class EqState:
    """All NUM_BANDS bands in hardware slot order"""
    bands: List[Band] = field(default_factory=list)

    def __post_init__(self):
        """Validate band count and slot numbering"""
        if not isinstance(self.bands, list):
            raise ProfileValidationError("Bands must be a list")
        if len(self.bands) != NUM_BANDS:
            raise ProfileValidationError(
                f"EQ state needs exactly {NUM_BANDS} bands, got {len(self.bands)}"
            )
        for i, band in enumerate(self.bands):
            if not isinstance(band, Band):
                raise ProfileValidationError(f"Band {i} is not a Band instance")
            if band.index != i:
                raise ProfileValidationError(
                    f"Band at position {i} has index {band.index}"
                )

    @classmethod
    def default(cls) -> "EqState":
        return cls([Band(index=i, freq=freq) for i, freq in enumerate(DEFAULT_FREQS)])

    def __getitem__(self, index: int) -> Band:
        return self.bands[check_band_index(index)]

    def __iter__(self) -> Iterator[Band]:
        return iter(self.bands)

    def __len__(self) -> int:
        return len(self.bands)

    def apply(self, index: int, update: BandUpdate) -> Band:
        band = self[index]
        band.apply(update)
        return band

    def copy(self) -> "EqState":
        return EqState([replace(b) for b in self.bands])


def check_band_index(index: int) -> int:
    """Raise ConfigurationError unless index names a hardware slot"""
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < NUM_BANDS:
        raise ConfigurationError(
            f"Band index must be 0-{NUM_BANDS - 1}, got {index!r}"
        )
    return index


@dataclass(frozen=True)
class RawPacket:
    """Outbound HID report: report ID plus fixed-size payload"""
    report_id: int
    payload: bytes

    def hex(self, limit: int = 40) -> str:
        return ' '.join(f'{b:02X}' for b in self.payload[:limit])


@dataclass(frozen=True)
class DeviceHandle:
    """An open device and the protocol resolved for it at attach time"""
    vendor_id: int
    product_id: int
    product_name: str
    path: bytes
    protocol: Protocol


# Inbound events produced by decode_inbound

@dataclass(frozen=True)
class VersionReport:
    version: str


@dataclass(frozen=True)
class GainReport:
    gain: int


@dataclass(frozen=True)
class BandReport:
    index: int
    freq: int
    q: float
    gain: float
    type: FilterType


InboundEvent = Union[VersionReport, GainReport, BandReport]


def build_packet(report_id: int, data, size: int = PACKET_SIZE) -> RawPacket:
    """Zero-pad `data` to `size` bytes"""
    if len(data) > size:
        raise ValueError(f"Packet of {len(data)} bytes exceeds {size}")
    payload = bytearray(size)
    payload[:len(data)] = bytes(b & 0xFF for b in data)
    return RawPacket(report_id=report_id, payload=bytes(payload))


class ProtocolCodec(ABC):
    """Abstract base class for one HID protocol family"""

    report_id: int = REPORT_ID_DEFAULT
    supports_read: bool = False

    @property
    @abstractmethod
    def protocol(self) -> Protocol:
        """Protocol tag this codec implements"""
        pass

    @abstractmethod
    def encode_band(self, band: Band, effective_gain: float) -> RawPacket:
        """Build the packet that writes one band

        Args:
            band: Band to write (index, freq, q, type are used)
            effective_gain: Gain to transmit, already zeroed for bypassed bands
        """
        pass

    @abstractmethod
    def encode_global_gain(self, gain: float) -> RawPacket:
        """Build the packet that sets the global (pre)gain"""
        pass

    @abstractmethod
    def encode_save(self) -> RawPacket:
        """Build the packet that persists the current EQ to flash"""
        pass

    def encode_read_request(self, kind: int, band_index: Optional[int] = None) -> RawPacket:
        """Build a read request

        Raises:
            UnsupportedOperationError: If the family answers no queries
        """
        raise UnsupportedOperationError(f"{self.protocol.value} devices do not support reading")

    def decode_inbound(self, report: bytes) -> Optional[InboundEvent]:
        """Parse an inbound report, or return None when it carries nothing we use

        Raises:
            ProtocolDecodeError: If the report is malformed
        """
        return None

    def read_requests(self) -> Tuple[List[RawPacket], List[RawPacket]]:
        """Packets that ask the device for its configuration

        Returns:
            (device info requests, per-band requests in index order)

        Raises:
            UnsupportedOperationError: If the family answers no queries
        """
        raise UnsupportedOperationError(f"{self.protocol.value} devices do not support reading")

    def band_packets(self, band: Band) -> List[RawPacket]:
        """All packets for one band write, in send order"""
        return [self.encode_band(band, band.effective_gain)]

    def commit_packets(self) -> List[RawPacket]:
        """Packets sent after a full sync pass"""
        return []


# --- Byte helpers ---

def encode_int16_le(value: int) -> List[int]:
    """Encode 16-bit integer as 2 little-endian bytes (negatives as two's complement)"""
    value &= 0xFFFF
    return [value & 0xFF, (value >> 8) & 0xFF]


def decode_uint16_le(data: bytes, offset: int) -> int:
    return data[offset] | (data[offset + 1] << 8)


def decode_int16_le(data: bytes, offset: int) -> int:
    """Decode 16-bit signed integer from 2 little-endian bytes"""
    value = decode_uint16_le(data, offset)
    return value - 0x10000 if value & 0x8000 else value
