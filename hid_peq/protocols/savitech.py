"""Savitech (Walkplay) protocol codec

Supports:
- JCally and generic Savitech dongles (VID 0x0661)
- Savitech official firmware: Fosi, iBasso, older FiiO (VID 0x262A)

Protocol: 63-byte reports on ID 0x4B, Q30 biquad taps computed on the host,
freq/Q/gain mirrored after the taps so the device can answer read requests.
"""

import logging
from typing import List, Optional, Tuple

from ..base import (
    NUM_BANDS,
    REPORT_ID_DEFAULT,
    Band,
    BandReport,
    FilterType,
    GainReport,
    InboundEvent,
    Protocol,
    ProtocolCodec,
    ProtocolDecodeError,
    RawPacket,
    VersionReport,
    build_packet,
    check_band_index,
    decode_int16_le,
    decode_uint16_le,
    encode_int16_le,
)
from ..biquad import savitech_coefficient_bytes

logger = logging.getLogger(__name__)


class SavitechCodec(ProtocolCodec):
    """Codec for Savitech/Walkplay DSP firmware"""

    report_id = REPORT_ID_DEFAULT
    supports_read = True

    # Commands
    CMD_PEQ = 0x09
    CMD_VERSION = 0x0C
    CMD_TEMP = 0x0A
    CMD_FLASH = 0x01
    CMD_GAIN = 0x03
    CMD_READ = 0x80
    CMD_WRITE = 0x01
    CMD_END = 0x00

    FILTER_TYPE_MAP = {
        FilterType.PEAK: 2,
        FilterType.LOW_SHELF: 1,
        FilterType.HIGH_SHELF: 3,
    }
    FILTER_TYPE_REVERSE = {1: FilterType.LOW_SHELF, 3: FilterType.HIGH_SHELF}

    VALUE_SCALE = 256     # 256x for gain/Q values
    MIN_PEQ_REPORT = 34   # Type code lives at offset 33

    @property
    def protocol(self) -> Protocol:
        return Protocol.SAVITECH

    def encode_band(self, band: Band, effective_gain: float) -> RawPacket:
        """Build write packet for a band

        Packet structure:
        - Bytes 0-6: [WRITE, PEQ, 0x18, 0x00, index, 0x00, 0x00]
        - Bytes 7-26: Biquad coefficients (5 x 4 bytes)
        - Bytes 27-28: Frequency (16-bit LE)
        - Bytes 29-30: Q (16-bit LE, scaled by 256)
        - Bytes 31-32: Gain (16-bit signed LE, scaled by 256)
        - Byte 33: Filter type (1=LSQ, 2=PK, 3=HSQ)
        - Bytes 34-36: [0x00, 0x00, END]
        """
        coeffs = savitech_coefficient_bytes(band.freq, effective_gain, band.q)
        packet = [
            self.CMD_WRITE, self.CMD_PEQ, 0x18, 0x00, band.index, 0x00, 0x00,
            *coeffs,
            *encode_int16_le(band.freq),
            *encode_int16_le(int(round(band.q * self.VALUE_SCALE))),
            *encode_int16_le(int(round(effective_gain * self.VALUE_SCALE))),
            self.FILTER_TYPE_MAP[band.type],
            0x00, 0x00,
            self.CMD_END,
        ]
        return build_packet(self.report_id, packet)

    def encode_global_gain(self, gain: float) -> RawPacket:
        """Global gain is a single signed byte in whole dB"""
        value = int(round(gain)) & 0xFF
        return build_packet(self.report_id, [self.CMD_WRITE, self.CMD_GAIN, 0x02, 0x00, value])

    def encode_save(self) -> RawPacket:
        return build_packet(self.report_id, [self.CMD_WRITE, self.CMD_FLASH, 0x01, 0x00, self.CMD_END])

    def encode_commit_temp(self) -> RawPacket:
        """Commit the bands just written to RAM"""
        return build_packet(self.report_id, [
            self.CMD_WRITE, self.CMD_TEMP, 0x04, 0x00, 0x00, 0xFF, 0xFF, self.CMD_END,
        ])

    def commit_packets(self) -> List[RawPacket]:
        return [self.encode_commit_temp()]

    def encode_read_request(self, kind: int, band_index: Optional[int] = None) -> RawPacket:
        """Build read packet

        Format: [READ, kind, END] for VERSION/GAIN,
                [READ, PEQ, 0x00, 0x00, index, END] for a band
        """
        if kind == self.CMD_PEQ:
            check_band_index(band_index)
            return build_packet(self.report_id, [
                self.CMD_READ, self.CMD_PEQ, 0x00, 0x00, band_index, self.CMD_END,
            ])
        if kind in (self.CMD_VERSION, self.CMD_GAIN):
            return build_packet(self.report_id, [self.CMD_READ, kind, self.CMD_END])
        raise ValueError(f"Unknown read request 0x{kind:02X}")

    def read_requests(self) -> Tuple[List[RawPacket], List[RawPacket]]:
        info = [self.encode_read_request(self.CMD_VERSION), self.encode_read_request(self.CMD_GAIN)]
        bands = [self.encode_read_request(self.CMD_PEQ, i) for i in range(NUM_BANDS)]
        return info, bands

    def decode_inbound(self, report: bytes) -> Optional[InboundEvent]:
        """Decode a report echoed back by the device

        Byte 1 carries the command the report answers.
        """
        if len(report) < 2:
            raise ProtocolDecodeError(f"Report too short: {len(report)} bytes")

        cmd = report[1]
        if cmd == self.CMD_VERSION:
            return self._decode_version(report)
        if cmd == self.CMD_GAIN:
            return self._decode_gain(report)
        if cmd == self.CMD_PEQ:
            return self._decode_band(report)
        return None

    def _decode_version(self, report: bytes) -> VersionReport:
        chars = []
        for b in report[3:10]:
            if b == 0:
                break
            chars.append(chr(b))
        return VersionReport(version=''.join(chars))

    def _decode_gain(self, report: bytes) -> GainReport:
        if len(report) < 5:
            raise ProtocolDecodeError(f"Gain report too short: {len(report)} bytes")
        value = report[4]
        return GainReport(gain=value - 256 if value > 127 else value)

    def _decode_band(self, report: bytes) -> BandReport:
        """Decode band from read response

        Response structure matches the write packet:
        - Byte 4: Band index
        - Bytes 27-28: Frequency (16-bit unsigned LE)
        - Bytes 29-30: Q value (16-bit unsigned LE, scaled by 256)
        - Bytes 31-32: Gain (16-bit signed LE, scaled by 256)
        - Byte 33: Filter type (1=LSQ, 3=HSQ, anything else PK)
        """
        if len(report) < self.MIN_PEQ_REPORT:
            raise ProtocolDecodeError(f"PEQ report too short: {len(report)} bytes")

        index = report[4]
        if index >= NUM_BANDS:
            raise ProtocolDecodeError(f"PEQ report for band {index} out of range")

        freq = decode_uint16_le(report, 27)
        q = round(decode_uint16_le(report, 29) / self.VALUE_SCALE, 2)
        gain = round(decode_int16_le(report, 31) / self.VALUE_SCALE, 1)
        filter_type = self.FILTER_TYPE_REVERSE.get(report[33], FilterType.PEAK)

        logger.debug("decode band %d: freq=%dHz gain=%.1fdB q=%.2f type=%s",
                     index, freq, gain, q, filter_type.value)

        return BandReport(index=index, freq=freq, q=q, gain=gain, type=filter_type)
