"""Moondrop / Comtrue (CT7601) protocol codec

Supports Comtrue-based dongles and cables sold by Moondrop and Tanchjim
(VID 0x2FC6).

Protocol: 63-byte packets, Moondrop-form biquad coefficients, 256x scaling.
Each band write is followed by a second packet that loads the new
coefficients into the DSP register. These devices do not answer the
Savitech query commands, so nothing is read back.
"""

from typing import List

from ..base import (
    REPORT_ID_DEFAULT,
    Band,
    FilterType,
    Protocol,
    ProtocolCodec,
    RawPacket,
    build_packet,
    check_band_index,
    encode_int16_le,
)
from ..biquad import moondrop_coefficient_bytes


class MoondropCodec(ProtocolCodec):
    """Codec for Moondrop/Comtrue DSP firmware"""

    report_id = REPORT_ID_DEFAULT

    # Commands
    COMMAND_WRITE = 1
    COMMAND_READ = 128
    COMMAND_UPDATE_EQ = 9
    COMMAND_UPDATE_EQ_COEFF_TO_REG = 10
    COMMAND_SAVE_EQ_TO_FLASH = 1
    COMMAND_PRE_GAIN = 35
    COMMAND_VER = 12

    # Same codes as Savitech, but kept per codec
    FILTER_TYPE_MAP = {
        FilterType.PEAK: 2,
        FilterType.LOW_SHELF: 1,
        FilterType.HIGH_SHELF: 3,
    }

    VALUE_SCALE = 256

    @property
    def protocol(self) -> Protocol:
        return Protocol.MOONDROP

    def encode_band(self, band: Band, effective_gain: float) -> RawPacket:
        """Build 63-byte write packet for a band

        Packet structure:
        - Bytes 0-6: [WRITE, UPDATE_EQ, 0x18, 0x00, index, 0x00, 0x00]
        - Bytes 7-26: Biquad coefficients (5 x 4 bytes)
        - Bytes 27-28: Frequency (16-bit unsigned LE)
        - Bytes 29-30: Q value (16-bit unsigned LE, scaled by 256)
        - Bytes 31-32: Gain (16-bit signed LE, scaled by 256)
        - Byte 33: Filter type (1=LSQ, 2=PK, 3=HSQ)
        - Byte 35: Report ID marker
        - Bytes 36-62: Padding zeros
        """
        packet = [0] * 36

        packet[0] = self.COMMAND_WRITE
        packet[1] = self.COMMAND_UPDATE_EQ
        packet[2] = 0x18
        packet[3] = 0x00
        packet[4] = band.index

        packet[7:27] = moondrop_coefficient_bytes(band.freq, effective_gain, band.q)

        packet[27:29] = encode_int16_le(band.freq)
        packet[29:31] = encode_int16_le(int(round(band.q * self.VALUE_SCALE)))
        packet[31:33] = encode_int16_le(int(round(effective_gain * self.VALUE_SCALE)))
        packet[33] = self.FILTER_TYPE_MAP[band.type]
        packet[35] = self.report_id

        return build_packet(self.report_id, packet)

    def encode_enable(self, band_index: int) -> RawPacket:
        """Build packet that commits a band's coefficients to the register

        Format: [WRITE, UPDATE_EQ_COEFF_TO_REG, index, 0x00, 0xFF, 0xFF, 0xFF, zeros...]
        """
        check_band_index(band_index)
        return build_packet(self.report_id, [
            self.COMMAND_WRITE, self.COMMAND_UPDATE_EQ_COEFF_TO_REG, band_index,
            0x00, 0xFF, 0xFF, 0xFF,
        ])

    def band_packets(self, band: Band) -> List[RawPacket]:
        return [self.encode_band(band, band.effective_gain), self.encode_enable(band.index)]

    def encode_global_gain(self, gain: float) -> RawPacket:
        """Format: [WRITE, PRE_GAIN, 0x00, pregain_lo, pregain_hi]"""
        scaled = int(round(gain * self.VALUE_SCALE))
        return build_packet(self.report_id, [
            self.COMMAND_WRITE, self.COMMAND_PRE_GAIN, 0x00, *encode_int16_le(scaled),
        ])

    def encode_save(self) -> RawPacket:
        return build_packet(self.report_id, [self.COMMAND_WRITE, self.COMMAND_SAVE_EQ_TO_FLASH])
