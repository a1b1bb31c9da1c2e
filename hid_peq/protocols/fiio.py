"""FiiO protocol codec (JA11, KA17 and other VID 0x2972 devices)

The firmware designs its own filters, so bands go out as raw
freq/gain/Q values framed as AA 0A ... EE on report ID 7.
"""

from typing import List

from ..base import (
    PACKET_SIZE,
    REPORT_ID_FIIO,
    Band,
    FilterType,
    Protocol,
    ProtocolCodec,
    RawPacket,
    build_packet,
)


def fold_gain(gain: float) -> int:
    """Encode gain as the firmware's 16-bit signed tenths of a dB

    Negative values are folded to two's complement: (|t| ^ 0xFFFF) + 1.
    """
    t = int(round(gain * 10))
    if t < 0:
        t = ((-t ^ 0xFFFF) + 1) & 0xFFFF
    return t & 0xFFFF


class FiioCodec(ProtocolCodec):
    """Codec for FiiO USB DSP firmware"""

    report_id = REPORT_ID_FIIO

    HEADER_SET = [0xAA, 0x0A]
    HEADER_GET = [0xBB, 0x0B]
    CMD_FILTER_PARAMS = 0x15
    CMD_GLOBAL_GAIN = 0x17
    CMD_FILTER_COUNT = 0x18
    CMD_SAVE = 0x19
    CMD_END = 0xEE

    # Not the Savitech codes
    FILTER_TYPE_MAP = {
        FilterType.PEAK: 0,
        FilterType.LOW_SHELF: 1,
        FilterType.HIGH_SHELF: 2,
    }

    Q_SCALE = 100
    SAVE_PACKET_SIZE = PACKET_SIZE + 1

    @property
    def protocol(self) -> Protocol:
        return Protocol.FIIO

    def _frame(self, cmd: int, body: List[int]) -> List[int]:
        return [*self.HEADER_SET, 0x00, 0x00, cmd, *body, self.CMD_END]

    def encode_band(self, band: Band, effective_gain: float) -> RawPacket:
        """Build filter packet

        Format: AA 0A 00 00 15 08 [idx] [gainH] [gainL] [freqL] [freqH] [qH] [qL] [type] 00 EE
        """
        gain = fold_gain(effective_gain)
        q = int(round(band.q * self.Q_SCALE))
        body = [
            8, band.index,
            (gain >> 8) & 0xFF, gain & 0xFF,
            band.freq & 0xFF, (band.freq >> 8) & 0xFF,
            (q >> 8) & 0xFF, q & 0xFF,
            self.FILTER_TYPE_MAP[band.type],
            0x00,
        ]
        return build_packet(self.report_id, self._frame(self.CMD_FILTER_PARAMS, body))

    def encode_global_gain(self, gain: float) -> RawPacket:
        """Format: AA 0A 00 00 17 02 [high] [low] 00 EE"""
        value = int(round(gain * 10))
        body = [2, (value >> 8) & 0xFF, value & 0xFF, 0x00]
        return build_packet(self.report_id, self._frame(self.CMD_GLOBAL_GAIN, body))

    def encode_save(self) -> RawPacket:
        """Format: AA 0A 00 00 19 01 01 00 EE, zero padded to 64 bytes"""
        return build_packet(
            self.report_id,
            self._frame(self.CMD_SAVE, [1, 1, 0]),
            size=self.SAVE_PACKET_SIZE,
        )
