"""
Savitech Codec Tests

Byte layouts for writes, read requests and inbound report decoding.
"""

import pytest

from hid_peq.base import (
    Band,
    BandReport,
    ConfigurationError,
    FilterType,
    GainReport,
    ProtocolDecodeError,
    VersionReport,
)
from hid_peq.biquad import savitech_coefficient_bytes
from hid_peq.protocols import SavitechCodec


@pytest.fixture
def codec():
    return SavitechCodec()


class TestEncodeBand:
    """Tests for the band write packet."""

    def test_layout(self, codec):
        band = Band(index=2, freq=250, gain=0.0, q=0.75)
        packet = codec.encode_band(band, band.effective_gain)
        p = packet.payload

        assert packet.report_id == 75
        assert len(p) == 63
        assert list(p[0:7]) == [0x01, 0x09, 0x18, 0x00, 2, 0x00, 0x00]
        assert p[7:27] == savitech_coefficient_bytes(250, 0.0, 0.75)
        assert p[27:29] == b'\xfa\x00'   # 250 Hz
        assert p[29:31] == b'\xc0\x00'   # 0.75 * 256 = 192
        assert p[31:33] == b'\x00\x00'
        assert p[33] == 2
        assert p[34:37] == b'\x00\x00\x00'
        assert p[37:] == bytes(26)

    def test_negative_gain_is_twos_complement(self, codec):
        band = Band(index=0, freq=40, gain=-3.5)
        p = codec.encode_band(band, band.effective_gain).payload
        assert p[31:33] == b'\x80\xfc'   # -896

    @pytest.mark.parametrize("filter_type,code", [
        (FilterType.PEAK, 2),
        (FilterType.LOW_SHELF, 1),
        (FilterType.HIGH_SHELF, 3),
    ])
    def test_type_codes(self, codec, filter_type, code):
        band = Band(index=1, freq=100, type=filter_type)
        assert codec.encode_band(band, 0.0).payload[33] == code


class TestDisabledBand:
    """Bypassing a band zeroes the transmitted gain but keeps the stored one."""

    def test_bypass_sends_zero_gain(self, codec):
        band = Band(index=4, freq=1000, gain=6.0, q=1.2, enabled=False)
        (packet,) = codec.band_packets(band)

        assert packet.payload[31:33] == b'\x00\x00'
        assert packet.payload[7:27] == savitech_coefficient_bytes(1000, 0.0, 1.2)
        assert band.gain == 6.0

    def test_reenable_restores_original_bytes(self, codec):
        band = Band(index=4, freq=1000, gain=6.0, q=1.2)
        original = codec.band_packets(band)

        band.enabled = False
        codec.band_packets(band)
        band.enabled = True

        assert codec.band_packets(band) == original


class TestControlPackets:
    """Tests for gain, save, commit and read request packets."""

    def test_global_gain_signed_byte(self, codec):
        p = codec.encode_global_gain(-3).payload
        assert list(p[:5]) == [0x01, 0x03, 0x02, 0x00, 0xFD]
        assert len(p) == 63

    def test_save(self, codec):
        assert list(codec.encode_save().payload[:5]) == [0x01, 0x01, 0x01, 0x00, 0x00]

    def test_commit_temp(self, codec):
        p = codec.encode_commit_temp().payload
        assert list(p[:8]) == [0x01, 0x0A, 0x04, 0x00, 0x00, 0xFF, 0xFF, 0x00]
        assert codec.commit_packets() == [codec.encode_commit_temp()]

    def test_read_version_and_gain(self, codec):
        assert list(codec.encode_read_request(codec.CMD_VERSION).payload[:3]) == [0x80, 0x0C, 0x00]
        assert list(codec.encode_read_request(codec.CMD_GAIN).payload[:3]) == [0x80, 0x03, 0x00]

    def test_read_band(self, codec):
        p = codec.encode_read_request(codec.CMD_PEQ, 5).payload
        assert list(p[:6]) == [0x80, 0x09, 0x00, 0x00, 5, 0x00]

    @pytest.mark.parametrize("index", [None, 8, -1])
    def test_read_band_rejects_bad_index(self, codec, index):
        with pytest.raises(ConfigurationError):
            codec.encode_read_request(codec.CMD_PEQ, index)

    def test_read_requests_cover_every_band(self, codec):
        info, bands = codec.read_requests()
        assert [p.payload[1] for p in info] == [0x0C, 0x03]
        assert [p.payload[4] for p in bands] == list(range(8))


class TestDecodeInbound:
    """Tests for parsing device responses."""

    def test_version_stops_at_zero(self, codec):
        report = bytearray(63)
        report[1] = 0x0C
        report[3:8] = b"V1.05"
        assert codec.decode_inbound(bytes(report)) == VersionReport("V1.05")

    def test_version_is_at_most_seven_chars(self, codec):
        report = bytearray(63)
        report[1] = 0x0C
        report[3:12] = b"ABCDEFGHI"
        assert codec.decode_inbound(bytes(report)).version == "ABCDEFG"

    def test_gain_is_signed(self, codec):
        report = bytearray(63)
        report[1] = 0x03
        report[4] = 0xFA
        assert codec.decode_inbound(bytes(report)) == GainReport(-6)

    def test_band(self, codec, savitech_peq_report):
        report = savitech_peq_report(index=3, freq=500, q_raw=192, gain_raw=-768, type_code=1)
        event = codec.decode_inbound(report)
        assert event == BandReport(index=3, freq=500, q=0.75, gain=-3.0, type=FilterType.LOW_SHELF)

    def test_unknown_type_code_is_peak(self, codec, savitech_peq_report):
        report = savitech_peq_report(index=0, freq=40, q_raw=256, gain_raw=0, type_code=9)
        assert codec.decode_inbound(report).type is FilterType.PEAK

    def test_write_packet_decodes_back(self, codec):
        band = Band(index=6, freq=3000, gain=-4.5, q=1.3, type=FilterType.HIGH_SHELF)
        event = codec.decode_inbound(codec.encode_band(band, band.effective_gain).payload)

        assert event.index == 6
        assert event.freq == 3000
        assert event.q == pytest.approx(1.3, abs=1 / 256)
        assert event.gain == pytest.approx(-4.5, abs=1 / 2560)
        assert event.type is FilterType.HIGH_SHELF

    def test_short_band_report(self, codec, savitech_peq_report):
        report = savitech_peq_report(index=0, freq=40, q_raw=192, gain_raw=0, type_code=2)[:33]
        with pytest.raises(ProtocolDecodeError):
            codec.decode_inbound(report)

    def test_band_index_out_of_range(self, codec, savitech_peq_report):
        report = savitech_peq_report(index=8, freq=40, q_raw=192, gain_raw=0, type_code=2)
        with pytest.raises(ProtocolDecodeError):
            codec.decode_inbound(report)

    def test_other_commands_ignored(self, codec):
        report = bytearray(63)
        report[1] = 0x0A
        assert codec.decode_inbound(bytes(report)) is None
