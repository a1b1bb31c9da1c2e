"""
Band Model and Dispatcher Tests
"""

import pytest

from hid_peq.base import (
    DEFAULT_FREQS,
    Band,
    ConfigurationError,
    EqState,
    FilterType,
    ProfileValidationError,
    Protocol,
    SetEnabled,
    SetFilterType,
    SetFrequency,
    SetGain,
    SetQ,
    build_packet,
)
from hid_peq.protocols import FiioCodec, MoondropCodec, SavitechCodec, codec_for, resolve


class TestResolve:
    """The dispatcher never fails and falls back to Savitech."""

    @pytest.mark.parametrize("vendor_id,protocol", [
        (0x0661, Protocol.SAVITECH),
        (0x262A, Protocol.SAVITECH),
        (0x2FC6, Protocol.MOONDROP),
        (0x2972, Protocol.FIIO),
        (0x9999, Protocol.SAVITECH),
        (0x0000, Protocol.SAVITECH),
    ])
    def test_vendor_ids(self, vendor_id, protocol):
        assert resolve(vendor_id) is protocol

    def test_every_protocol_has_a_codec(self):
        assert isinstance(codec_for(Protocol.SAVITECH), SavitechCodec)
        assert isinstance(codec_for(Protocol.MOONDROP), MoondropCodec)
        assert isinstance(codec_for(Protocol.FIIO), FiioCodec)
        for protocol in Protocol:
            assert codec_for(protocol).protocol is protocol


class TestBand:
    """Tests for Band updates and the bypass invariant."""

    def test_defaults(self):
        band = Band(index=0, freq=40)
        assert band.gain == 0.0
        assert band.q == 0.75
        assert band.type is FilterType.PEAK
        assert band.enabled is True

    def test_effective_gain_preserves_stored_gain(self):
        band = Band(index=0, freq=40, gain=4.5)
        band.apply(SetEnabled(False))
        assert band.effective_gain == 0.0
        assert band.gain == 4.5
        band.apply(SetEnabled(True))
        assert band.effective_gain == 4.5

    def test_tagged_updates_touch_one_field(self):
        band = Band(index=3, freq=500)
        band.apply(SetFrequency(630))
        band.apply(SetGain(-2.5))
        band.apply(SetQ(2.0))
        band.apply(SetFilterType(FilterType.LOW_SHELF))
        assert band == Band(index=3, freq=630, gain=-2.5, q=2.0, type=FilterType.LOW_SHELF)

    def test_unknown_update_rejected(self):
        with pytest.raises(ConfigurationError):
            Band(index=0, freq=40).apply(("gain", 3))


class TestEqState:
    """Tests for the fixed eight-slot state."""

    def test_default_state(self):
        state = EqState.default()
        assert len(state) == 8
        assert [b.freq for b in state] == DEFAULT_FREQS
        assert [b.index for b in state] == list(range(8))

    @pytest.mark.parametrize("count", [0, 7, 9])
    def test_wrong_band_count(self, count):
        with pytest.raises(ProfileValidationError):
            EqState([Band(index=i, freq=100) for i in range(count)])

    def test_misnumbered_slots(self):
        bands = [Band(index=i, freq=100) for i in range(8)]
        bands[2], bands[3] = bands[3], bands[2]
        with pytest.raises(ProfileValidationError):
            EqState(bands)

    @pytest.mark.parametrize("index", [-1, 8, True, "1"])
    def test_invalid_index(self, index):
        state = EqState.default()
        with pytest.raises(ConfigurationError):
            state.apply(index, SetGain(1.0))

    def test_copy_is_independent(self):
        state = EqState.default()
        copy = state.copy()
        copy.apply(0, SetGain(6.0))
        assert state[0].gain == 0.0


class TestBuildPacket:
    """Tests for packet padding."""

    def test_pads_to_63(self):
        packet = build_packet(75, [1, 2, 3])
        assert packet.payload == bytes([1, 2, 3]) + bytes(60)

    def test_rejects_oversize(self):
        with pytest.raises(ValueError):
            build_packet(75, [0] * 64)

    def test_packets_are_immutable(self):
        packet = build_packet(75, [1])
        with pytest.raises(AttributeError):
            packet.payload = b''
