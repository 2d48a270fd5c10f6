import pytest

from unidrivers.xhci_defs import (
    PORTSC_CCS,
    PORTSC_PED,
    PORTSC_PP,
    PORTSC_PRC,
    PORTSC_TYPICAL_EMPTY,
    TRB_CYCLE,
    TRB_IOC,
    TRB_SIZE,
    TRB_TC,
    CompletionCode,
    PortSpeed,
    Trb,
    TrbType,
    context_size,
    decode_portsc,
    extended_caps_offset,
    parse_hcsparams1,
    scratchpad_count,
)


def test_trb_is_sixteen_bytes():
    assert TRB_SIZE == 16
    assert len(Trb.make(TrbType.NOOP_CMD).pack()) == 16


def test_trb_round_trip():
    trb = Trb(parameter=0x1122334455667788, status=0xAABBCCDD, control=0x01020304)
    assert Trb.unpack(trb.pack()) == trb


def test_trb_pack_is_little_endian():
    packed = Trb(parameter=1, status=2, control=3).pack()
    assert packed[0] == 1
    assert packed[8] == 2
    assert packed[12] == 3


def test_make_sets_type_and_flags():
    link = Trb.make(TrbType.LINK, parameter=0x1000, flags=TRB_TC | TRB_CYCLE)
    assert link.trb_type == TrbType.LINK
    assert link.cycle == 1
    assert link.control & TRB_TC
    assert link.parameter == 0x1000


def test_with_cycle_only_changes_cycle_bit():
    trb = Trb.make(TrbType.NORMAL, flags=TRB_IOC)
    flipped = trb.with_cycle(1)
    assert flipped.cycle == 1
    assert flipped.with_cycle(0) == trb
    assert flipped.trb_type == TrbType.NORMAL


def test_transfer_event_fields():
    status = (CompletionCode.SHORT_PACKET << 24) | 5
    control = (3 << 24) | (5 << 16) | (TrbType.TRANSFER_EVENT << 10) | TRB_CYCLE
    event = Trb.unpack(Trb(0, status, control).pack())
    assert event.trb_type == TrbType.TRANSFER_EVENT
    assert event.completion_code == CompletionCode.SHORT_PACKET
    assert event.transfer_length == 5
    assert event.slot_id == 3
    assert event.endpoint_id == 5


def test_unpack_rejects_wrong_length():
    with pytest.raises(ValueError):
        Trb.unpack(b"\x00" * 15)


def test_enum_values_decoded_from_raw_fields():
    raw = (
        (0).to_bytes(8, "little")
        + (13 << 24).to_bytes(4, "little")
        + (33 << 10).to_bytes(4, "little")
    )
    event = Trb.unpack(raw)
    assert event.trb_type == TrbType.COMMAND_COMPLETION
    assert event.completion_code == CompletionCode.SHORT_PACKET
    assert decode_portsc(4 << 10).speed == PortSpeed.SUPER


def test_parse_hcsparams1_round_trip():
    slots, interrupters, ports = 32, 8, 15
    params = parse_hcsparams1((ports << 24) | (interrupters << 8) | slots)
    assert (params.max_slots, params.max_interrupters, params.max_ports) == (slots, interrupters, ports)


def test_scratchpad_low_bits():
    assert scratchpad_count(7 << 27) == 7
    assert scratchpad_count(0) == 0


def test_scratchpad_high_bits_shift_by_five():
    assert scratchpad_count(1 << 21) == 1 << 5


def test_context_size():
    assert context_size(1 << 2) == 64
    assert context_size(0) == 32


def test_extended_caps_offset_is_dword_scaled():
    field_value = 0x0500
    assert extended_caps_offset(field_value << 16) // 4 == field_value
    assert extended_caps_offset(0xFFFF) == 0


def test_decode_empty_powered_port():
    status = decode_portsc(PORTSC_TYPICAL_EMPTY)
    assert status.powered
    assert not status.connected
    assert status.change_bits == 0


def test_decode_connected_port():
    value = PORTSC_CCS | PORTSC_PED | PORTSC_PP | PORTSC_PRC | (PortSpeed.HIGH << 10)
    status = decode_portsc(value)
    assert status.connected and status.enabled and status.powered
    assert status.speed == PortSpeed.HIGH
    assert status.reset_changed
    assert status.change_bits == PORTSC_PRC