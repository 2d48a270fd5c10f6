"""xHCI register layouts, bit fields and the Transfer Request Block."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

# USBCMD
USBCMD_RS = 1 << 0
USBCMD_HCRST = 1 << 1
USBCMD_INTE = 1 << 2
USBCMD_HSEE = 1 << 3

# USBSTS
USBSTS_HCH = 1 << 0
USBSTS_HSE = 1 << 2
USBSTS_EINT = 1 << 3
USBSTS_PCD = 1 << 4
USBSTS_CNR = 1 << 11

# Extended capability ids
XECP_ID_LEGACY = 1
XECP_ID_PROTOCOLS = 2
XECP_ID_POWER = 3
XECP_ID_VIRT = 4

USBLEGSUP_BIOS_SEM = 1 << 16
USBLEGSUP_OS_SEM = 1 << 24
USBLEGCTLSTS_SMI_ENABLE = 0xFFFF0000

# PORTSC
PORTSC_CCS = 1 << 0
PORTSC_PED = 1 << 1
PORTSC_OCA = 1 << 3
PORTSC_PR = 1 << 4
PORTSC_PLS_MASK = 0xF << 5
PORTSC_PP = 1 << 9
PORTSC_SPEED_MASK = 0xF << 10
PORTSC_CSC = 1 << 17
PORTSC_PEC = 1 << 18
PORTSC_PRC = 1 << 21
PORTSC_WCE = 1 << 25
PORTSC_CHANGE_MASK = PORTSC_CSC | PORTSC_PEC | PORTSC_PRC
PORTSC_TYPICAL_EMPTY = 0x2A0

# IMAN
IMAN_IP = 1 << 0
IMAN_IE = 1 << 1

DB_HOST = 0
DB_TARGET_MASK = 0xFF

# TRB control flags
TRB_CYCLE = 1 << 0
TRB_ENT = 1 << 1
TRB_ISP = 1 << 2
TRB_NS = 1 << 3
TRB_CHAIN = 1 << 4
TRB_IOC = 1 << 5
TRB_IDT = 1 << 6
TRB_TC = 1 << 1
TRB_BSR = 1 << 9
TRB_DIR_IN = 1 << 16

XHCI_RING_SIZE = 256
XHCI_EVENT_RING_SIZE = 256

_TRB = struct.Struct("<QII")
TRB_SIZE = _TRB.size


class TrbType(IntEnum):
    NORMAL = 1
    SETUP = 2
    DATA = 3
    STATUS = 4
    ISOCH = 5
    LINK = 6
    EVENT_DATA = 7
    NOOP = 8
    ENABLE_SLOT = 9
    DISABLE_SLOT = 10
    ADDRESS_DEVICE = 11
    CONFIG_EP = 12
    EVAL_CONTEXT = 13
    RESET_EP = 14
    STOP_EP = 15
    SET_TR_DEQUEUE = 16
    RESET_DEVICE = 17
    NOOP_CMD = 23
    TRANSFER_EVENT = 32
    COMMAND_COMPLETION = 33
    PORT_STATUS_CHANGE = 34
    HOST_CONTROLLER = 37


class CompletionCode(IntEnum):
    SUCCESS = 1
    DATA_BUFFER = 2
    BABBLE = 3
    USB_TRANSACTION = 4
    TRB = 5
    STALL = 6
    SHORT_PACKET = 13


class PortSpeed(IntEnum):
    FULL = 1
    LOW = 2
    HIGH = 3
    SUPER = 4


def _type_field(trb_type: int) -> int:
    return (int(trb_type) & 0x3F) << 10


@dataclass(frozen=True)
class Trb:
    """A 16-byte Transfer Request Block: 64-bit parameter, 32-bit status, 32-bit control."""

    parameter: int = 0
    status: int = 0
    control: int = 0

    @classmethod
    def make(cls, trb_type: int, parameter: int = 0, status: int = 0, flags: int = 0) -> Trb:
        """Build a TRB of ``trb_type`` with extra control ``flags``."""
        return cls(parameter, status, _type_field(trb_type) | flags)

    def pack(self) -> bytes:
        return _TRB.pack(
            self.parameter & 0xFFFFFFFFFFFFFFFF,
            self.status & 0xFFFFFFFF,
            self.control & 0xFFFFFFFF,
        )

    @classmethod
    def unpack(cls, data: bytes) -> Trb:
        if len(data) != TRB_SIZE:
            raise ValueError(f"a TRB is {TRB_SIZE} bytes, got {len(data)}")
        return cls(*_TRB.unpack(data))

    @property
    def trb_type(self) -> int:
        return (self.control >> 10) & 0x3F

    @property
    def cycle(self) -> int:
        return self.control & TRB_CYCLE

    def with_cycle(self, cycle: int) -> Trb:
        """A copy whose cycle bit is ``cycle``."""
        return Trb(self.parameter, self.status, (self.control & ~TRB_CYCLE) | (cycle & 1))

    @property
    def completion_code(self) -> int:
        return (self.status >> 24) & 0xFF

    @property
    def transfer_length(self) -> int:
        """Residual length reported in an event TRB."""
        return self.status & 0xFFFFFF

    @property
    def slot_id(self) -> int:
        return (self.control >> 24) & 0xFF

    @property
    def endpoint_id(self) -> int:
        return (self.control >> 16) & 0x1F


@dataclass(frozen=True)
class HcsParams1:
    max_slots: int
    max_interrupters: int
    max_ports: int


def parse_hcsparams1(value: int) -> HcsParams1:
    """Split the HCSPARAMS1 register into its fields."""
    return HcsParams1(
        max_slots=value & 0xFF,
        max_interrupters=(value >> 8) & 0x7FF,
        max_ports=(value >> 24) & 0xFF,
    )


def scratchpad_count(hcsparams2: int) -> int:
    """Number of scratchpad buffers the controller asks for."""
    high = (hcsparams2 >> 21) & 0x1F
    low = (hcsparams2 >> 27) & 0x1F
    return (high << 5) | low


def context_size(hccparams1: int) -> int:
    """Size in bytes of one device-context entry: 64 when CSZ is set, else 32."""
    return 64 if (hccparams1 >> 2) & 1 else 32


def extended_caps_offset(hccparams1: int) -> int:
    """Byte offset of the first extended capability from the MMIO base; 0 if there is none."""
    return ((hccparams1 >> 16) & 0xFFFF) << 2


@dataclass(frozen=True)
class PortStatus:
    connected: bool
    enabled: bool
    over_current: bool
    resetting: bool
    link_state: int
    powered: bool
    speed: int
    connect_changed: bool
    enable_changed: bool
    reset_changed: bool
    wake_on_connect: bool
    change_bits: int


def decode_portsc(value: int) -> PortStatus:
    """Decode a PORTSC register value."""
    return PortStatus(
        connected=bool(value & PORTSC_CCS),
        enabled=bool(value & PORTSC_PED),
        over_current=bool(value & PORTSC_OCA),
        resetting=bool(value & PORTSC_PR),
        link_state=(value & PORTSC_PLS_MASK) >> 5,
        powered=bool(value & PORTSC_PP),
        speed=(value & PORTSC_SPEED_MASK) >> 10,
        connect_changed=bool(value & PORTSC_CSC),
        enable_changed=bool(value & PORTSC_PEC),
        reset_changed=bool(value & PORTSC_PRC),
        wake_on_connect=bool(value & PORTSC_WCE),
        change_bits=value & PORTSC_CHANGE_MASK,
    )