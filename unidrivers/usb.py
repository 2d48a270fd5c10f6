"""USB descriptors, HID interface discovery and device enumeration through a host controller.

Enumeration talks to a host controller object that provides:

* ``reset_port(port) -> bool``
* ``port_speed(port) -> int`` (0 when the speed is unknown)
* ``enable_slot() -> int``
* ``address_device(slot_id, port, speed) -> None``
* ``disable_slot(slot_id) -> None``
* ``control_transfer(slot_id, request_type, request, value, index, length, data=b"") -> bytes``
* ``configure_endpoint(slot_id, dci, ep_type, max_packet, interval) -> None``

Controller operations that fail raise :class:`UsbError`.
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol

log = logging.getLogger(__name__)

# Descriptor types
DESC_DEVICE = 1
DESC_CONFIGURATION = 2
DESC_STRING = 3
DESC_INTERFACE = 4
DESC_ENDPOINT = 5
DESC_HID = 0x21
DESC_HID_REPORT = 0x22

# Request type bits
REQ_HOST_TO_DEVICE = 0x00
REQ_DEVICE_TO_HOST = 0x80
REQ_TYPE_STANDARD = 0x00
REQ_TYPE_CLASS = 0x20
REQ_TYPE_VENDOR = 0x40
REQ_RECIPIENT_DEVICE = 0x00
REQ_RECIPIENT_INTERFACE = 0x01
REQ_RECIPIENT_ENDPOINT = 0x02

# Standard requests
REQ_GET_STATUS = 0
REQ_CLEAR_FEATURE = 1
REQ_SET_FEATURE = 3
REQ_SET_ADDRESS = 5
REQ_GET_DESCRIPTOR = 6
REQ_SET_DESCRIPTOR = 7
REQ_GET_CONFIGURATION = 8
REQ_SET_CONFIGURATION = 9
REQ_GET_INTERFACE = 10
REQ_SET_INTERFACE = 11

# Class codes
CLASS_HID = 0x03
SUBCLASS_BOOT = 0x01
PROTOCOL_KEYBOARD = 0x01
PROTOCOL_MOUSE = 0x02

# Endpoint address / attributes
ENDPOINT_DIR_MASK = 0x80
ENDPOINT_DIR_IN = 0x80
ENDPOINT_DIR_OUT = 0x00
ENDPOINT_TYPE_MASK = 0x03
ENDPOINT_TYPE_CONTROL = 0
ENDPOINT_TYPE_ISOCH = 1
ENDPOINT_TYPE_BULK = 2
ENDPOINT_TYPE_INTERRUPT = 3

# xHCI endpoint context type for an interrupt IN endpoint
XHCI_EP_TYPE_INTERRUPT_IN = 7

MAX_DEVICES = 16

_SETUP = struct.Struct("<BBHHH")
_DEVICE = struct.Struct("<BBHBBBBHHHBBBB")
_CONFIG = struct.Struct("<BBHBBBBB")
_INTERFACE = struct.Struct("<BBBBBBBBB")
_ENDPOINT = struct.Struct("<BBBBHB")

DEVICE_DESCRIPTOR_SIZE = _DEVICE.size
CONFIG_DESCRIPTOR_SIZE = _CONFIG.size


class UsbError(Exception):
    """A USB transfer, controller command or enumeration step failed."""


def _unpack(layout: struct.Struct, data: bytes, what: str) -> tuple:
    if len(data) < layout.size:
        raise UsbError(f"{what} descriptor needs {layout.size} bytes, got {len(data)}")
    return layout.unpack_from(data)


@dataclass(frozen=True)
class DeviceDescriptor:
    length: int
    descriptor_type: int
    bcd_usb: int
    device_class: int
    device_subclass: int
    device_protocol: int
    max_packet_size0: int
    vendor_id: int
    product_id: int
    bcd_device: int
    manufacturer_index: int
    product_index: int
    serial_number_index: int
    num_configurations: int

    @classmethod
    def parse(cls, data: bytes) -> DeviceDescriptor:
        return cls(*_unpack(_DEVICE, data, "device"))


@dataclass(frozen=True)
class ConfigDescriptor:
    length: int
    descriptor_type: int
    total_length: int
    num_interfaces: int
    configuration_value: int
    configuration_index: int
    attributes: int
    max_power: int

    @classmethod
    def parse(cls, data: bytes) -> ConfigDescriptor:
        return cls(*_unpack(_CONFIG, data, "configuration"))


@dataclass(frozen=True)
class InterfaceDescriptor:
    length: int
    descriptor_type: int
    interface_number: int
    alternate_setting: int
    num_endpoints: int
    interface_class: int
    interface_subclass: int
    interface_protocol: int
    interface_index: int

    @classmethod
    def parse(cls, data: bytes) -> InterfaceDescriptor:
        return cls(*_unpack(_INTERFACE, data, "interface"))


@dataclass(frozen=True)
class EndpointDescriptor:
    length: int
    descriptor_type: int
    endpoint_address: int
    attributes: int
    max_packet_size: int
    interval: int

    @classmethod
    def parse(cls, data: bytes) -> EndpointDescriptor:
        return cls(*_unpack(_ENDPOINT, data, "endpoint"))

    @property
    def is_in(self) -> bool:
        return bool(self.endpoint_address & ENDPOINT_DIR_IN)

    @property
    def transfer_type(self) -> int:
        return self.attributes & ENDPOINT_TYPE_MASK

    @property
    def dci(self) -> int:
        """The xHCI device context index of this endpoint."""
        number = self.endpoint_address & 0x0F
        return (number * 2 + (1 if self.is_in else 0)) & 0xFF


@dataclass
class UsbDeviceInfo:
    """What enumeration learned about one device."""

    slot_id: int = 0
    port: int = 0
    speed: int = 0
    vendor_id: int = 0
    product_id: int = 0
    device_class: int = 0
    device_subclass: int = 0
    device_protocol: int = 0
    config_value: int = 0
    num_interfaces: int = 0
    configured: bool = False

    # Primary HID interface (the keyboard, or a standalone mouse).
    is_keyboard: bool = False
    is_mouse: bool = False
    is_boot_interface: bool = False
    hid_interface: int = 0
    hid_endpoint: int = 0
    hid_max_packet: int = 0
    hid_interval: int = 0

    # Secondary HID interface of a composite device (the mouse).
    hid_interface2: int = 0
    hid_endpoint2: int = 0
    hid_max_packet2: int = 0
    hid_interval2: int = 0

    @property
    def mouse_endpoint(self) -> int:
        return self.hid_endpoint2 or self.hid_endpoint

    @property
    def mouse_interface(self) -> int:
        return self.hid_interface2 or self.hid_interface

    @property
    def mouse_interval(self) -> int:
        return self.hid_interval2 if self.hid_endpoint2 else self.hid_interval


def iter_descriptors(data: bytes) -> Iterator[tuple[int, bytes]]:
    """Yield ``(descriptor_type, raw_bytes)`` for each descriptor in a configuration blob."""
    offset = 0
    while offset + 2 <= len(data):
        length = data[offset]
        if length == 0:
            break
        yield data[offset + 1], bytes(data[offset:offset + length])
        offset += length


def _handle_interface(device: UsbDeviceInfo, iface: InterfaceDescriptor) -> None:
    log.debug(
        "Interface %d: class %d sub %d proto %d",
        iface.interface_number, iface.interface_class,
        iface.interface_subclass, iface.interface_protocol,
    )
    if iface.interface_class != CLASS_HID:
        return
    sub, proto = iface.interface_subclass, iface.interface_protocol

    if sub == SUBCLASS_BOOT and proto == PROTOCOL_KEYBOARD:
        if not device.is_keyboard:
            device.is_keyboard = True
            device.is_boot_interface = True
            device.hid_interface = iface.interface_number
    elif sub == SUBCLASS_BOOT and proto == PROTOCOL_MOUSE:
        if not device.is_mouse:
            device.is_mouse = True
            device.is_boot_interface = True
            if device.is_keyboard:
                device.hid_interface2 = iface.interface_number
            else:
                device.hid_interface = iface.interface_number
    elif sub == 0 and proto == 0:
        if device.is_keyboard and not device.is_mouse:
            device.is_mouse = True
            device.is_boot_interface = False
            device.hid_interface2 = iface.interface_number
        elif not device.is_keyboard and not device.is_mouse:
            device.is_keyboard = True
            device.is_boot_interface = False
            device.hid_interface = iface.interface_number


def _handle_endpoint(
    device: UsbDeviceInfo, iface: InterfaceDescriptor, ep: EndpointDescriptor
) -> None:
    if iface.interface_class != CLASS_HID:
        return
    if not ep.is_in or ep.transfer_type != ENDPOINT_TYPE_INTERRUPT:
        return

    number = iface.interface_number
    matches_keyboard = device.is_keyboard and number == device.hid_interface
    matches_composite_mouse = (
        device.is_mouse and device.hid_interface2 != 0 and number == device.hid_interface2
    )
    matches_standalone_mouse = (
        device.is_mouse and not device.is_keyboard and number == device.hid_interface
    )

    if (matches_keyboard or matches_standalone_mouse) and device.hid_endpoint == 0:
        device.hid_max_packet = ep.max_packet_size
        device.hid_interval = ep.interval
        device.hid_endpoint = ep.dci
    elif matches_composite_mouse and device.hid_endpoint2 == 0:
        device.hid_max_packet2 = ep.max_packet_size
        device.hid_interval2 = ep.interval
        device.hid_endpoint2 = ep.dci
    else:
        return
    log.debug(
        "HID endpoint: addr 0x%x DCI %d maxp %d interval %d",
        ep.endpoint_address, ep.dci, ep.max_packet_size, ep.interval,
    )


def parse_config(device: UsbDeviceInfo, data: bytes) -> UsbDeviceInfo:
    """Record the HID interfaces and interrupt IN endpoints found in a configuration blob."""
    current: InterfaceDescriptor | None = None
    for desc_type, raw in iter_descriptors(data):
        if desc_type == DESC_INTERFACE:
            current = InterfaceDescriptor.parse(raw)
            _handle_interface(device, current)
        elif desc_type == DESC_ENDPOINT and current is not None:
            _handle_endpoint(device, current, EndpointDescriptor.parse(raw))
    return device


def setup_packet(request_type: int, request: int, value: int, index: int, length: int) -> bytes:
    """The 8-byte SETUP stage of a control transfer."""
    return _SETUP.pack(request_type & 0xFF, request & 0xFF, value & 0xFFFF, index & 0xFFFF, length & 0xFFFF)


class _HostController(Protocol):
    def reset_port(self, port: int) -> bool: ...
    def port_speed(self, port: int) -> int: ...
    def enable_slot(self) -> int: ...
    def address_device(self, slot_id: int, port: int, speed: int) -> None: ...
    def disable_slot(self, slot_id: int) -> None: ...
    def control_transfer(
        self, slot_id: int, request_type: int, request: int, value: int,
        index: int, length: int, data: bytes = b"",
    ) -> bytes: ...
    def configure_endpoint(
        self, slot_id: int, dci: int, ep_type: int, max_packet: int, interval: int
    ) -> None: ...


_GET_STANDARD = REQ_DEVICE_TO_HOST | REQ_TYPE_STANDARD | REQ_RECIPIENT_DEVICE
_SET_STANDARD = REQ_HOST_TO_DEVICE | REQ_TYPE_STANDARD | REQ_RECIPIENT_DEVICE


def _get_device_descriptor(controller: _HostController, slot_id: int) -> DeviceDescriptor:
    data = controller.control_transfer(
        slot_id, _GET_STANDARD, REQ_GET_DESCRIPTOR, DESC_DEVICE << 8, 0, DEVICE_DESCRIPTOR_SIZE
    )
    return DeviceDescriptor.parse(data)


def _get_config_descriptor(
    controller: _HostController, slot_id: int, index: int, size: int
) -> bytes:
    return controller.control_transfer(
        slot_id, _GET_STANDARD, REQ_GET_DESCRIPTOR, (DESC_CONFIGURATION << 8) | index, 0, size
    )


def _set_configuration(controller: _HostController, slot_id: int, config_value: int) -> None:
    controller.control_transfer(slot_id, _SET_STANDARD, REQ_SET_CONFIGURATION, config_value, 0, 0)


class UsbRegistry:
    """The enumerated devices, at most ``capacity`` of them."""

    def __init__(self, capacity: int = MAX_DEVICES) -> None:
        self.capacity = capacity
        self._devices: list[UsbDeviceInfo] = []

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self) -> Iterator[UsbDeviceInfo]:
        return iter(self._devices)

    def enumerate(self, controller: _HostController, port: int) -> int:
        """Bring up the device on ``port`` and return its index in the registry."""
        log.debug("Enumerating port %d", port)
        if len(self._devices) >= self.capacity:
            raise UsbError("maximum number of devices reached")
        if not controller.reset_port(port):
            raise UsbError(f"port {port} reset failed")
        speed = controller.port_speed(port)
        if speed == 0:
            raise UsbError(f"port {port} has no valid speed")
        slot_id = controller.enable_slot()
        log.debug("Port %d speed %d slot %d", port, speed, slot_id)

        try:
            controller.address_device(slot_id, port, speed)
            descriptor = _get_device_descriptor(controller, slot_id)
            device = UsbDeviceInfo(
                slot_id=slot_id,
                port=port,
                speed=speed,
                vendor_id=descriptor.vendor_id,
                product_id=descriptor.product_id,
                device_class=descriptor.device_class,
                device_subclass=descriptor.device_subclass,
                device_protocol=descriptor.device_protocol,
            )
            header = ConfigDescriptor.parse(
                _get_config_descriptor(controller, slot_id, 0, CONFIG_DESCRIPTOR_SIZE)
            )
            full = _get_config_descriptor(controller, slot_id, 0, header.total_length)
            device.config_value = header.configuration_value
            device.num_interfaces = header.num_interfaces
            parse_config(device, full)
            _set_configuration(controller, slot_id, device.config_value)
        except UsbError:
            controller.disable_slot(slot_id)
            raise

        for dci, max_packet, interval in (
            (device.hid_endpoint, device.hid_max_packet, device.hid_interval),
            (device.hid_endpoint2, device.hid_max_packet2, device.hid_interval2),
        ):
            if dci == 0:
                continue
            try:
                controller.configure_endpoint(
                    slot_id, dci, XHCI_EP_TYPE_INTERRUPT_IN, max_packet, interval
                )
            except UsbError as exc:
                log.error("Configure endpoint %d failed: %s", dci, exc)

        device.configured = True
        index = self.add(device)
        log.info("Device enumerated: VID 0x%04x PID 0x%04x", device.vendor_id, device.product_id)
        return index

    def add(self, device: UsbDeviceInfo) -> int:
        """Register a device and return its index."""
        if len(self._devices) >= self.capacity:
            raise UsbError("maximum number of devices reached")
        self._devices.append(device)
        return len(self._devices) - 1

    def get(self, index: int) -> UsbDeviceInfo:
        if not 0 <= index < len(self._devices):
            raise IndexError(f"no USB device at index {index}")
        return self._devices[index]

    def find_keyboard(self) -> UsbDeviceInfo | None:
        """The first configured keyboard, if any."""
        return next((d for d in self._devices if d.is_keyboard and d.configured), None)

    def find_mouse(self) -> UsbDeviceInfo | None:
        """The first configured mouse, if any."""
        return next((d for d in self._devices if d.is_mouse and d.configured), None)