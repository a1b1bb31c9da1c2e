#!/usr/bin/env python3
"""
PEQ-Sync: 8-band parametric EQ tool for Savitech, Moondrop/Comtrue and FiiO USB DACs

Requires: pip install hidapi
"""
import argparse
import logging
import os
import sys
import time

from hid_peq import (
    ConfigurationError,
    DeviceError,
    PEQSession,
    ProfileValidationError,
    UnsupportedOperationError,
    load_settings,
)
from hid_peq.base import DEFAULT_LABELS
from hid_peq.profile import read_profile, write_profile
from hid_peq.registry import DeviceRegistry

# How long to wait for the device to answer read requests
READ_SETTLE = 0.5


def _print_state(session):
    eq_state, global_gain = session.snapshot()
    if session.firmware_version:
        print(f"Firmware: {session.firmware_version}")
    print(f"Global gain: {global_gain} dB\n")
    print("Bands:")
    for band in eq_state:
        state = "on " if band.enabled else "off"
        print(f"  {band.index + 1} [{state}] {DEFAULT_LABELS[band.index]:<10} "
              f"{band.freq:5d} Hz, {band.gain:+5.1f} dB, Q={band.q:.2f}, Type={band.type.value}")


def _do_read(session):
    """Request and display the device configuration"""
    print("Reading current PEQ settings...\n")
    if not session.request_read():
        print("Read failed.")
        return
    time.sleep(READ_SETTLE)
    _print_state(session)


def _do_json(session, filepath):
    """Load a profile and sync it to the device"""
    if not os.path.isfile(filepath):
        print(f"Error: File not found: {filepath}")
        return
    print(f"Loading profile from: {filepath}")
    eq_state, global_gain = read_profile(filepath)
    session.load_state(eq_state, global_gain)
    print("Syncing to device...")
    print("Success!" if session.sync() else "Sync failed, device state unchanged.")


def _do_export(session, filepath, settings):
    """Read the device (where supported) and write a profile"""
    try:
        if session.request_read():
            time.sleep(READ_SETTLE)
    except UnsupportedOperationError:
        print("Device cannot be read back; exporting the default state.")
    eq_state, global_gain = session.snapshot()
    label = session.handle.product_name if session.handle else settings.device_label
    write_profile(filepath, eq_state, global_gain, label)
    print(f"Profile written to {filepath}")


def main():
    parser = argparse.ArgumentParser(
        description='PEQ-Sync: parametric EQ tool for Savitech, Moondrop and FiiO USB DACs',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                         Read current PEQ settings (default)
  %(prog)s --json profile.json     Sync a profile to the device
  %(prog)s --json p.json --flash   Sync, then save to permanent memory
  %(prog)s --export profile.json   Save the device's settings as a profile
  %(prog)s --gain -3               Set only the global gain
  %(prog)s --reset                 Reset all bands to defaults and sync
  %(prog)s --list                  List available devices

Protocols:
  Savitech (VID 0x0661, 0x262A and unknown vendors), Moondrop/Comtrue (0x2FC6),
  FiiO (0x2972). Only Savitech devices can be read back.
        """
    )

    action_group = parser.add_mutually_exclusive_group()
    action_group.add_argument('--read', '-r', action='store_true',
        help='Read current PEQ settings (default action)')
    action_group.add_argument('--json', '-j', type=str, metavar='FILE',
        help='Sync a JSON profile to the device')
    action_group.add_argument('--export', '-e', type=str, metavar='FILE',
        help='Write the device settings to a JSON profile')
    action_group.add_argument('--gain', '-g', type=int, metavar='DB',
        help='Set the global gain')
    action_group.add_argument('--reset', action='store_true',
        help='Reset all bands to defaults and sync')
    action_group.add_argument('--list', '-l', action='store_true',
        help='List available devices and exit')

    parser.add_argument('--flash', '-f', action='store_true',
        help='Save to permanent memory after the action')
    parser.add_argument('--device', '-d', type=int, metavar='ID',
        help='Device ID to use (0-based index from --list). Auto-selects if only one device.')
    parser.add_argument('--config', '-c', type=str, metavar='FILE',
        help='Settings file (default: ./hid-peq.toml if present)')
    parser.add_argument('--debug', action='store_true',
        help='Show debug output including HID packets')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        print(f"Config error: {e}")
        sys.exit(2)

    registry = DeviceRegistry(vendor_ids=settings.vendor_ids, read_timeout_ms=settings.read_timeout_ms)
    devices = registry.discover_devices()

    if args.list:
        print("Searching for PEQ devices...\n")
        if devices:
            for d in devices:
                print(f"  [{d['id']}] {d['product_string']}")
                print(f"      Protocol: {d['protocol'].value}")
                print(f"      VID: 0x{d['vendor_id']:04X}, PID: 0x{d['product_id']:04X}")
                print()
        else:
            print("  No PEQ devices found. Is your device plugged in?")
        return

    if not devices:
        print("No PEQ devices found. Connect a device and try again.")
        print("\nTroubleshooting:")
        print("  1. Make sure your device is plugged in")
        print("  2. Try: python peq-sync.py --list")
        print("  3. On Linux you may need a udev rule granting access to hidraw")
        return

    session = PEQSession(settings=settings)
    try:
        device_info, transport = registry.open_device(args.device)
        handle = session.attach(transport, device_info)
        print(f"Connected: {handle.product_name} ({handle.protocol.value})")
        print()

        if args.json:
            _do_json(session, args.json)
        elif args.export:
            _do_export(session, args.export, settings)
        elif args.gain is not None:
            ok = session.set_global_gain(args.gain)
            print(f"Global gain set to {args.gain} dB" if ok else "Failed to set global gain.")
        elif args.reset:
            print("Resetting to defaults...")
            print("Defaults applied and synced." if session.reset_to_defaults() else "Reset failed.")
        elif not args.flash:
            _do_read(session)

        if args.flash:
            print("Saved to flash." if session.save_to_flash() else "Save to flash failed.")

    except ProfileValidationError as e:
        print(f"\nProfile error: {e}")
    except UnsupportedOperationError as e:
        print(f"\nOperation not supported: {e}")
    except ValueError as e:
        # Device selection error (multiple devices, invalid ID, etc.)
        print(f"\n{e}")
    except DeviceError as e:
        print(f"\nDevice error: {e}")
    finally:
        session.close()


if __name__ == '__main__':
    main()
