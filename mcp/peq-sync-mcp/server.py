#!/usr/bin/env python3
"""
PEQ-Sync MCP Server: 8-band PEQ control for Savitech, Moondrop/Comtrue and FiiO DACs

Exposes sync/read/flash as MCP tools using stdio transport.
Part of the PEQ-Sync project.
"""
import json
import sys
import os
import time
from typing import Any, Callable

# server.py is at mcp/peq-sync-mcp/server.py, so go up 3 levels to the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from hid_peq import (
    DeviceError,
    PEQSession,
    ProfileValidationError,
    UnsupportedOperationError,
    load_settings,
)
from hid_peq.profile import band_from_dict, band_to_dict
from hid_peq.base import EqState
from hid_peq.registry import DeviceRegistry

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

# Create the MCP server
server = Server("peq-sync")

READ_SETTLE = 0.5

DEVICE_ID_PROPERTY = {
    "type": "integer",
    "description": "Optional device ID (0-based index). If not specified, auto-selects if only one device connected."
}


def _text(result) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, indent=2))]


def _with_session(device_id, callback: Callable) -> list[TextContent]:
    """Open a device, attach a session, run callback, close.

    Args:
        device_id: Device index (0-based) or None for auto-select
        callback: Function(session) -> result dict

    Returns:
        list[TextContent] with JSON result or error message
    """
    settings = load_settings()
    session = PEQSession(settings=settings)
    try:
        registry = DeviceRegistry(vendor_ids=settings.vendor_ids, read_timeout_ms=settings.read_timeout_ms)
        registry.discover_devices()
        device_info, transport = registry.open_device(device_id)
        session.attach(transport, device_info)
        result = callback(session)
        result = {
            "device": session.handle.product_name,
            "protocol": session.handle.protocol.value,
            **result,
        }
        return _text(result)

    except ProfileValidationError as e:
        return [TextContent(type="text", text=f"Validation error: {str(e)}")]
    except UnsupportedOperationError as e:
        return [TextContent(type="text", text=f"Not supported: {str(e)}")]
    except DeviceError as e:
        return [TextContent(type="text", text=f"Device error: {str(e)}")]
    except ValueError as e:
        return [TextContent(type="text", text=f"Error: {str(e)}")]
    finally:
        session.close()


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools"""
    return [
        Tool(
            name="list_devices",
            description="List connected PEQ devices (Savitech, Moondrop/Comtrue, FiiO) and the protocol each one uses",
            inputSchema={"type": "object", "properties": {}, "required": []}
        ),
        Tool(
            name="read_peq",
            description="Read the 8 bands, global gain and firmware version from a device (Savitech protocol only)",
            inputSchema={
                "type": "object",
                "properties": {"device_id": DEVICE_ID_PROPERTY},
                "required": []
            }
        ),
        Tool(
            name="sync_peq",
            description="Write all 8 bands and the global gain to a device",
            inputSchema={
                "type": "object",
                "properties": {
                    "device_id": DEVICE_ID_PROPERTY,
                    "bands": {
                        "type": "array",
                        "description": "Exactly 8 band objects in slot order",
                        "minItems": 8,
                        "maxItems": 8,
                        "items": {
                            "type": "object",
                            "properties": {
                                "freq": {"type": "number", "description": "Frequency in Hz (20-20000)"},
                                "gain": {"type": "number", "description": "Gain in dB (-12 to 12)"},
                                "q": {"type": "number", "description": "Q factor (0.1-10)"},
                                "type": {"type": "string", "enum": ["PK", "LSQ", "HSQ"], "description": "Filter type"},
                                "enabled": {"type": "boolean", "description": "False bypasses the band"}
                            },
                            "required": ["freq", "gain", "q", "type"]
                        }
                    },
                    "globalGain": {"type": "integer", "description": "Global gain in dB"},
                    "flash": {"type": "boolean", "description": "Also save to permanent memory"}
                },
                "required": ["bands"]
            }
        ),
        Tool(
            name="set_global_gain",
            description="Set only the global gain (without touching the bands)",
            inputSchema={
                "type": "object",
                "properties": {
                    "device_id": DEVICE_ID_PROPERTY,
                    "gain": {"type": "integer", "description": "Global gain in dB"}
                },
                "required": ["gain"]
            }
        ),
        Tool(
            name="save_to_flash",
            description="Save the device's current EQ to permanent memory",
            inputSchema={
                "type": "object",
                "properties": {"device_id": DEVICE_ID_PROPERTY},
                "required": []
            }
        ),
        Tool(
            name="reset_peq",
            description="Reset all bands to the default frequencies at 0 dB and sync",
            inputSchema={
                "type": "object",
                "properties": {"device_id": DEVICE_ID_PROPERTY},
                "required": []
            }
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls"""
    device_id = arguments.get("device_id")

    if name == "list_devices":
        try:
            settings = load_settings()
            registry = DeviceRegistry(vendor_ids=settings.vendor_ids)
            devices = registry.discover_devices()
        except DeviceError as e:
            return [TextContent(type="text", text=f"Error: {str(e)}")]

        if not devices:
            return [TextContent(type="text", text="No PEQ devices found. Connect a device and try again.")]

        return _text({"devices": [
            {
                "id": d['id'],
                "product": d['product_string'],
                "protocol": d['protocol'].value,
                "vendor_id": f"0x{d['vendor_id']:04X}",
                "product_id": f"0x{d['product_id']:04X}",
            }
            for d in devices
        ]})

    elif name == "read_peq":
        def _read(session):
            session.request_read()
            time.sleep(READ_SETTLE)
            eq_state, global_gain = session.snapshot()
            return {
                "firmware": session.firmware_version,
                "globalGain": global_gain,
                "bands": [band_to_dict(b) for b in eq_state],
            }

        return _with_session(device_id, _read)

    elif name == "sync_peq":
        try:
            eq_state = EqState([band_from_dict(b, i) for i, b in enumerate(arguments.get("bands", []))])
        except ProfileValidationError as e:
            return [TextContent(type="text", text=f"Error building profile: {str(e)}")]
        global_gain = int(arguments.get("globalGain", 0))
        flash = bool(arguments.get("flash", False))

        def _sync(session):
            session.load_state(eq_state, global_gain)
            synced = session.sync()
            saved = session.save_to_flash() if (synced and flash) else False
            return {
                "status": "success" if synced else "failed",
                "bands_written": len(eq_state) if synced else 0,
                "globalGain": global_gain,
                "flashed": saved,
            }

        return _with_session(device_id, _sync)

    elif name == "set_global_gain":
        gain = arguments.get("gain")
        if gain is None:
            return [TextContent(type="text", text="Error: gain value required")]

        def _set_gain(session):
            ok = session.set_global_gain(int(gain))
            return {"status": "success" if ok else "failed", "globalGain": int(gain)}

        return _with_session(device_id, _set_gain)

    elif name == "save_to_flash":
        return _with_session(device_id, lambda session: {
            "status": "success" if session.save_to_flash() else "failed"
        })

    elif name == "reset_peq":
        return _with_session(device_id, lambda session: {
            "status": "success" if session.reset_to_defaults() else "failed"
        })

    else:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]


async def main():
    """Run the MCP server using stdio transport"""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )


if __name__ == "__main__":
    import asyncio
    asyncio.run(main())
