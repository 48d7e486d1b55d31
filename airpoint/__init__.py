"""
AirPoint - Phone-as-Touchpad Remote Control Server

Lets a phone drive this machine's pointer, keyboard and a few system
actions by sending compact binary commands over Wi-Fi (TCP) or Bluetooth
(RFCOMM).

Features:
- One binary protocol over both transports
- Mouse, scroll, zoom, shortcuts and text input via xdotool
- Open URLs, files, protocol handlers and command lines remotely
- Shutdown, restart and lock commands

Usage:
    airpoint start          # Start the server
    airpoint stop           # Stop the server
    airpoint status         # Check server status
    airpoint ip             # Show the address to pair with
"""

__version__ = "1.0.0"
__author__ = "AirPoint"
