"""
Xiaomi/Redmi Router Shell Enabler

Turns on SSH and Telnet on stock Xiaomi/Redmi router firmware through the
web management API. Supported models:
- Redmi AX5400 Pro
"""

__version__ = "0.1.0"
