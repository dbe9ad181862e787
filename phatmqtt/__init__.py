"""
phatmqtt - image cache and MQTT bridge for e-ink display clients
"""

__version__ = "0.1.0"
