"""wlcpoll - wireless LAN controller telemetry poller."""

__version__ = "0.3.0"
