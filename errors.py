"""Error taxonomy for control, wake and configuration failures."""

from typing import Optional


class ControlError(Exception):
    """Base class; str(error) is the human-readable message shown to users."""

    message = "Control error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(self._format())

    def _format(self) -> str:
        return self.message


class NotConfigured(ControlError):
    message = "Please configure PC settings first"


class InvalidEndpoint(ControlError):
    message = "Base URL must be HTTPS and use a domain name (not IP address)."

    def __init__(self, url: str):
        self.url = url
        super().__init__(url)


class InvalidAddress(ControlError):
    message = "Invalid MAC address format"


class TransportError(ControlError):
    """Connection failure or timeout."""

    message = "Network error"

    def __init__(self, detail: Optional[str] = None, timed_out: bool = False):
        self.timed_out = timed_out
        super().__init__(detail)

    def _format(self) -> str:
        if self.timed_out:
            return "Request timed out"
        return f"{self.message}: {self.detail}" if self.detail else self.message


class ServerError(ControlError):
    message = "Server error"

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(str(status_code))

    def _format(self) -> str:
        return f"{self.message}: HTTP {self.status_code}"


class WakeError(ControlError):
    message = "Wake-on-LAN error"

    def _format(self) -> str:
        return f"{self.message}: {self.detail}" if self.detail else self.message


class WakeConnectFailed(WakeError):
    message = "Connection failed"


class WakeSendFailed(WakeError):
    message = "Send failed"
