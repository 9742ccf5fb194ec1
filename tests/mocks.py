"""Mock utilities for testing external dependencies."""


class FakeSMTP:
    """Mock SMTP server for email tests."""

    def __init__(self, host: str = "", port: int = 25, **kwargs):
        self.host = host
        self.port = port
        self.messages: list[tuple[str, list[str], str]] = []
        self.connected = True
        self.logged_in = False
        self.started_tls = False

    def __enter__(self):
        self.connected = True
        return self

    def __exit__(self, *args):
        self.connected = False

    def starttls(self):
        self.started_tls = True

    def login(self, user: str, password: str):
        self.logged_in = True

    def sendmail(self, from_addr: str, to_addrs: list[str], msg: str):
        self.messages.append((from_addr, to_addrs, msg))

    def quit(self):
        self.connected = False

    def close(self):
        self.connected = False


class FailingSMTP(FakeSMTP):
    """SMTP server that refuses every message."""

    def sendmail(self, from_addr: str, to_addrs: list[str], msg: str):
        import smtplib

        raise smtplib.SMTPRecipientsRefused({str(to_addrs): (550, b"rejected")})
