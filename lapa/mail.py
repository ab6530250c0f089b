#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
"""SMTP mailer proxy built on smtplib and email.message."""
import logging
import smtplib
from email.message import EmailMessage

logger = logging.getLogger("lapa")


class Mailer:
    """
    Sends mail through the SMTP server described by the "mail" config section:

        host, port, username, password, encryption ("tls", "ssl" or ""),
        from {address, name}
    """
    def __init__(self, config, smtp_factory=None):
        self.config = dict(config)
        self.smtp_factory = smtp_factory

    @property
    def sender(self):
        sender = self.config.get("from") or {}
        address = sender.get("address") or self.config.get("username", "")
        name = sender.get("name")
        return f"{name} <{address}>" if name else address

    def message(self, to, subject, body, html=False, reply_to=None):
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to if isinstance(to, str) else ", ".join(to)
        msg["Subject"] = subject
        if reply_to:
            msg["Reply-To"] = reply_to
        if html:
            msg.set_content("This message requires an HTML capable mail client.")
            msg.add_alternative(body, subtype="html")
        else:
            msg.set_content(body)
        return msg

    def connect(self):
        host = self.config.get("host", "localhost")
        encryption = (self.config.get("encryption") or self.config.get("secure") or "").lower()
        port = int(self.config.get("port", 465 if encryption == "ssl" else 587))
        if self.smtp_factory is not None:
            smtp = self.smtp_factory(host, port)
        elif encryption == "ssl":
            smtp = smtplib.SMTP_SSL(host, port, timeout=30)
        else:
            smtp = smtplib.SMTP(host, port, timeout=30)
        if encryption == "tls":
            smtp.starttls()
        if self.config.get("username"):
            smtp.login(self.config["username"], self.config.get("password", ""))
        return smtp

    def send(self, to, subject, body, html=False, reply_to=None):
        msg = self.message(to, subject, body, html=html, reply_to=reply_to)
        smtp = self.connect()
        try:
            smtp.send_message(msg)
        finally:
            smtp.quit()
        logger.info("Mail sent to %s: %s", msg["To"], subject)
        return True
