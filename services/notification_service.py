"""
Invitation e-mail delivery over SMTP.

Delivery is best effort: ``send_invitation`` returns ``False`` instead of
raising so that a mail outage never fails an invitation.
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

logger = logging.getLogger(__name__)


class SmtpNotifier:
    """Sends invitation e-mails through the configured SMTP relay."""

    def __init__(self, host, port, username=None, password=None, use_tls=True,
                 timeout=10, from_address='noreply@coparenthq.app', from_name='CoParentHQ'):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.from_address = from_address
        self.from_name = from_name

    @property
    def configured(self):
        return bool(self.username and self.password)

    def send_invitation(self, email, family_name, inviter_name, invitation_url, expires_at,
                        children=(), message=None):
        if not self.configured:
            logger.warning('SMTP not configured, skipping invitation email to %s', email)
            return False

        msg = build_invitation_message(
            email, family_name, inviter_name, invitation_url, expires_at,
            children=children, message=message,
        )
        msg['From'] = f'{self.from_name} <{self.from_address}>'

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError):
            logger.exception('Failed to send invitation email to %s', email)
            return False

        logger.info('Invitation email sent to %s', email)
        return True


def build_invitation_message(email, family_name, inviter_name, invitation_url, expires_at,
                             children=(), message=None):
    """Assemble the multipart (plain text + HTML) invitation e-mail."""
    expiry = expires_at.strftime('%d %B %Y')
    child_names = ', '.join(children)

    text_lines = [
        'Hi,',
        '',
        f'{inviter_name} has invited you to co-parent in {family_name} on CoParentHQ.',
    ]
    if child_names:
        text_lines.append(f'Children: {child_names}')
    if message:
        text_lines += ['', f'Message from {inviter_name}:', message]
    text_lines += [
        '',
        'To accept the invitation, visit:',
        invitation_url,
        '',
        f'This invitation expires on {expiry}.',
    ]
    text_body = '\n'.join(text_lines)

    html_body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2>You're invited to join {escape(family_name)}</h2>
        <p>{escape(inviter_name)} has invited you to co-parent on CoParentHQ.</p>
        {f'<p>Children: {escape(child_names)}</p>' if child_names else ''}
        {f'<blockquote>{escape(message)}</blockquote>' if message else ''}
        <p><a href="{escape(invitation_url)}">Accept invitation</a></p>
        <p style="color: #6B7280; font-size: 12px;">This invitation expires on {expiry}.</p>
    </body>
    </html>
    """

    msg = MIMEMultipart('alternative')
    msg['Subject'] = f"You're invited to join {family_name} on CoParentHQ"
    msg['To'] = email
    msg.attach(MIMEText(text_body, 'plain'))
    msg.attach(MIMEText(html_body, 'html'))
    return msg


def init_notifier(app):
    """Install the notification collaborator on ``app.extensions['notifier']``."""
    notifier = SmtpNotifier(
        app.config.get('SMTP_HOST'),
        app.config.get('SMTP_PORT'),
        username=app.config.get('SMTP_USERNAME'),
        password=app.config.get('SMTP_PASSWORD'),
        use_tls=app.config.get('SMTP_USE_TLS', True),
        timeout=app.config.get('SMTP_TIMEOUT_SECONDS', 10),
        from_address=app.config.get('MAIL_FROM_ADDRESS'),
        from_name=app.config.get('MAIL_FROM_NAME'),
    )
    app.extensions['notifier'] = notifier
    return notifier


def get_notifier():
    from flask import current_app
    return current_app.extensions['notifier']
