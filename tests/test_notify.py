import smtplib

import pytest

from aitrader import notify
from aitrader.notify import CronErrorNotifier, describe_error, render_error_html, send_email


class FakeSMTP:
    instances = []

    def __init__(self, host, port):
        self.host = host
        self.port = port
        self.messages = []
        self.logged_in = None
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg):
        self.messages.append(msg)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(notify.smtplib, 'SMTP', FakeSMTP)
    return FakeSMTP


def test_describe_error():
    assert describe_error(ValueError('bad value')) == 'bad value'
    assert describe_error(KeyError()) == 'KeyError'
    assert describe_error('plain') == 'plain'
    assert '"status": 500' in describe_error({'status': 500})


def test_render_error_html_escapes_content():
    body = render_error_html('Run <failed>', 'x < y', 'Ticker: A&B')

    assert 'Run &lt;failed&gt;' in body
    assert 'x &lt; y' in body
    assert 'Ticker: A&amp;B' in body


def test_send_email(fake_smtp):
    sent = send_email('ops@example.com', 'Subject', '<p>hi</p>', 'smtp.example.com', 587, 'bot', 'pw')

    assert sent is True
    server = fake_smtp.instances[0]
    assert (server.host, server.port) == ('smtp.example.com', 587)
    assert server.logged_in == ('bot', 'pw')
    assert server.messages[0]['To'] == 'ops@example.com'


def test_send_email_requires_smtp_settings(fake_smtp):
    assert send_email('ops@example.com', 'Subject', '<p>hi</p>', None, 587, 'bot', 'pw') is False
    assert fake_smtp.instances == []


def test_send_email_failure_returns_false(monkeypatch):
    def refuse(host, port):
        raise smtplib.SMTPConnectError(421, 'busy')

    monkeypatch.setattr(notify.smtplib, 'SMTP', refuse)

    assert send_email('ops@example.com', 'Subject', 'body', 'smtp.example.com', 587, 'bot', 'pw') is False


def test_notifier_logs_without_recipient(config, fake_smtp, caplog):
    notifier = CronErrorNotifier(config)

    with caplog.at_level('ERROR'):
        assert notifier.notify('Nasdaq API fetch failed', RuntimeError('503'), 'Ticker: AAPL') is False

    assert 'Nasdaq API fetch failed' in caplog.text
    assert fake_smtp.instances == []


def test_notifier_emails_configured_recipient(config_factory, fake_smtp):
    config = config_factory(
        cron={'error_email': 'ops@example.com'},
        email={'host': 'smtp.example.com', 'port': 2525, 'user': 'bot', 'password': 'pw'},
    )

    assert CronErrorNotifier(config).notify('Run upsert failed', 'duplicate key') is True
    message = fake_smtp.instances[0].messages[0]
    assert message['Subject'] == 'Run upsert failed'
    assert fake_smtp.instances[0].port == 2525


def test_notifier_survives_unexpected_send_errors(config_factory, monkeypatch):
    class BadCredentialsSMTP(FakeSMTP):
        def login(self, user, password):
            raise UnicodeEncodeError('ascii', password, 0, 1, 'ordinal not in range(128)')

    monkeypatch.setattr(notify.smtplib, 'SMTP', BadCredentialsSMTP)
    config = config_factory(
        cron={'error_email': 'ops@example.com'},
        email={'host': 'smtp.example.com', 'port': 587, 'user': 'bot', 'password': 'pässword'},
    )

    assert CronErrorNotifier(config).notify('Run upsert failed', 'duplicate key') is False
