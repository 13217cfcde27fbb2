import json
import logging

from nightvibe.obs import logging as obs_logging


def _record(name: str = "nightvibe.chat", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(name, level, __file__, 1, "message_sent", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_redacts_personal_fields_and_adds_context():
    token = obs_logging.bind_context(request_id="req-1", user_id="u1")
    try:
        line = obs_logging.JSONLogFormatter().format(
            _record(content="hi there", phone="5551234567", receiver_id="u2", reasons=["a"] * 12)
        )
    finally:
        obs_logging.reset_context(token)

    payload = json.loads(line)
    assert payload["msg"] == "message_sent"
    assert payload["request_id"] == "req-1"
    assert payload["user_id"] == "u1"
    assert payload["content"] == "[redacted]"
    assert payload["phone"] == "[redacted]"
    assert payload["receiver_id"] == "u2"
    assert len(payload["reasons"]) == 11
    assert obs_logging.current_request_id() is None


def test_sampling_keeps_moderation_audit_trail(monkeypatch):
    monkeypatch.setattr(obs_logging.settings, "obs_log_sampling_rate_info", 0.0)
    sampler = obs_logging.InfoSamplingFilter()

    assert sampler.filter(_record("nightvibe.moderation.users")) is True
    assert sampler.filter(_record("nightvibe.chat", level=logging.WARNING)) is True
    assert sampler.filter(_record("nightvibe.chat")) is False
