"""Unit tests for the logging filter and formatter."""

import json
import logging

from explain_overlay.utils.logging_config import JSONFormatter, PrivacyFilter


def make_record(msg, *args, **extra):
    record = logging.LogRecord(
        name="explain_overlay.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=args,
        exc_info=None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_privacy_filter_redacts_user_names_in_arguments():
    record = make_record("Saved %s", "/Users/alice/Library/Application Support/ExplainOverlay/shortcuts.json")

    assert PrivacyFilter().filter(record)
    assert record.getMessage() == "Saved /Users/[USER]/Library/Application Support/ExplainOverlay/shortcuts.json"


def test_privacy_filter_redacts_temporary_captures():
    record = make_record("Could not delete %s", "/var/folders/xy/abc123/T/explain-overlay-1.png")

    PrivacyFilter().filter(record)

    assert record.getMessage() == "Could not delete [TEMP]"


def test_privacy_filter_leaves_plain_messages():
    record = make_record("Shortcut %s registered", "mod+shift+x")

    PrivacyFilter().filter(record)

    assert record.getMessage() == "Shortcut mod+shift+x registered"


def test_json_formatter_includes_extra_fields():
    record = make_record("Capture %s", "started", action="textSelection")

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "Capture started"
    assert data["level"] == "INFO"
    assert data["logger"] == "explain_overlay.test"
    assert data["extra_action"] == "textSelection"


def test_privacy_filter_truncates_long_quoted_text():
    selection = "a sentence copied from some document that should stay private"
    record = make_record("Clipboard held %r", selection)

    PrivacyFilter().filter(record)

    assert record.getMessage() == "Clipboard held 'a sentence copied from some docu...'"
