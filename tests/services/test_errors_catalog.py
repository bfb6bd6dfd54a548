import pytest

from pgmigrator.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("invalid_selection", selection="9", count=3)

    assert "Invalid selection `9`." in message
    assert "between 1 and 3" in message
    assert "Suggested action:" in message


def test_actionable_error_rejects_unknown_key():
    with pytest.raises(KeyError):
        actionable_error("does_not_exist")
