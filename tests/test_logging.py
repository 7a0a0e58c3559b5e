from config.logging_config import REDACTED, redact_secrets, redact_text


def test_redact_secret_fields():
    event = redact_secrets(
        None,
        "info",
        {"event": "x", "access_token": "EAAB123", "Authorization": "Bearer jwt", "user_id": "u1"},
    )

    assert event["access_token"] == REDACTED
    assert event["Authorization"] == REDACTED
    assert event["user_id"] == "u1"


def test_redact_tokens_inside_urls_and_queries():
    url = "https://graph.test/me?fields=id&access_token=EAAB123&limit=5"

    assert redact_text(url) == f"https://graph.test/me?fields=id&access_token={REDACTED}&limit=5"
    assert redact_text("code=abc&state=%7B%7D") == f"code={REDACTED}&state=%7B%7D"
    assert redact_secrets(None, "info", {"query": "code=abc"})["query"] == f"code={REDACTED}"
