from __future__ import annotations

from replyroute.core.directives import parse_reply_directives, split_media_from_output


def test_extracts_media_lines() -> None:
    text, media, audio = split_media_from_output(
        "Here is the chart\nMEDIA: https://example.com/chart.png\nMEDIA: `/tmp/report.pdf`"
    )

    assert text == "Here is the chart"
    assert media == ["https://example.com/chart.png", "/tmp/report.pdf"]
    assert audio is False


def test_keeps_media_lines_inside_code_fences() -> None:
    raw = "```\nMEDIA: https://example.com/a.png\n```"

    text, media, _ = split_media_from_output(raw)

    assert media == []
    assert text == raw


def test_keeps_media_lines_that_are_not_urls_or_paths() -> None:
    text, media, _ = split_media_from_output("MEDIA: a picture of a cat")

    assert media == []
    assert text == "MEDIA: a picture of a cat"


def test_audio_as_voice_tag_is_removed() -> None:
    text, media, audio = split_media_from_output("[[audio_as_voice]]\nMEDIA: ./out.ogg")

    assert text == ""
    assert media == ["./out.ogg"]
    assert audio is True


def test_collapses_blank_line_runs_left_by_removed_lines() -> None:
    text, _, _ = split_media_from_output("first\n\nMEDIA: https://example.com/a.png\n\nsecond")

    assert text == "first\n\nsecond"


def test_reply_to_current_uses_current_message_id() -> None:
    parsed = parse_reply_directives("[[reply_to_current]] sure thing", current_message_id="m-7")

    assert parsed.text == "sure thing"
    assert parsed.reply_to_current is True
    assert parsed.reply_to_tag is True
    assert parsed.reply_to_id == "m-7"


def test_explicit_reply_to_id() -> None:
    parsed = parse_reply_directives("ok [[ reply_to : 1234 ]] done")

    assert parsed.text == "ok done"
    assert parsed.reply_to_id == "1234"
    assert parsed.reply_to_current is False


def test_silent_token_empties_text() -> None:
    parsed = parse_reply_directives("NO_REPLY")

    assert parsed.is_silent is True
    assert parsed.text == ""


def test_custom_silent_token() -> None:
    assert parse_reply_directives("HUSH", silent_token="HUSH").is_silent is True
    assert parse_reply_directives("HUSH").is_silent is False


def test_plain_text_passes_through() -> None:
    parsed = parse_reply_directives("  hello world  ")

    assert parsed.text == "hello world"
    assert parsed.media_urls == []
    assert parsed.reply_to_id is None
    assert parsed.reply_to_tag is False
