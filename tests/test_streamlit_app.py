from __future__ import annotations

from pathlib import Path

from streamlit.testing.v1 import AppTest

APP = Path(__file__).resolve().parent.parent / "streamlit_app.py"


def test_invalid_timezone_is_reported_not_raised() -> None:
    at = AppTest.from_file(str(APP), default_timeout=30)
    at.run()
    assert at.info  # asks for a pubkey first

    # sidebar text inputs: pubkey, d tag, timezone, secret
    at.text_input[0].input("a" * 64)
    at.text_input[2].input("Mars/Olympus")
    at.run()

    assert not at.exception
    assert any("无效时区" in e.value for e in at.error)
