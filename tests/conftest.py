from __future__ import annotations

import pytest

from replyroute.routing import reset_warning_routing


@pytest.fixture(autouse=True)
def _isolate_warning_routing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REPLYROUTE_TOOL_WARNINGS_ENABLED", raising=False)
    monkeypatch.delenv("REPLYROUTE_LOG_LEVEL", raising=False)
    reset_warning_routing()
