"""
Tests for User-Agent classification
"""

import pytest

from conftest import USER_AGENTS
from portfolio_analytics.utils.user_agent import classify_browser, classify_device


class TestClassifyDevice:
    @pytest.mark.parametrize(
        "agent,expected",
        [
            ("desktop_chrome", "desktop"),
            ("firefox", "desktop"),
            ("iphone_safari", "mobile"),
            ("android_phone", "mobile"),
            ("ipad_safari", "tablet"),
            ("android_tablet", "tablet"),
        ],
    )
    def test_known_agents(self, agent, expected):
        assert classify_device(USER_AGENTS[agent]) == expected

    def test_ipad_is_not_mobile(self):
        """iPad agents also carry the Mobile token"""
        assert "Mobile" in USER_AGENTS["ipad_safari"]
        assert classify_device(USER_AGENTS["ipad_safari"]) == "tablet"

    def test_unrecognized_agent(self):
        assert classify_device("curl/8.4.0") == "desktop"


class TestClassifyBrowser:
    @pytest.mark.parametrize(
        "agent,expected",
        [
            ("desktop_chrome", "Chrome"),
            ("android_phone", "Chrome"),
            ("iphone_safari", "Safari"),
            ("firefox", "Firefox"),
            ("edge", "Edge"),
        ],
    )
    def test_known_agents(self, agent, expected):
        assert classify_browser(USER_AGENTS[agent]) == expected

    def test_opera_before_chrome(self):
        agent = USER_AGENTS["desktop_chrome"] + " OPR/105.0.0.0"

        assert classify_browser(agent) == "Opera"

    def test_unknown_browser(self):
        assert classify_browser("curl/8.4.0") == "unknown"
