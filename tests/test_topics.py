"""Tests de derivación del filtro de suscripción."""

import pytest

from mqtt_collector.core.transport.topics import derive_topic_filter, matches


class TestDeriveTopicFilter:

    def test_empty_base_topic_subscribes_to_everything(self):
        assert derive_topic_filter("") == "#"

    def test_base_topic_is_scoped_under_leading_slash(self):
        assert derive_topic_filter("sensors") == "/sensors/#"

    def test_nested_base_topic(self):
        assert derive_topic_filter("plant/line1") == "/plant/line1/#"

    @pytest.mark.parametrize("topic", ["a", "a/b", "/x/y"])
    def test_empty_base_topic_matches_any_depth(self, topic):
        assert matches(derive_topic_filter(""), topic)

    @pytest.mark.parametrize("topic", ["/sensors/temp", "/sensors/a/b"])
    def test_base_topic_matches_under_prefix(self, topic):
        assert matches(derive_topic_filter("sensors"), topic)

    @pytest.mark.parametrize("topic", ["/other/temp", "sensors/temp", "/sensorsX/temp"])
    def test_base_topic_rejects_outside_prefix(self, topic):
        assert not matches(derive_topic_filter("sensors"), topic)
