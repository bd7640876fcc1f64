"""Tests for launch status semantics."""

import pytest

from src.chain.models import Launch, LaunchStatus
from tests.factories import make_launch


class TestLaunchStatus:
    @pytest.mark.parametrize(
        ("current", "nxt"),
        [
            (LaunchStatus.ACTIVE, LaunchStatus.PENDING_GRADUATION),
            (LaunchStatus.ACTIVE, LaunchStatus.GRADUATED),
            (LaunchStatus.ACTIVE, LaunchStatus.CANCELLED),
            (LaunchStatus.PENDING_GRADUATION, LaunchStatus.GRADUATED),
            (LaunchStatus.GRADUATED, LaunchStatus.GRADUATED),
        ],
    )
    def test_allowed(self, current: LaunchStatus, nxt: LaunchStatus) -> None:
        assert current.can_transition_to(nxt)

    @pytest.mark.parametrize(
        ("current", "nxt"),
        [
            (LaunchStatus.GRADUATED, LaunchStatus.ACTIVE),
            (LaunchStatus.GRADUATED, LaunchStatus.PENDING_GRADUATION),
            (LaunchStatus.CANCELLED, LaunchStatus.ACTIVE),
            (LaunchStatus.PENDING_GRADUATION, LaunchStatus.ACTIVE),
            (LaunchStatus.CANCELLED, LaunchStatus.GRADUATED),
        ],
    )
    def test_regressions_rejected(self, current: LaunchStatus, nxt: LaunchStatus) -> None:
        assert not current.can_transition_to(nxt)

    def test_parse_labels_and_tags(self) -> None:
        assert LaunchStatus.parse("PendingGraduation") is LaunchStatus.PENDING_GRADUATION
        assert LaunchStatus.parse("GRADUATED") is LaunchStatus.GRADUATED
        assert LaunchStatus.parse(3) is LaunchStatus.CANCELLED
        with pytest.raises(ValueError):
            LaunchStatus.parse("Paused")

    def test_launch_survives_json_round_trip(self) -> None:
        launch = make_launch(status=LaunchStatus.PENDING_GRADUATION, buy_volume=2**90)
        restored = Launch.model_validate(launch.model_dump(mode="json"))
        assert restored == launch
        assert restored.status is LaunchStatus.PENDING_GRADUATION
