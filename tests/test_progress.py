from concurrent.futures import Future

from dbcomply.cli.common.progress import _display_env_label, _state, watch_discovery
from dbcomply.core.models import DiscoveryProgress
from dbcomply.core.status import LoadingStatusTracker


def test_display_env_label_name_before_id_and_aligned():
    names = {"prod": "Production", "dev": "Dev"}
    labels = {
        e: _display_env_label(e, names, name_width=12) for e in ("prod", "dev")
    }

    assert labels["prod"].startswith("Production")
    assert labels["dev"].startswith("Dev")
    assert labels["prod"].index("(id: ") == labels["dev"].index("(id: ")


def test_display_env_label_falls_back_to_id_when_name_missing():
    assert _display_env_label("qa", {"prod": "Production"}, name_width=10) == "qa"
    assert _display_env_label("qa", None, name_width=10) == "qa"


def test_state_labels():
    assert _state(DiscoveryProgress(is_loading=True), done=False)[0] == "LOADING"
    assert _state(DiscoveryProgress(), done=True)[0] == "DONE"
    assert _state(DiscoveryProgress(error="boom"), done=True)[0] == "FAILED"


def test_watch_discovery_returns_final_progress():
    tracker = LoadingStatusTracker()
    tracker.publish("prod", DiscoveryProgress(catalogs_processed=3, total_catalogs=3, run_id=1))
    done: Future = Future()
    done.set_result(None)

    final = watch_discovery(tracker, {"prod": done}, poll_interval=0)

    assert final["prod"].catalogs_processed == 3
